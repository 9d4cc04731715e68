"""
Marker-Framed Object Rectification

Finds the four fiducial markers printed at the corners of a flat object
(ID card, tag) and warps the photograph into a fixed-size, top-down view.

Pipeline stages:
1. Pre-resize (bound the working resolution)
2. Marker detection (ArUco)
3. Corner resolution (marker IDs 0..3 -> TL, TR, BR, BL)
4. Perspective rectification (homography warp + crop)
"""

from src.common.exceptions import (
    DegenerateGeometryError,
    ImageLoadError,
    MarkerCountError,
    MarkerIdentityError,
    NoImageLoadedError,
    RectificationError,
)
from src.rectification.config_loader import get_default_config, load_config
from src.rectification.corner_resolver import CORNER_ID_MAP, resolve
from src.rectification.marker_detector import ArucoMarkerDetector, MarkerDetector
from src.rectification.processor import RectificationProcessor, process_rectification
from src.rectification.rectifier import rectify
from src.rectification.resizer import resize_if_larger
from src.rectification.session import RectificationSession
from src.rectification.types import (
    DetectedMarker,
    Failed,
    Loaded,
    NotLoaded,
    OrderedQuad,
    OutputSpec,
    RectificationResult,
    RectificationStatus,
)

__all__ = [
    "RectificationProcessor",
    "RectificationSession",
    "process_rectification",
    "load_config",
    "get_default_config",
    "resize_if_larger",
    "MarkerDetector",
    "ArucoMarkerDetector",
    "resolve",
    "CORNER_ID_MAP",
    "rectify",
    "DetectedMarker",
    "OrderedQuad",
    "OutputSpec",
    "RectificationResult",
    "RectificationStatus",
    "NotLoaded",
    "Loaded",
    "Failed",
    "RectificationError",
    "ImageLoadError",
    "MarkerCountError",
    "MarkerIdentityError",
    "DegenerateGeometryError",
    "NoImageLoadedError",
]
