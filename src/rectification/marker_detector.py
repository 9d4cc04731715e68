"""
Fiducial marker detection.

The pipeline depends only on the ``MarkerDetector`` interface: given an
image, return every marker found (ID + its four corners) plus diagnostics.
``ArucoMarkerDetector`` implements it with OpenCV's ArUco module; any other
detector can be injected into the processor instead.
"""

import abc
import logging
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np

from src.common.types import ImageBuffer
from src.rectification.types import DetectedMarker, DetectionDiagnostics, MarkerSet

logger = logging.getLogger(__name__)


class MarkerDetector(abc.ABC):
    """
    Capability interface for marker detection.

    Implementations must be deterministic for a fixed image and
    configuration, and must return an empty MarkerSet (not raise) when
    nothing is found.
    """

    @abc.abstractmethod
    def detect(self, image: ImageBuffer) -> Tuple[MarkerSet, DetectionDiagnostics]: ...


class ArucoMarkerDetector(MarkerDetector):
    """
    Marker detector backed by ``cv2.aruco.ArucoDetector``.

    Corners are reported in ArUco order: clockwise starting from the
    marker's own top-left corner.

    Example:
        >>> detector = ArucoMarkerDetector("DICT_4X4_50")
        >>> markers, diagnostics = detector.detect(image)
        >>> [m.id for m in markers]
        [2, 0, 3, 1]
    """

    def __init__(
        self,
        dictionary: str = "DICT_4X4_50",
        parameters: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            dictionary: Name of a predefined dictionary, e.g. "DICT_4X4_50".
            parameters: Attribute overrides for cv2.aruco.DetectorParameters.

        Raises:
            ValueError: If the dictionary name or a parameter name is unknown.
        """
        dictionary_id = getattr(cv2.aruco, dictionary, None)
        if dictionary_id is None or not dictionary.startswith("DICT_"):
            raise ValueError(f"Unknown ArUco dictionary: {dictionary}")

        self.dictionary_name = dictionary
        self._dictionary = cv2.aruco.getPredefinedDictionary(dictionary_id)
        self._parameters = cv2.aruco.DetectorParameters()
        self._apply_parameters(parameters or {})
        self._detector = cv2.aruco.ArucoDetector(self._dictionary, self._parameters)

    def _apply_parameters(self, parameters: Dict[str, Any]) -> None:
        mismatched_keys: List[str] = [
            key for key in parameters if not hasattr(self._parameters, key)
        ]
        if mismatched_keys:
            raise ValueError(
                f"The following detector parameters are unknown: {mismatched_keys}"
            )
        for key, value in parameters.items():
            setattr(self._parameters, key, value)
            logger.debug(f"Detector parameter {key} = {value}")

    def detect(self, image: ImageBuffer) -> Tuple[MarkerSet, DetectionDiagnostics]:
        gray = _to_grayscale(image)
        corners_raw, ids_raw, rejected_raw = self._detector.detectMarkers(gray)

        markers: List[DetectedMarker] = []
        # ids is None when nothing is detected
        if ids_raw is not None and len(ids_raw) > 0:
            count = ids_raw.size
            corners_px = np.array(corners_raw).reshape((count, 4, 2))
            for marker_id, marker_corners in zip(ids_raw.reshape(count), corners_px):
                markers.append(DetectedMarker.from_array(int(marker_id), marker_corners))

        diagnostics = DetectionDiagnostics(
            image_width=image.width,
            image_height=image.height,
            rejected_candidates=len(rejected_raw) if rejected_raw is not None else 0,
            dictionary=self.dictionary_name,
        )
        logger.info(
            f"Detected {len(markers)} marker(s) {[m.id for m in markers]} "
            f"({diagnostics.rejected_candidates} rejected candidates)"
        )
        return tuple(markers), diagnostics


def _to_grayscale(image: ImageBuffer) -> np.ndarray:
    data = image.to_numpy()
    if data.ndim == 2:
        return data
    channels = data.shape[2]
    if channels == 1:
        return data[:, :, 0]
    if image.color_order == "BGR":
        code = cv2.COLOR_BGR2GRAY if channels == 3 else cv2.COLOR_BGRA2GRAY
    else:
        code = cv2.COLOR_RGB2GRAY if channels == 3 else cv2.COLOR_RGBA2GRAY
    return cv2.cvtColor(data, code)
