"""
Data types and structures for the Rectification module.

Provides type-safe containers for the requested output, detected markers,
the ordered marker quadrilateral, pipeline results and the tagged source
states a caller holds between runs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field

from src.common.exceptions import RectificationError
from src.common.types import ImageBuffer, Point2D
from src.utils.constants import (
    DEFAULT_OUTPUT_HEIGHT,
    DEFAULT_OUTPUT_WIDTH,
    DEFAULT_ZOOM,
    MIN_ZOOM,
)


class OutputSpec(BaseModel):
    """
    Requested canonical output frame, constant for one rectification call.

    Attributes:
        width: Output width in pixels.
        height: Output height in pixels.
        zoom: Margin factor. 1.0 makes the output edges coincide with the
            marker quadrilateral; larger values keep proportionally more of
            the surrounding image.
    """

    width: int = Field(default=DEFAULT_OUTPUT_WIDTH, gt=0)
    height: int = Field(default=DEFAULT_OUTPUT_HEIGHT, gt=0)
    zoom: float = Field(default=DEFAULT_ZOOM, ge=MIN_ZOOM)

    model_config = {"frozen": True}

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) in OpenCV order."""
        return (self.width, self.height)

    def with_zoom(self, zoom: float) -> "OutputSpec":
        return OutputSpec(width=self.width, height=self.height, zoom=zoom)


@dataclass(frozen=True)
class DetectedMarker:
    """
    One fiducial marker found by a detection pass.

    Attributes:
        id: Decoded integer ID of the printed code.
        corners: The marker's own 4 corners in detector order (for ArUco:
            clockwise starting at the marker's top-left).
    """

    id: int
    corners: Tuple[Point2D, Point2D, Point2D, Point2D]

    def __post_init__(self):
        if len(self.corners) != 4:
            raise ValueError(
                f"Marker {self.id}: expected 4 corners, got {len(self.corners)}"
            )

    @classmethod
    def from_array(cls, marker_id: int, corners: np.ndarray) -> "DetectedMarker":
        """Build from an array of shape (4, 2) (any leading singleton axes are dropped)."""
        corners = np.asarray(corners, dtype=np.float64).reshape(-1, 2)
        return cls(
            id=int(marker_id),
            corners=tuple(Point2D.from_numpy(c) for c in corners),
        )

    def corner_array(self) -> np.ndarray:
        """Corners as float32 array of shape (4, 2)."""
        return np.array([c.to_tuple() for c in self.corners], dtype=np.float32)

    def center(self) -> Point2D:
        """Mean of the four corners."""
        return Point2D.from_numpy(self.corner_array().astype(np.float64).mean(axis=0))


MarkerSet = Tuple[DetectedMarker, ...]


@dataclass(frozen=True)
class DetectionDiagnostics:
    """Side information from one detection pass."""

    image_width: int
    image_height: int
    rejected_candidates: int = 0
    dictionary: str = ""

    @property
    def image_size(self) -> Tuple[int, int]:
        return (self.image_width, self.image_height)


@dataclass(frozen=True)
class OrderedQuad:
    """
    Four representative marker points in canonical order.

    Order is always (top-left, top-right, bottom-right, bottom-left). The
    quad is only ever built complete; there is no partial form.
    """

    top_left: Point2D
    top_right: Point2D
    bottom_right: Point2D
    bottom_left: Point2D

    @classmethod
    def from_points(cls, points: Sequence[Point2D]) -> "OrderedQuad":
        """
        Build from a sequence already in TL, TR, BR, BL order.

        Raises:
            ValueError: If the sequence does not hold exactly 4 points.
        """
        points = list(points)
        if len(points) != 4:
            raise ValueError(f"Expected exactly 4 points, got {len(points)}")
        return cls(*points)

    @classmethod
    def from_array(cls, pts: Union[np.ndarray, list]) -> "OrderedQuad":
        pts = np.asarray(pts, dtype=np.float64)
        if pts.shape != (4, 2):
            raise ValueError(
                f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}"
            )
        return cls.from_points([Point2D.from_numpy(p) for p in pts])

    @property
    def points(self) -> Tuple[Point2D, Point2D, Point2D, Point2D]:
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def to_numpy(self, dtype: type = np.float32) -> np.ndarray:
        """Points as array of shape (4, 2) in TL, TR, BR, BL order."""
        return np.array([p.to_tuple() for p in self.points], dtype=dtype)

    def __len__(self) -> int:
        return 4

    def __iter__(self):
        return iter(self.points)

    def __getitem__(self, index: int) -> Point2D:
        return self.points[index]


class RectificationStatus(Enum):
    """Pipeline outcome."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class RectificationResult:
    """
    Output from the rectification pipeline.

    Attributes:
        status: SUCCESS or FAILED.
        image: The rectified output (None if the pipeline failed).
        error: The typed failure (None on success).
        output_spec: The requested output frame.
        working_size: (width, height) of the image after pre-resizing.
        scale: Factor applied by the resizer (1.0 when no resize happened).
        marker_ids: IDs seen by the detector, in detection order.
        quad: Ordered marker quadrilateral in working-image pixels.
        homography: 3x3 perspective transform that was applied.
    """

    status: RectificationStatus
    image: Optional[ImageBuffer]
    error: Optional[RectificationError]
    output_spec: OutputSpec
    working_size: Optional[Tuple[int, int]] = None
    scale: float = 1.0
    marker_ids: Tuple[int, ...] = field(default_factory=tuple)
    quad: Optional[OrderedQuad] = None
    homography: Optional[np.ndarray] = None

    def is_success(self) -> bool:
        """Check if the pipeline produced an image."""
        return self.status == RectificationStatus.SUCCESS

    def get_error_message(self) -> str:
        """Get human-readable status message."""
        if self.is_success():
            return "Rectification succeeded"
        return str(self.error) if self.error else "Rectification failed"

    def raise_for_error(self) -> ImageBuffer:
        """Return the image, or re-raise the stored failure."""
        if self.error is not None:
            raise self.error
        return self.image


@dataclass(frozen=True)
class NotLoaded:
    """Nothing has been loaded or produced yet."""


@dataclass(frozen=True, eq=False)
class Loaded:
    """An image is available, with a label describing where it came from."""

    image: ImageBuffer
    source: str = ""


@dataclass(frozen=True, eq=False)
class Failed:
    """The last attempt to produce an image failed."""

    error: RectificationError


ImageState = Union[NotLoaded, Loaded, Failed]
