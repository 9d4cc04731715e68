"""
Common type definitions for the marker rectification pipeline.

This module provides Pydantic-based type definitions for the two primitive
data structures every stage exchanges: pixel buffers and image-plane points.

These types provide:
- Type validation and conversion
- Consistent interfaces across stages
- Integration with numpy arrays and OpenCV
"""

from typing import Tuple, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator


class ImageBuffer(BaseModel):
    """
    Type-safe wrapper for an owned image array (numpy.ndarray).

    Every pipeline stage that transforms an image returns a new ImageBuffer
    rather than mutating its input, so a failure at a later stage leaves the
    earlier outputs intact and inspectable.

    Attributes:
        data: The underlying numpy array containing image data.
            Shape: (H, W, C) for color images, (H, W) for grayscale.
            Dtype: uint8 (0-255).
        color_order: Channel order of color data ("RGB" after loading).

    Example:
        >>> from src.utils.io import load_image
        >>> img_buffer = load_image("card.jpg")
        >>> print(img_buffer.shape)  # (480, 640, 3)
        >>> print(img_buffer.height, img_buffer.width)  # 480, 640
    """

    data: np.ndarray = Field(..., description="Image data as numpy array")
    color_order: str = Field(default="RGB", description="Channel order")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("data")
    @classmethod
    def _validate_image(cls, v: np.ndarray) -> np.ndarray:
        """
        Validate that the numpy array is a valid image.

        Raises:
            ValueError: If array is not a valid image format.
        """
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")

        if v.size == 0:
            raise ValueError("Image array is empty")

        if len(v.shape) not in (2, 3):
            raise ValueError(
                f"Expected 2D (grayscale) or 3D (color) image, got shape {v.shape}"
            )

        if len(v.shape) == 3 and v.shape[2] not in (1, 3, 4):
            raise ValueError(
                f"Expected 1, 3, or 4 channels for color image, got {v.shape[2]}"
            )

        if v.dtype != np.uint8:
            raise ValueError(
                f"Expected uint8 dtype for image, got {v.dtype}. "
                "Images should be in range [0, 255]"
            )

        return v

    @field_validator("color_order")
    @classmethod
    def _validate_color_order(cls, v: str) -> str:
        if v not in ("RGB", "BGR", "GRAY"):
            raise ValueError(f"Unsupported color order: {v}")
        return v

    @property
    def shape(self) -> Tuple[int, ...]:
        """Get image shape (H, W) or (H, W, C)."""
        return self.data.shape

    @property
    def height(self) -> int:
        """Get image height in pixels."""
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        """Get image width in pixels."""
        return int(self.data.shape[1])

    @property
    def size(self) -> Tuple[int, int]:
        """Get (width, height), the order OpenCV expects for sizes."""
        return (self.width, self.height)

    @property
    def channels(self) -> int:
        """Get number of channels (1 for grayscale, 3 for RGB/BGR, 4 for RGBA)."""
        if len(self.data.shape) == 2:
            return 1
        return int(self.data.shape[2])

    @property
    def is_grayscale(self) -> bool:
        """Check if image is grayscale (single channel)."""
        return len(self.data.shape) == 2

    def to_numpy(self) -> np.ndarray:
        """Get underlying numpy array."""
        return self.data

    def copy(self) -> "ImageBuffer":
        """
        Create a deep copy of the image buffer.

        Returns:
            New ImageBuffer instance with copied data.
        """
        return ImageBuffer(data=self.data.copy(), color_order=self.color_order)

    def with_data(self, data: np.ndarray) -> "ImageBuffer":
        """Wrap a new array, keeping this buffer's channel order."""
        return ImageBuffer(data=data, color_order=self.color_order)

    def __repr__(self) -> str:
        return (
            f"ImageBuffer(shape={self.shape}, dtype={self.data.dtype}, "
            f"color_order={self.color_order})"
        )


class Point2D(BaseModel):
    """
    Floating-point image-plane coordinate (x, y) in pixels.

    Always expressed in pixels of the image the point was detected against;
    no unit conversion is applied.

    Example:
        >>> point = Point2D(x=100.5, y=200.25)
        >>> arr = point.to_numpy()  # array([100.5, 200.25])
        >>> point2 = Point2D.from_numpy(np.array([150, 250]))
    """

    x: float = Field(..., description="X-coordinate (horizontal)")
    y: float = Field(..., description="Y-coordinate (vertical)")

    model_config = {"frozen": True}

    @field_validator("x", "y", mode="before")
    @classmethod
    def _convert_to_float(cls, v: Union[int, float, np.number]) -> float:
        if isinstance(v, (int, float, np.number)):
            return float(v)
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Point2D":
        """
        Create Point2D from numpy array.

        Raises:
            ValueError: If array shape is not (2,).
        """
        arr = np.asarray(arr)
        if arr.shape != (2,):
            raise ValueError(f"Expected array of shape (2,), got {arr.shape}")
        return cls(x=float(arr[0]), y=float(arr[1]))

    def to_numpy(self, dtype: type = np.float32) -> np.ndarray:
        """Convert Point2D to numpy array of shape (2,)."""
        return np.array([self.x, self.y], dtype=dtype)

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def distance_to(self, other: "Point2D") -> float:
        """Calculate Euclidean distance to another point."""
        dx = self.x - other.x
        dy = self.y - other.y
        return float(np.sqrt(dx * dx + dy * dy))

    def __repr__(self) -> str:
        return f"Point2D(x={self.x:.2f}, y={self.y:.2f})"
