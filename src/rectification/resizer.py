"""
Working-resolution bound for input photographs.

Large camera images are shrunk before marker detection so detection and
warping run on a predictable number of pixels. Smaller images are never
upscaled.
"""

import logging
from typing import Tuple

import cv2

from src.common.types import ImageBuffer

logger = logging.getLogger(__name__)


def compute_scale_factor(
    image_size: Tuple[int, int], max_size: Tuple[int, int]
) -> float:
    """
    Largest uniform factor (<= 1.0) that fits ``image_size`` inside ``max_size``.

    Args:
        image_size: (width, height) of the image.
        max_size: (width, height) bound.

    Returns:
        1.0 if the image already fits, otherwise min(max_w / w, max_h / h).

    Raises:
        ValueError: If any dimension is not positive.

    Example:
        >>> compute_scale_factor((800, 600), (600, 300))
        0.5
    """
    width, height = image_size
    max_width, max_height = max_size
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size: {width}x{height}")
    if max_width <= 0 or max_height <= 0:
        raise ValueError(f"Invalid maximum size: {max_width}x{max_height}")

    if width <= max_width and height <= max_height:
        return 1.0
    return min(max_width / width, max_height / height)


def resize_if_larger(
    image: ImageBuffer,
    max_size: Tuple[int, int],
    interpolation: int = cv2.INTER_AREA,
) -> ImageBuffer:
    """
    Shrink an image uniformly so that it fits within ``max_size``.

    If both dimensions already fit the same image is returned untouched.
    Otherwise a new image is produced, scaled by the largest factor that
    makes both dimensions fit, so the aspect ratio is kept (up to the
    rounding of the new size to whole pixels).

    Args:
        image: Source image.
        max_size: (width, height) bound.
        interpolation: OpenCV interpolation flag. INTER_AREA avoids aliasing
            when downscaling.

    Returns:
        The input image, or a new downscaled ImageBuffer.

    Example:
        >>> small = resize_if_larger(image, (600, 300))  # 800x600 input
        >>> small.size
        (400, 300)
    """
    scale = compute_scale_factor(image.size, max_size)
    if scale >= 1.0:
        logger.debug(f"Image {image.width}x{image.height} within {max_size}, no resize")
        return image

    max_width, max_height = max_size
    new_width = min(max_width, max(1, int(round(image.width * scale))))
    new_height = min(max_height, max(1, int(round(image.height * scale))))

    resized = cv2.resize(
        image.to_numpy(), (new_width, new_height), interpolation=interpolation
    )
    logger.debug(
        f"Resized {image.width}x{image.height} -> {new_width}x{new_height} "
        f"(scale={scale:.4f})"
    )
    return image.with_data(resized)
