"""
I/O Utilities

Image decode/encode and configuration file helpers. This is the only place
that touches the filesystem; the rectification core works on in-memory
ImageBuffer objects.
"""

import logging
from pathlib import Path
from typing import Any, List, Union

import cv2
import numpy as np
import yaml

from src.common.exceptions import ImageLoadError
from src.common.types import ImageBuffer
from src.utils.constants import IMAGE_EXTENSIONS

logger = logging.getLogger(__name__)


def load_image(path: Union[str, Path]) -> ImageBuffer:
    """
    Load an image from disk as an RGB ImageBuffer.

    OpenCV decodes to BGR; the channels are swapped so downstream stages
    always see RGB. Grayscale and alpha images are normalised to 3 channels.

    Raises:
        ImageLoadError: If the file does not exist or cannot be decoded.
    """
    path = Path(path)
    if not path.is_file():
        raise ImageLoadError(path, "file not found")

    bgr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if bgr is None or bgr.size == 0:
        raise ImageLoadError(path, "unsupported or corrupt image data")

    return _to_rgb_buffer(bgr, path)


def decode_image(data: bytes, source: str = "<bytes>") -> ImageBuffer:
    """
    Decode an in-memory encoded image (PNG, JPEG, ...) as an RGB ImageBuffer.

    Raises:
        ImageLoadError: If the bytes cannot be decoded.
    """
    raw = np.frombuffer(data, dtype=np.uint8)
    bgr = cv2.imdecode(raw, cv2.IMREAD_UNCHANGED) if raw.size else None
    if bgr is None or bgr.size == 0:
        raise ImageLoadError(source, "unsupported or corrupt image data")
    return _to_rgb_buffer(bgr, source)


def _to_rgb_buffer(decoded: np.ndarray, source: Union[str, Path]) -> ImageBuffer:
    if np.issubdtype(decoded.dtype, np.floating):
        # Float TIFF/EXR: OpenCV's convention is intensities in [0, 1]
        decoded = np.nan_to_num(decoded, nan=0.0, posinf=1.0, neginf=0.0)
        decoded = np.round(np.clip(decoded, 0.0, 1.0) * 255.0).astype(np.uint8)
    elif np.issubdtype(decoded.dtype, np.unsignedinteger) and decoded.dtype != np.uint8:
        # 16-bit PNG/TIFF: scale down to 8 bits
        decoded = cv2.convertScaleAbs(decoded, alpha=255.0 / np.iinfo(decoded.dtype).max)
    elif decoded.dtype != np.uint8:
        raise ImageLoadError(source, f"unsupported pixel type {decoded.dtype}")

    if decoded.ndim == 3 and decoded.shape[2] == 1:
        decoded = decoded[:, :, 0]
    if decoded.ndim == 3 and decoded.shape[2] not in (3, 4):
        raise ImageLoadError(source, f"unsupported channel count {decoded.shape[2]}")

    if decoded.ndim == 2:
        rgb = cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGB)
    elif decoded.shape[2] == 4:
        rgb = cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGB)
    else:
        rgb = cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)

    logger.debug(f"Loaded {source}: {rgb.shape[1]}x{rgb.shape[0]}")
    return ImageBuffer(data=rgb, color_order="RGB")


def save_image(image: ImageBuffer, path: Union[str, Path]) -> Path:
    """
    Encode an ImageBuffer to disk, converting RGB back to OpenCV's BGR order.

    Raises:
        OSError: If OpenCV fails to write the file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = image.to_numpy()
    if image.color_order == "RGB" and data.ndim == 3 and data.shape[2] == 3:
        data = cv2.cvtColor(data, cv2.COLOR_RGB2BGR)

    if not cv2.imwrite(str(path), data):
        raise OSError(f"Failed to write image: {path}")
    return path


def list_image_files(directory: Union[str, Path]) -> List[Path]:
    """List image files in a directory (non-recursive), sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"Not a directory: {directory}")
    return sorted(
        p
        for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
    )


def load_yaml(file_path: Union[str, Path]) -> Any:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}
