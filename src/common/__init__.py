"""
Common types shared across the rectification pipeline.

Provides the standardized image and point types consumed and produced by the
resizer, marker detector, corner resolver and rectifier.
"""

from src.common.types import ImageBuffer, Point2D

__all__ = ["ImageBuffer", "Point2D"]
