"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

from typing import Dict, Iterable, Tuple

import cv2
import numpy as np
import pytest

from src.common.types import ImageBuffer
from src.rectification.marker_detector import MarkerDetector
from src.rectification.types import DetectedMarker, DetectionDiagnostics

# Marker centres for the reference 800x600 card: ID -> (x, y)
CARD_MARKER_CENTERS = {0: (50, 50), 1: (750, 50), 2: (750, 550), 3: (50, 550)}
CARD_MARKER_SIZE = 80
CARD_FILL_COLOR = (200, 30, 30)  # RGB


def draw_marker_card(
    centers: Dict[int, Tuple[int, int]],
    image_size: Tuple[int, int] = (800, 600),
    marker_size: int = CARD_MARKER_SIZE,
) -> np.ndarray:
    """
    Render a white RGB image with DICT_4X4_50 markers at ``centers`` and a
    coloured block in the middle of the card.
    """
    width, height = image_size
    image = np.full((height, width, 3), 255, dtype=np.uint8)

    # Card content between the markers
    cv2.rectangle(
        image,
        (width // 2 - 100, height // 2 - 60),
        (width // 2 + 100, height // 2 + 60),
        CARD_FILL_COLOR,
        -1,
    )

    dictionary = cv2.aruco.getPredefinedDictionary(cv2.aruco.DICT_4X4_50)
    half = marker_size // 2
    for marker_id, (cx, cy) in centers.items():
        marker = cv2.aruco.generateImageMarker(dictionary, marker_id, marker_size)
        image[cy - half : cy + half, cx - half : cx + half] = marker[:, :, None]

    return image


def make_marker(marker_id: int, cx: float, cy: float, size: float = 20.0) -> DetectedMarker:
    """Axis-aligned marker centred on (cx, cy), corners clockwise from top-left."""
    h = size / 2.0
    corners = np.array(
        [[cx - h, cy - h], [cx + h, cy - h], [cx + h, cy + h], [cx - h, cy + h]]
    )
    return DetectedMarker.from_array(marker_id, corners)


class StaticMarkerDetector(MarkerDetector):
    """Detector stub returning a fixed marker set."""

    def __init__(self, markers: Iterable[DetectedMarker]):
        self.markers = tuple(markers)
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        return self.markers, DetectionDiagnostics(
            image_width=image.width, image_height=image.height
        )


@pytest.fixture
def card_image():
    """Fixture providing the reference 800x600 card with markers 0-3."""
    return ImageBuffer(data=draw_marker_card(CARD_MARKER_CENTERS))


@pytest.fixture
def card_image_missing_marker():
    """Fixture providing the reference card with marker 2 occluded."""
    centers = {k: v for k, v in CARD_MARKER_CENTERS.items() if k != 2}
    return ImageBuffer(data=draw_marker_card(centers))


@pytest.fixture
def corner_markers():
    """Fixture providing one marker per canonical ID, in shuffled order."""
    return [
        make_marker(2, 380, 280),
        make_marker(0, 20, 20),
        make_marker(3, 20, 280),
        make_marker(1, 380, 20),
    ]


@pytest.fixture
def static_detector(corner_markers):
    """Fixture providing a detector that always returns ``corner_markers``."""
    return StaticMarkerDetector(corner_markers)


@pytest.fixture
def marker_factory():
    """Fixture providing ``make_marker`` to build synthetic detections."""
    return make_marker


@pytest.fixture
def detector_factory():
    """Fixture providing the StaticMarkerDetector class."""
    return StaticMarkerDetector


@pytest.fixture
def card_factory():
    """Fixture providing ``draw_marker_card`` for custom marker layouts."""
    return draw_marker_card


@pytest.fixture
def card_fill_color():
    """Fixture providing the RGB colour of the card's central block."""
    return CARD_FILL_COLOR
