"""
Shared Constants for the Marker Rectification Pipeline

This module contains constants used across multiple modules to ensure
consistency and avoid duplication.
"""

# ============================================================================
# Fiducial Marker Layout
# ============================================================================
# Markers are printed so that ID 0 sits at the top-left corner of the object,
# then clockwise: 1 top-right, 2 bottom-right, 3 bottom-left.
EXPECTED_MARKER_COUNT = 4
EXPECTED_MARKER_IDS = (0, 1, 2, 3)

# Canonical corner ordering of an OrderedQuad
CORNER_NAMES = ("top_left", "top_right", "bottom_right", "bottom_left")

# ============================================================================
# Output Defaults
# ============================================================================
DEFAULT_OUTPUT_WIDTH = 600
DEFAULT_OUTPUT_HEIGHT = 300
DEFAULT_ZOOM = 1.2
MIN_ZOOM = 1.0  # Anything below would crop into the marker quadrilateral

# ============================================================================
# Image I/O
# ============================================================================
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp")
