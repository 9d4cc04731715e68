"""
Corner resolution: detected markers -> ordered quadrilateral.

Markers are printed with a fixed ID at each physical corner of the object.
The mapping below is that print convention; it is not inferred from the
marker positions in the image.
"""

import logging
from typing import Dict, Literal, Sequence

from src.common.exceptions import MarkerCountError, MarkerIdentityError
from src.common.types import Point2D
from src.rectification.types import DetectedMarker, OrderedQuad
from src.utils.constants import CORNER_NAMES, EXPECTED_MARKER_COUNT

logger = logging.getLogger(__name__)

# Marker ID -> (quad slot, index of the marker's own corner facing outwards).
# ArUco reports corners clockwise from the marker's top-left, so the marker
# sitting at a given object corner has its outer corner at the same index.
CORNER_ID_MAP: Dict[int, tuple] = {
    0: ("top_left", 0),
    1: ("top_right", 1),
    2: ("bottom_right", 2),
    3: ("bottom_left", 3),
}

ReferencePoint = Literal["outer_corner", "center"]


def representative_point(
    marker: DetectedMarker, reference_point: ReferencePoint = "outer_corner"
) -> Point2D:
    """
    The single point of a marker used as a quad corner.

    Args:
        marker: A marker whose ID is in CORNER_ID_MAP.
        reference_point: "outer_corner" for the corner pointing away from
            the object, "center" for the mean of the four corners.
    """
    if reference_point == "center":
        return marker.center()
    if reference_point == "outer_corner":
        _, corner_index = CORNER_ID_MAP[marker.id]
        return marker.corners[corner_index]
    raise ValueError(f"Unknown reference point: {reference_point}")


def resolve(
    markers: Sequence[DetectedMarker],
    reference_point: ReferencePoint = "outer_corner",
) -> OrderedQuad:
    """
    Map a detected marker set onto the (TL, TR, BR, BL) quadrilateral.

    Args:
        markers: Every marker returned by one detection pass.
        reference_point: Which point of each marker becomes the quad corner.

    Returns:
        OrderedQuad whose i-th point comes from the marker with ID i.

    Raises:
        MarkerCountError: Unless exactly 4 markers were detected. Extra
            detections are not filtered out.
        MarkerIdentityError: If the 4 IDs are not exactly {0, 1, 2, 3}.

    Example:
        >>> quad = resolve(markers)
        >>> quad.top_left  # representative point of marker 0
    """
    markers = list(markers)
    if len(markers) != EXPECTED_MARKER_COUNT:
        logger.warning(f"Expected {EXPECTED_MARKER_COUNT} markers, found {len(markers)}")
        raise MarkerCountError(found=len(markers))

    found_ids = [m.id for m in markers]
    by_id = {m.id: m for m in markers}
    if len(by_id) != EXPECTED_MARKER_COUNT or set(by_id) != set(CORNER_ID_MAP):
        logger.warning(f"Marker IDs {sorted(found_ids)} do not match the corner layout")
        raise MarkerIdentityError(found_ids)

    slots = {
        CORNER_ID_MAP[marker_id][0]: representative_point(marker, reference_point)
        for marker_id, marker in by_id.items()
    }
    quad = OrderedQuad(**{name: slots[name] for name in CORNER_NAMES})

    logger.debug(
        f"Ordered quad: TL={quad.top_left}, TR={quad.top_right}, "
        f"BR={quad.bottom_right}, BL={quad.bottom_left}"
    )
    return quad
