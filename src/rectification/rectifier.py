"""
Perspective rectification.

Maps the ordered marker quadrilateral onto a fixed-size canonical frame:
a direct 4-point homography solve, a warp of the whole source image, and a
crop to the exact requested output size.
"""

import itertools
import logging
from typing import Literal, Sequence, Tuple, Union

import cv2
import numpy as np

from src.common.exceptions import DegenerateGeometryError, NoImageLoadedError
from src.common.types import ImageBuffer
from src.rectification.types import OrderedQuad, OutputSpec

logger = logging.getLogger(__name__)

MarginAnchor = Literal["center", "top_left"]

# sin of the smallest angle three points may form before counting as collinear
COLLINEARITY_TOLERANCE = 1e-6
DETERMINANT_TOLERANCE = 1e-12


def compute_target_corners(
    spec: OutputSpec, margin_anchor: MarginAnchor = "center"
) -> np.ndarray:
    """
    Where the quad's TL, TR, BR, BL land in output-pixel space.

    The quad is mapped onto a rectangle of ``width / zoom`` x
    ``height / zoom`` so that the full ``width`` x ``height`` frame holds
    the quad plus a margin proportional to ``zoom``. With zoom = 1.0 the
    rectangle is the frame itself: (0,0), (W,0), (W,H), (0,H).

    Args:
        spec: Requested output frame.
        margin_anchor: "center" splits the margin evenly on all sides;
            "top_left" pins the quad at the origin and puts all margin on
            the right and bottom.

    Returns:
        float32 array of shape (4, 2).

    Example:
        >>> compute_target_corners(OutputSpec(width=600, height=300, zoom=1.0))
        array([[  0.,   0.], [600.,   0.], [600., 300.], [  0., 300.]], dtype=float32)
    """
    inner_width = spec.width / spec.zoom
    inner_height = spec.height / spec.zoom

    if margin_anchor == "center":
        x0 = (spec.width - inner_width) / 2.0
        y0 = (spec.height - inner_height) / 2.0
    elif margin_anchor == "top_left":
        x0, y0 = 0.0, 0.0
    else:
        raise ValueError(f"Unknown margin anchor: {margin_anchor}")

    x1 = x0 + inner_width
    y1 = y0 + inner_height
    return np.array([[x0, y0], [x1, y0], [x1, y1], [x0, y1]], dtype=np.float32)


def polygon_area(points: np.ndarray) -> float:
    """Unsigned shoelace area of a polygon given as an (N, 2) array."""
    x = points[:, 0].astype(np.float64)
    y = points[:, 1].astype(np.float64)
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def _cross(o: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    return float((a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0]))


def validate_quad_geometry(
    quad: Union[OrderedQuad, np.ndarray], min_area: float = 1.0
) -> None:
    """
    Check that a quad can define an invertible homography.

    Rejects quads where any three corners are (nearly) collinear, whose
    area is below ``min_area``, or whose corners do not go around a convex
    shape (crossed or folded quads, e.g. from swapped markers).

    Raises:
        DegenerateGeometryError: If any check fails.
    """
    pts = quad.to_numpy(np.float64) if isinstance(quad, OrderedQuad) else (
        np.asarray(quad, dtype=np.float64)
    )
    if pts.shape != (4, 2) or not np.all(np.isfinite(pts)):
        raise DegenerateGeometryError(f"Invalid quadrilateral points: {pts.tolist()}")

    for i, j, k in itertools.combinations(range(4), 3):
        a, b, c = pts[i], pts[j], pts[k]
        scale = np.linalg.norm(b - a) * np.linalg.norm(c - a)
        if scale == 0.0 or abs(_cross(a, b, c)) <= COLLINEARITY_TOLERANCE * scale:
            raise DegenerateGeometryError(
                f"Quadrilateral corners {i}, {j}, {k} are collinear: "
                f"{a.tolist()}, {b.tolist()}, {c.tolist()}"
            )

    area = polygon_area(pts)
    if area < min_area:
        raise DegenerateGeometryError(
            f"Quadrilateral area {area:.2f}px^2 is below the minimum {min_area:.2f}px^2"
        )

    turns = [_cross(pts[i], pts[(i + 1) % 4], pts[(i + 2) % 4]) for i in range(4)]
    if not (all(t > 0 for t in turns) or all(t < 0 for t in turns)):
        logger.warning(f"Non-convex quadrilateral. Cross products: {turns}")
        raise DegenerateGeometryError(
            "Quadrilateral is not convex: the markers may be misplaced or "
            "swapped, so corners do not go around the object in order"
        )


def compute_homography(
    quad: Union[OrderedQuad, np.ndarray],
    target: Union[np.ndarray, Sequence],
    min_area: float = 1.0,
) -> np.ndarray:
    """
    Solve the 3x3 projective transform mapping ``quad`` onto ``target``.

    Exactly four correspondences are available, so this is a direct solve
    (cv2.getPerspectiveTransform), not a least-squares fit.
    ``min_area`` applies to the source quad only.

    Raises:
        DegenerateGeometryError: If either quad is degenerate or the solved
            matrix is non-finite or singular.
    """
    src = quad.to_numpy(np.float32) if isinstance(quad, OrderedQuad) else (
        np.asarray(quad, dtype=np.float32)
    )
    dst = np.asarray(target, dtype=np.float32)

    validate_quad_geometry(src, min_area=min_area)
    # min_area is in source pixels; the target only has to be non-collinear
    validate_quad_geometry(dst, min_area=0.0)

    try:
        matrix = cv2.getPerspectiveTransform(src, dst)
    except cv2.error as e:
        raise DegenerateGeometryError(f"Homography solve failed: {e}") from e

    if not np.all(np.isfinite(matrix)):
        raise DegenerateGeometryError("Homography contains non-finite values")
    det = float(np.linalg.det(matrix))
    if abs(det) < DETERMINANT_TOLERANCE:
        raise DegenerateGeometryError(f"Homography is singular (det={det:.3e})")

    logger.debug(f"Homography:\n{matrix}")
    return matrix


def warp_image(
    image: ImageBuffer,
    homography: np.ndarray,
    canvas_size: tuple,
    interpolation: int = cv2.INTER_LINEAR,
    border_value: Sequence[int] = (0, 0, 0),
) -> ImageBuffer:
    """
    Warp the entire source image into a new canvas of ``canvas_size``
    (width, height). Pixels with no source are filled with ``border_value``.
    """
    fill = tuple(border_value) * 3 if len(border_value) == 1 else tuple(border_value)
    warped = cv2.warpPerspective(
        image.to_numpy(),
        homography,
        canvas_size,
        flags=interpolation,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=fill,
    )
    return image.with_data(warped)


def crop_to_output(image: ImageBuffer, spec: OutputSpec) -> ImageBuffer:
    """
    Crop the origin-anchored ``spec.width`` x ``spec.height`` region.

    Raises:
        ValueError: If the image is smaller than the requested output.
    """
    if image.width < spec.width or image.height < spec.height:
        raise ValueError(
            f"Cannot crop {spec.width}x{spec.height} from {image.width}x{image.height}"
        )
    cropped = image.to_numpy()[: spec.height, : spec.width]
    return image.with_data(np.ascontiguousarray(cropped))


def rectify_with_homography(
    image: ImageBuffer,
    quad: OrderedQuad,
    spec: OutputSpec,
    margin_anchor: MarginAnchor = "center",
    interpolation: int = cv2.INTER_LINEAR,
    border_value: Sequence[int] = (0, 0, 0),
    min_area: float = 1.0,
) -> Tuple[ImageBuffer, np.ndarray]:
    """
    Warp ``image`` so that ``quad`` becomes an axis-aligned rectangle.

    Args:
        image: Source image the quad was detected in.
        quad: Marker quadrilateral in (TL, TR, BR, BL) order.
        spec: Output frame; the result is always spec.width x spec.height.
        margin_anchor: Placement of the zoom margin (see compute_target_corners).
        interpolation: OpenCV interpolation flag for the warp.
        border_value: Fill colour outside the source image.
        min_area: Minimum quad area in px^2.

    Returns:
        New ImageBuffer of exactly spec.width x spec.height, and the 3x3
        homography that was applied.

    Raises:
        NoImageLoadedError: If ``image`` is None.
        DegenerateGeometryError: If the quad cannot yield an invertible
            homography.

    Example:
        >>> out, H = rectify_with_homography(image, quad, OutputSpec(width=600, height=300))
        >>> out.size
        (600, 300)
    """
    if image is None:
        raise NoImageLoadedError()

    target = compute_target_corners(spec, margin_anchor)
    homography = compute_homography(quad, target, min_area=min_area)

    canvas_size = (
        max(spec.width, int(np.ceil(target[:, 0].max()))),
        max(spec.height, int(np.ceil(target[:, 1].max()))),
    )
    warped = warp_image(image, homography, canvas_size, interpolation, border_value)
    output = crop_to_output(warped, spec)

    logger.info(
        f"Rectified {image.width}x{image.height} -> {output.width}x{output.height} "
        f"(zoom={spec.zoom:.2f}, anchor={margin_anchor})"
    )
    return output, homography


def rectify(
    image: ImageBuffer,
    quad: OrderedQuad,
    spec: OutputSpec,
    margin_anchor: MarginAnchor = "center",
    interpolation: int = cv2.INTER_LINEAR,
    border_value: Sequence[int] = (0, 0, 0),
    min_area: float = 1.0,
) -> ImageBuffer:
    """Warp and crop ``image``; see rectify_with_homography for arguments."""
    output, _ = rectify_with_homography(
        image, quad, spec, margin_anchor, interpolation, border_value, min_area
    )
    return output
