"""
Unit tests for the rectifier module.

Tests the target frame layout, degeneracy detection, the homography solve
and the warp + crop output shape.
"""

import cv2
import numpy as np
import pytest

from src.common.exceptions import DegenerateGeometryError, NoImageLoadedError
from src.common.types import ImageBuffer
from src.rectification.rectifier import (
    compute_homography,
    compute_target_corners,
    crop_to_output,
    polygon_area,
    rectify,
    rectify_with_homography,
    validate_quad_geometry,
)
from src.rectification.types import OrderedQuad, OutputSpec


@pytest.fixture
def gradient_image():
    """400x300 RGB image whose pixel values encode their position."""
    x = np.linspace(0, 255, 400, dtype=np.float32)
    y = np.linspace(0, 255, 300, dtype=np.float32)
    xx, yy = np.meshgrid(x, y)
    data = np.stack([xx, yy, np.full_like(xx, 128)], axis=2).astype(np.uint8)
    return ImageBuffer(data=data)


@pytest.fixture
def skewed_quad():
    """A perspective-distorted but valid quad inside a 400x300 image."""
    return OrderedQuad.from_array([[60, 40], [350, 70], [330, 260], [40, 240]])


class TestComputeTargetCorners:
    """Tests for compute_target_corners."""

    def test_zoom_one_matches_frame(self):
        spec = OutputSpec(width=600, height=300, zoom=1.0)
        for anchor in ("center", "top_left"):
            np.testing.assert_array_almost_equal(
                compute_target_corners(spec, anchor),
                [[0, 0], [600, 0], [600, 300], [0, 300]],
            )

    def test_center_anchor_symmetric_margin(self):
        spec = OutputSpec(width=600, height=300, zoom=1.2)
        target = compute_target_corners(spec, "center")

        np.testing.assert_array_almost_equal(
            target, [[50, 25], [550, 25], [550, 275], [50, 275]], decimal=3
        )

    def test_top_left_anchor(self):
        spec = OutputSpec(width=600, height=300, zoom=2.0)
        target = compute_target_corners(spec, "top_left")

        np.testing.assert_array_almost_equal(
            target, [[0, 0], [300, 0], [300, 150], [0, 150]]
        )

    def test_margin_grows_with_zoom(self):
        """Larger zoom shrinks the quad's footprint, i.e. more context."""
        areas = [
            polygon_area(compute_target_corners(OutputSpec(width=600, height=300, zoom=z)))
            for z in (1.0, 1.2, 1.5, 2.5)
        ]
        assert areas == sorted(areas, reverse=True)
        assert areas[1] == pytest.approx(600 * 300 / 1.2**2, rel=1e-4)

    def test_unknown_anchor(self):
        with pytest.raises(ValueError, match="Unknown margin anchor"):
            compute_target_corners(OutputSpec(), "bottom")


class TestValidateQuadGeometry:
    """Tests for validate_quad_geometry."""

    def test_valid_quad(self, skewed_quad):
        validate_quad_geometry(skewed_quad)

    def test_three_collinear_points(self):
        quad = OrderedQuad.from_array([[0, 0], [100, 0], [200, 0], [0, 100]])
        with pytest.raises(DegenerateGeometryError, match="collinear"):
            validate_quad_geometry(quad)

    def test_all_points_collinear(self):
        quad = np.array([[0, 0], [10, 10], [20, 20], [30, 30]], dtype=np.float32)
        with pytest.raises(DegenerateGeometryError):
            validate_quad_geometry(quad)

    def test_coincident_points(self):
        quad = np.array([[5, 5], [5, 5], [50, 50], [5, 50]], dtype=np.float32)
        with pytest.raises(DegenerateGeometryError):
            validate_quad_geometry(quad)

    def test_tiny_area(self):
        quad = np.array([[0, 0], [0.5, 0], [0.5, 0.5], [0, 0.5]], dtype=np.float32)
        with pytest.raises(DegenerateGeometryError, match="area"):
            validate_quad_geometry(quad, min_area=1.0)

    def test_crossed_quad(self):
        """Swapped bottom markers produce a bow-tie."""
        quad = np.array([[0, 0], [200, 0], [0, 100], [100, 100]], dtype=np.float32)
        with pytest.raises(DegenerateGeometryError, match="not convex"):
            validate_quad_geometry(quad)

    def test_concave_quad(self):
        quad = np.array([[100, 100], [300, 100], [200, 120], [100, 150]], dtype=np.float32)
        with pytest.raises(DegenerateGeometryError, match="not convex"):
            validate_quad_geometry(quad)

    def test_non_finite(self):
        quad = np.array([[0, 0], [np.nan, 0], [1, 1], [0, 1]], dtype=np.float32)
        with pytest.raises(DegenerateGeometryError, match="Invalid"):
            validate_quad_geometry(quad)


class TestComputeHomography:
    """Tests for compute_homography."""

    def test_maps_quad_onto_target(self, skewed_quad):
        target = compute_target_corners(OutputSpec(width=600, height=300, zoom=1.2))
        matrix = compute_homography(skewed_quad, target)

        assert matrix.shape == (3, 3)
        mapped = cv2.perspectiveTransform(
            skewed_quad.to_numpy().reshape(-1, 1, 2), matrix
        ).reshape(4, 2)
        np.testing.assert_allclose(mapped, target, atol=1e-3)

    def test_identity_for_matching_quads(self):
        pts = np.array([[0, 0], [100, 0], [100, 50], [0, 50]], dtype=np.float32)
        matrix = compute_homography(pts, pts)
        np.testing.assert_allclose(matrix / matrix[2, 2], np.eye(3), atol=1e-6)

    def test_collinear_source_raises(self):
        quad = OrderedQuad.from_array([[0, 0], [50, 50], [100, 100], [0, 100]])
        with pytest.raises(DegenerateGeometryError):
            compute_homography(quad, compute_target_corners(OutputSpec()))


class TestCropToOutput:
    """Tests for crop_to_output."""

    def test_origin_anchored(self, gradient_image):
        spec = OutputSpec(width=100, height=50)
        cropped = crop_to_output(gradient_image, spec)

        assert cropped.size == (100, 50)
        np.testing.assert_array_equal(
            cropped.to_numpy(), gradient_image.to_numpy()[:50, :100]
        )

    def test_too_small(self, gradient_image):
        with pytest.raises(ValueError, match="Cannot crop"):
            crop_to_output(gradient_image, OutputSpec(width=401, height=10))


class TestRectify:
    """Tests for rectify / rectify_with_homography."""

    @pytest.mark.parametrize(
        "width,height,zoom",
        [
            (600, 300, 1.0),
            (600, 300, 1.2),
            (321, 123, 2.5),
            (50, 400, 1.7),
            (1, 1, 1.0),
            (1, 1, 1.2),
            (2, 2, 2.5),
        ],
    )
    @pytest.mark.parametrize("anchor", ["center", "top_left"])
    def test_output_shape(self, gradient_image, skewed_quad, width, height, zoom, anchor):
        """The output is exactly width x height whatever the quad and zoom."""
        spec = OutputSpec(width=width, height=height, zoom=zoom)
        output = rectify(gradient_image, skewed_quad, spec, margin_anchor=anchor)

        assert output.size == (width, height)
        assert output.channels == 3
        assert output.to_numpy().dtype == np.uint8

    def test_min_area_applies_to_source_only(self, gradient_image, skewed_quad):
        """A large source-area threshold does not reject small outputs."""
        spec = OutputSpec(width=20, height=20, zoom=1.5)
        output = rectify(gradient_image, skewed_quad, spec, min_area=1000.0)
        assert output.size == (20, 20)

        with pytest.raises(DegenerateGeometryError, match="area"):
            rectify(gradient_image, skewed_quad, spec, min_area=1e6)

    def test_input_not_mutated(self, gradient_image, skewed_quad):
        before = gradient_image.to_numpy().copy()
        rectify(gradient_image, skewed_quad, OutputSpec())
        np.testing.assert_array_equal(gradient_image.to_numpy(), before)

    def test_axis_aligned_quad_zoom_one(self, gradient_image):
        """An axis-aligned quad of the output size is a plain crop."""
        quad = OrderedQuad.from_array([[100, 50], [300, 50], [300, 150], [100, 150]])
        spec = OutputSpec(width=200, height=100, zoom=1.0)

        output, matrix = rectify_with_homography(
            gradient_image, quad, spec, interpolation=cv2.INTER_NEAREST
        )

        np.testing.assert_allclose(
            matrix / matrix[2, 2], [[1, 0, -100], [0, 1, -50], [0, 0, 1]], atol=1e-6
        )
        np.testing.assert_array_equal(
            output.to_numpy(), gradient_image.to_numpy()[50:150, 100:300]
        )

    def test_zoom_margin_shows_surroundings(self, gradient_image):
        """With zoom > 1 the border of the output comes from outside the quad."""
        quad = OrderedQuad.from_array([[100, 50], [300, 50], [300, 150], [100, 150]])
        spec = OutputSpec(width=200, height=100, zoom=2.0)

        output = rectify(gradient_image, quad, spec, interpolation=cv2.INTER_NEAREST)
        data = output.to_numpy()

        # Centre anchor: quad spans [50, 150] x [25, 75] of the output, and
        # output (0, 0) samples source (0, 0).
        np.testing.assert_array_equal(data[0, 0], gradient_image.to_numpy()[0, 0])
        np.testing.assert_array_equal(data[50, 100], gradient_image.to_numpy()[100, 200])

    def test_outside_source_filled_with_border(self, gradient_image):
        quad = OrderedQuad.from_array([[0, 0], [400, 0], [400, 300], [0, 300]])
        spec = OutputSpec(width=200, height=100, zoom=2.5)

        output = rectify(gradient_image, quad, spec, border_value=(7, 8, 9))

        np.testing.assert_array_equal(output.to_numpy()[0, 0], [7, 8, 9])
        np.testing.assert_array_equal(output.to_numpy()[-1, -1], [7, 8, 9])

    def test_degenerate_quad_raises(self, gradient_image):
        quad = OrderedQuad.from_array([[10, 10], [100, 10], [200, 10], [10, 100]])
        with pytest.raises(DegenerateGeometryError):
            rectify(gradient_image, quad, OutputSpec())

    def test_missing_image_raises(self, skewed_quad):
        with pytest.raises(NoImageLoadedError):
            rectify(None, skewed_quad, OutputSpec())
