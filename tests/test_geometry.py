"""Test vector and bounding-box helpers.

Tests for epitrace.utils.geometry:
    - Polar → Cartesian vectors (axes, negative length, broadcasting, dtype)
    - Truncation toward zero (not floor, not rounding)
    - BoundingBox construction, containment, widening, degenerate boxes

Run:
    pytest tests/test_geometry.py -v
"""

import math

import numpy as np
import pytest

from epitrace.utils.geometry import BoundingBox, truncate_to_int, vector_from_angle_and_length


# ============================================================================
# VECTORS
# ============================================================================

def test_vector_along_axes():
    """0 rad points along +x, pi/2 along +y."""
    v = vector_from_angle_and_length(np.array([0.0, math.pi / 2]), 3.0)

    assert v.shape == (2, 2)
    np.testing.assert_allclose(v[0], [3.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(v[1], [0.0, 3.0], atol=1e-12)


def test_vector_negative_length_flips_by_pi():
    """Negative length equals positive length rotated by pi."""
    angles = np.linspace(-4.0, 4.0, 17)
    flipped = vector_from_angle_and_length(angles, -2.5)
    rotated = vector_from_angle_and_length(angles + math.pi, 2.5)

    np.testing.assert_allclose(flipped, rotated, atol=1e-12)


def test_vector_zero_length_is_zero():
    v = vector_from_angle_and_length(np.array([0.3, 1.7, -2.0]), 0.0)
    assert np.all(v == 0.0)


def test_vector_keeps_float32():
    """float32 inputs stay float32 (no silent upcast)."""
    angle = np.arange(5, dtype=np.float32)
    v = vector_from_angle_and_length(angle, np.float32(2.0))
    assert v.dtype == np.float32


def test_vector_scalar_input():
    v = vector_from_angle_and_length(0.0, 1.0)
    assert v.shape == (2,)


# ============================================================================
# TRUNCATION
# ============================================================================

def test_truncate_toward_zero():
    """Truncation moves toward zero on both signs (no floor, no rounding)."""
    vectors = np.array([[2.9, -2.9], [0.5, -0.5], [-0.999, 9.999]])
    points = truncate_to_int(vectors)

    assert points.dtype == np.int64
    np.testing.assert_array_equal(points, [[2, -2], [0, 0], [0, 9]])


def test_truncate_rejects_non_finite():
    with pytest.raises(ValueError, match="non-finite"):
        truncate_to_int(np.array([[1.0, np.nan]]))
    with pytest.raises(ValueError):
        truncate_to_int(np.array([[np.inf, 0.0]]))


@pytest.mark.parametrize("value", [1e19, -1e19, 2.0 ** 63, -1e30])
@pytest.mark.parametrize("dtype", [np.float32, np.float64])
def test_truncate_rejects_beyond_int64(value, dtype):
    with pytest.raises(ValueError, match="int64"):
        truncate_to_int(np.array([[0.0, value]], dtype=dtype))


def test_truncate_int64_edges():
    points = truncate_to_int(np.array([[-(2.0 ** 63), 2.0 ** 62]]))
    np.testing.assert_array_equal(points, [[np.iinfo(np.int64).min, 2 ** 62]])


# ============================================================================
# BOUNDING BOX
# ============================================================================

def test_bbox_from_points():
    points = np.array([[3, -1], [-4, 7], [0, 0]])
    bbox = BoundingBox.from_points(points)

    assert bbox.min == (-4, -1)
    assert bbox.max == (3, 7)
    assert bbox.width == 7
    assert bbox.height == 8
    assert not bbox.is_degenerate


def test_bbox_contains_all_points():
    rng = np.random.default_rng(7)
    points = rng.integers(-500, 500, size=(200, 2))
    bbox = BoundingBox.from_points(points)

    for x, y in points:
        assert bbox.contains(x, y)
    assert not bbox.contains(bbox.max_x + 1, bbox.min_y)


def test_bbox_degenerate_single_point():
    bbox = BoundingBox.from_points(np.array([[5, 5], [5, 5]]))

    assert bbox == BoundingBox.from_point(5, 5)
    assert bbox.is_degenerate
    assert bbox.width == 0 and bbox.height == 0


def test_bbox_include_widens():
    bbox = BoundingBox.from_point(0, 0).include(-3, 2).include(1, -6)
    assert bbox == BoundingBox(-3, -6, 1, 2)


def test_bbox_include_inside_is_noop():
    bbox = BoundingBox(-2, -2, 2, 2)
    assert bbox.include(0, 1) == bbox


def test_bbox_rejects_empty_and_bad_shapes():
    with pytest.raises(ValueError, match="zero points"):
        BoundingBox.from_points(np.zeros((0, 2), dtype=np.int64))
    with pytest.raises(ValueError, match="shape"):
        BoundingBox.from_points(np.zeros((4, 3), dtype=np.int64))


def test_bbox_rejects_inverted_corners():
    with pytest.raises(ValueError, match="Inverted"):
        BoundingBox(5, 0, 4, 0)


def test_bbox_as_dict():
    assert BoundingBox(-1, -2, 3, 4).as_dict() == {"min": [-1, -2], "max": [3, 4]}
