from __future__ import annotations

import math

import numpy as np
import pytest

from formcanvas.geometry import (
    angle_about,
    bounding_box,
    centroid,
    intersection_over_union,
    is_finite_point,
    point_in_ring,
    rotate_point,
    rotate_points,
)

L_SHAPE = np.array([(0, 0), (10, 0), (10, 10), (5, 10), (5, 5), (0, 5)], dtype=float)


def test_point_in_ring_handles_concave_outline():
    assert point_in_ring((7, 7), L_SHAPE)
    assert point_in_ring((2, 2), L_SHAPE)
    assert not point_in_ring((2, 7), L_SHAPE)
    assert not point_in_ring((11, 1), L_SHAPE)


def test_point_in_ring_rejects_non_finite_points():
    assert not point_in_ring((math.nan, 1.0), L_SHAPE)
    assert not point_in_ring((math.inf, math.inf), L_SHAPE)


def test_point_in_ring_needs_three_points():
    assert not point_in_ring((0.5, 0.5), np.array([(0, 0), (1, 1)], dtype=float))


def test_rotate_point_quarter_turn():
    x, y = rotate_point((2, 1), math.pi / 2, (1, 1))
    assert x == pytest.approx(1.0)
    assert y == pytest.approx(2.0)


def test_rotate_points_preserves_distances():
    pts = np.array([(0, 0), (3, 4), (-2, 7)], dtype=float)
    rotated = rotate_points(pts, 0.73, (1.5, -2.0))
    before = np.linalg.norm(pts[1] - pts[0])
    after = np.linalg.norm(rotated[1] - rotated[0])
    assert after == pytest.approx(before)


def test_angle_about_uses_atan2_quadrants():
    assert angle_about((0, 0), (1, 0)) == pytest.approx(0.0)
    assert angle_about((0, 0), (0, 1)) == pytest.approx(math.pi / 2)
    assert angle_about((0, 0), (-1, 0)) == pytest.approx(math.pi)


def test_centroid_and_bounding_box():
    pts = np.array([(0, 0), (4, 0), (4, 2), (0, 2)], dtype=float)
    assert centroid(pts) == pytest.approx((2.0, 1.0))
    assert bounding_box(pts) == (0.0, 0.0, 4.0, 2.0)


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ((10, 20, 110, 70), (10, 20, 110, 70), 1.0),
        ((10, 20, 110, 70), (200, 200, 300, 250), 0.0),
        ((0, 0, 100, 100), (50, 50, 150, 150), 2500 / 17500),
        ((0, 0, 200, 200), (50, 50, 100, 100), 0.0625),
    ],
)
def test_intersection_over_union(a, b, expected):
    assert intersection_over_union(a, b) == pytest.approx(expected, abs=1e-6)


def test_is_finite_point():
    assert is_finite_point((1.0, 2.0))
    assert not is_finite_point((1.0, math.nan))
    assert not is_finite_point(None)
