"""Point-level geometry shared by shapes, fields, and the transform pipeline.

Every helper is space-agnostic: callers are responsible for passing points
that live in the same coordinate space (image-pixel, canvas, or screen).
"""
from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]
Bounds = Tuple[float, float, float, float]


def is_finite_point(point: Sequence[float] | None) -> bool:
    if point is None or len(point) != 2:
        return False
    return math.isfinite(point[0]) and math.isfinite(point[1])


def as_points(points: Iterable[Sequence[float]]) -> np.ndarray:
    """Return ``points`` as a ``(N, 2)`` float array."""
    arr = np.asarray(list(points) if not isinstance(points, np.ndarray) else points, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 2), dtype=float)
    return arr.reshape(-1, 2)


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    return math.hypot(float(b[0]) - float(a[0]), float(b[1]) - float(a[1]))


def angle_about(center: Sequence[float], point: Sequence[float]) -> float:
    """Angle of ``point`` around ``center`` as returned by ``atan2``."""
    return math.atan2(float(point[1]) - float(center[1]), float(point[0]) - float(center[0]))


def rotate_points(points: np.ndarray, angle: float, pivot: Sequence[float]) -> np.ndarray:
    """Rigidly rotate ``points`` by ``angle`` radians about ``pivot``."""
    pts = as_points(points)
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    rot = np.array([[cos_a, -sin_a], [sin_a, cos_a]])
    origin = np.asarray(pivot, dtype=float)
    return (pts - origin) @ rot.T + origin


def rotate_point(point: Sequence[float], angle: float, pivot: Sequence[float]) -> Point:
    x, y = rotate_points(np.array([point], dtype=float), angle, pivot)[0]
    return (float(x), float(y))


def point_in_ring(point: Sequence[float], ring: np.ndarray) -> bool:
    """Even-odd containment test of ``point`` against a closed ring.

    The ring is closed implicitly, the last vertex connects back to the first.
    Non-finite points are contained by nothing.
    """
    if not is_finite_point(point):
        return False
    pts = as_points(ring)
    if pts.shape[0] < 3:
        return False
    px, py = float(point[0]), float(point[1])
    xi, yi = pts[:, 0], pts[:, 1]
    xj, yj = np.roll(xi, 1), np.roll(yi, 1)
    straddles = (yi > py) != (yj > py)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_cross = (xj - xi) * (py - yi) / (yj - yi) + xi
    crossings = np.count_nonzero(straddles & (px < x_cross))
    return bool(crossings % 2)


def centroid(points: np.ndarray) -> Point:
    """Arithmetic mean of the given points."""
    pts = as_points(points)
    if pts.shape[0] == 0:
        return (0.0, 0.0)
    mean = pts.mean(axis=0)
    return (float(mean[0]), float(mean[1]))


def bounding_box(points: np.ndarray) -> Bounds:
    """Return ``(min_x, min_y, max_x, max_y)`` over ``points``."""
    pts = as_points(points)
    if pts.shape[0] == 0:
        return (0.0, 0.0, 0.0, 0.0)
    lo = pts.min(axis=0)
    hi = pts.max(axis=0)
    return (float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))


def intersection_over_union(a: Bounds, b: Bounds) -> float:
    """IoU of two ``(min_x, min_y, max_x, max_y)`` boxes, 0.0 when disjoint."""
    ix0 = max(a[0], b[0])
    iy0 = max(a[1], b[1])
    ix1 = min(a[2], b[2])
    iy1 = min(a[3], b[3])
    if ix1 <= ix0 or iy1 <= iy0:
        return 0.0
    inter = (ix1 - ix0) * (iy1 - iy0)
    area_a = (a[2] - a[0]) * (a[3] - a[1])
    area_b = (b[2] - b[0]) * (b[3] - b[1])
    union = area_a + area_b - inter
    if union <= 0.0:
        return 0.0
    return inter / union


__all__ = [
    "Point",
    "Bounds",
    "is_finite_point",
    "as_points",
    "distance",
    "angle_about",
    "rotate_points",
    "rotate_point",
    "point_in_ring",
    "centroid",
    "bounding_box",
    "intersection_over_union",
]
