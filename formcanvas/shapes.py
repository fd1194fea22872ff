"""Shape model for the annotation canvas.

Shapes are stored exclusively in image-pixel space. Three variants exist:
``Rectangle`` (four ordered corners), ``Circle`` (center and radius) and
``Polygon`` (closed ring of three or more points). Every variant carries a
``Style``, a display name, and a visibility flag.

Construction validates the geometry and raises :class:`ShapeError` when the
result would hold a non-finite coordinate, a non-positive radius, too few
points, or a zero-area rectangle. Mutations (vertex moves, rotation) validate
the same way and leave the shape untouched on failure.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Iterable, Optional, Sequence, Tuple, Union

import numpy as np

from .geometry import (
    Bounds,
    Point,
    as_points,
    bounding_box,
    centroid,
    distance,
    is_finite_point,
    point_in_ring,
    rotate_points,
)

Color = Tuple[int, int, int, int]


class ShapeErrorKind(str, Enum):
    TOO_FEW_POINTS = "too_few_points"
    INVALID_RADIUS = "invalid_radius"
    INVALID_COORDINATE = "invalid_coordinate"
    DEGENERATE_SHAPE = "degenerate_shape"
    INVALID_VERTEX_INDEX = "invalid_vertex_index"


class ShapeError(ValueError):
    """Raised when shape geometry fails validation."""

    def __init__(self, kind: ShapeErrorKind, value: object = None, message: Optional[str] = None):
        self.kind = kind
        self.value = value
        if message is None:
            message = {
                ShapeErrorKind.TOO_FEW_POINTS: f"Polygon needs at least 3 points, got {value}",
                ShapeErrorKind.INVALID_RADIUS: f"Circle radius must be finite and positive, got {value}",
                ShapeErrorKind.INVALID_COORDINATE: "Shape coordinates must be finite",
                ShapeErrorKind.DEGENERATE_SHAPE: "Shape has zero width or height",
                ShapeErrorKind.INVALID_VERTEX_INDEX: f"Vertex index {value} is out of range",
            }[kind]
        super().__init__(message)


@dataclass(frozen=True)
class Style:
    """Stroke and fill used to render a shape."""

    stroke_width: float = 2.0
    stroke_color: Color = (0, 120, 215, 255)
    fill_color: Color = (0, 120, 215, 30)


def _check_finite(points: np.ndarray) -> np.ndarray:
    if not np.all(np.isfinite(points)):
        raise ShapeError(ShapeErrorKind.INVALID_COORDINATE)
    return points


def _check_vertex_index(index: int, count: int) -> None:
    if not 0 <= index < count:
        raise ShapeError(ShapeErrorKind.INVALID_VERTEX_INDEX, index)


# ----------------------------------------------------------------------
# Variants


@dataclass
class Rectangle:
    """Four ordered corners, not necessarily axis-aligned."""

    corners: np.ndarray
    style: Style = field(default_factory=Style)
    name: str = ""
    visible: bool = True

    kind: ClassVar[str] = "rectangle"

    def __post_init__(self) -> None:
        corners = as_points(self.corners)
        if corners.shape[0] != 4:
            raise ShapeError(
                ShapeErrorKind.DEGENERATE_SHAPE, corners.shape[0], f"Rectangle needs 4 corners, got {corners.shape[0]}"
            )
        self.corners = _check_finite(corners)

    @classmethod
    def from_corners(
        cls, start: Sequence[float], end: Sequence[float], style: Optional[Style] = None, name: str = ""
    ) -> "Rectangle":
        """Axis-aligned rectangle from two opposite corners.

        Corners are normalized to top-left, top-right, bottom-right,
        bottom-left regardless of drag direction.
        """
        pts = _check_finite(as_points([start, end]))
        x0, y0 = pts.min(axis=0)
        x1, y1 = pts.max(axis=0)
        if x1 - x0 <= 0.0 or y1 - y0 <= 0.0:
            raise ShapeError(ShapeErrorKind.DEGENERATE_SHAPE)
        corners = np.array([[x0, y0], [x1, y0], [x1, y1], [x0, y1]], dtype=float)
        return cls(corners=corners, style=style or Style(), name=name)

    @classmethod
    def from_four_corners(
        cls, corners: Iterable[Sequence[float]], style: Optional[Style] = None, name: str = ""
    ) -> "Rectangle":
        return cls(corners=as_points(corners).copy(), style=style or Style(), name=name)

    def vertices(self) -> np.ndarray:
        return self.corners.copy()

    def set_vertex(self, index: int, point: Sequence[float]) -> None:
        _check_vertex_index(index, 4)
        if not is_finite_point(point):
            raise ShapeError(ShapeErrorKind.INVALID_COORDINATE)
        self.corners[index] = (float(point[0]), float(point[1]))

    def contains(self, point: Sequence[float]) -> bool:
        return point_in_ring(point, self.corners)

    def rotate(self, angle: float, pivot: Sequence[float]) -> None:
        self.corners = _check_finite(rotate_points(self.corners, angle, pivot))

    def outline(self) -> np.ndarray:
        return self.corners.copy()

    def copy(self) -> "Rectangle":
        return Rectangle(corners=self.corners.copy(), style=self.style, name=self.name, visible=self.visible)


@dataclass
class Circle:
    """Center plus radius. Vertex 1 is the synthetic radius handle."""

    center: Point
    radius: float
    style: Style = field(default_factory=Style)
    name: str = ""
    visible: bool = True

    kind: ClassVar[str] = "circle"

    def __post_init__(self) -> None:
        if not is_finite_point(self.center):
            raise ShapeError(ShapeErrorKind.INVALID_COORDINATE)
        self.center = (float(self.center[0]), float(self.center[1]))
        self.radius = float(self.radius)
        if not math.isfinite(self.radius) or self.radius <= 0.0:
            raise ShapeError(ShapeErrorKind.INVALID_RADIUS, self.radius)

    @classmethod
    def from_drag(
        cls, start: Sequence[float], end: Sequence[float], style: Optional[Style] = None, name: str = ""
    ) -> "Circle":
        return cls(center=(start[0], start[1]), radius=distance(start, end), style=style or Style(), name=name)

    def vertices(self) -> np.ndarray:
        cx, cy = self.center
        return np.array([[cx, cy], [cx + self.radius, cy]], dtype=float)

    def set_vertex(self, index: int, point: Sequence[float]) -> None:
        _check_vertex_index(index, 2)
        if not is_finite_point(point):
            raise ShapeError(ShapeErrorKind.INVALID_COORDINATE)
        if index == 0:
            self.center = (float(point[0]), float(point[1]))
            return
        radius = distance(self.center, point)
        if radius <= 0.0:
            raise ShapeError(ShapeErrorKind.INVALID_RADIUS, radius)
        self.radius = radius

    def contains(self, point: Sequence[float]) -> bool:
        if not is_finite_point(point):
            return False
        return distance(self.center, point) <= self.radius

    def rotate(self, angle: float, pivot: Sequence[float]) -> None:
        rotated = _check_finite(rotate_points(np.array([self.center], dtype=float), angle, pivot))
        self.center = (float(rotated[0, 0]), float(rotated[0, 1]))

    def outline(self, samples: int = 64) -> np.ndarray:
        """Sample the circumference as a closed ring."""
        theta = np.linspace(0.0, 2.0 * math.pi, samples, endpoint=False)
        cx, cy = self.center
        return np.column_stack((cx + self.radius * np.cos(theta), cy + self.radius * np.sin(theta)))

    def copy(self) -> "Circle":
        return Circle(center=self.center, radius=self.radius, style=self.style, name=self.name, visible=self.visible)


@dataclass
class Polygon:
    """Closed ring of three or more points."""

    points: np.ndarray
    style: Style = field(default_factory=Style)
    name: str = ""
    visible: bool = True

    kind: ClassVar[str] = "polygon"

    def __post_init__(self) -> None:
        points = as_points(self.points)
        if points.shape[0] < 3:
            raise ShapeError(ShapeErrorKind.TOO_FEW_POINTS, points.shape[0])
        self.points = _check_finite(points)

    @classmethod
    def from_points(
        cls, points: Iterable[Sequence[float]], style: Optional[Style] = None, name: str = ""
    ) -> "Polygon":
        return cls(points=as_points(points).copy(), style=style or Style(), name=name)

    def vertices(self) -> np.ndarray:
        return self.points.copy()

    def set_vertex(self, index: int, point: Sequence[float]) -> None:
        _check_vertex_index(index, self.points.shape[0])
        if not is_finite_point(point):
            raise ShapeError(ShapeErrorKind.INVALID_COORDINATE)
        self.points[index] = (float(point[0]), float(point[1]))

    def contains(self, point: Sequence[float]) -> bool:
        return point_in_ring(point, self.points)

    def rotate(self, angle: float, pivot: Sequence[float]) -> None:
        self.points = _check_finite(rotate_points(self.points, angle, pivot))

    def outline(self) -> np.ndarray:
        return self.points.copy()

    def copy(self) -> "Polygon":
        return Polygon(points=self.points.copy(), style=self.style, name=self.name, visible=self.visible)


Shape = Union[Rectangle, Circle, Polygon]


# ----------------------------------------------------------------------
# Variant-dispatching helpers


def shape_centroid(shape: Shape) -> Point:
    """Rotation pivot of a shape: the mean of its corners, center, or ring points."""
    if isinstance(shape, Circle):
        return shape.center
    if isinstance(shape, Rectangle):
        return centroid(shape.corners)
    if isinstance(shape, Polygon):
        return centroid(shape.points)
    raise TypeError(f"Unsupported shape {type(shape).__name__}")


def shape_bounds(shape: Shape) -> Bounds:
    """Axis-aligned ``(min_x, min_y, max_x, max_y)`` of a shape in its own space."""
    if isinstance(shape, Circle):
        cx, cy = shape.center
        r = shape.radius
        return (cx - r, cy - r, cx + r, cy + r)
    if isinstance(shape, Rectangle):
        return bounding_box(shape.corners)
    if isinstance(shape, Polygon):
        return bounding_box(shape.points)
    raise TypeError(f"Unsupported shape {type(shape).__name__}")


def map_shape_to_canvas(shape: Shape, fit_scale: float, offset: Sequence[float]) -> Shape:
    """Return a canvas-space copy of an image-space shape.

    The stored shape is never mutated; the copy is meant for rendering and
    overlay placement only.
    """
    origin = np.asarray(offset, dtype=float)
    if isinstance(shape, Rectangle):
        mapped = shape.copy()
        mapped.corners = shape.corners * fit_scale + origin
        return mapped
    if isinstance(shape, Polygon):
        mapped = shape.copy()
        mapped.points = shape.points * fit_scale + origin
        return mapped
    if isinstance(shape, Circle):
        cx, cy = shape.center
        return Circle(
            center=(cx * fit_scale + origin[0], cy * fit_scale + origin[1]),
            radius=shape.radius * fit_scale,
            style=shape.style,
            name=shape.name,
            visible=shape.visible,
        )
    raise TypeError(f"Unsupported shape {type(shape).__name__}")


def _check_shape(shape: Shape) -> Shape:
    if not isinstance(shape, (Rectangle, Circle, Polygon)):
        raise TypeError(f"Unsupported shape {type(shape).__name__}")
    return shape


def shape_vertices(shape: Shape) -> np.ndarray:
    """Editable vertices in image-pixel space (corners, center plus radius handle, or ring points)."""
    return _check_shape(shape).vertices()


def set_shape_vertex(shape: Shape, index: int, point: Sequence[float]) -> None:
    _check_shape(shape).set_vertex(index, point)


def shape_contains(shape: Shape, point: Sequence[float]) -> bool:
    return _check_shape(shape).contains(point)


def rotate_shape(shape: Shape, angle: float, pivot: Sequence[float]) -> None:
    """Rotate ``shape`` in place by ``angle`` radians about ``pivot``."""
    _check_shape(shape).rotate(angle, pivot)


__all__ = [
    "Color",
    "Style",
    "ShapeError",
    "ShapeErrorKind",
    "Rectangle",
    "Circle",
    "Polygon",
    "Shape",
    "shape_centroid",
    "shape_bounds",
    "map_shape_to_canvas",
    "shape_vertices",
    "set_shape_vertex",
    "shape_contains",
    "rotate_shape",
]
