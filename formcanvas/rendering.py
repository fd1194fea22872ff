"""Screen-space render lists for the host toolkit.

``build_frame`` maps everything the controller owns forward through the
coordinate pipeline and returns plain geometry plus style. Painting itself
belongs to the host (see :mod:`formcanvas.widgets`).
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .geometry import Point, as_points, rotate_points
from .layers import LayerType
from .shapes import Circle, Polygon, Rectangle, Shape, Style, shape_vertices
from .tools import Drawing, ToolMode
from .transforms import CoordinatePipeline

HANDLE_SIZE = 6.0
FIELD_STYLE = Style(stroke_width=2.0, stroke_color=(255, 140, 0, 255), fill_color=(255, 140, 0, 25))
GRID_STYLE = Style(stroke_width=1.0, stroke_color=(200, 200, 200, 120), fill_color=(0, 0, 0, 0))
PREVIEW_STYLE_ALPHA = 160


class RenderLayer(str, Enum):
    IMAGE = "image"
    DETECTION = "detection"
    FIELD = "field"
    SHAPE = "shape"
    PREVIEW = "preview"
    GRID = "grid"


@dataclass
class RenderItem:
    """One primitive in screen space.

    ``primitive`` is ``polygon`` (closed ring), ``polyline`` (open), ``circle``
    (``center`` plus ``radius``) or ``line`` (two points).
    """

    layer: RenderLayer
    primitive: str
    points: List[Point]
    style: Style
    center: Optional[Point] = None
    radius: Optional[float] = None
    index: Optional[int] = None
    selected: bool = False
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer": self.layer.value,
            "primitive": self.primitive,
            "points": [list(p) for p in self.points],
            "center": None if self.center is None else list(self.center),
            "radius": self.radius,
            "index": self.index,
            "selected": self.selected,
            "label": self.label,
            "style": {
                "stroke_width": self.style.stroke_width,
                "stroke_color": list(self.style.stroke_color),
                "fill_color": list(self.style.fill_color),
            },
        }


@dataclass
class RenderFrame:
    items: List[RenderItem] = field(default_factory=list)
    handles: List[Point] = field(default_factory=list)
    handle_size: float = HANDLE_SIZE
    zoom: float = 1.0
    scale: float = 1.0

    def by_layer(self, layer: RenderLayer) -> List[RenderItem]:
        return [item for item in self.items if item.layer is layer]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "handles": [list(p) for p in self.handles],
            "handle_size": self.handle_size,
            "zoom": self.zoom,
            "scale": self.scale,
        }


def _tuples(points: np.ndarray) -> List[Point]:
    return [(float(x), float(y)) for x, y in as_points(points)]


def shape_item(
    shape: Shape,
    pipeline: CoordinatePipeline,
    layer: RenderLayer,
    index: Optional[int] = None,
    selected: bool = False,
) -> RenderItem:
    """Forward-map an image-space shape to a screen-space render item."""
    if isinstance(shape, Circle):
        center = pipeline.image_to_screen(shape.center)
        return RenderItem(
            layer=layer,
            primitive="circle",
            points=[],
            style=shape.style,
            center=(float(center[0]), float(center[1])),
            radius=shape.radius * pipeline.scale,
            index=index,
            selected=selected,
            label=shape.name or None,
        )
    if isinstance(shape, Rectangle):
        ring = shape.corners
    elif isinstance(shape, Polygon):
        ring = shape.points
    else:
        raise TypeError(f"Unsupported shape {type(shape).__name__}")
    return RenderItem(
        layer=layer,
        primitive="polygon",
        points=_tuples(pipeline.image_points_to_screen(ring)),
        style=shape.style,
        index=index,
        selected=selected,
        label=shape.name or None,
    )


def image_quad(size: Sequence[float], rotation: float, pipeline: CoordinatePipeline) -> List[Point]:
    """Screen corners of the image, rotated about the fitted image center."""
    w, h = float(size[0]), float(size[1])
    corners = pipeline.fit.points_to_canvas(np.array([[0.0, 0.0], [w, 0.0], [w, h], [0.0, h]]))
    if rotation:
        corners = rotate_points(corners, rotation, corners.mean(axis=0))
    return _tuples(pipeline.view.points_to_screen(corners))


def grid_lines(
    pipeline: CoordinatePipeline, viewport_size: Sequence[float], spacing: Sequence[float], rotation: float
) -> List[List[Point]]:
    """Grid segments covering the visible canvas area.

    Lines are laid out in canvas space, rotated about the canvas origin, then
    mapped through the view transform.
    """
    view = pipeline.view
    vx, vy = viewport_size
    cx, cy = view.center
    top_left = view.to_canvas((cx - vx / 2.0, cy - vy / 2.0))
    bottom_right = view.to_canvas((cx + vx / 2.0, cy + vy / 2.0))
    min_x, min_y = top_left
    max_x, max_y = bottom_right
    sx, sy = float(spacing[0]), float(spacing[1])
    segments: List[np.ndarray] = []
    x = math.floor(min_x / sx) * sx
    while x <= max_x:
        segments.append(np.array([[x, min_y], [x, max_y]]))
        x += sx
    y = math.floor(min_y / sy) * sy
    while y <= max_y:
        segments.append(np.array([[min_x, y], [max_x, y]]))
        y += sy
    lines = []
    for seg in segments:
        if rotation:
            seg = rotate_points(seg, rotation, (0.0, 0.0))
        lines.append(_tuples(view.points_to_screen(seg)))
    return lines


def preview_item(state: Drawing, mode: ToolMode, style: Style, pipeline: CoordinatePipeline) -> Optional[RenderItem]:
    """In-progress drawing gesture; degenerate previews are still shown."""
    r, g, b, _ = style.stroke_color
    preview_style = Style(style.stroke_width, (r, g, b, PREVIEW_STYLE_ALPHA), style.fill_color)
    end = state.current_end if state.current_end is not None else state.start
    if mode is ToolMode.RECTANGLE:
        x0, x1 = sorted((state.start[0], end[0]))
        y0, y1 = sorted((state.start[1], end[1]))
        ring = np.array([[x0, y0], [x1, y0], [x1, y1], [x0, y1]], dtype=float)
        return RenderItem(RenderLayer.PREVIEW, "polygon", _tuples(pipeline.image_points_to_screen(ring)), preview_style)
    if mode is ToolMode.CIRCLE:
        center = pipeline.image_to_screen(state.start)
        radius = math.hypot(end[0] - state.start[0], end[1] - state.start[1]) * pipeline.scale
        return RenderItem(RenderLayer.PREVIEW, "circle", [], preview_style, center=center, radius=radius)
    if mode is ToolMode.FREEHAND and state.points:
        return RenderItem(
            RenderLayer.PREVIEW, "polyline", _tuples(pipeline.image_points_to_screen(state.points)), preview_style
        )
    return None


def build_frame(canvas) -> RenderFrame:
    """Render list for the controller's current state, back to front."""
    pipeline = canvas.pipeline()
    layers = canvas.layers
    frame = RenderFrame(zoom=canvas.zoom, scale=pipeline.scale)

    if canvas.has_image and layers.is_visible(LayerType.CANVAS):
        frame.items.append(
            RenderItem(
                RenderLayer.IMAGE,
                "polygon",
                image_quad(canvas.image_size, canvas.image_rotation, pipeline),
                Style(0.0, (0, 0, 0, 0), (255, 255, 255, 255)),
            )
        )

    if layers.is_visible(LayerType.DETECTIONS):
        for index, detection in enumerate(canvas.detections):
            if detection.visible:
                frame.items.append(shape_item(detection, pipeline, RenderLayer.DETECTION, index))

    if layers.is_visible(LayerType.TEMPLATE) or canvas.template_mode.edits_fields:
        for index, field_def in enumerate(canvas.fields):
            ring = np.asarray(field_def.bounds.corners(), dtype=float)
            frame.items.append(
                RenderItem(
                    RenderLayer.FIELD,
                    "polygon",
                    _tuples(pipeline.image_points_to_screen(ring)),
                    FIELD_STYLE,
                    index=index,
                    selected=index == canvas.selected_field,
                    label=field_def.label,
                )
            )

    if layers.is_visible(LayerType.SHAPES):
        for index, shape in enumerate(canvas.shapes):
            if shape.visible:
                frame.items.append(
                    shape_item(shape, pipeline, RenderLayer.SHAPE, index, selected=index == canvas.selection)
                )
        if canvas.current_tool is ToolMode.EDIT and canvas.selection is not None:
            vertices = shape_vertices(canvas.shapes[canvas.selection])
            frame.handles = _tuples(pipeline.image_points_to_screen(vertices))

    if isinstance(canvas.interaction, Drawing):
        item = preview_item(canvas.interaction, canvas.current_tool, canvas.style, pipeline)
        if item is not None:
            frame.items.append(item)

    if layers.is_visible(LayerType.GRID) and not canvas.viewport.is_empty:
        size = (canvas.viewport.width, canvas.viewport.height)
        for line in grid_lines(pipeline, size, canvas.config.grid_spacing, canvas.grid_rotation):
            frame.items.append(RenderItem(RenderLayer.GRID, "line", line, GRID_STYLE))

    return frame


__all__ = [
    "HANDLE_SIZE",
    "RenderLayer",
    "RenderItem",
    "RenderFrame",
    "shape_item",
    "image_quad",
    "grid_lines",
    "preview_item",
    "build_frame",
]
