"""Tool modes and the per-gesture interaction state machine.

``ToolMode`` is the persistent tool the user picked. ``InteractionState`` is
the transient state of one press -> move* -> release gesture and always
returns to ``IDLE``. Each tool receives pointer positions already converted
to image-pixel space by the controller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

import numpy as np

from .fields import FieldBounds, dragged_bounds, field_from_points, hit_test_fields, snap_to_field
from .geometry import Point, angle_about, is_finite_point
from .layers import LayerType
from .shapes import (
    Circle,
    Polygon,
    Rectangle,
    Shape,
    ShapeError,
    set_shape_vertex,
    shape_centroid,
    shape_vertices,
)

log = logging.getLogger("formcanvas.tools")


class ToolMode(str, Enum):
    SELECT = "select"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    FREEHAND = "freehand"
    EDIT = "edit"
    ROTATE = "rotate"

    @property
    def draws(self) -> bool:
        return self in (ToolMode.RECTANGLE, ToolMode.CIRCLE, ToolMode.FREEHAND)


# ----------------------------------------------------------------------
# Interaction states


@dataclass(frozen=True)
class Idle:
    pass


IDLE = Idle()


@dataclass
class Drawing:
    start: Point
    current_end: Optional[Point] = None
    points: List[Point] = field(default_factory=list)


@dataclass(frozen=True)
class DraggingVertex:
    vertex_index: int


@dataclass
class Rotating:
    """``start_angle`` is overwritten after every move, so rotation is incremental."""

    start_angle: float
    center: Point
    target: LayerType


@dataclass(frozen=True)
class DraggingField:
    field_index: int
    drag_start: Point
    original_bounds: FieldBounds


InteractionState = Union[Idle, Drawing, DraggingVertex, Rotating, DraggingField]


# ----------------------------------------------------------------------
# Tools


class ToolBase:
    """Common interface every tool implements.

    ``canvas`` is the owning :class:`~formcanvas.canvas.CanvasController`.
    All positions are in image-pixel space.
    """

    mode: ToolMode

    def __init__(self, canvas):
        self.canvas = canvas

    def press(self, pos: Point) -> None:
        if isinstance(self.canvas.interaction, Idle):
            self.canvas.select_at(pos)

    def drag_start(self, pos: Point) -> None:
        pass

    def drag_move(self, pos: Point) -> None:
        pass

    def drag_stop(self) -> None:
        self.canvas.interaction = IDLE

    def cancel(self) -> None:
        self.canvas.interaction = IDLE

    def deactivate(self) -> None:
        if not isinstance(self.canvas.interaction, Idle):
            self.cancel()


class SelectTool(ToolBase):
    """Hit-test shapes, or template fields while fields are being edited."""

    mode = ToolMode.SELECT

    def press(self, pos: Point) -> None:
        if self.canvas.template_mode.edits_fields:
            self.canvas.select_field_at(pos)
        else:
            self.canvas.select_at(pos)

    def drag_start(self, pos: Point) -> None:
        if not self.canvas.template_mode.edits_fields:
            return
        if self.canvas.layers.is_locked(LayerType.TEMPLATE):
            log.debug("Template layer locked, ignoring field drag")
            return
        fields = self.canvas.fields
        index = hit_test_fields(fields, pos)
        if index is None:
            index = self.canvas.selected_field
        if index is None or not 0 <= index < len(fields):
            return
        self.canvas.select_field(index)
        self.canvas.interaction = DraggingField(
            field_index=index, drag_start=(pos[0], pos[1]), original_bounds=fields[index].bounds
        )
        log.debug("Started dragging field %d", index)

    def drag_move(self, pos: Point) -> None:
        state = self.canvas.interaction
        if not isinstance(state, DraggingField) or not is_finite_point(pos):
            return
        bounds = dragged_bounds(state.original_bounds, state.drag_start, pos)
        self.canvas.update_field_bounds(state.field_index, bounds)

    def cancel(self) -> None:
        state = self.canvas.interaction
        if isinstance(state, DraggingField):
            self.canvas.update_field_bounds(state.field_index, state.original_bounds)
            log.debug("Field drag cancelled, restored field %d", state.field_index)
        self.canvas.interaction = IDLE


class DrawTool(ToolBase):
    """Rectangle, circle, and freehand drawing.

    The gesture is committed by :meth:`finalize` on release. Geometry that
    fails validation is dropped and logged; nothing partial is stored.
    """

    def __init__(self, canvas, mode: ToolMode):
        super().__init__(canvas)
        if not mode.draws:
            raise ValueError(f"Tool '{mode.value}' does not draw")
        self.mode = mode

    def press(self, pos: Point) -> None:
        pass

    def _snap(self, pos: Point) -> Point:
        if self.canvas.template_mode.edits_fields and self.canvas.fields:
            return snap_to_field(pos, self.canvas.fields, self.canvas.config.snap_threshold)
        return (pos[0], pos[1])

    def drag_start(self, pos: Point) -> None:
        if not is_finite_point(pos):
            return
        target = LayerType.TEMPLATE if self.canvas.template_mode.edits_fields else LayerType.SHAPES
        if self.canvas.layers.is_locked(target):
            log.debug("%s layer locked, not drawing", target.label)
            return
        start = self._snap(pos)
        points = [start] if self.mode is ToolMode.FREEHAND else []
        self.canvas.interaction = Drawing(start=start, current_end=start, points=points)

    def drag_move(self, pos: Point) -> None:
        state = self.canvas.interaction
        if not isinstance(state, Drawing) or not is_finite_point(pos):
            return
        point = self._snap(pos)
        state.current_end = point
        if self.mode is ToolMode.FREEHAND:
            state.points.append(point)

    def drag_stop(self) -> None:
        self.finalize()

    def build_shape(self, state: Drawing) -> Shape:
        """Construct the shape described by ``state``; raises ``ShapeError``."""
        style = self.canvas.style
        end = state.current_end if state.current_end is not None else state.start
        if self.mode is ToolMode.RECTANGLE:
            return Rectangle.from_corners(state.start, end, style=style)
        if self.mode is ToolMode.CIRCLE:
            return Circle.from_drag(state.start, end, style=style)
        return Polygon.from_points(state.points, style=style)

    def finalize(self) -> Optional[int]:
        """End the gesture and commit its result.

        Returns the index of the new shape or field, or ``None`` when the
        gesture was dropped.
        """
        state = self.canvas.interaction
        self.canvas.interaction = IDLE
        if not isinstance(state, Drawing):
            return None
        if self.canvas.template_mode.edits_fields:
            return self._finalize_field(state)
        try:
            shape = self.build_shape(state)
        except ShapeError as exc:
            log.warning("Dropped %s gesture: %s", self.mode.value, exc)
            return None
        return self.canvas.commit_shape(shape)

    def _finalize_field(self, state: Drawing) -> Optional[int]:
        if self.mode is ToolMode.FREEHAND:
            if len(state.points) < 3:
                log.warning("Dropped freehand field: %d points", len(state.points))
                return None
            extent = state.points
        else:
            end = state.current_end if state.current_end is not None else state.start
            extent = [state.start, end]
        new_field = field_from_points(extent, self.canvas.fields)
        if new_field is None:
            log.warning("Dropped %s field: zero-area bounds", self.mode.value)
            return None
        return self.canvas.commit_field(new_field)


class EditTool(ToolBase):
    """Drag individual vertices of the selected shape."""

    mode = ToolMode.EDIT

    def find_vertex(self, shape: Shape, pos: Point) -> Optional[int]:
        """Nearest vertex within the hit radius, measured in canvas pixels."""
        if not is_finite_point(pos):
            return None
        vertices = shape_vertices(shape)
        scale = self.canvas.fit_transform().scale
        dist = np.hypot(vertices[:, 0] - pos[0], vertices[:, 1] - pos[1]) * scale
        index = int(np.argmin(dist))
        if dist[index] < self.canvas.config.vertex_hit_radius:
            return index
        return None

    def drag_start(self, pos: Point) -> None:
        index = self.canvas.selection
        if index is None:
            self.canvas.select_at(pos)
            return
        if self.canvas.layers.is_locked(LayerType.SHAPES):
            log.debug("Shapes layer locked, not editing")
            return
        shape = self.canvas.shapes[index]
        vertex = self.find_vertex(shape, pos)
        if vertex is None:
            return
        self.canvas.interaction = DraggingVertex(vertex_index=vertex)
        log.debug("Started dragging vertex %d of shape %d", vertex, index)

    def drag_move(self, pos: Point) -> None:
        state = self.canvas.interaction
        index = self.canvas.selection
        if not isinstance(state, DraggingVertex) or index is None:
            return
        try:
            set_shape_vertex(self.canvas.shapes[index], state.vertex_index, pos)
        except ShapeError as exc:
            log.warning("Vertex %d of shape %d not moved: %s", state.vertex_index, index, exc)


class RotateTool(ToolBase):
    """Rotate the selected shape, the grid, or the form image."""

    mode = ToolMode.ROTATE

    def _rotation_center(self) -> Optional[Point]:
        canvas = self.canvas
        layer = canvas.selected_layer
        if layer is None or canvas.layers.is_locked(layer):
            return None
        if layer is LayerType.SHAPES:
            if canvas.selection is None:
                return None
            return shape_centroid(canvas.shapes[canvas.selection])
        if layer is LayerType.GRID:
            return (0.0, 0.0)
        if layer is LayerType.CANVAS and canvas.has_image:
            return (0.0, 0.0)
        return None

    def drag_start(self, pos: Point) -> None:
        center = self._rotation_center()
        if center is None or not is_finite_point(pos):
            log.debug("No rotation target for layer %s", self.canvas.selected_layer)
            self.canvas.select_at(pos)
            return
        self.canvas.interaction = Rotating(
            start_angle=angle_about(center, pos), center=center, target=self.canvas.selected_layer
        )
        log.debug("Started rotating %s about %s", self.canvas.selected_layer.value, center)

    def drag_move(self, pos: Point) -> None:
        state = self.canvas.interaction
        if not isinstance(state, Rotating) or not is_finite_point(pos):
            return
        current = angle_about(state.center, pos)
        delta = current - state.start_angle
        state.start_angle = current
        self.canvas.apply_rotation(state.target, -delta, state.center)


def create_tool(canvas, mode: ToolMode) -> ToolBase:
    if mode is ToolMode.SELECT:
        return SelectTool(canvas)
    if mode.draws:
        return DrawTool(canvas, mode)
    if mode is ToolMode.EDIT:
        return EditTool(canvas)
    if mode is ToolMode.ROTATE:
        return RotateTool(canvas)
    raise ValueError(f"Unhandled tool '{mode}'")


__all__ = [
    "ToolMode",
    "Idle",
    "IDLE",
    "Drawing",
    "DraggingVertex",
    "Rotating",
    "DraggingField",
    "InteractionState",
    "ToolBase",
    "SelectTool",
    "DrawTool",
    "EditTool",
    "RotateTool",
    "create_tool",
]
