"""Canvas controller: owns annotation state and dispatches input.

Pointer events arrive in screen space, are inverted through the coordinate
pipeline to image-pixel space, and handed to the active tool. Within one
frame events are drained in order, then the caller builds a render frame, so
rendering never observes a half-applied gesture.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .config import CanvasConfig
from .fields import DetectionMatch, FieldBounds, FieldDefinition, TemplateMode, hit_test_fields, match_detections_to_fields
from .geometry import Point
from .layers import LayerManager, LayerType
from .shapes import Shape, ShapeError, Style, rotate_shape, shape_contains
from .tools import (
    IDLE,
    DraggingField,
    DraggingVertex,
    Idle,
    InteractionState,
    Rotating,
    ToolBase,
    ToolMode,
    create_tool,
)
from .transforms import CoordinatePipeline, FitTransform, Size, Viewport, zoom_toward

log = logging.getLogger("formcanvas.canvas")

SCROLL_ZOOM_FACTOR = 0.001
KEY_ZOOM_STEP = 0.1


class CanvasErrorKind(str, Enum):
    INVALID_INDEX = "invalid_index"
    SERIALIZATION = "serialization"
    DESERIALIZATION = "deserialization"
    FILE_READ = "file_read"
    FILE_WRITE = "file_write"


class CanvasError(Exception):
    """Raised by the index-addressed API and by project I/O."""

    def __init__(self, kind: CanvasErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class PointerEventKind(str, Enum):
    PRESS = "press"
    DRAG_START = "drag_start"
    DRAG_MOVE = "drag_move"
    DRAG_STOP = "drag_stop"
    SCROLL = "scroll"


@dataclass(frozen=True)
class PointerEvent:
    """Pointer input in screen space. ``scroll`` is only read for SCROLL events."""

    kind: PointerEventKind
    position: Point
    scroll: float = 0.0


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl: bool = False


CanvasEvent = Union[PointerEvent, KeyEvent]


class CanvasController:
    """Single owner of shapes, detections, fields, selection, and view state."""

    def __init__(self, config: Optional[CanvasConfig] = None, viewport: Optional[Viewport] = None):
        self.config = config or CanvasConfig()
        self.style: Style = self.config.default_style()
        self.project_name = "Untitled"

        self.shapes: List[Shape] = []
        self.detections: List[Shape] = []
        self.fields: List[FieldDefinition] = []
        self.layers = LayerManager()

        self.interaction: InteractionState = IDLE
        self.selection: Optional[int] = None
        self.selected_field: Optional[int] = None
        self.selected_layer: Optional[LayerType] = None
        self.template_mode = TemplateMode.NONE
        self.show_properties = False
        self._focus_requested = False

        # View
        self.viewport = viewport or Viewport()
        self.image_size: Optional[Size] = None
        self.image_path: Optional[str] = None
        self.zoom: float = self.config.default_zoom
        self.pan: Point = (0.0, 0.0)
        self.grid_rotation: float = 0.0
        self.image_rotation: float = 0.0

        self._current_tool = ToolMode.SELECT
        self._tool_cache: Dict[ToolMode, ToolBase] = {}
        self._tool = self._get_tool(ToolMode.SELECT)

    # ------------------------------------------------------------------
    # Tools
    @property
    def current_tool(self) -> ToolMode:
        return self._current_tool

    @property
    def tool(self) -> ToolBase:
        return self._tool

    def set_tool(self, mode: Union[ToolMode, str]) -> None:
        """Switch tools. An in-progress gesture of the old tool is cancelled."""
        try:
            mode = ToolMode(mode)
        except ValueError:
            raise ValueError(f"Unknown tool '{mode}'") from None
        if mode is self._current_tool:
            return
        self._tool.deactivate()
        self._tool = self._get_tool(mode)
        self._current_tool = mode
        log.debug("Tool changed to %s", mode.value)

    def _get_tool(self, mode: ToolMode) -> ToolBase:
        if mode not in self._tool_cache:
            self._tool_cache[mode] = create_tool(self, mode)
        return self._tool_cache[mode]

    # ------------------------------------------------------------------
    # Coordinate pipeline
    @property
    def has_image(self) -> bool:
        return self.image_size is not None

    def pipeline(self) -> CoordinatePipeline:
        """Fit and view transforms for the current frame."""
        return CoordinatePipeline.build(self.image_size, self.viewport, self.zoom, self.pan)

    def fit_transform(self) -> FitTransform:
        return FitTransform.fit(self.image_size, self.viewport)

    def screen_to_image(self, point: Point) -> Point:
        return self.pipeline().screen_to_image(point)

    def image_to_screen(self, point: Point) -> Point:
        return self.pipeline().image_to_screen(point)

    def set_viewport(self, viewport: Viewport) -> None:
        self.viewport = viewport

    def set_image(self, width: float, height: float, path: Optional[str] = None) -> None:
        """Register a loaded image by pixel size; the view is reset."""
        if not (width > 0 and height > 0):
            raise ValueError(f"Image size must be positive, got {width}x{height}")
        self.image_size = (float(width), float(height))
        self.image_path = path
        self.reset_view()
        log.debug("Image set to %gx%g", width, height)

    def clear_image(self) -> None:
        self.image_size = None
        self.image_path = None
        self.image_rotation = 0.0
        if self.selected_layer is LayerType.CANVAS and isinstance(self.interaction, Rotating):
            self.interaction = IDLE

    # ------------------------------------------------------------------
    # Zoom and pan
    def reset_view(self) -> None:
        self.zoom = self.config.default_zoom
        self.pan = (0.0, 0.0)

    def set_zoom(self, zoom: float) -> None:
        self.zoom = max(self.config.min_zoom, min(self.config.max_zoom, float(zoom)))

    def zoom_by(self, delta: float, pointer: Optional[Point] = None) -> None:
        """Change zoom by ``delta`` keeping ``pointer`` (screen) fixed."""
        center = self.viewport.center
        if pointer is None:
            pointer = center
        self.zoom, self.pan = zoom_toward(
            self.zoom,
            self.pan,
            self.zoom + delta,
            pointer,
            center,
            self.config.min_zoom,
            self.config.max_zoom,
        )

    def scroll_zoom(self, scroll_y: float, pointer: Point) -> None:
        self.zoom_by(scroll_y * SCROLL_ZOOM_FACTOR * self.config.zoom_sensitivity, pointer)

    def pan_by(self, dx: float, dy: float) -> None:
        self.pan = (self.pan[0] + dx, self.pan[1] + dy)

    # ------------------------------------------------------------------
    # Event dispatch
    def press(self, screen_pos: Point) -> None:
        self._tool.press(self.screen_to_image(screen_pos))

    def drag_start(self, screen_pos: Point) -> None:
        if not isinstance(self.interaction, Idle):
            log.debug("Drag start ignored, gesture already active: %s", type(self.interaction).__name__)
            return
        self._tool.drag_start(self.screen_to_image(screen_pos))

    def drag_move(self, screen_pos: Point) -> None:
        if isinstance(self.interaction, Idle):
            return
        self._tool.drag_move(self.screen_to_image(screen_pos))

    def drag_stop(self) -> None:
        if isinstance(self.interaction, Idle):
            return
        self._tool.drag_stop()

    def cancel_gesture(self) -> None:
        """Abort the current gesture without committing it."""
        if isinstance(self.interaction, Idle):
            return
        log.debug("Cancelling %s", type(self.interaction).__name__)
        self._tool.cancel()

    def handle_key(self, event: KeyEvent) -> bool:
        """Apply a keyboard command; returns True when the key was consumed."""
        key = event.key.lower()
        if key == "escape":
            self.cancel_gesture()
            return True
        if event.ctrl:
            step = KEY_ZOOM_STEP * self.config.zoom_sensitivity
            if key in ("plus", "equal"):
                self.zoom_by(step)
                return True
            if key == "minus":
                self.zoom_by(-step)
                return True
            if key == "0":
                self.reset_view()
                return True
            if key == "z":
                self.undo()
                return True
            return False
        if key in ("delete", "backspace"):
            return self.delete_selected()
        return False

    def handle_event(self, event: CanvasEvent) -> None:
        if isinstance(event, KeyEvent):
            self.handle_key(event)
            return
        kind = PointerEventKind(event.kind)
        if kind is PointerEventKind.PRESS:
            self.press(event.position)
        elif kind is PointerEventKind.DRAG_START:
            self.drag_start(event.position)
        elif kind is PointerEventKind.DRAG_MOVE:
            self.drag_move(event.position)
        elif kind is PointerEventKind.DRAG_STOP:
            self.drag_stop()
        elif kind is PointerEventKind.SCROLL:
            self.scroll_zoom(event.scroll, event.position)

    def process_frame(self, events: Iterable[CanvasEvent]) -> None:
        """Drain one frame's events in order."""
        for event in events:
            self.handle_event(event)

    # ------------------------------------------------------------------
    # Selection
    def hit_test(self, pos: Point) -> Optional[int]:
        """Topmost visible shape containing ``pos`` (image-pixel space)."""
        if not self.layers.is_visible(LayerType.SHAPES):
            return None
        for index in range(len(self.shapes) - 1, -1, -1):
            shape = self.shapes[index]
            if shape.visible and shape_contains(shape, pos):
                return index
        return None

    def select_at(self, pos: Point) -> Optional[int]:
        index = self.hit_test(pos)
        log.debug("Selection at %s -> %s", pos, index)
        self.set_selection(index)
        return index

    def set_selection(self, index: Optional[int]) -> None:
        if index is not None and not 0 <= index < len(self.shapes):
            raise CanvasError(CanvasErrorKind.INVALID_INDEX, f"Shape index {index} out of bounds")
        if index is not None and index != self.selection:
            self._focus_requested = True
        self.selection = index
        self.show_properties = index is not None
        if index is not None:
            self.select_layer(LayerType.SHAPES)

    def select_layer(self, layer: Optional[LayerType]) -> None:
        self.selected_layer = None if layer is None else LayerType(layer)

    def take_focus_request(self) -> bool:
        """Return and clear the one-shot name-field focus request."""
        requested = self._focus_requested
        self._focus_requested = False
        return requested

    def selection_info(self) -> Optional[Dict[str, Any]]:
        if self.selection is None:
            return None
        shape = self.shapes[self.selection]
        return {"index": self.selection, "type": shape.kind, "name": shape.name}

    def select_field_at(self, pos: Point) -> Optional[int]:
        index = hit_test_fields(self.fields, pos)
        self.select_field(index)
        return index

    def select_field(self, index: Optional[int]) -> None:
        if index is not None and not 0 <= index < len(self.fields):
            raise CanvasError(CanvasErrorKind.INVALID_INDEX, f"Field index {index} out of bounds")
        self.selected_field = index
        self.show_properties = index is not None

    # ------------------------------------------------------------------
    # Shape mutations
    def commit_shape(self, shape: Shape) -> int:
        """Append a finished shape, select it, and request name focus."""
        self.shapes.append(shape)
        index = len(self.shapes) - 1
        self.set_selection(index)
        self._focus_requested = True
        self.show_properties = True
        log.debug("Added %s at index %d", shape.kind, index)
        return index

    def apply_rotation(self, target: LayerType, angle: float, center: Point) -> None:
        """Rotate ``target`` by ``angle`` radians about ``center``."""
        if target is LayerType.SHAPES:
            if self.selection is None:
                return
            try:
                rotate_shape(self.shapes[self.selection], angle, center)
            except ShapeError as exc:
                log.warning("Rotation of shape %d rejected: %s", self.selection, exc)
        elif target is LayerType.GRID:
            self.grid_rotation += angle
        elif target is LayerType.CANVAS:
            self.image_rotation += angle

    def delete_shape(self, index: int) -> Shape:
        if not 0 <= index < len(self.shapes):
            raise CanvasError(CanvasErrorKind.INVALID_INDEX, f"Shape index {index} out of bounds")
        shape = self.shapes.pop(index)
        if self.selection is not None:
            if self.selection == index:
                self.selection = None
                self.show_properties = False
            elif self.selection > index:
                self.selection -= 1
        self._reconcile_selection()
        log.debug("Deleted shape %d", index)
        return shape

    def delete_selected(self) -> bool:
        """Delete the selected field (template editing) or shape."""
        if not isinstance(self.interaction, Idle):
            return False
        if self.template_mode.edits_fields:
            if self.selected_field is None or self.layers.is_locked(LayerType.TEMPLATE):
                return False
            self.delete_field(self.selected_field)
            return True
        if self.selection is None or self.layers.is_locked(LayerType.SHAPES):
            return False
        self.delete_shape(self.selection)
        self.show_properties = False
        return True

    def undo(self) -> Optional[Shape]:
        """Remove the most recently added shape."""
        if not self.shapes or not isinstance(self.interaction, Idle):
            return None
        shape = self.shapes.pop()
        self._reconcile_selection()
        log.debug("Undo removed %s", shape.kind)
        return shape

    def clear_shapes(self) -> None:
        self.shapes.clear()
        self._reconcile_selection()

    def clear_detections(self) -> None:
        self.detections.clear()

    def clear(self) -> None:
        """Remove all shapes and detections."""
        self.clear_shapes()
        self.clear_detections()

    def set_shape_visibility(self, index: int, visible: bool) -> None:
        if not 0 <= index < len(self.shapes):
            raise CanvasError(CanvasErrorKind.INVALID_INDEX, f"Shape index {index} out of bounds")
        self.shapes[index].visible = bool(visible)

    def _reconcile_selection(self) -> None:
        if self.selection is not None and self.selection >= len(self.shapes):
            self.selection = None
            self.show_properties = False
        if self.selection is None and isinstance(self.interaction, (DraggingVertex, Rotating)):
            if not isinstance(self.interaction, Rotating) or self.interaction.target is LayerType.SHAPES:
                self.interaction = IDLE

    def copy_shapes(self) -> List[Shape]:
        return [shape.copy() for shape in self.shapes]

    # ------------------------------------------------------------------
    # Detections
    def add_detection(self, shape: Shape) -> int:
        self.detections.append(shape.copy())
        return len(self.detections) - 1

    def add_detections(self, shapes: Sequence[Shape]) -> None:
        for shape in shapes:
            self.add_detection(shape)

    def delete_detection(self, index: int) -> Shape:
        if not 0 <= index < len(self.detections):
            raise CanvasError(CanvasErrorKind.INVALID_INDEX, f"Detection index {index} out of bounds")
        return self.detections.pop(index)

    def set_detection_visibility(self, index: int, visible: bool) -> None:
        if not 0 <= index < len(self.detections):
            raise CanvasError(CanvasErrorKind.INVALID_INDEX, f"Detection index {index} out of bounds")
        self.detections[index].visible = bool(visible)

    def copy_detections(self) -> List[Shape]:
        return [shape.copy() for shape in self.detections]

    # ------------------------------------------------------------------
    # Template fields
    def set_template_mode(self, mode: Union[TemplateMode, str]) -> None:
        mode = TemplateMode(mode)
        if not mode.edits_fields and isinstance(self.interaction, DraggingField):
            self.cancel_gesture()
        self.template_mode = mode
        if not mode.edits_fields:
            self.selected_field = None
        log.debug("Template mode %s", mode.value)

    def set_fields(self, fields: Sequence[FieldDefinition]) -> None:
        if isinstance(self.interaction, DraggingField):
            self.interaction = IDLE
        self.fields = list(fields)
        if self.selected_field is not None and self.selected_field >= len(self.fields):
            self.selected_field = None

    def commit_field(self, field_def: FieldDefinition) -> int:
        self.fields.append(field_def)
        index = len(self.fields) - 1
        self.select_field(index)
        log.debug("Created field %s at index %d", field_def.id, index)
        return index

    def update_field_bounds(self, index: int, bounds: FieldBounds) -> None:
        if not 0 <= index < len(self.fields):
            raise CanvasError(CanvasErrorKind.INVALID_INDEX, f"Field index {index} out of bounds")
        self.fields[index] = self.fields[index].with_bounds(bounds)

    def delete_field(self, index: int) -> FieldDefinition:
        if not 0 <= index < len(self.fields):
            raise CanvasError(CanvasErrorKind.INVALID_INDEX, f"Field index {index} out of bounds")
        removed = self.fields.pop(index)
        if self.selected_field is not None:
            if self.selected_field == index:
                self.selected_field = None
                self.show_properties = False
            elif self.selected_field > index:
                self.selected_field -= 1
        return removed

    def match_detections(self) -> List[DetectionMatch]:
        return match_detections_to_fields(self.fields, self.detections, self.config.min_field_overlap)


__all__ = [
    "CanvasController",
    "CanvasError",
    "CanvasErrorKind",
    "CanvasEvent",
    "KeyEvent",
    "PointerEvent",
    "PointerEventKind",
]
