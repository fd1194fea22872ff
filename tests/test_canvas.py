from __future__ import annotations

import numpy as np
import pytest

from formcanvas.canvas import (
    CanvasController,
    CanvasError,
    CanvasErrorKind,
    KeyEvent,
    PointerEvent,
    PointerEventKind,
)
from formcanvas.layers import LayerManager, LayerType
from formcanvas.shapes import Circle, Polygon, Rectangle
from formcanvas.tools import IDLE, ToolMode
from formcanvas.transforms import Viewport


def _three_shapes(canvas: CanvasController) -> None:
    canvas.commit_shape(Rectangle.from_corners((0, 0), (10, 10), name="a"))
    canvas.commit_shape(Circle(center=(50, 50), radius=5, name="b"))
    canvas.commit_shape(Polygon.from_points([(100, 100), (120, 100), (110, 120)], name="c"))


def test_new_controller_defaults(canvas: CanvasController):
    assert canvas.current_tool is ToolMode.SELECT
    assert canvas.interaction is IDLE
    assert canvas.selection is None
    assert canvas.selected_layer is None
    assert canvas.zoom == 1.0
    assert canvas.pan == (0.0, 0.0)
    assert not canvas.has_image


def test_layer_defaults():
    layers = LayerManager()
    assert [layer.layer_type for layer in layers] == list(LayerType)
    assert layers.is_visible(LayerType.SHAPES)
    assert not layers.is_visible(LayerType.TEMPLATE)
    assert not layers.is_visible(LayerType.GRID)
    assert layers.toggle_visible(LayerType.GRID)
    assert layers.toggle_locked(LayerType.SHAPES)
    assert layers.is_locked(LayerType.SHAPES)


def test_set_selection_validates_index(canvas: CanvasController):
    _three_shapes(canvas)
    with pytest.raises(CanvasError) as info:
        canvas.set_selection(3)
    assert info.value.kind is CanvasErrorKind.INVALID_INDEX
    assert canvas.selection == 2


def test_focus_is_requested_only_when_selection_changes(canvas: CanvasController):
    _three_shapes(canvas)
    canvas.take_focus_request()
    canvas.press((5, 5))
    assert canvas.selection == 0
    assert canvas.take_focus_request()
    canvas.press((6, 6))
    assert not canvas.take_focus_request()
    canvas.press((500, 500))
    assert not canvas.take_focus_request()


def test_selection_info(canvas: CanvasController):
    assert canvas.selection_info() is None
    _three_shapes(canvas)
    assert canvas.selection_info() == {"index": 2, "type": "polygon", "name": "c"}


def test_hidden_shapes_are_not_hit(canvas: CanvasController):
    _three_shapes(canvas)
    canvas.set_shape_visibility(0, False)
    assert canvas.hit_test((5, 5)) is None
    canvas.set_shape_visibility(0, True)
    assert canvas.hit_test((5, 5)) == 0
    canvas.layers.set_visible(LayerType.SHAPES, False)
    assert canvas.hit_test((5, 5)) is None
    with pytest.raises(CanvasError):
        canvas.set_shape_visibility(7, True)


def test_delete_shape_shifts_selection(canvas: CanvasController):
    _three_shapes(canvas)
    removed = canvas.delete_shape(0)
    assert removed.name == "a"
    assert canvas.selection == 1
    assert [s.name for s in canvas.shapes] == ["b", "c"]

    canvas.delete_shape(1)
    assert canvas.selection is None
    assert not canvas.show_properties

    with pytest.raises(CanvasError) as info:
        canvas.delete_shape(5)
    assert info.value.kind is CanvasErrorKind.INVALID_INDEX


def test_delete_key_removes_selected_shape(canvas: CanvasController):
    _three_shapes(canvas)
    canvas.press((50, 50))
    assert canvas.handle_key(KeyEvent("delete"))
    assert [s.name for s in canvas.shapes] == ["a", "c"]
    assert canvas.selection is None
    assert not canvas.handle_key(KeyEvent("delete"))


def test_delete_key_respects_lock(canvas: CanvasController):
    _three_shapes(canvas)
    canvas.layers.set_locked(LayerType.SHAPES, True)
    assert not canvas.handle_key(KeyEvent("backspace"))
    assert len(canvas.shapes) == 3


def test_undo_removes_last_shape(canvas: CanvasController):
    _three_shapes(canvas)
    assert canvas.handle_key(KeyEvent("z", ctrl=True))
    assert [s.name for s in canvas.shapes] == ["a", "b"]
    assert canvas.selection is None
    canvas.set_selection(0)
    assert canvas.undo().name == "b"
    assert canvas.selection == 0
    canvas.undo()
    assert canvas.undo() is None


def test_undo_waits_for_idle(canvas: CanvasController):
    _three_shapes(canvas)
    canvas.set_tool("rectangle")
    canvas.drag_start((200, 200))
    assert canvas.undo() is None
    assert len(canvas.shapes) == 3


def test_clear_keeps_fields(canvas: CanvasController):
    _three_shapes(canvas)
    canvas.add_detection(Circle(center=(0, 0), radius=3))
    canvas.clear()
    assert canvas.shapes == []
    assert canvas.detections == []
    assert canvas.selection is None


def test_copy_shapes_is_detached(canvas: CanvasController):
    _three_shapes(canvas)
    copies = canvas.copy_shapes()
    copies[0].set_vertex(0, (-5, -5))
    assert canvas.shapes[0].corners[0].tolist() == [0, 0]


def test_detections_are_stored_as_copies(canvas: CanvasController):
    source = Rectangle.from_corners((0, 0), (20, 20))
    canvas.add_detections([source, Circle(center=(5, 5), radius=1)])
    source.set_vertex(0, (-1, -1))
    assert canvas.detections[0].corners[0].tolist() == [0, 0]
    canvas.set_detection_visibility(1, False)
    assert not canvas.detections[1].visible
    assert isinstance(canvas.delete_detection(1), Circle)
    with pytest.raises(CanvasError):
        canvas.delete_detection(1)


def test_detections_are_not_selectable(canvas: CanvasController):
    canvas.add_detection(Rectangle.from_corners((0, 0), (20, 20)))
    canvas.press((10, 10))
    assert canvas.selection is None


def test_process_frame_drains_events_in_order(canvas: CanvasController):
    canvas.set_tool("rectangle")
    canvas.process_frame(
        [
            PointerEvent(PointerEventKind.DRAG_START, (10, 10)),
            PointerEvent(PointerEventKind.DRAG_MOVE, (30, 30)),
            PointerEvent(PointerEventKind.DRAG_MOVE, (40, 50)),
            PointerEvent(PointerEventKind.DRAG_STOP, (40, 50)),
            PointerEvent(PointerEventKind.SCROLL, (400, 300), scroll=100.0),
        ]
    )
    assert canvas.shapes[0].corners.tolist() == [[10, 10], [40, 10], [40, 50], [10, 50]]
    assert canvas.zoom == pytest.approx(1.5)
    assert canvas.interaction is IDLE


def test_drawing_after_zoom_stores_image_coordinates():
    canvas = CanvasController(viewport=Viewport.from_size(800, 600))
    canvas.set_image(1000, 500)
    canvas.zoom_by(1.0)  # zoom 2 about the viewport center
    canvas.set_tool("rectangle")
    start = canvas.image_to_screen((100, 100))
    end = canvas.image_to_screen((300, 200))
    canvas.drag_start(start)
    canvas.drag_move(end)
    canvas.drag_stop()
    assert np.allclose(canvas.shapes[0].corners[0], [100, 100])
    assert np.allclose(canvas.shapes[0].corners[2], [300, 200])


def test_select_layer_accepts_names(canvas: CanvasController):
    canvas.select_layer("grid")
    assert canvas.selected_layer is LayerType.GRID
    with pytest.raises(ValueError):
        canvas.select_layer("instances")


def test_clear_image_resets_rotation(canvas: CanvasController):
    canvas.set_image(100, 100, "scan.png")
    canvas.image_rotation = 0.5
    canvas.clear_image()
    assert not canvas.has_image
    assert canvas.image_path is None
    assert canvas.image_rotation == 0.0
