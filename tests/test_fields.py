from __future__ import annotations

import math

import pytest
from conftest import drag

from formcanvas.canvas import CanvasController, KeyEvent
from formcanvas.fields import (
    FieldBounds,
    FieldDefinition,
    TemplateMode,
    calculate_overlap,
    dragged_bounds,
    field_from_points,
    find_best_detection_match,
    hit_test_fields,
    match_detections_to_fields,
    next_field_identity,
    snap_to_field,
)
from formcanvas.layers import LayerType
from formcanvas.shapes import Circle, Rectangle
from formcanvas.tools import IDLE, DraggingField


def _field(field_id: str, x: float, y: float, w: float, h: float) -> FieldDefinition:
    return FieldDefinition(id=field_id, label=field_id.title(), bounds=FieldBounds(x, y, w, h))


def test_field_bounds_contains_is_inclusive():
    bounds = FieldBounds(10, 10, 50, 30)
    assert bounds.contains((10, 10))
    assert bounds.contains((60, 40))
    assert not bounds.contains((60.01, 40))
    assert not bounds.contains((math.nan, 20))
    assert bounds.extents == (10, 10, 60, 40)
    assert bounds.area == 1500


def test_next_field_identity_skips_taken_ids():
    assert next_field_identity([]) == ("field_1", "Field 1")
    fields = [_field("field_2", 0, 0, 1, 1)]
    assert next_field_identity(fields) == ("field_3", "Field 3")


def test_field_from_points_uses_bounding_box():
    created = field_from_points([(60, 40), (10, 10)], [])
    assert created.id == "field_1"
    assert created.label == "Field 1"
    assert created.bounds == FieldBounds(10, 10, 50, 30)
    assert field_from_points([(5, 5), (5, 50)], []) is None


def test_hit_test_fields_prefers_last():
    fields = [_field("outer", 0, 0, 100, 100), _field("inner", 20, 20, 10, 10)]
    assert hit_test_fields(fields, (25, 25)) == 1
    assert hit_test_fields(fields, (80, 80)) == 0
    assert hit_test_fields(fields, (200, 200)) is None


def test_dragged_bounds_uses_total_delta():
    original = FieldBounds(10, 10, 50, 30)
    assert dragged_bounds(original, (20, 20), (40, 30)) == FieldBounds(30, 20, 50, 30)


def test_snap_to_field_snaps_each_axis():
    fields = [_field("f", 10, 10, 50, 30)]
    assert snap_to_field((63, 43), fields) == (60, 40)
    assert snap_to_field((63, 25), fields) == (60, 25)
    assert snap_to_field((200, 200), fields) == (200, 200)
    assert snap_to_field((63, 43), fields, threshold=2) == (63, 43)


def test_calculate_overlap():
    a = FieldBounds(0, 0, 100, 100)
    assert calculate_overlap(a, FieldBounds(50, 50, 100, 100)) == pytest.approx(2500 / 17500)
    assert calculate_overlap(a, FieldBounds(200, 0, 10, 10)) == 0.0


def test_best_detection_match_needs_strictly_more_than_threshold():
    field_def = _field("f", 0, 0, 100, 100)
    half = Rectangle.from_corners((0, 0), (100, 50))
    offset = Rectangle.from_corners((50, 50), (150, 150))

    best = find_best_detection_match(field_def, [offset, half])
    assert best.detection_index == 1
    assert best.overlap == pytest.approx(0.5)
    assert find_best_detection_match(field_def, [half], min_overlap=0.5) is None
    assert find_best_detection_match(field_def, [offset]) is None


def test_match_detections_to_fields_reports_field_indices():
    fields = [_field("a", 0, 0, 100, 100), _field("b", 500, 500, 40, 40)]
    detections = [Circle(center=(520, 520), radius=20), Rectangle.from_corners((0, 0), (90, 90))]
    matches = match_detections_to_fields(fields, detections)
    assert [(m.field_index, m.detection_index) for m in matches] == [(0, 1), (1, 0)]
    assert matches[1].overlap == pytest.approx(1.0)


# ----------------------------------------------------------------------
# Template editing through the controller


@pytest.fixture
def editing(canvas: CanvasController) -> CanvasController:
    canvas.set_template_mode(TemplateMode.EDITING)
    return canvas


def test_drawing_in_template_mode_creates_fields(editing: CanvasController):
    editing.set_tool("rectangle")
    drag(editing, [(10, 10), (60, 40)])
    assert editing.shapes == []
    assert len(editing.fields) == 1
    assert editing.fields[0].id == "field_1"
    assert editing.fields[0].bounds == FieldBounds(10, 10, 50, 30)
    assert editing.selected_field == 0


def test_template_drawing_snaps_to_existing_fields(editing: CanvasController):
    editing.set_tool("rectangle")
    drag(editing, [(10, 10), (60, 40)])
    drag(editing, [(63, 43), (120, 90)])
    assert editing.fields[1].id == "field_2"
    assert editing.fields[1].bounds == FieldBounds(60, 40, 60, 50)


def test_zero_area_field_is_dropped(editing: CanvasController):
    editing.set_tool("rectangle")
    drag(editing, [(10, 10), (10, 80)])
    assert editing.fields == []
    assert editing.interaction is IDLE


def test_field_drag_moves_by_total_delta(editing: CanvasController):
    editing.set_fields([_field("field_1", 10, 10, 50, 30)])
    editing.drag_start((20, 20))
    assert isinstance(editing.interaction, DraggingField)
    editing.drag_move((30, 25))
    editing.drag_move((40, 30))
    editing.drag_stop()
    assert editing.fields[0].bounds == FieldBounds(30, 20, 50, 30)
    assert editing.selected_field == 0
    assert editing.interaction is IDLE


def test_escape_restores_dragged_field(editing: CanvasController):
    editing.set_fields([_field("field_1", 10, 10, 50, 30)])
    editing.drag_start((20, 20))
    editing.drag_move((80, 90))
    editing.handle_key(KeyEvent("escape"))
    assert editing.fields[0].bounds == FieldBounds(10, 10, 50, 30)
    assert editing.interaction is IDLE


def test_leaving_edit_mode_cancels_field_drag(editing: CanvasController):
    editing.set_fields([_field("field_1", 10, 10, 50, 30)])
    editing.drag_start((20, 20))
    editing.drag_move((40, 40))
    editing.set_template_mode("viewing")
    assert editing.interaction is IDLE
    assert editing.fields[0].bounds == FieldBounds(10, 10, 50, 30)
    assert editing.selected_field is None


def test_locked_template_layer_blocks_field_edits(editing: CanvasController):
    editing.set_fields([_field("field_1", 10, 10, 50, 30)])
    editing.layers.set_locked(LayerType.TEMPLATE, True)
    drag(editing, [(20, 20), (50, 50)])
    assert editing.fields[0].bounds == FieldBounds(10, 10, 50, 30)
    editing.set_tool("rectangle")
    drag(editing, [(100, 100), (150, 150)])
    assert len(editing.fields) == 1


def test_press_selects_fields_and_delete_removes(editing: CanvasController):
    editing.set_fields([_field("field_1", 10, 10, 50, 30), _field("field_2", 100, 100, 20, 20)])
    editing.press((110, 110))
    assert editing.selected_field == 1
    assert editing.handle_key(KeyEvent("delete"))
    assert [f.id for f in editing.fields] == ["field_1"]
    assert editing.selected_field is None


def test_fields_ignored_outside_template_mode(canvas: CanvasController):
    canvas.set_fields([_field("field_1", 10, 10, 50, 30)])
    drag(canvas, [(20, 20), (50, 50)])
    assert canvas.fields[0].bounds == FieldBounds(10, 10, 50, 30)
    canvas.press((20, 20))
    assert canvas.selected_field is None


def test_controller_match_detections_uses_config_threshold(canvas: CanvasController):
    canvas.set_fields([_field("field_1", 0, 0, 100, 100)])
    canvas.add_detection(Rectangle.from_corners((0, 0), (100, 40)))
    matches = canvas.match_detections()
    assert len(matches) == 1
    assert matches[0].overlap == pytest.approx(0.4)
