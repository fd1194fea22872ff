from __future__ import annotations

import json
import math

import numpy as np
import pytest

from formcanvas.canvas import CanvasController
from formcanvas.fields import FieldBounds, FieldDefinition, TemplateMode
from formcanvas.layers import LayerType
from formcanvas.rendering import RenderLayer, build_frame, image_quad
from formcanvas.shapes import Circle, Rectangle
from formcanvas.transforms import CoordinatePipeline, Viewport


@pytest.fixture
def form_canvas() -> CanvasController:
    canvas = CanvasController(viewport=Viewport.from_size(800, 600))
    canvas.set_image(1000, 500, "form.png")
    return canvas


def test_empty_canvas_renders_nothing(canvas: CanvasController):
    frame = build_frame(canvas)
    assert frame.items == []
    assert frame.handles == []


def test_image_quad_is_letterboxed(form_canvas: CanvasController):
    frame = build_frame(form_canvas)
    (image,) = frame.by_layer(RenderLayer.IMAGE)
    assert np.allclose(image.points, [(0, 100), (800, 100), (800, 500), (0, 500)])


def test_image_quad_rotates_about_image_center():
    pipeline = CoordinatePipeline.build((1000, 500), Viewport.from_size(800, 600))
    quad = image_quad((1000, 500), math.pi / 2, pipeline)
    assert np.allclose(quad, [(600, -100), (600, 700), (200, 700), (200, -100)])


def test_hidden_canvas_layer_skips_image(form_canvas: CanvasController):
    form_canvas.layers.set_visible(LayerType.CANVAS, False)
    assert build_frame(form_canvas).by_layer(RenderLayer.IMAGE) == []


def test_circle_radius_follows_pipeline_scale(form_canvas: CanvasController):
    form_canvas.commit_shape(Circle(center=(500, 250), radius=10))
    (item,) = build_frame(form_canvas).by_layer(RenderLayer.SHAPE)
    assert item.primitive == "circle"
    assert item.center == pytest.approx((400.0, 300.0))
    assert item.radius == pytest.approx(8.0)
    assert item.selected

    form_canvas.set_zoom(2.0)
    (item,) = build_frame(form_canvas).by_layer(RenderLayer.SHAPE)
    assert item.radius == pytest.approx(16.0)
    assert item.center == pytest.approx((400.0, 300.0))


def test_rectangle_maps_through_fit(form_canvas: CanvasController):
    form_canvas.commit_shape(Rectangle.from_corners((0, 0), (100, 50)))
    (item,) = build_frame(form_canvas).by_layer(RenderLayer.SHAPE)
    assert item.primitive == "polygon"
    assert np.allclose(item.points, [(0, 100), (80, 100), (80, 140), (0, 140)])


def test_layers_render_back_to_front(form_canvas: CanvasController):
    form_canvas.add_detection(Rectangle.from_corners((0, 0), (10, 10)))
    form_canvas.set_fields([FieldDefinition("field_1", "Field 1", FieldBounds(0, 0, 20, 20))])
    form_canvas.commit_shape(Rectangle.from_corners((5, 5), (30, 30)))
    form_canvas.layers.set_visible(LayerType.TEMPLATE, True)
    form_canvas.layers.set_visible(LayerType.GRID, True)

    layers = [item.layer for item in build_frame(form_canvas).items]
    first_grid = layers.index(RenderLayer.GRID)
    assert layers[:4] == [RenderLayer.IMAGE, RenderLayer.DETECTION, RenderLayer.FIELD, RenderLayer.SHAPE]
    assert set(layers[first_grid:]) == {RenderLayer.GRID}


def test_fields_visible_while_editing(form_canvas: CanvasController):
    form_canvas.set_fields([FieldDefinition("field_1", "Field 1", FieldBounds(0, 0, 20, 20))])
    assert build_frame(form_canvas).by_layer(RenderLayer.FIELD) == []
    form_canvas.set_template_mode(TemplateMode.EDITING)
    (field_item,) = build_frame(form_canvas).by_layer(RenderLayer.FIELD)
    assert field_item.label == "Field 1"


def test_hidden_shapes_are_not_rendered(form_canvas: CanvasController):
    form_canvas.commit_shape(Rectangle.from_corners((5, 5), (30, 30)))
    form_canvas.commit_shape(Rectangle.from_corners((50, 5), (80, 30)))
    form_canvas.set_shape_visibility(0, False)
    assert [item.index for item in build_frame(form_canvas).by_layer(RenderLayer.SHAPE)] == [1]


def test_edit_tool_shows_vertex_handles(form_canvas: CanvasController):
    form_canvas.commit_shape(Rectangle.from_corners((0, 0), (100, 50)))
    assert build_frame(form_canvas).handles == []
    form_canvas.set_tool("edit")
    frame = build_frame(form_canvas)
    assert len(frame.handles) == 4
    assert frame.handles[0] == pytest.approx((0.0, 100.0))


def test_preview_follows_gesture(canvas: CanvasController):
    canvas.set_tool("rectangle")
    canvas.drag_start((10, 10))
    canvas.drag_move((40, 30))
    (preview,) = build_frame(canvas).by_layer(RenderLayer.PREVIEW)
    assert np.allclose(preview.points, [(10, 10), (40, 10), (40, 30), (10, 30)])
    canvas.drag_stop()
    assert build_frame(canvas).by_layer(RenderLayer.PREVIEW) == []


def test_grid_lines_cover_viewport(canvas: CanvasController):
    canvas.layers.set_visible(LayerType.GRID, True)
    lines = build_frame(canvas).by_layer(RenderLayer.GRID)
    assert lines
    assert all(item.primitive == "line" and len(item.points) == 2 for item in lines)
    # 81 vertical + 61 horizontal lines at 10px spacing over 800x600
    assert len(lines) == 142


def test_frame_to_dict_is_json_serializable(form_canvas: CanvasController):
    form_canvas.commit_shape(Circle(center=(10, 10), radius=4, name="dot"))
    payload = build_frame(form_canvas).to_dict()
    text = json.dumps(payload)
    assert '"dot"' in text
    assert payload["scale"] == pytest.approx(0.8)
