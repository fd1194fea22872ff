"""Project files: JSON persistence of a canvas, outside the interaction core.

Shapes, detections, fields, the current tool, layer flags, view parameters,
and the default style are stored. Gesture state and selection are transient
and never written; a loaded canvas starts idle with nothing selected.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .canvas import CanvasController, CanvasError, CanvasErrorKind
from .config import CanvasConfig
from .fields import FieldBounds, FieldDefinition
from .layers import LayerType
from .shapes import Circle, Polygon, Rectangle, Shape, ShapeError, Style
from .tools import IDLE, ToolMode

log = logging.getLogger("formcanvas.project")

PROJECT_VERSION = 1

Pair = Tuple[float, float]
RGBA = Tuple[int, int, int, int]


class _FiniteModel(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)


class StyleModel(_FiniteModel):
    stroke_width: float = 2.0
    stroke_color: RGBA = (0, 120, 215, 255)
    fill_color: RGBA = (0, 120, 215, 30)

    @classmethod
    def from_style(cls, style: Style) -> "StyleModel":
        return cls(stroke_width=style.stroke_width, stroke_color=style.stroke_color, fill_color=style.fill_color)

    def to_style(self) -> Style:
        return Style(self.stroke_width, tuple(self.stroke_color), tuple(self.fill_color))


class _ShapeBase(_FiniteModel):
    style: StyleModel = Field(default_factory=StyleModel)
    name: str = ""
    visible: bool = True


class RectangleModel(_ShapeBase):
    type: Literal["rectangle"] = "rectangle"
    corners: List[Pair] = Field(min_length=4, max_length=4)


class CircleModel(_ShapeBase):
    type: Literal["circle"] = "circle"
    center: Pair
    radius: float


class PolygonModel(_ShapeBase):
    type: Literal["polygon"] = "polygon"
    points: List[Pair]


ShapeModel = Annotated[Union[RectangleModel, CircleModel, PolygonModel], Field(discriminator="type")]


class FieldModel(_FiniteModel):
    id: str
    label: str
    x: float
    y: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    field_type: str = "free_text"
    required: bool = False
    page_index: int = 0


class LayerModel(BaseModel):
    layer_type: LayerType
    visible: bool = True
    locked: bool = False


class ProjectFile(_FiniteModel):
    version: int = PROJECT_VERSION
    project_name: str = "Untitled"
    image_path: Optional[str] = None
    image_size: Optional[Pair] = None
    shapes: List[ShapeModel] = Field(default_factory=list)
    detections: List[ShapeModel] = Field(default_factory=list)
    fields: List[FieldModel] = Field(default_factory=list)
    current_tool: ToolMode = ToolMode.SELECT
    layers: List[LayerModel] = Field(default_factory=list)
    zoom: float = 1.0
    pan: Pair = (0.0, 0.0)
    grid_rotation: float = 0.0
    image_rotation: float = 0.0
    style: StyleModel = Field(default_factory=StyleModel)


# ----------------------------------------------------------------------
# Conversions


def shape_to_model(shape: Shape) -> Union[RectangleModel, CircleModel, PolygonModel]:
    common = {"style": StyleModel.from_style(shape.style), "name": shape.name, "visible": shape.visible}
    if isinstance(shape, Rectangle):
        return RectangleModel(corners=[(float(x), float(y)) for x, y in shape.corners], **common)
    if isinstance(shape, Circle):
        return CircleModel(center=shape.center, radius=shape.radius, **common)
    if isinstance(shape, Polygon):
        return PolygonModel(points=[(float(x), float(y)) for x, y in shape.points], **common)
    raise TypeError(f"Unsupported shape {type(shape).__name__}")


def model_to_shape(model: Union[RectangleModel, CircleModel, PolygonModel]) -> Shape:
    """Build a validated shape; raises ``ShapeError`` on bad geometry."""
    style = model.style.to_style()
    if isinstance(model, RectangleModel):
        shape: Shape = Rectangle.from_four_corners(model.corners, style=style, name=model.name)
    elif isinstance(model, CircleModel):
        shape = Circle(center=model.center, radius=model.radius, style=style, name=model.name)
    else:
        shape = Polygon.from_points(model.points, style=style, name=model.name)
    shape.visible = model.visible
    return shape


def field_to_model(field_def: FieldDefinition) -> FieldModel:
    b = field_def.bounds
    return FieldModel(
        id=field_def.id,
        label=field_def.label,
        x=b.x,
        y=b.y,
        width=b.width,
        height=b.height,
        field_type=field_def.field_type,
        required=field_def.required,
        page_index=field_def.page_index,
    )


def model_to_field(model: FieldModel) -> FieldDefinition:
    return FieldDefinition(
        id=model.id,
        label=model.label,
        bounds=FieldBounds(model.x, model.y, model.width, model.height),
        field_type=model.field_type,
        required=model.required,
        page_index=model.page_index,
    )


def project_from_canvas(canvas: CanvasController) -> ProjectFile:
    return ProjectFile(
        project_name=canvas.project_name,
        image_path=canvas.image_path,
        image_size=canvas.image_size,
        shapes=[shape_to_model(s) for s in canvas.shapes],
        detections=[shape_to_model(s) for s in canvas.detections],
        fields=[field_to_model(f) for f in canvas.fields],
        current_tool=canvas.current_tool,
        layers=[LayerModel(layer_type=ly.layer_type, visible=ly.visible, locked=ly.locked) for ly in canvas.layers],
        zoom=canvas.zoom,
        pan=canvas.pan,
        grid_rotation=canvas.grid_rotation,
        image_rotation=canvas.image_rotation,
        style=StyleModel.from_style(canvas.style),
    )


def canvas_from_project(project: ProjectFile, config: Optional[CanvasConfig] = None) -> CanvasController:
    """Build a controller from a parsed project. Transient state starts reset."""
    if project.version > PROJECT_VERSION:
        raise CanvasError(CanvasErrorKind.DESERIALIZATION, f"Unsupported project version {project.version}")
    canvas = CanvasController(config=config)
    try:
        shapes = [model_to_shape(m) for m in project.shapes]
        detections = [model_to_shape(m) for m in project.detections]
    except ShapeError as exc:
        raise CanvasError(CanvasErrorKind.DESERIALIZATION, f"Invalid shape in project: {exc}") from exc
    canvas.project_name = project.project_name
    if project.image_size is not None:
        try:
            canvas.set_image(project.image_size[0], project.image_size[1], project.image_path)
        except ValueError as exc:
            raise CanvasError(CanvasErrorKind.DESERIALIZATION, str(exc)) from exc
    else:
        canvas.image_path = project.image_path
    canvas.shapes = shapes
    canvas.detections = detections
    canvas.fields = [model_to_field(m) for m in project.fields]
    canvas.set_tool(project.current_tool)
    for layer in project.layers:
        canvas.layers.set_visible(layer.layer_type, layer.visible)
        canvas.layers.set_locked(layer.layer_type, layer.locked)
    canvas.set_zoom(project.zoom)
    canvas.pan = (float(project.pan[0]), float(project.pan[1]))
    canvas.grid_rotation = project.grid_rotation
    canvas.image_rotation = project.image_rotation
    canvas.style = project.style.to_style()
    canvas.interaction = IDLE
    canvas.selection = None
    canvas.selected_field = None
    return canvas


# ----------------------------------------------------------------------
# Files


def dumps_project(canvas: CanvasController) -> str:
    try:
        return project_from_canvas(canvas).model_dump_json(indent=2)
    except (ValueError, TypeError) as exc:
        raise CanvasError(CanvasErrorKind.SERIALIZATION, f"Could not serialize project: {exc}") from exc


def loads_project(text: str, config: Optional[CanvasConfig] = None) -> CanvasController:
    try:
        project = ProjectFile.model_validate_json(text)
    except ValidationError as exc:
        raise CanvasError(CanvasErrorKind.DESERIALIZATION, f"Invalid project file: {exc}") from exc
    return canvas_from_project(project, config)


def save_project(canvas: CanvasController, path: str | Path) -> Path:
    target = Path(path)
    text = dumps_project(canvas)
    try:
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise CanvasError(CanvasErrorKind.FILE_WRITE, f"Could not write '{target}': {exc}") from exc
    log.info("Saved project '%s' to %s", canvas.project_name, target)
    return target


def load_project(path: str | Path, config: Optional[CanvasConfig] = None) -> CanvasController:
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise CanvasError(CanvasErrorKind.FILE_READ, f"Could not read '{source}': {exc}") from exc
    canvas = loads_project(text, config)
    log.info("Loaded project '%s' from %s", canvas.project_name, source)
    return canvas


__all__ = [
    "PROJECT_VERSION",
    "StyleModel",
    "RectangleModel",
    "CircleModel",
    "PolygonModel",
    "ShapeModel",
    "FieldModel",
    "LayerModel",
    "ProjectFile",
    "shape_to_model",
    "model_to_shape",
    "field_to_model",
    "model_to_field",
    "project_from_canvas",
    "canvas_from_project",
    "dumps_project",
    "loads_project",
    "save_project",
    "load_project",
]
