from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from formcanvas.canvas import CanvasError, CanvasErrorKind
from formcanvas.project import FieldModel, ProjectFile, ShapeModel
from formcanvas.shapes import ShapeError

from ..adapters import session as session_adapter


class SessionCreate(BaseModel):
    name: str = Field(default="Untitled", description="Project name")
    image_width: Optional[float] = Field(default=None, gt=0, description="Loaded image width in pixels")
    image_height: Optional[float] = Field(default=None, gt=0, description="Loaded image height in pixels")
    image_path: Optional[str] = None
    viewport_width: float = Field(default=1280.0, gt=0)
    viewport_height: float = Field(default=800.0, gt=0)


class SessionResponse(BaseModel):
    id: str
    name: str
    created_at: str
    updated_at: str
    tool: str
    interaction: str
    template_mode: str
    selection: Optional[int]
    selected_field: Optional[int]
    selected_layer: Optional[str]
    show_properties: bool
    zoom: float
    pan: List[float]
    grid_rotation: float
    image_rotation: float
    image_size: Optional[List[float]]
    shapes: List[Dict[str, Any]]
    detections: List[Dict[str, Any]]
    fields: List[Dict[str, Any]]
    layers: List[Dict[str, Any]]
    focus_requested: bool = False


class ToolUpdate(BaseModel):
    tool: str


class LayerUpdate(BaseModel):
    layer: Optional[str] = None


class LayerFlagsUpdate(BaseModel):
    visible: Optional[bool] = None
    locked: Optional[bool] = None


class ViewportUpdate(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class CanvasEventModel(BaseModel):
    kind: Literal["press", "drag_start", "drag_move", "drag_stop", "scroll", "key"]
    x: float = 0.0
    y: float = 0.0
    scroll: float = 0.0
    key: Optional[str] = None
    ctrl: bool = False


class EventBatch(BaseModel):
    events: List[CanvasEventModel] = Field(default_factory=list)


class DetectionBatch(BaseModel):
    detections: List[ShapeModel]


class FieldsUpdate(BaseModel):
    fields: List[FieldModel] = Field(default_factory=list)
    template_mode: Optional[Literal["none", "creating", "editing", "viewing"]] = None


class VisibilityUpdate(BaseModel):
    visible: bool


class ProjectImport(BaseModel):
    project: ProjectFile
    viewport_width: float = Field(default=1280.0, gt=0)
    viewport_height: float = Field(default=800.0, gt=0)


router = APIRouter(prefix="/sessions", tags=["sessions"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")


def _canvas_error(exc: CanvasError) -> HTTPException:
    if exc.kind is CanvasErrorKind.INVALID_INDEX:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/", response_model=List[SessionResponse])
async def list_sessions() -> List[SessionResponse]:
    return [SessionResponse(**item) for item in session_adapter.list_sessions()]


@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(body: SessionCreate) -> SessionResponse:
    return SessionResponse(**session_adapter.create_session(body.model_dump()))


@router.post("/import", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def import_project(body: ProjectImport) -> SessionResponse:
    try:
        item = session_adapter.import_project(
            body.project, {"width": body.viewport_width, "height": body.viewport_height}
        )
    except CanvasError as exc:
        raise _canvas_error(exc) from exc
    return SessionResponse(**item)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.get_session(session_id))
    except KeyError as exc:
        raise _not_found() from exc


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str) -> None:
    try:
        session_adapter.delete_session(session_id)
    except KeyError as exc:
        raise _not_found() from exc


@router.put("/{session_id}/tool", response_model=SessionResponse)
async def set_tool(session_id: str, body: ToolUpdate) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.set_tool(session_id, body.tool))
    except KeyError as exc:
        raise _not_found() from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.put("/{session_id}/layer", response_model=SessionResponse)
async def set_layer(session_id: str, body: LayerUpdate) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.set_selected_layer(session_id, body.layer))
    except KeyError as exc:
        raise _not_found() from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.put("/{session_id}/layers/{layer}", response_model=SessionResponse)
async def set_layer_flags(session_id: str, layer: str, body: LayerFlagsUpdate) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.set_layer_flags(session_id, layer, body.visible, body.locked))
    except KeyError as exc:
        raise _not_found() from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.put("/{session_id}/viewport", response_model=SessionResponse)
async def set_viewport(session_id: str, body: ViewportUpdate) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.set_viewport(session_id, body.width, body.height))
    except KeyError as exc:
        raise _not_found() from exc


@router.post("/{session_id}/events", response_model=SessionResponse)
async def post_events(session_id: str, body: EventBatch) -> SessionResponse:
    try:
        item = session_adapter.apply_events(session_id, [event.model_dump() for event in body.events])
    except KeyError as exc:
        raise _not_found() from exc
    return SessionResponse(**item)


@router.post("/{session_id}/undo", response_model=SessionResponse)
async def undo(session_id: str) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.undo(session_id))
    except KeyError as exc:
        raise _not_found() from exc


@router.delete("/{session_id}/shapes/{index}", response_model=SessionResponse)
async def delete_shape(session_id: str, index: int) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.delete_shape(session_id, index))
    except KeyError as exc:
        raise _not_found() from exc
    except CanvasError as exc:
        raise _canvas_error(exc) from exc


@router.put("/{session_id}/shapes/{index}/visibility", response_model=SessionResponse)
async def set_shape_visibility(session_id: str, index: int, body: VisibilityUpdate) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.set_shape_visibility(session_id, index, body.visible))
    except KeyError as exc:
        raise _not_found() from exc
    except CanvasError as exc:
        raise _canvas_error(exc) from exc


@router.post("/{session_id}/detections", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def add_detections(session_id: str, body: DetectionBatch) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.add_detections(session_id, body.detections))
    except KeyError as exc:
        raise _not_found() from exc
    except ShapeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.delete("/{session_id}/detections/{index}", response_model=SessionResponse)
async def delete_detection(session_id: str, index: int) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.delete_detection(session_id, index))
    except KeyError as exc:
        raise _not_found() from exc
    except CanvasError as exc:
        raise _canvas_error(exc) from exc


@router.put("/{session_id}/fields", response_model=SessionResponse)
async def set_fields(session_id: str, body: FieldsUpdate) -> SessionResponse:
    try:
        return SessionResponse(**session_adapter.set_fields(session_id, body.fields, body.template_mode))
    except KeyError as exc:
        raise _not_found() from exc


@router.get("/{session_id}/matches")
async def field_matches(session_id: str) -> List[Dict[str, Any]]:
    try:
        return session_adapter.field_matches(session_id)
    except KeyError as exc:
        raise _not_found() from exc


@router.get("/{session_id}/render")
async def render(session_id: str) -> Dict[str, Any]:
    try:
        return session_adapter.render(session_id)
    except KeyError as exc:
        raise _not_found() from exc


@router.get("/{session_id}/project")
async def export_project(session_id: str) -> Dict[str, Any]:
    try:
        return session_adapter.export_project(session_id)
    except KeyError as exc:
        raise _not_found() from exc
