"""In-memory canvas sessions backing the HTTP routes.

Each session owns one :class:`~formcanvas.canvas.CanvasController`. Callers
get serialized copies back, never references into the controller's lists.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from formcanvas.canvas import CanvasController, KeyEvent, PointerEvent, PointerEventKind
from formcanvas.config import load_config
from formcanvas.fields import FieldDefinition, TemplateMode
from formcanvas.layers import LayerType
from formcanvas.project import (
    LayerModel,
    ProjectFile,
    canvas_from_project,
    field_to_model,
    model_to_field,
    model_to_shape,
    project_from_canvas,
    shape_to_model,
)
from formcanvas.rendering import build_frame
from formcanvas.transforms import Viewport

log = logging.getLogger("formcanvas.api")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CanvasSession:
    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    canvas: CanvasController


class SessionStore:
    """Simple store backing the session routes."""

    def __init__(self) -> None:
        self._items: Dict[str, CanvasSession] = {}

    def create(self, name: str, canvas: CanvasController) -> CanvasSession:
        now = _now()
        session = CanvasSession(id=str(uuid4()), name=name, created_at=now, updated_at=now, canvas=canvas)
        self._items[session.id] = session
        return session

    def list(self) -> List[CanvasSession]:
        return list(self._items.values())

    def get(self, session_id: str) -> CanvasSession:
        session = self._items.get(session_id)
        if session is None:
            raise KeyError(session_id)
        return session

    def touch(self, session_id: str) -> CanvasSession:
        session = self.get(session_id)
        session.updated_at = _now()
        return session

    def delete(self, session_id: str) -> bool:
        return self._items.pop(session_id, None) is not None

    def clear(self) -> None:
        self._items.clear()


_store = SessionStore()


def store() -> SessionStore:
    return _store


# ----------------------------------------------------------------------
# Operations


def create_session(payload: Dict[str, Any]) -> Dict[str, Any]:
    canvas = CanvasController(
        config=load_config(),
        viewport=Viewport.from_size(payload.get("viewport_width", 1280.0), payload.get("viewport_height", 800.0)),
    )
    width = payload.get("image_width")
    height = payload.get("image_height")
    if width is not None and height is not None:
        canvas.set_image(width, height, payload.get("image_path"))
    name = payload.get("name") or "Untitled"
    canvas.project_name = name
    session = _store.create(name, canvas)
    log.info("Created canvas session %s", session.id)
    return serialize_session(session)


def import_project(project: ProjectFile, viewport: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
    canvas = canvas_from_project(project, load_config())
    viewport = viewport or {}
    canvas.set_viewport(Viewport.from_size(viewport.get("width", 1280.0), viewport.get("height", 800.0)))
    session = _store.create(canvas.project_name, canvas)
    log.info("Imported project '%s' as session %s", canvas.project_name, session.id)
    return serialize_session(session)


def list_sessions() -> List[Dict[str, Any]]:
    return [serialize_session(item) for item in _store.list()]


def get_session(session_id: str) -> Dict[str, Any]:
    return serialize_session(_store.get(session_id))


def delete_session(session_id: str) -> None:
    if not _store.delete(session_id):
        raise KeyError(session_id)


def set_tool(session_id: str, tool: str) -> Dict[str, Any]:
    session = _store.touch(session_id)
    session.canvas.set_tool(tool)
    return serialize_session(session)


def set_viewport(session_id: str, width: float, height: float) -> Dict[str, Any]:
    session = _store.touch(session_id)
    session.canvas.set_viewport(Viewport.from_size(width, height))
    return serialize_session(session)


def set_selected_layer(session_id: str, layer: Optional[str]) -> Dict[str, Any]:
    session = _store.touch(session_id)
    session.canvas.select_layer(layer)
    return serialize_session(session)


def set_layer_flags(
    session_id: str, layer: str, visible: Optional[bool] = None, locked: Optional[bool] = None
) -> Dict[str, Any]:
    """Set visible or locked on one layer. Unknown layer names raise ``ValueError``."""
    session = _store.touch(session_id)
    layer_type = LayerType(layer)
    if visible is not None:
        session.canvas.layers.set_visible(layer_type, visible)
    if locked is not None:
        session.canvas.layers.set_locked(layer_type, locked)
    return serialize_session(session)


def apply_events(session_id: str, events: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Drain a batch of screen-space events as one frame."""
    session = _store.touch(session_id)
    frame_events = []
    for item in events:
        kind = item["kind"]
        if kind == "key":
            frame_events.append(KeyEvent(key=item.get("key") or "", ctrl=bool(item.get("ctrl", False))))
        else:
            frame_events.append(
                PointerEvent(
                    kind=PointerEventKind(kind),
                    position=(float(item.get("x", 0.0)), float(item.get("y", 0.0))),
                    scroll=float(item.get("scroll", 0.0)),
                )
            )
    session.canvas.process_frame(frame_events)
    payload = serialize_session(session)
    payload["focus_requested"] = session.canvas.take_focus_request()
    return payload


def add_detections(session_id: str, detections: Sequence[Any]) -> Dict[str, Any]:
    """Append detection shapes; raises ``ShapeError`` before touching the session."""
    shapes = [model_to_shape(model) for model in detections]
    session = _store.touch(session_id)
    session.canvas.add_detections(shapes)
    return serialize_session(session)


def delete_detection(session_id: str, index: int) -> Dict[str, Any]:
    session = _store.touch(session_id)
    session.canvas.delete_detection(index)
    return serialize_session(session)


def set_fields(session_id: str, fields: Sequence[Any], template_mode: Optional[str] = None) -> Dict[str, Any]:
    session = _store.touch(session_id)
    definitions: List[FieldDefinition] = [model_to_field(model) for model in fields]
    session.canvas.set_fields(definitions)
    if template_mode is not None:
        session.canvas.set_template_mode(TemplateMode(template_mode))
    return serialize_session(session)


def field_matches(session_id: str) -> List[Dict[str, Any]]:
    canvas = _store.get(session_id).canvas
    return [
        {
            "field_id": canvas.fields[match.field_index].id,
            "field_index": match.field_index,
            "detection_index": match.detection_index,
            "overlap": match.overlap,
        }
        for match in canvas.match_detections()
    ]


def delete_shape(session_id: str, index: int) -> Dict[str, Any]:
    session = _store.touch(session_id)
    session.canvas.delete_shape(index)
    return serialize_session(session)


def set_shape_visibility(session_id: str, index: int, visible: bool) -> Dict[str, Any]:
    session = _store.touch(session_id)
    session.canvas.set_shape_visibility(index, visible)
    return serialize_session(session)


def undo(session_id: str) -> Dict[str, Any]:
    session = _store.touch(session_id)
    session.canvas.undo()
    return serialize_session(session)


def render(session_id: str) -> Dict[str, Any]:
    return build_frame(_store.get(session_id).canvas).to_dict()


def export_project(session_id: str) -> Dict[str, Any]:
    return project_from_canvas(_store.get(session_id).canvas).model_dump(mode="json")


def serialize_session(session: CanvasSession) -> Dict[str, Any]:
    canvas = session.canvas
    return {
        "id": session.id,
        "name": session.name,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
        "tool": canvas.current_tool.value,
        "interaction": type(canvas.interaction).__name__,
        "template_mode": canvas.template_mode.value,
        "selection": canvas.selection,
        "selected_field": canvas.selected_field,
        "selected_layer": None if canvas.selected_layer is None else canvas.selected_layer.value,
        "show_properties": canvas.show_properties,
        "zoom": canvas.zoom,
        "pan": list(canvas.pan),
        "grid_rotation": canvas.grid_rotation,
        "image_rotation": canvas.image_rotation,
        "image_size": None if canvas.image_size is None else list(canvas.image_size),
        "shapes": [shape_to_model(shape).model_dump(mode="json") for shape in canvas.shapes],
        "detections": [shape_to_model(shape).model_dump(mode="json") for shape in canvas.detections],
        "fields": [field_to_model(field_def).model_dump(mode="json") for field_def in canvas.fields],
        "layers": [
            LayerModel(layer_type=layer.layer_type, visible=layer.visible, locked=layer.locked).model_dump(mode="json")
            for layer in canvas.layers
        ],
    }
