"""Interactive 2D annotation canvas engine."""
from __future__ import annotations

from .canvas import CanvasController, CanvasError, CanvasErrorKind, KeyEvent, PointerEvent, PointerEventKind
from .config import CanvasConfig, ConfigError, load_config
from .fields import FieldBounds, FieldDefinition, TemplateMode
from .layers import LayerType
from .rendering import RenderFrame, build_frame
from .shapes import Circle, Polygon, Rectangle, ShapeError, ShapeErrorKind, Style
from .tools import ToolMode
from .transforms import CoordinatePipeline, FitTransform, ViewTransform, Viewport

__version__ = "0.1.0"

__all__ = [
    "CanvasController",
    "CanvasError",
    "CanvasErrorKind",
    "KeyEvent",
    "PointerEvent",
    "PointerEventKind",
    "CanvasConfig",
    "ConfigError",
    "load_config",
    "FieldBounds",
    "FieldDefinition",
    "TemplateMode",
    "LayerType",
    "RenderFrame",
    "build_frame",
    "Circle",
    "Polygon",
    "Rectangle",
    "ShapeError",
    "ShapeErrorKind",
    "Style",
    "ToolMode",
    "CoordinatePipeline",
    "FitTransform",
    "ViewTransform",
    "Viewport",
]
