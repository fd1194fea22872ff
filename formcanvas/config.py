"""Runtime settings for the canvas controller.

``load_config`` reads an optional JSON file (path argument, then the
``FORMCANVAS_CONFIG`` environment variable) into a frozen ``CanvasConfig``.
Missing keys keep their defaults and unknown keys are ignored.
"""
from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .shapes import Color, Style

CONFIG_ENV_VAR = "FORMCANVAS_CONFIG"


class ConfigError(ValueError):
    """Raised when a configuration file cannot be used."""


@dataclass(frozen=True)
class CanvasConfig:
    """Tunable limits and defaults used by the controller and renderer."""

    min_zoom: float = 1.0
    max_zoom: float = 10.0
    default_zoom: float = 1.0
    zoom_sensitivity: float = 5.0
    vertex_hit_radius: float = 8.0
    grid_spacing: Tuple[float, float] = (10.0, 10.0)
    snap_threshold: float = 10.0
    min_field_overlap: float = 0.3
    stroke_width: float = 2.0
    stroke_color: Color = (0, 120, 215, 255)
    fill_color: Color = (0, 120, 215, 30)

    def default_style(self) -> Style:
        return Style(stroke_width=self.stroke_width, stroke_color=self.stroke_color, fill_color=self.fill_color)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"Invalid '{key}' (expected number)")
    return float(value)


def _pair(value: Any, key: str) -> Tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ConfigError(f"Invalid '{key}' (expected [x, y])")
    return (_number(value[0], key), _number(value[1], key))


def _color(value: Any, key: str) -> Color:
    if not isinstance(value, (list, tuple)) or len(value) not in (3, 4):
        raise ConfigError(f"Invalid '{key}' (expected [r, g, b] or [r, g, b, a])")
    channels = []
    for channel in value:
        if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel <= 255:
            raise ConfigError(f"Invalid '{key}' (channels must be integers in 0..255)")
        channels.append(channel)
    if len(channels) == 3:
        channels.append(255)
    return (channels[0], channels[1], channels[2], channels[3])


def config_from_dict(raw: Dict[str, Any]) -> CanvasConfig:
    """Validate a parsed mapping and build a ``CanvasConfig``."""
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be an object")
    known = {f.name for f in fields(CanvasConfig)}
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            continue
        if key == "grid_spacing":
            values[key] = _pair(value, key)
        elif key in ("stroke_color", "fill_color"):
            values[key] = _color(value, key)
        else:
            values[key] = _number(value, key)
    config = CanvasConfig(**values)

    if config.min_zoom <= 0.0 or config.max_zoom < config.min_zoom:
        raise ConfigError("min_zoom must be > 0 and <= max_zoom")
    if not config.min_zoom <= config.default_zoom <= config.max_zoom:
        raise ConfigError("default_zoom must lie within [min_zoom, max_zoom]")
    if config.zoom_sensitivity <= 0.0:
        raise ConfigError("zoom_sensitivity must be > 0")
    if config.vertex_hit_radius <= 0.0 or config.snap_threshold < 0.0:
        raise ConfigError("vertex_hit_radius must be > 0 and snap_threshold >= 0")
    if config.grid_spacing[0] <= 0.0 or config.grid_spacing[1] <= 0.0:
        raise ConfigError("grid_spacing components must be > 0")
    if not 0.0 <= config.min_field_overlap <= 1.0:
        raise ConfigError("min_field_overlap must be in [0, 1]")
    if config.stroke_width < 0.0:
        raise ConfigError("stroke_width must be >= 0")
    return config


def load_config(path: Optional[str | Path] = None) -> CanvasConfig:
    """Load settings from ``path`` or ``$FORMCANVAS_CONFIG``.

    Returns the defaults when neither names an existing file.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return CanvasConfig()
        path = env_path
    config_path = Path(path)
    if not config_path.exists():
        return CanvasConfig()
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read config '{config_path}': {exc}") from exc
    return config_from_dict(raw)


__all__ = ["CONFIG_ENV_VAR", "CanvasConfig", "ConfigError", "config_from_dict", "load_config"]
