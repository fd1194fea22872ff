from __future__ import annotations

import json

import pytest

from formcanvas.canvas import CanvasController
from formcanvas.config import CONFIG_ENV_VAR, CanvasConfig, ConfigError, config_from_dict, load_config


def test_defaults():
    config = CanvasConfig()
    assert (config.min_zoom, config.max_zoom) == (1.0, 10.0)
    assert config.zoom_sensitivity == 5.0
    assert config.vertex_hit_radius == 8.0
    assert config.min_field_overlap == 0.3
    assert config.default_style().stroke_color == (0, 120, 215, 255)


def test_load_config_without_path_or_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert load_config() == CanvasConfig()


def test_load_config_missing_file_uses_defaults(tmp_path):
    assert load_config(tmp_path / "absent.json") == CanvasConfig()


def test_load_config_from_env(monkeypatch, tmp_path):
    path = tmp_path / "canvas.json"
    path.write_text(json.dumps({"max_zoom": 4, "stroke_color": [10, 20, 30], "unknown": True}), encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    config = load_config()
    assert config.max_zoom == 4.0
    assert config.stroke_color == (10, 20, 30, 255)


def test_load_config_rejects_bad_json(tmp_path):
    path = tmp_path / "canvas.json"
    path.write_text("{", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"min_zoom": 0},
        {"min_zoom": 5, "max_zoom": 2},
        {"default_zoom": 20},
        {"zoom_sensitivity": True},
        {"vertex_hit_radius": "8"},
        {"grid_spacing": [10]},
        {"grid_spacing": [10, 0]},
        {"fill_color": [0, 0, 300]},
        {"min_field_overlap": 1.5},
    ],
)
def test_config_validation(raw):
    with pytest.raises(ConfigError):
        config_from_dict(raw)


def test_controller_uses_config_limits():
    config = config_from_dict({"max_zoom": 3, "zoom_sensitivity": 1, "fill_color": [1, 2, 3, 4]})
    canvas = CanvasController(config)
    canvas.zoom_by(10)
    assert canvas.zoom == 3.0
    assert canvas.style.fill_color == (1, 2, 3, 4)
