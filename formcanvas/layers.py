"""Logical render layers with visibility and lock flags."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator


class LayerType(str, Enum):
    """Layers in back-to-front render order."""

    CANVAS = "canvas"
    DETECTIONS = "detections"
    TEMPLATE = "template"
    SHAPES = "shapes"
    GRID = "grid"

    @property
    def label(self) -> str:
        return self.value.capitalize()


_HIDDEN_BY_DEFAULT = {LayerType.TEMPLATE, LayerType.GRID}


@dataclass
class Layer:
    layer_type: LayerType
    name: str
    visible: bool = True
    locked: bool = False


class LayerManager:
    """Exactly one :class:`Layer` per :class:`LayerType`."""

    def __init__(self) -> None:
        self._layers: Dict[LayerType, Layer] = {
            kind: Layer(kind, kind.label, visible=kind not in _HIDDEN_BY_DEFAULT) for kind in LayerType
        }

    def get(self, layer_type: LayerType) -> Layer:
        return self._layers[LayerType(layer_type)]

    def __iter__(self) -> Iterator[Layer]:
        return (self._layers[kind] for kind in LayerType)

    def is_visible(self, layer_type: LayerType) -> bool:
        return self.get(layer_type).visible

    def is_locked(self, layer_type: LayerType) -> bool:
        return self.get(layer_type).locked

    def set_visible(self, layer_type: LayerType, visible: bool) -> None:
        self.get(layer_type).visible = bool(visible)

    def toggle_visible(self, layer_type: LayerType) -> bool:
        layer = self.get(layer_type)
        layer.visible = not layer.visible
        return layer.visible

    def set_locked(self, layer_type: LayerType, locked: bool) -> None:
        self.get(layer_type).locked = bool(locked)

    def toggle_locked(self, layer_type: LayerType) -> bool:
        layer = self.get(layer_type)
        layer.locked = not layer.locked
        return layer.locked


__all__ = ["LayerType", "Layer", "LayerManager"]
