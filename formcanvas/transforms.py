"""Coordinate pipeline between image-pixel, canvas, and screen space.

Forward mapping is always image -> canvas -> screen and the inverse is
screen -> canvas -> image. The fit stage is recomputed from the current
viewport and image size every frame; with no image loaded it is the identity.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .geometry import Point, as_points

Size = Tuple[float, float]


@dataclass(frozen=True)
class Viewport:
    """Screen rectangle the canvas occupies."""

    min_x: float = 0.0
    min_y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_size(cls, width: float, height: float) -> "Viewport":
        return cls(0.0, 0.0, float(width), float(height))

    @property
    def center(self) -> Point:
        return (self.min_x + self.width / 2.0, self.min_y + self.height / 2.0)

    @property
    def is_empty(self) -> bool:
        return not (self.width > 0.0 and self.height > 0.0)


@dataclass(frozen=True)
class FitTransform:
    """Uniform scale plus centering offset mapping image pixels onto the canvas."""

    scale: float = 1.0
    offset: Point = (0.0, 0.0)

    @classmethod
    def identity(cls) -> "FitTransform":
        return cls()

    @classmethod
    def fit(cls, image_size: Optional[Size], viewport: Viewport) -> "FitTransform":
        """Fit ``image_size`` inside ``viewport`` preserving aspect ratio.

        Falls back to the identity when no image is loaded or either size is
        empty, so canvas space equals image space.
        """
        if image_size is None or viewport.is_empty:
            return cls.identity()
        iw, ih = float(image_size[0]), float(image_size[1])
        if not (iw > 0.0 and ih > 0.0):
            return cls.identity()
        scale = min(viewport.width / iw, viewport.height / ih)
        fitted_w = iw * scale
        fitted_h = ih * scale
        offset = (
            viewport.min_x + (viewport.width - fitted_w) / 2.0,
            viewport.min_y + (viewport.height - fitted_h) / 2.0,
        )
        return cls(scale=scale, offset=offset)

    def to_canvas(self, point: Sequence[float]) -> Point:
        """image-pixel -> canvas."""
        return (point[0] * self.scale + self.offset[0], point[1] * self.scale + self.offset[1])

    def to_image(self, point: Sequence[float]) -> Point:
        """canvas -> image-pixel."""
        return ((point[0] - self.offset[0]) / self.scale, (point[1] - self.offset[1]) / self.scale)

    def points_to_canvas(self, points: np.ndarray) -> np.ndarray:
        return as_points(points) * self.scale + np.asarray(self.offset, dtype=float)


@dataclass(frozen=True)
class ViewTransform:
    """Zoom and pan applied about the viewport center."""

    center: Point = (0.0, 0.0)
    pan: Point = (0.0, 0.0)
    zoom: float = 1.0

    def to_screen(self, point: Sequence[float]) -> Point:
        """canvas -> screen."""
        cx, cy = self.center
        return (
            cx + self.pan[0] + self.zoom * (point[0] - cx),
            cy + self.pan[1] + self.zoom * (point[1] - cy),
        )

    def to_canvas(self, point: Sequence[float]) -> Point:
        """screen -> canvas."""
        cx, cy = self.center
        return (
            cx + (point[0] - cx - self.pan[0]) / self.zoom,
            cy + (point[1] - cy - self.pan[1]) / self.zoom,
        )

    def points_to_screen(self, points: np.ndarray) -> np.ndarray:
        c = np.asarray(self.center, dtype=float)
        return c + np.asarray(self.pan, dtype=float) + self.zoom * (as_points(points) - c)


def clamp_zoom(zoom: float, min_zoom: float = 1.0, max_zoom: float = 10.0) -> float:
    return max(min_zoom, min(max_zoom, zoom))


def zoom_toward(
    zoom: float,
    pan: Sequence[float],
    target_zoom: float,
    pointer: Sequence[float],
    center: Sequence[float],
    min_zoom: float = 1.0,
    max_zoom: float = 10.0,
) -> Tuple[float, Point]:
    """Return ``(zoom, pan)`` after zooming so ``pointer`` stays fixed on screen.

    ``target_zoom`` is clamped before the pan adjustment.
    """
    new_zoom = clamp_zoom(target_zoom, min_zoom, max_zoom)
    ratio = new_zoom / zoom
    new_pan = (
        pan[0] * ratio + (pointer[0] - center[0]) * (1.0 - ratio),
        pan[1] * ratio + (pointer[1] - center[1]) * (1.0 - ratio),
    )
    return new_zoom, new_pan


@dataclass(frozen=True)
class CoordinatePipeline:
    """Fit and view stages composed in their fixed order."""

    fit: FitTransform
    view: ViewTransform

    @classmethod
    def build(
        cls,
        image_size: Optional[Size],
        viewport: Viewport,
        zoom: float = 1.0,
        pan: Sequence[float] = (0.0, 0.0),
    ) -> "CoordinatePipeline":
        return cls(
            fit=FitTransform.fit(image_size, viewport),
            view=ViewTransform(center=viewport.center, pan=(float(pan[0]), float(pan[1])), zoom=zoom),
        )

    @property
    def scale(self) -> float:
        """Screen pixels per image pixel."""
        return self.fit.scale * self.view.zoom

    def image_to_screen(self, point: Sequence[float]) -> Point:
        return self.view.to_screen(self.fit.to_canvas(point))

    def screen_to_image(self, point: Sequence[float]) -> Point:
        return self.fit.to_image(self.view.to_canvas(point))

    def image_points_to_screen(self, points: np.ndarray) -> np.ndarray:
        return self.view.points_to_screen(self.fit.points_to_canvas(points))


__all__ = [
    "Size",
    "Viewport",
    "FitTransform",
    "ViewTransform",
    "CoordinatePipeline",
    "clamp_zoom",
    "zoom_toward",
]
