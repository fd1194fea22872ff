from __future__ import annotations

from typing import Iterable, Sequence

import pytest

from formcanvas.canvas import CanvasController
from formcanvas.transforms import Viewport


@pytest.fixture
def canvas() -> CanvasController:
    """Controller with no image: screen, canvas, and image space coincide at zoom 1."""
    return CanvasController(viewport=Viewport.from_size(800, 600))


def drag(canvas: CanvasController, points: Sequence[Iterable[float]]) -> None:
    """Run one press -> move* -> release gesture through screen-space points."""
    first, *rest = [tuple(p) for p in points]
    canvas.drag_start(first)
    for point in rest:
        canvas.drag_move(point)
    canvas.drag_stop()
