"""PySide6 host surface for the canvas controller.

The widget turns Qt input into controller calls (screen space) and paints
the render frame the controller produces. It holds no annotation state of
its own.
"""
from __future__ import annotations

import math
from typing import Optional

from PySide6.QtCore import QPointF, QSize, Qt, Signal
from PySide6.QtGui import QColor, QPainter, QPen, QPixmap, QPolygonF, QTransform
from PySide6.QtWidgets import QWidget

from .canvas import CanvasController, KeyEvent
from .geometry import Point
from .rendering import RenderItem, RenderLayer, build_frame
from .shapes import Color
from .tools import ToolMode
from .transforms import Viewport

DRAG_THRESHOLD = 4.0
SCROLL_POINTS_PER_NOTCH = 50.0

_KEY_NAMES = {
    Qt.Key_Escape: "escape",
    Qt.Key_Delete: "delete",
    Qt.Key_Backspace: "backspace",
    Qt.Key_Plus: "plus",
    Qt.Key_Equal: "equal",
    Qt.Key_Minus: "minus",
    Qt.Key_0: "0",
    Qt.Key_Z: "z",
}


def _qcolor(color: Color) -> QColor:
    r, g, b, a = color
    return QColor(r, g, b, a)


class CanvasWidget(QWidget):
    """Drawing surface forwarding input to a :class:`CanvasController`."""

    tool_changed = Signal(str)
    selection_changed = Signal(object)
    focus_name_requested = Signal()
    status_changed = Signal(dict)

    def __init__(self, controller: Optional[CanvasController] = None):
        super().__init__()
        self.setObjectName("FormCanvas")
        self.setMinimumSize(QSize(640, 480))
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMouseTracking(True)

        self.controller = controller or CanvasController()
        self._pixmap: Optional[QPixmap] = None
        self._press_pos: Optional[Point] = None
        self._dragging = False
        self._pan_anchor: Optional[Point] = None
        self._last_selection: Optional[int] = None

    # ------------------------------------------------------------------
    # Controller plumbing
    def set_controller(self, controller: CanvasController) -> None:
        self.controller = controller
        self.controller.set_viewport(Viewport.from_size(self.width(), self.height()))
        self._pixmap = None
        if controller.image_path:
            pixmap = QPixmap(controller.image_path)
            if not pixmap.isNull():
                self._pixmap = pixmap
        self._after_input()

    def load_image(self, path: str) -> bool:
        pixmap = QPixmap(path)
        if pixmap.isNull():
            return False
        self._pixmap = pixmap
        self.controller.set_image(pixmap.width(), pixmap.height(), path)
        self._after_input()
        return True

    def set_tool(self, name: str) -> None:
        self.controller.set_tool(name)
        self.tool_changed.emit(self.controller.current_tool.value)
        self._after_input()

    def current_tool(self) -> ToolMode:
        return self.controller.current_tool

    def _after_input(self) -> None:
        controller = self.controller
        if controller.selection != self._last_selection:
            self._last_selection = controller.selection
            self.selection_changed.emit(controller.selection_info())
        if controller.take_focus_request():
            self.focus_name_requested.emit()
        self.status_changed.emit(
            {
                "tool": controller.current_tool.value,
                "zoom": controller.zoom,
                "shapes": len(controller.shapes),
                "interaction": type(controller.interaction).__name__,
            }
        )
        self.update()

    # ------------------------------------------------------------------
    # Qt events
    def resizeEvent(self, event):  # pragma: no cover - GUI entry point
        self.controller.set_viewport(Viewport.from_size(self.width(), self.height()))
        super().resizeEvent(event)

    def mousePressEvent(self, event):  # pragma: no cover - GUI entry point
        pos = (event.position().x(), event.position().y())
        if event.button() == Qt.MiddleButton:
            self._pan_anchor = pos
            return
        if event.button() != Qt.LeftButton:
            return
        self._press_pos = pos
        self._dragging = False
        self.setFocus()

    def mouseMoveEvent(self, event):  # pragma: no cover - GUI entry point
        pos = (event.position().x(), event.position().y())
        if self._pan_anchor is not None:
            self.controller.pan_by(pos[0] - self._pan_anchor[0], pos[1] - self._pan_anchor[1])
            self._pan_anchor = pos
            self.update()
            return
        if self._press_pos is None or not (event.buttons() & Qt.LeftButton):
            return
        if not self._dragging:
            if math.hypot(pos[0] - self._press_pos[0], pos[1] - self._press_pos[1]) < DRAG_THRESHOLD:
                return
            self._dragging = True
            self.controller.drag_start(self._press_pos)
        self.controller.drag_move(pos)
        self._after_input()

    def mouseReleaseEvent(self, event):  # pragma: no cover - GUI entry point
        if event.button() == Qt.MiddleButton:
            self._pan_anchor = None
            return
        if event.button() != Qt.LeftButton or self._press_pos is None:
            return
        if self._dragging:
            self.controller.drag_stop()
        else:
            self.controller.press(self._press_pos)
        self._press_pos = None
        self._dragging = False
        self._after_input()

    def wheelEvent(self, event):  # pragma: no cover - GUI entry point
        notches = event.angleDelta().y() / 120.0
        pos = (event.position().x(), event.position().y())
        self.controller.scroll_zoom(notches * SCROLL_POINTS_PER_NOTCH, pos)
        event.accept()
        self._after_input()

    def keyPressEvent(self, event):  # pragma: no cover - GUI entry point
        name = _KEY_NAMES.get(event.key())
        if name is None:
            super().keyPressEvent(event)
            return
        ctrl = bool(event.modifiers() & Qt.ControlModifier)
        if self.controller.handle_key(KeyEvent(name, ctrl=ctrl)):
            event.accept()
            self._after_input()
        else:
            super().keyPressEvent(event)

    # ------------------------------------------------------------------
    # Painting
    def paintEvent(self, event):  # pragma: no cover - GUI entry point
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, True)
        painter.fillRect(self.rect(), QColor(40, 40, 40))
        frame = build_frame(self.controller)
        for item in frame.items:
            if item.layer is RenderLayer.IMAGE:
                self._draw_image(painter, item)
            else:
                self._draw_item(painter, item)
        if frame.handles:
            size = frame.handle_size
            painter.setPen(QPen(QColor(255, 255, 255), 1))
            painter.setBrush(QColor(0, 120, 215))
            for x, y in frame.handles:
                painter.drawRect(int(x - size / 2), int(y - size / 2), int(size), int(size))
        painter.end()

    def _draw_image(self, painter: QPainter, item: RenderItem) -> None:  # pragma: no cover - GUI entry point
        if self._pixmap is None or len(item.points) != 4:
            return
        w = float(self._pixmap.width())
        h = float(self._pixmap.height())
        (x0, y0), (x1, y1), _, (x3, y3) = item.points
        transform = QTransform((x1 - x0) / w, (y1 - y0) / w, (x3 - x0) / h, (y3 - y0) / h, x0, y0)
        painter.save()
        painter.setTransform(transform)
        painter.drawPixmap(0, 0, self._pixmap)
        painter.restore()

    def _draw_item(self, painter: QPainter, item: RenderItem) -> None:  # pragma: no cover - GUI entry point
        style = item.style
        pen = QPen(_qcolor(style.stroke_color))
        pen.setWidthF(style.stroke_width + (1.0 if item.selected else 0.0))
        if item.layer is RenderLayer.PREVIEW:
            pen.setStyle(Qt.DashLine)
        painter.setPen(pen)
        if item.primitive in ("line", "polyline"):
            painter.setBrush(Qt.NoBrush)
            painter.drawPolyline(QPolygonF([QPointF(x, y) for x, y in item.points]))
            return
        painter.setBrush(_qcolor(style.fill_color))
        if item.primitive == "circle" and item.center is not None and item.radius is not None:
            painter.drawEllipse(QPointF(*item.center), item.radius, item.radius)
        else:
            painter.drawPolygon(QPolygonF([QPointF(x, y) for x, y in item.points]))
        if item.label and item.layer is RenderLayer.FIELD and item.points:
            painter.drawText(QPointF(item.points[0][0] + 3, item.points[0][1] - 3), item.label)


__all__ = ["CanvasWidget", "DRAG_THRESHOLD"]
