"""Application bootstrap for the form annotation canvas."""
from __future__ import annotations

import logging
import sys
from typing import Dict, List, Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QActionGroup, QKeySequence
from PySide6.QtWidgets import QApplication, QFileDialog, QLabel, QMainWindow, QStatusBar, QToolBar

from .canvas import CanvasController, CanvasError
from .config import CanvasConfig, load_config
from .fields import TemplateMode
from .layers import LayerType
from .project import load_project, save_project
from .tools import ToolMode
from .widgets import CanvasWidget

log = logging.getLogger("formcanvas.gui")

_TOOL_LABELS = [
    (ToolMode.SELECT, "Select", "S"),
    (ToolMode.RECTANGLE, "Rectangle", "R"),
    (ToolMode.CIRCLE, "Circle", "C"),
    (ToolMode.FREEHAND, "Freehand", "F"),
    (ToolMode.EDIT, "Edit", "E"),
    (ToolMode.ROTATE, "Rotate", "T"),
]


class Main(QMainWindow):
    """Top-level window wiring the canvas to tool, layer, and file actions."""

    def __init__(self, config: Optional[CanvasConfig] = None, project_path: Optional[str] = None):
        super().__init__()
        self.setWindowTitle("Form Canvas")
        self._config = config or CanvasConfig()
        self._project_path: Optional[str] = None

        self.canvas = CanvasWidget(CanvasController(self._config))
        self.setCentralWidget(self.canvas)

        self._tool_actions: Dict[ToolMode, QAction] = {}
        self._layer_actions: Dict[LayerType, QAction] = {}
        self._lock_actions: Dict[LayerType, QAction] = {}
        self._status_labels: Dict[str, QLabel] = {}

        self._build_file_toolbar()
        self._build_tool_toolbar()
        self._build_layer_toolbar()
        self._build_status_bar()

        self.canvas.tool_changed.connect(self._sync_tool_actions)
        self.canvas.status_changed.connect(self._update_status)
        self.canvas.selection_changed.connect(self._show_selection)

        if project_path:
            self.open_project(project_path)

    # ------------------------------------------------------------------
    # Chrome
    def _build_file_toolbar(self) -> None:
        toolbar = QToolBar("File", self)
        self.addToolBar(Qt.TopToolBarArea, toolbar)
        entries = [
            ("Open Image", QKeySequence.Open, self._prompt_image),
            ("Open Project", None, self._prompt_open_project),
            ("Save Project", QKeySequence.Save, self._prompt_save_project),
            ("Undo", QKeySequence.Undo, self._undo),
            ("Clear", None, self._clear),
        ]
        for text, shortcut, slot in entries:
            action = QAction(text, self)
            if shortcut is not None:
                action.setShortcut(shortcut)
            action.triggered.connect(slot)
            toolbar.addAction(action)

        template_action = QAction("Edit Fields", self)
        template_action.setCheckable(True)
        template_action.toggled.connect(self._toggle_template_mode)
        toolbar.addAction(template_action)

    def _build_tool_toolbar(self) -> None:
        toolbar = QToolBar("Tools", self)
        self.addToolBar(Qt.LeftToolBarArea, toolbar)
        group = QActionGroup(self)
        group.setExclusive(True)
        for mode, text, shortcut in _TOOL_LABELS:
            action = QAction(text, self)
            action.setCheckable(True)
            action.setShortcut(shortcut)
            action.triggered.connect(lambda _checked=False, m=mode: self.canvas.set_tool(m.value))
            group.addAction(action)
            toolbar.addAction(action)
            self._tool_actions[mode] = action
        self._sync_tool_actions(self.canvas.current_tool().value)

    def _build_layer_toolbar(self) -> None:
        toolbar = QToolBar("Layers", self)
        self.addToolBar(Qt.RightToolBarArea, toolbar)
        group = QActionGroup(self)
        group.setExclusive(True)
        for layer in self.canvas.controller.layers:
            select_action = QAction(f"Target {layer.name}", self)
            select_action.setCheckable(True)
            select_action.triggered.connect(lambda _checked=False, lt=layer.layer_type: self._select_layer(lt))
            group.addAction(select_action)
            toolbar.addAction(select_action)

            visible_action = QAction(f"Show {layer.name}", self)
            visible_action.setCheckable(True)
            visible_action.setChecked(layer.visible)
            visible_action.toggled.connect(lambda checked, lt=layer.layer_type: self._set_layer_visible(lt, checked))
            toolbar.addAction(visible_action)
            self._layer_actions[layer.layer_type] = visible_action

            lock_action = QAction(f"Lock {layer.name}", self)
            lock_action.setCheckable(True)
            lock_action.setChecked(layer.locked)
            lock_action.toggled.connect(lambda checked, lt=layer.layer_type: self._set_layer_locked(lt, checked))
            toolbar.addAction(lock_action)
            self._lock_actions[layer.layer_type] = lock_action
            toolbar.addSeparator()

    def _build_status_bar(self) -> None:
        status = QStatusBar(self)
        self.setStatusBar(status)
        for key in ("tool", "zoom", "shapes", "selection"):
            label = QLabel(self)
            status.addPermanentWidget(label)
            self._status_labels[key] = label

    # ------------------------------------------------------------------
    # Slots
    def _sync_tool_actions(self, name: str) -> None:
        mode = ToolMode(name)
        for tool_mode, action in self._tool_actions.items():
            blocked = action.blockSignals(True)
            action.setChecked(tool_mode is mode)
            action.blockSignals(blocked)

    def _update_status(self, status: dict) -> None:
        self._status_labels["tool"].setText(f"Tool: {status.get('tool', '')}")
        self._status_labels["zoom"].setText(f"Zoom: {status.get('zoom', 1.0):.2f}x")
        self._status_labels["shapes"].setText(f"Shapes: {status.get('shapes', 0)}")

    def _show_selection(self, info) -> None:
        if info is None:
            self._status_labels["selection"].setText("")
        else:
            self._status_labels["selection"].setText(f"Selected: {info['type']} #{info['index']}")

    def _select_layer(self, layer: LayerType) -> None:
        self.canvas.controller.select_layer(layer)
        self.statusBar().showMessage(f"Rotate target: {layer.label}", 2000)

    def _set_layer_visible(self, layer: LayerType, visible: bool) -> None:
        self.canvas.controller.layers.set_visible(layer, visible)
        self.canvas.update()

    def _set_layer_locked(self, layer: LayerType, locked: bool) -> None:
        self.canvas.controller.layers.set_locked(layer, locked)
        self.statusBar().showMessage(f"{layer.label} layer {'locked' if locked else 'unlocked'}", 2000)

    def _toggle_template_mode(self, enabled: bool) -> None:
        self.canvas.controller.set_template_mode(TemplateMode.EDITING if enabled else TemplateMode.NONE)
        self.canvas.update()

    def _undo(self) -> None:
        self.canvas.controller.undo()
        self.canvas.update()

    def _clear(self) -> None:
        self.canvas.controller.clear()
        self.canvas.update()

    # ------------------------------------------------------------------
    # Files
    def _prompt_image(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open Image", "", "Images (*.png *.jpg *.jpeg *.bmp *.tif)")
        if path and not self.canvas.load_image(path):
            self.statusBar().showMessage(f"Could not load image '{path}'", 4000)

    def _prompt_open_project(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open Project", "", "Form Canvas (*.json)")
        if path:
            self.open_project(path)

    def _prompt_save_project(self) -> None:
        path = self._project_path
        if path is None:
            path, _ = QFileDialog.getSaveFileName(self, "Save Project", "", "Form Canvas (*.json)")
        if not path:
            return
        try:
            save_project(self.canvas.controller, path)
        except CanvasError as exc:
            log.warning("Save failed: %s", exc)
            self.statusBar().showMessage(str(exc), 4000)
            return
        self._project_path = path
        self.statusBar().showMessage(f"Saved {path}", 2000)

    def open_project(self, path: str) -> None:
        try:
            controller = load_project(path, self._config)
        except CanvasError as exc:
            log.warning("Open failed: %s", exc)
            self.statusBar().showMessage(str(exc), 4000)
            return
        self._project_path = path
        self.canvas.set_controller(controller)
        self._sync_tool_actions(controller.current_tool.value)
        for layer_type, action in self._layer_actions.items():
            blocked = action.blockSignals(True)
            action.setChecked(controller.layers.is_visible(layer_type))
            action.blockSignals(blocked)
        for layer_type, action in self._lock_actions.items():
            blocked = action.blockSignals(True)
            action.setChecked(controller.layers.is_locked(layer_type))
            action.blockSignals(blocked)


def main(argv: Optional[List[str]] = None, config_path: Optional[str] = None, project_path: Optional[str] = None) -> int:
    app = QApplication(sys.argv if argv is None else argv)
    window = Main(load_config(config_path), project_path)
    window.resize(1200, 800)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
