"""Command line interface for form canvas projects."""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

from .config import load_config
from .project import load_project
from .rendering import build_frame
from .transforms import Viewport


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format="%(levelname)s %(name)s: %(message)s")


def _cmd_gui(args: argparse.Namespace) -> None:  # pragma: no cover - GUI entry point
    from .app import main as gui_main

    code = gui_main(config_path=args.config, project_path=args.project)
    if code:
        raise RuntimeError(f"GUI exited with status {code}")


def _cmd_inspect(args: argparse.Namespace) -> None:
    canvas = load_project(Path(args.project), load_config(args.config))
    print(f"Project: {canvas.project_name}")
    if canvas.image_size is not None:
        print(f"Image: {canvas.image_path or '-'} ({canvas.image_size[0]:g}x{canvas.image_size[1]:g})")
    else:
        print("Image: none")
    print(f"Tool: {canvas.current_tool.value} | zoom={canvas.zoom:.2f} pan=({canvas.pan[0]:g}, {canvas.pan[1]:g})")
    print(f"Shapes: {len(canvas.shapes)}")
    for index, shape in enumerate(canvas.shapes):
        hidden = "" if shape.visible else " (hidden)"
        print(f"  [{index}] {shape.kind} {shape.name or '<unnamed>'}{hidden}")
    print(f"Detections: {len(canvas.detections)}")
    print(f"Fields: {len(canvas.fields)}")
    for field_def in canvas.fields:
        b = field_def.bounds
        print(f"  {field_def.id} '{field_def.label}' at ({b.x:g}, {b.y:g}) {b.width:g}x{b.height:g}")
    layers = ", ".join(f"{layer.name}{'' if layer.visible else '(hidden)'}" for layer in canvas.layers)
    print(f"Layers: {layers}")


def _cmd_render(args: argparse.Namespace) -> None:
    canvas = load_project(Path(args.project), load_config(args.config))
    canvas.set_viewport(Viewport.from_size(args.width, args.height))
    payload = build_frame(canvas).to_dict()
    text = json.dumps(payload, indent=2)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Wrote {args.output} | items={len(payload['items'])}")
    else:
        print(text)


def _cmd_match(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    canvas = load_project(Path(args.project), config)
    matches = canvas.match_detections()
    if not matches:
        print("No detections overlap any field.")
        return
    for match in matches:
        field_def = canvas.fields[match.field_index]
        print(f"{field_def.id} <- detection {match.detection_index} (IoU {match.overlap:.3f})")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="formcanvas",
        description="Form canvas command line interface",
    )
    parser.add_argument("--config", help="Path to a JSON config file (defaults to $FORMCANVAS_CONFIG)")
    parser.add_argument("--log-level", default="warning", help="Logging level (debug, info, warning, error)")
    sub = parser.add_subparsers(dest="command", required=True)

    gui = sub.add_parser("gui", help="Open the interactive canvas")
    gui.add_argument("project", nargs="?", help="Project file to open")
    gui.set_defaults(func=_cmd_gui)

    inspect = sub.add_parser("inspect", help="Summarize a project file")
    inspect.add_argument("project", help="Project file")
    inspect.set_defaults(func=_cmd_inspect)

    render = sub.add_parser("render", help="Dump the screen-space render list as JSON")
    render.add_argument("project", help="Project file")
    render.add_argument("--width", type=float, default=1280.0, help="Viewport width in pixels")
    render.add_argument("--height", type=float, default=800.0, help="Viewport height in pixels")
    render.add_argument("--output", help="Write JSON here instead of stdout")
    render.set_defaults(func=_cmd_render)

    match = sub.add_parser("match", help="Match detections to template fields by IoU")
    match.add_argument("project", help="Project file")
    match.set_defaults(func=_cmd_match)

    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        args.func(args)
    except Exception as exc:  # pragma: no cover - CLI guard
        parser.error(str(exc))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
