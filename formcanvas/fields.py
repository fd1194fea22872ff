"""Template field boxes and their relationship to detections.

Field bounds live in image-pixel space, like shapes and detections. The
helpers here cover the pieces of template editing that share the canvas
gesture machinery: building a field from a finished drawing gesture, hit
testing, moving by a drag delta, snapping to edges, and IoU matching of
detections onto fields.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from .geometry import Bounds, Point, bounding_box, intersection_over_union, is_finite_point
from .shapes import Shape, shape_bounds


class TemplateMode(str, Enum):
    NONE = "none"
    CREATING = "creating"
    EDITING = "editing"
    VIEWING = "viewing"

    @property
    def edits_fields(self) -> bool:
        return self in (TemplateMode.CREATING, TemplateMode.EDITING)


@dataclass(frozen=True)
class FieldBounds:
    """Axis-aligned box given by its top-left corner and size."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_extents(cls, bounds: Bounds) -> "FieldBounds":
        min_x, min_y, max_x, max_y = bounds
        return cls(min_x, min_y, max_x - min_x, max_y - min_y)

    @property
    def extents(self) -> Bounds:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, point: Sequence[float]) -> bool:
        """Inclusive containment; non-finite points are never inside."""
        if not is_finite_point(point):
            return False
        return self.x <= point[0] <= self.x + self.width and self.y <= point[1] <= self.y + self.height

    def translated(self, dx: float, dy: float) -> "FieldBounds":
        return FieldBounds(self.x + dx, self.y + dy, self.width, self.height)

    def corners(self) -> List[Point]:
        x0, y0, x1, y1 = self.extents
        return [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]


@dataclass(frozen=True)
class FieldDefinition:
    id: str
    label: str
    bounds: FieldBounds
    field_type: str = "free_text"
    required: bool = False
    page_index: int = 0

    def with_bounds(self, bounds: FieldBounds) -> "FieldDefinition":
        return replace(self, bounds=bounds)


@dataclass(frozen=True)
class DetectionMatch:
    field_index: int
    detection_index: int
    overlap: float
    bounds: FieldBounds


def next_field_identity(fields: Sequence[FieldDefinition]) -> Tuple[str, str]:
    """Return ``(id, label)`` for the next field, numbered from the field count."""
    taken = {f.id for f in fields}
    number = len(fields) + 1
    while f"field_{number}" in taken:
        number += 1
    return f"field_{number}", f"Field {number}"


def field_from_points(points: Iterable[Sequence[float]], fields: Sequence[FieldDefinition]) -> Optional[FieldDefinition]:
    """Build a new field spanning the bounding box of ``points``.

    Returns ``None`` for an empty or zero-area box.
    """
    pts = [p for p in points if is_finite_point(p)]
    if not pts:
        return None
    bounds = FieldBounds.from_extents(bounding_box(pts))
    if bounds.width <= 0.0 or bounds.height <= 0.0:
        return None
    field_id, label = next_field_identity(fields)
    return FieldDefinition(id=field_id, label=label, bounds=bounds)


def hit_test_fields(fields: Sequence[FieldDefinition], point: Sequence[float]) -> Optional[int]:
    """Index of the topmost (last) field containing ``point``."""
    for index in range(len(fields) - 1, -1, -1):
        if fields[index].bounds.contains(point):
            return index
    return None


def dragged_bounds(original: FieldBounds, drag_start: Sequence[float], pointer: Sequence[float]) -> FieldBounds:
    """``original`` moved by the total pointer delta since ``drag_start``."""
    return original.translated(pointer[0] - drag_start[0], pointer[1] - drag_start[1])


def snap_to_field(point: Sequence[float], fields: Iterable[FieldDefinition], threshold: float = 10.0) -> Point:
    """Snap x and y independently to the nearest field edge within ``threshold``."""
    px, py = float(point[0]), float(point[1])
    snapped_x, snapped_y = px, py
    best_x = best_y = threshold
    for field_def in fields:
        x0, y0, x1, y1 = field_def.bounds.extents
        for edge in (y0, y1):
            dist = abs(py - edge)
            if dist < best_y:
                best_y = dist
                snapped_y = edge
        for edge in (x0, x1):
            dist = abs(px - edge)
            if dist < best_x:
                best_x = dist
                snapped_x = edge
    return (snapped_x, snapped_y)


def calculate_overlap(a: FieldBounds, b: FieldBounds) -> float:
    """Intersection over union of two field boxes."""
    return intersection_over_union(a.extents, b.extents)


def find_best_detection_match(
    field_def: FieldDefinition, detections: Sequence[Shape], min_overlap: float = 0.3
) -> Optional[DetectionMatch]:
    """Detection with the highest IoU against ``field_def``, strictly above ``min_overlap``."""
    best: Optional[DetectionMatch] = None
    best_score = min_overlap
    for index, detection in enumerate(detections):
        det_bounds = FieldBounds.from_extents(shape_bounds(detection))
        overlap = calculate_overlap(field_def.bounds, det_bounds)
        if overlap > best_score:
            best_score = overlap
            best = DetectionMatch(field_index=-1, detection_index=index, overlap=overlap, bounds=det_bounds)
    return best


def match_detections_to_fields(
    fields: Sequence[FieldDefinition], detections: Sequence[Shape], min_overlap: float = 0.3
) -> List[DetectionMatch]:
    matches: List[DetectionMatch] = []
    for field_index, field_def in enumerate(fields):
        best = find_best_detection_match(field_def, detections, min_overlap)
        if best is not None:
            matches.append(replace(best, field_index=field_index))
    return matches


__all__ = [
    "TemplateMode",
    "FieldBounds",
    "FieldDefinition",
    "DetectionMatch",
    "next_field_identity",
    "field_from_points",
    "hit_test_fields",
    "dragged_bounds",
    "snap_to_field",
    "calculate_overlap",
    "find_best_detection_match",
    "match_detections_to_fields",
]
