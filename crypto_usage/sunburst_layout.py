"""
Radial (sunburst) layout of an aggregation tree.

Angles are radians measured from the positive x axis and grow clockwise on a y-down
surface, which is what `atan2(dy, dx)` yields for screen coordinates. The painter and the
hit test both rely on this.
"""

from __future__ import annotations

import colorsys
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .aggregation import TreeNode
from .usage_stats import round_percentage

logger = logging.getLogger(__name__)

RING_COUNT = 6
FULL_TURN = 2.0 * math.pi
TOOLTIP_TOP_CHILDREN = 5

# Ring bounds are products of floats; the last ring may overshoot the budget by rounding.
_RADIUS_TOLERANCE = 1e-9

Colour = Tuple[float, float, float]
Point = Tuple[float, float]


@dataclass(frozen=True)
class Segment:
    node: TreeNode
    start_angle: float
    end_angle: float
    inner_radius: float
    outer_radius: float
    depth: int
    path: Tuple[str, ...] = ()

    def contains_point(self, x: float, y: float, center: Point) -> bool:
        dx = x - center[0]
        dy = y - center[1]
        distance = math.hypot(dx, dy)
        if distance < self.inner_radius or distance > self.outer_radius:
            return False
        angle = math.atan2(dy, dx)
        if angle < 0.0:
            angle += FULL_TURN
        return self.start_angle <= angle <= self.end_angle

    def mid_point(self, center: Point) -> Point:
        angle = (self.start_angle + self.end_angle) / 2.0
        radius = (self.inner_radius + self.outer_radius) / 2.0
        return center[0] + radius * math.cos(angle), center[1] + radius * math.sin(angle)


def _layout_node(
    node: TreeNode,
    start_angle: float,
    end_angle: float,
    inner: float,
    outer: float,
    depth: int,
    parent_path: Tuple[str, ...],
    segments: List[Segment],
) -> None:
    if node.value == 0 or depth >= RING_COUNT:
        return

    ring_thickness = (outer - inner) / RING_COUNT
    ring_inner = inner + depth * ring_thickness
    ring_outer = ring_inner + ring_thickness
    if ring_outer <= ring_inner or ring_outer - outer > _RADIUS_TOLERANCE:
        return

    path = parent_path + (node.name,)
    segments.append(
        Segment(
            node=node,
            start_angle=start_angle,
            end_angle=end_angle,
            inner_radius=ring_inner,
            outer_radius=min(ring_outer, outer),
            depth=depth,
            path=path,
        )
    )
    _layout_children(node, start_angle, end_angle, inner, outer, depth + 1, path, segments)


def _layout_children(
    parent: TreeNode,
    start_angle: float,
    end_angle: float,
    inner: float,
    outer: float,
    depth: int,
    parent_path: Tuple[str, ...],
    segments: List[Segment],
) -> None:
    if parent.value == 0 or depth >= RING_COUNT:
        return
    span = end_angle - start_angle
    cursor = start_angle
    for child in parent.children:
        if child.value == 0:
            continue
        child_end = cursor + span * (child.value / parent.value)
        _layout_node(child, cursor, child_end, inner, outer, depth, parent_path, segments)
        cursor = child_end


def layout(
    root: TreeNode,
    ring_budget: Tuple[float, float],
    angle_budget: Tuple[float, float] = (0.0, FULL_TURN),
    root_path: Optional[Sequence[str]] = None,
) -> List[Segment]:
    """
    Lay out the children of `root` over `angle_budget`, one ring per depth.

    The radial budget is split into RING_COUNT equal rings; the root's children sit in
    ring 0 and the root itself is the implicit centre. Segments come back in pre-order.
    `root_path` is the label path of `root` from the true root (defaults to its own label).
    """
    inner, outer = ring_budget
    start_angle, end_angle = angle_budget
    base_path = tuple(root_path) if root_path else (root.name,)

    segments: List[Segment] = []
    _layout_children(root, start_angle, end_angle, inner, outer, 0, base_path, segments)
    logger.debug("Laid out %d segments below %r.", len(segments), root.name)
    return segments


def find_segment(segments: Sequence[Segment], x: float, y: float, center: Point) -> Optional[int]:
    """Index of the segment under (x, y); later (deeper) segments win on shared edges."""
    for index in range(len(segments) - 1, -1, -1):
        if segments[index].contains_point(x, y, center):
            return index
    return None


def colour_for(label: str, depth: int) -> Colour:
    """Stable fill colour for a label at a given ring depth, as an RGB triple in [0, 1]."""
    hashed = (depth * 100) & 0xFFFFFFFF
    for byte in label.encode("utf-8"):
        hashed = (hashed * 31 + byte) & 0xFFFFFFFF

    hue = (hashed % 360) / 360.0
    saturation = 0.6 + ((hashed // 360) % 20) / 100.0
    value = 0.7 + ((hashed // 7200) % 20) / 100.0
    return colorsys.hsv_to_rgb(hue, saturation, value)


def format_tooltip(node: TreeNode) -> str:
    total = node.value
    lines = [node.name, f"Count: {total}"]
    if node.children:
        lines.append(f"Children: {len(node.children)}")
        lines.append("")
        lines.append("Top operations:")
        top_children = sorted(node.children, key=lambda child: child.value, reverse=True)
        for child in top_children[:TOOLTIP_TOP_CHILDREN]:
            lines.append(f"  • {child.name} ({round_percentage(child.value, total)}%)")
    return "\n".join(lines)


class SegmentState(Enum):
    NORMAL = "normal"
    HOVERED = "hovered"
    SELECTED = "selected"


@dataclass(frozen=True)
class BorderStyle:
    width: float
    colour: Colour


NORMAL_BORDER = BorderStyle(width=1.0, colour=(1.0, 1.0, 1.0))
SELECTED_BORDER = BorderStyle(width=3.0, colour=(0.0, 0.4, 0.8))
HOVER_LIGHTEN = 1.2


@dataclass(frozen=True)
class PaintInstruction:
    """One annular wedge to fill and outline."""

    center: Point
    inner_radius: float
    outer_radius: float
    start_angle: float
    end_angle: float
    fill: Colour
    border: BorderStyle
    state: SegmentState
    label: str


def _lighten(colour: Colour, factor: float) -> Colour:
    r, g, b = colour
    return min(1.0, r * factor), min(1.0, g * factor), min(1.0, b * factor)


def paint_instruction(
    segment: Segment,
    center: Point,
    *,
    hovered: bool = False,
    selected: bool = False,
) -> PaintInstruction:
    fill = colour_for(segment.node.name, segment.depth)
    if selected:
        state, border = SegmentState.SELECTED, SELECTED_BORDER
    elif hovered:
        state, border = SegmentState.HOVERED, NORMAL_BORDER
        fill = _lighten(fill, HOVER_LIGHTEN)
    else:
        state, border = SegmentState.NORMAL, NORMAL_BORDER
    return PaintInstruction(
        center=center,
        inner_radius=segment.inner_radius,
        outer_radius=segment.outer_radius,
        start_angle=segment.start_angle,
        end_angle=segment.end_angle,
        fill=fill,
        border=border,
        state=state,
        label=segment.node.name,
    )


def paint_instructions(
    segments: Sequence[Segment],
    center: Point,
    hover_index: Optional[int] = None,
    selected_path: Sequence[str] = (),
) -> List[PaintInstruction]:
    """Drawing order equals segment order, so deeper wedges are painted over their parents."""
    selected = tuple(selected_path)
    return [
        paint_instruction(
            segment,
            center,
            hovered=index == hover_index,
            selected=bool(selected) and segment.path == selected,
        )
        for index, segment in enumerate(segments)
    ]
