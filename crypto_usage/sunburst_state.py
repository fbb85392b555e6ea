from __future__ import annotations

import logging
import math
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .aggregation import TreeNode, TreeRow, build_tree, project_tree
from .audit_loader import AuditEvent
from .sunburst_layout import (
    FULL_TURN,
    NORMAL_BORDER,
    RING_COUNT,
    SELECTED_BORDER,
    PaintInstruction,
    Point,
    Segment,
    SegmentState,
    colour_for,
    find_segment,
    format_tooltip,
    layout,
    paint_instructions,
)
from .usage_stats import NOT_LOADED_PERIOD, PeriodLabels, StatsRow, period_labels, stats_rows

logger = logging.getLogger(__name__)

CHART_MARGIN = 20.0
DEFAULT_SIZE = (700.0, 700.0)


class NavigationChange(Enum):
    NONE = "none"
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"


class SunburstController:
    """
    All state of one sunburst chart, driven by discrete input events.

    The display root (the zoomed node, or the true root) is drawn as a central hub; its
    children fill the rings around it. Clicking a ring segment zooms into that node,
    clicking the hub zooms back out to the true root.
    """

    def __init__(self, width: float = DEFAULT_SIZE[0], height: float = DEFAULT_SIZE[1]):
        self._tree: Optional[TreeNode] = None
        self._events: List[AuditEvent] = []
        self._zoom_root: Optional[TreeNode] = None
        self._zoom_path: Tuple[str, ...] = ()
        self._selected_path: Tuple[str, ...] = ()
        self._hover_segment: Optional[int] = None
        self._segments: List[Segment] = []
        self._width = float(width)
        self._height = float(height)

    # State -------------------------------------------------------------
    @property
    def tree(self) -> Optional[TreeNode]:
        return self._tree

    @property
    def events(self) -> List[AuditEvent]:
        return list(self._events)

    @property
    def zoom_root(self) -> Optional[TreeNode]:
        return self._zoom_root

    @property
    def selected_path(self) -> Tuple[str, ...]:
        return self._selected_path

    @property
    def hover_segment(self) -> Optional[int]:
        return self._hover_segment

    @property
    def segments(self) -> Tuple[Segment, ...]:
        return tuple(self._segments)

    @property
    def drilldown_visible(self) -> bool:
        return self._zoom_root is not None

    @property
    def display_root(self) -> Optional[TreeNode]:
        return self._zoom_root if self._zoom_root is not None else self._tree

    @property
    def display_path(self) -> Tuple[str, ...]:
        if self._zoom_root is not None:
            return self._zoom_path
        return (self._tree.name,) if self._tree is not None else ()

    # Geometry ----------------------------------------------------------
    @property
    def center(self) -> Point:
        return self._width / 2.0, self._height / 2.0

    @property
    def max_radius(self) -> float:
        cx, cy = self.center
        return max(0.0, min(cx, cy) - CHART_MARGIN)

    @property
    def hub_radius(self) -> float:
        # The hub is as thick as one ring.
        return self.max_radius / (RING_COUNT + 1)

    def _hits_hub(self, x: float, y: float) -> bool:
        root = self.display_root
        if root is None or root.value == 0 or self.hub_radius <= 0.0:
            return False
        cx, cy = self.center
        return math.hypot(x - cx, y - cy) <= self.hub_radius

    def _relayout(self) -> None:
        root = self.display_root
        if root is None:
            self._segments = []
        else:
            self._segments = layout(
                root,
                ring_budget=(self.hub_radius, self.max_radius),
                angle_budget=(0.0, FULL_TURN),
                root_path=self.display_path,
            )
        self._hover_segment = None

    # Input events ------------------------------------------------------
    def on_data_loaded(self, tree: TreeNode, events: Sequence[AuditEvent]) -> None:
        self._tree = tree
        self._events = list(events)
        self._zoom_root = None
        self._zoom_path = ()
        self._selected_path = ()
        self._relayout()
        logger.info("Chart data replaced: total weight %d, %d segments.", tree.value, len(self._segments))

    def load_events(self, events: Sequence[AuditEvent]) -> None:
        self.on_data_loaded(build_tree(events), events)

    def on_resize(self, width: float, height: float) -> None:
        self._width = float(width)
        self._height = float(height)
        self._relayout()

    def on_pointer_move(self, x: float, y: float) -> bool:
        """Track the hovered segment; True when the highlight changed and a redraw is due."""
        found = find_segment(self._segments, x, y, self.center)
        if found == self._hover_segment:
            return False
        self._hover_segment = found
        return True

    def clear_hover(self) -> bool:
        if self._hover_segment is None:
            return False
        self._hover_segment = None
        return True

    def on_click(self, x: float, y: float) -> NavigationChange:
        if self._hits_hub(x, y):
            if self._zoom_root is None:
                return NavigationChange.NONE
            return self.reset_zoom()

        found = find_segment(self._segments, x, y, self.center)
        if found is None:
            return NavigationChange.NONE

        segment = self._segments[found]
        self._zoom_root = segment.node
        self._zoom_path = segment.path
        self._selected_path = ()
        self._relayout()
        logger.info("Zoomed into %r (weight %d).", segment.node.name, segment.node.value)
        return NavigationChange.ZOOM_IN

    def reset_zoom(self) -> NavigationChange:
        if self._zoom_root is None:
            return NavigationChange.NONE
        self._zoom_root = None
        self._zoom_path = ()
        self._selected_path = ()
        self._relayout()
        logger.info("Zoom reset to the full tree.")
        return NavigationChange.ZOOM_OUT

    def on_external_selection(self, path: Sequence[str]) -> bool:
        """Highlight the segment whose label path equals `path`; an empty path clears it."""
        selected = tuple(path)
        if selected == self._selected_path:
            return False
        self._selected_path = selected
        logger.debug("External selection set to %s.", " / ".join(selected) or "<none>")
        return True

    # Projections -------------------------------------------------------
    def segment_at(self, x: float, y: float) -> Optional[Segment]:
        found = find_segment(self._segments, x, y, self.center)
        return self._segments[found] if found is not None else None

    def tooltip_at(self, x: float, y: float) -> Optional[str]:
        segment = self.segment_at(x, y)
        if segment is not None:
            return format_tooltip(segment.node)
        if self._hits_hub(x, y):
            return format_tooltip(self.display_root)
        return None

    def selected_node(self) -> Optional[TreeNode]:
        if self._tree is None or not self._selected_path:
            return None
        return self._tree.find_path(self._selected_path)

    def selected_segment(self) -> Optional[int]:
        if not self._selected_path:
            return None
        for index, segment in enumerate(self._segments):
            if segment.path == self._selected_path:
                return index
        return None

    def frame(self) -> List[PaintInstruction]:
        """Hub first, then every segment in paint order."""
        root = self.display_root
        if root is None or root.value == 0:
            return []
        center = self.center
        instructions: List[PaintInstruction] = []
        if self.hub_radius > 0.0:
            hub_selected = bool(self._selected_path) and self._selected_path == self.display_path
            instructions.append(
                PaintInstruction(
                    center=center,
                    inner_radius=0.0,
                    outer_radius=self.hub_radius,
                    start_angle=0.0,
                    end_angle=FULL_TURN,
                    fill=colour_for(root.name, 0),
                    border=SELECTED_BORDER if hub_selected else NORMAL_BORDER,
                    state=SegmentState.SELECTED if hub_selected else SegmentState.NORMAL,
                    label=root.name,
                )
            )
        instructions.extend(paint_instructions(self._segments, center, self._hover_segment, self._selected_path))
        return instructions

    def tree_rows(self) -> List[TreeRow]:
        root = self.display_root
        if root is None:
            return []
        return project_tree(root, self.display_path)

    def stats_rows(self) -> List[StatsRow]:
        root = self.display_root
        if root is None:
            return []
        return stats_rows(root)

    def period_labels(self, boot_time: float) -> Optional[PeriodLabels]:
        return period_labels(self._events, boot_time)

    def period_display(self, boot_time: float) -> PeriodLabels:
        """Period labels to show; the "Not loaded" texts when the trace has no time range."""
        labels = self.period_labels(boot_time)
        return labels if labels is not None else NOT_LOADED_PERIOD
