"""Tests for the sunburst controller: navigation, hover, selection and projections."""

import math

import pytest

from conftest import make_event
from crypto_usage.sunburst_layout import SegmentState
from crypto_usage.sunburst_state import NavigationChange, SunburstController
from crypto_usage.usage_stats import NOT_LOADED_PERIOD, StatsRow

HUB = (350.0, 350.0)
OUTSIDE = (0.0, 0.0)


def _polar(angle, radius, center=HUB):
    return center[0] + radius * math.cos(angle), center[1] + radius * math.sin(angle)


# With a 700x700 view the hub and each ring are 330 / 7 pixels thick.
P1_POINT = _polar(math.pi / 2, 70.0)
P2_POINT = _polar(7 * math.pi / 4, 70.0)
VERIFY_POINT = _polar(7 * math.pi / 4, 120.0)


@pytest.fixture
def controller(sample_events):
    chart = SunburstController()
    chart.load_events(sample_events)
    return chart


class TestGeometry:
    """Tests for chart geometry."""

    def test_default_geometry(self):
        chart = SunburstController()
        assert chart.center == (350.0, 350.0)
        assert chart.max_radius == 330.0
        assert chart.hub_radius == pytest.approx(330.0 / 7)

    def test_small_view_has_no_radius(self):
        chart = SunburstController(30, 30)
        assert chart.max_radius == 0.0
        assert chart.hub_radius == 0.0

    def test_resize_relayouts_and_clears_hover(self, controller):
        controller.on_pointer_move(*P1_POINT)
        assert controller.hover_segment == 0

        controller.on_resize(300, 200)

        assert controller.center == (150.0, 100.0)
        assert controller.hover_segment is None
        assert controller.max_radius == 80.0
        assert controller.segments[0].inner_radius == pytest.approx(80.0 / 7)


class TestDataLoaded:
    """Tests for loading data into the chart."""

    def test_before_loading(self):
        chart = SunburstController()
        assert chart.segments == ()
        assert chart.frame() == []
        assert chart.tree_rows() == []
        assert chart.stats_rows() == []
        assert chart.on_click(*HUB) is NavigationChange.NONE

    def test_segments_cover_the_tree(self, controller):
        names = [segment.node.name for segment in controller.segments]

        assert names == [
            "p1",
            "tls::handshake_client [TLS 1.3]",
            "tls::key_exchange [secp256r1]",
            "pk::sign [rsa, 2048 bits]",
            "pk::sign [rsa]",
            "p2",
            "pk::verify [ecdsa]",
        ]
        assert controller.segments[0].path == ("all", "p1")
        assert controller.display_path == ("all",)

    def test_reload_resets_navigation(self, controller, sample_events):
        controller.on_click(*P1_POINT)
        controller.on_external_selection(("all", "p1"))

        controller.load_events(sample_events[:1])

        assert controller.zoom_root is None
        assert controller.selected_path == ()
        assert controller.tree.value == 2
        assert len(controller.events) == 1

    def test_empty_trace(self):
        chart = SunburstController()
        chart.load_events([])

        assert chart.tree.value == 0
        assert chart.segments == ()
        assert chart.frame() == []
        assert chart.stats_rows() == []
        assert chart.tree_rows() == []
        assert chart.period_labels(boot_time=0) is None
        assert chart.on_click(*HUB) is NavigationChange.NONE


class TestNavigation:
    """Tests for zooming by clicks."""

    def test_click_segment_zooms_in(self, controller):
        change = controller.on_click(*P1_POINT)

        assert change is NavigationChange.ZOOM_IN
        assert controller.zoom_root.name == "p1"
        assert controller.drilldown_visible
        assert controller.display_path == ("all", "p1")
        ring_zero = [segment.node.name for segment in controller.segments if segment.depth == 0]
        assert ring_zero == ["tls::handshake_client [TLS 1.3]", "pk::sign [rsa]"]
        assert controller.segments[0].path == ("all", "p1", "tls::handshake_client [TLS 1.3]")

    def test_zoomed_children_fill_the_full_turn(self, controller):
        controller.on_click(*P1_POINT)

        ring_zero = [segment for segment in controller.segments if segment.depth == 0]
        assert ring_zero[0].start_angle == 0.0
        assert ring_zero[-1].end_angle == pytest.approx(2 * math.pi)

    def test_hub_click_zooms_out(self, controller):
        before = controller.segments
        controller.on_click(*P1_POINT)

        change = controller.on_click(*HUB)

        assert change is NavigationChange.ZOOM_OUT
        assert controller.zoom_root is None
        assert not controller.drilldown_visible
        assert controller.segments == before

    def test_hub_click_without_zoom_is_ignored(self, controller):
        before = controller.segments

        assert controller.on_click(*HUB) is NavigationChange.NONE
        assert controller.segments == before

    def test_click_outside_changes_nothing(self, controller):
        controller.on_external_selection(("all", "p2"))

        assert controller.on_click(*OUTSIDE) is NavigationChange.NONE
        assert controller.zoom_root is None
        assert controller.selected_path == ("all", "p2")

    def test_zoom_into_leaf_shows_only_hub(self, controller):
        controller.on_click(*VERIFY_POINT)

        assert controller.zoom_root.name == "pk::verify [ecdsa]"
        assert controller.segments == ()
        frame = controller.frame()
        assert len(frame) == 1
        assert frame[0].label == "pk::verify [ecdsa]"
        assert controller.on_click(*HUB) is NavigationChange.ZOOM_OUT

    def test_reset_zoom(self, controller):
        assert controller.reset_zoom() is NavigationChange.NONE
        controller.on_click(*P2_POINT)

        assert controller.reset_zoom() is NavigationChange.ZOOM_OUT
        assert controller.zoom_root is None

    def test_zoom_clears_selection(self, controller):
        controller.on_external_selection(("all", "p2"))

        controller.on_click(*P1_POINT)

        assert controller.selected_path == ()
        assert controller.selected_segment() is None


class TestHover:
    """Tests for pointer tracking."""

    def test_hover_reports_changes(self, controller):
        assert controller.on_pointer_move(*P1_POINT) is True
        assert controller.hover_segment == 0
        assert controller.on_pointer_move(P1_POINT[0] + 1.0, P1_POINT[1]) is False

        assert controller.on_pointer_move(*P2_POINT) is True
        assert controller.hover_segment == 5

        assert controller.on_pointer_move(*OUTSIDE) is True
        assert controller.hover_segment is None
        assert controller.on_pointer_move(*OUTSIDE) is False

    def test_clear_hover(self, controller):
        assert controller.clear_hover() is False
        controller.on_pointer_move(*P1_POINT)

        assert controller.clear_hover() is True
        assert controller.hover_segment is None

    def test_hovered_segment_in_frame(self, controller):
        controller.on_pointer_move(*P2_POINT)

        frame = controller.frame()

        states = [instruction.state for instruction in frame[1:]]
        assert states[5] is SegmentState.HOVERED
        assert states.count(SegmentState.HOVERED) == 1

    def test_tooltips(self, controller):
        assert controller.tooltip_at(*P2_POINT) == "p2\nCount: 1\nChildren: 1\n\nTop operations:\n  • pk::verify [ecdsa] (100%)"
        assert controller.tooltip_at(*HUB) == (
            "all\nCount: 4\nChildren: 2\n\nTop operations:\n  • p1 (75%)\n  • p2 (25%)"
        )
        assert controller.tooltip_at(*OUTSIDE) is None


class TestSelection:
    """Tests for selection coming from the tree list."""

    def test_external_selection_highlights_segment(self, controller):
        assert controller.on_external_selection(("all", "p1", "pk::sign [rsa]")) is True

        assert controller.selected_segment() == 4
        frame = controller.frame()
        selected = [instruction for instruction in frame if instruction.state is SegmentState.SELECTED]
        assert [instruction.label for instruction in selected] == ["pk::sign [rsa]"]

    def test_repeated_selection_is_not_a_change(self, controller):
        controller.on_external_selection(("all", "p2"))
        assert controller.on_external_selection(("all", "p2")) is False

    def test_clear_selection(self, controller):
        controller.on_external_selection(("all", "p2"))

        assert controller.on_external_selection(()) is True
        assert controller.selected_segment() is None

    def test_unknown_path_selects_nothing(self, controller):
        controller.on_external_selection(("all", "p9"))

        assert controller.selected_segment() is None
        assert all(instruction.state is not SegmentState.SELECTED for instruction in controller.frame())

    def test_selecting_display_root_highlights_hub(self, controller):
        controller.on_external_selection(("all",))

        assert controller.frame()[0].state is SegmentState.SELECTED


class TestProjections:
    """Tests for the frame, tree rows and statistics."""

    def test_frame_starts_with_hub(self, controller):
        frame = controller.frame()

        assert len(frame) == len(controller.segments) + 1
        hub = frame[0]
        assert hub.label == "all"
        assert hub.inner_radius == 0.0
        assert hub.outer_radius == pytest.approx(controller.hub_radius)
        assert hub.end_angle == pytest.approx(2 * math.pi)

    def test_rows_follow_zoom(self, controller):
        assert [row.name for row in controller.tree_rows()] == ["p1", "p2"]

        controller.on_click(*P1_POINT)

        rows = controller.tree_rows()
        assert [row.name for row in rows] == ["tls::handshake_client [TLS 1.3]", "pk::sign [rsa]"]
        assert rows[1].path == ("all", "p1", "pk::sign [rsa]")

    def test_stats_follow_zoom(self, controller):
        assert controller.stats_rows() == [
            StatsRow("rsa", "2", "67%"),
            StatsRow("ecdsa", "1", "33%"),
        ]

        controller.on_click(*P1_POINT)

        assert controller.stats_rows() == [StatsRow("rsa", "2", "100%")]

    def test_period_labels_stay_global_when_zoomed(self, controller):
        controller.on_click(*P1_POINT)

        labels = controller.period_labels(boot_time=0)

        assert labels.start == "Start: 1970-01-01T00:00:00.000000050Z"
        assert labels.end == "End: 1970-01-01T00:00:00.000000700Z"
        assert labels.duration == "Duration: 650ns"

    def test_period_display_resets_after_empty_trace(self, controller):
        assert controller.period_display(boot_time=0).duration == "Duration: 650ns"

        controller.load_events([])

        assert controller.period_display(boot_time=0) == NOT_LOADED_PERIOD


class TestSelectedNode:
    """Tests for resolving the selected path to a tree node."""

    def test_resolves_selection(self, controller):
        controller.on_external_selection(("all", "p1", "tls::handshake_client [TLS 1.3]"))

        node = controller.selected_node()

        assert node.name == "tls::handshake_client [TLS 1.3]"
        assert node.value == 2
        assert controller.selected_segment() == 1

    def test_no_selection(self, controller):
        assert controller.selected_node() is None

    def test_unknown_path(self, controller):
        controller.on_external_selection(("all", "p9"))
        assert controller.selected_node() is None

    def test_node_below_the_last_ring_has_no_segment(self):
        chart = SunburstController()
        leaf = make_event("pk::sign", **{"pk::algorithm": "rsa"})
        for _ in range(6):
            leaf = make_event("tls::handshake_client", spans=[leaf])
        chart.load_events([leaf])
        path = ("all", "p1") + ("tls::handshake_client",) * 6 + ("pk::sign [rsa]",)

        chart.on_external_selection(path)

        assert chart.selected_node().name == "pk::sign [rsa]"
        assert chart.selected_segment() is None
