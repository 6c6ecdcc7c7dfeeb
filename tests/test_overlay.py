import logging

import pytest

from netdiagram.config import OverlayOptions
from netdiagram.drawing import to_svg
from netdiagram.layout import GridLayoutEngine
from netdiagram.models import Bounds, Graph, LayoutLink, LinkMetrics, MetricsData, Position
from netdiagram.overlay import NEUTRAL_COLOR, WeathermapController, flow_duration, utilization_color
from netdiagram.quality import DeviceProfile, QualityTier
from netdiagram.renderer import Renderer
from netdiagram.scheduler import ManualScheduler


def _chain(count: int = 6, **link) -> Graph:
    return Graph.from_json_dict({
        "nodes": [{"id": f"n{i}"} for i in range(count)],
        "links": [{"from": f"n{i}", "to": f"n{i + 1}", **link} for i in range(count - 1)],
    })


def _program(graph: Graph, layout=None):
    layout = layout or GridLayoutEngine(columns=10).layout(graph)
    return Renderer().render(graph, layout)


def _controller(program, tier=QualityTier.HIGH, reduced_motion=False):
    scheduler = ManualScheduler(budget_ms=8.0, clock=lambda: 0.0)
    options = OverlayOptions(tier=tier, reduced_motion=reduced_motion)
    controller = WeathermapController(program, scheduler, options, DeviceProfile(cpu_count=8, memory_gb=16))
    return controller, scheduler


def _metrics(links: dict) -> MetricsData:
    return MetricsData(links={lid: LinkMetrics.model_validate(m) for lid, m in links.items()})


def _up(util, bps=1_000_000):
    return {"status": "up", "inUtilization": util, "outUtilization": util, "inBps": bps, "outBps": bps}


@pytest.mark.parametrize("value,color", [
    (-5, "#6b7280"),
    (0, "#6b7280"),
    (1, "#22c55e"),
    (24, "#84cc16"),
    (50, "#eab308"),
    (76, "#ef4444"),
    (95, "#dc2626"),
    (150, "#dc2626"),
])
def test_utilization_buckets(value, color):
    assert utilization_color(value) == color


def test_utilization_boundaries():
    assert utilization_color(25) == "#84cc16"
    assert utilization_color(25.01) == "#eab308"
    assert utilization_color(90) == "#ef4444"
    assert utilization_color(float("nan")) == NEUTRAL_COLOR


def test_flow_duration():
    assert flow_duration(0) == 2.0
    assert flow_duration(1e9) == pytest.approx(0.5)
    assert flow_duration(1e6) < flow_duration(1e3)
    assert flow_duration(-10) == 2.0


class TestApply:
    def test_returns_before_building(self):
        program = _program(_chain(3))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10), "link-1": _up(60)}))
        assert controller.built_count == 0
        assert controller.pending_count == 2
        assert scheduler.pending == 1
        assert not program.find_by_class("weathermap-layer")

    def test_builds_on_idle(self):
        program = _program(_chain(3))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10), "link-1": _up(60)}))
        scheduler.run_until_idle()

        assert controller.built_count == 2
        assert controller.pending_count == 0
        assert len(program.find_by_class("weathermap-keyframes")) == 1

        [group] = program.find_by_attr("data-link-id", "link-1")
        original, layer = group.children[0], group.children[1]
        assert layer is controller.layer_for("link-1")
        assert original.get("stroke-opacity") == 0
        classes = [p.get("class") for p in layer.children]
        assert classes == ["weathermap-base weathermap-in", "weathermap-flow weathermap-in",
                           "weathermap-base weathermap-out", "weathermap-flow weathermap-out"]
        in_base = layer.children[0]
        assert in_base.get("stroke") == "#f97316"
        assert in_base.get("stroke-width") == 3.0

    def test_layers_are_not_link_groups(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()

        assert [g.get("data-link-id") for g in program.link_groups()] == ["link-0"]
        layer = controller.layer_for("link-0")
        assert "data-link-id" not in layer.attrs
        assert layer.get("data-overlay-for") == "link-0"

    def test_offsets_straddle_the_original(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        layer = controller.layer_for("link-0")
        in_y = layer.children[0].segments[0].y
        out_y = layer.children[2].segments[0].y
        assert in_y == pytest.approx(100 - 1.5)
        assert out_y == pytest.approx(100 + 1.5)

    def test_directional_colors_and_flow(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": {"status": "up", "inUtilization": 5, "outUtilization": 80,
                                              "inBps": 0, "outBps": 1e9}}))
        scheduler.run_until_idle()
        in_base, in_flow, out_base, out_flow = controller.layer_for("link-0").children
        assert in_base.get("stroke") == "#84cc16"
        assert out_base.get("stroke") == "#ef4444"
        assert in_flow.get("stroke-dasharray") == "16 8"
        assert "weathermap-flow-out 2.00s" in in_flow.get("style")
        assert "weathermap-flow-in 0.50s" in out_flow.get("style")
        assert "running" in in_flow.get("style")

    def test_repaint_keeps_built_layer(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        layer = controller.layer_for("link-0")

        controller.apply(_metrics({"link-0": _up(99)}))
        assert controller.pending_count == 0
        assert controller.layer_for("link-0") is layer
        assert layer.children[0].get("stroke") == "#dc2626"
        assert len(program.find_by_class("weathermap-layer")) == 1

    def test_unknown_links_ignored(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"nope": _up(10)}))
        assert controller.pending_count == 0


class TestFallbacks:
    def test_flat_recolor_without_metrics(self):
        program = _program(_chain(3))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(60)}))
        scheduler.run_until_idle()

        [group] = program.find_by_attr("data-link-id", "link-1")
        assert group.children[0].get("stroke") == NEUTRAL_COLOR
        assert controller.layer_for("link-1") is None
        assert controller.built_count == 1

    def test_down_while_queued(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(40)}))
        controller.apply(_metrics({"link-0": {"status": "down"}}))
        scheduler.run_until_idle()

        in_base, in_flow, out_base, out_flow = controller.layer_for("link-0").children
        for base in (in_base, out_base):
            assert base.get("stroke") == "#ef4444"
            assert base.get("stroke-dasharray") == "8 4"
        for flow in (in_flow, out_flow):
            assert flow.get("display") == "none"
            assert "style" not in flow.attrs

    def test_recovers_from_down(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": {"status": "down"}}))
        scheduler.run_until_idle()
        controller.apply(_metrics({"link-0": _up(30)}))
        in_base, in_flow, _, _ = controller.layer_for("link-0").children
        assert "stroke-dasharray" not in in_base.attrs
        assert "display" not in in_flow.attrs

    def test_zero_length_group_skipped_and_retried(self, caplog):
        graph = _chain(3)
        layout = GridLayoutEngine(columns=10).layout(graph)
        layout.links["link-0"] = LayoutLink(points=[Position(x=10, y=10), Position(x=10, y=10)])
        program = _program(graph, layout)
        before = to_svg(program)
        controller, scheduler = _controller(program)

        with caplog.at_level(logging.WARNING, logger="netdiagram"):
            controller.apply(_metrics({"link-0": _up(10), "link-1": _up(10)}))
            scheduler.run_until_idle()
        assert "Skipping overlay for link 'link-0'" in caplog.text
        assert controller.layer_for("link-0") is None
        assert controller.layer_for("link-1") is not None

        [group] = program.find_by_attr("data-link-id", "link-0")
        assert group.children[0].get("stroke-opacity") is None

        controller.apply(_metrics({"link-0": _up(10)}))
        assert controller.pending_count == 1

        controller.reset()
        assert to_svg(program) == before

    def test_non_finite_route_skipped(self, caplog):
        graph = _chain(3)
        layout = GridLayoutEngine(columns=10).layout(graph)
        layout.links["link-0"] = LayoutLink(points=[
            Position(x=0, y=0), Position(x=float("nan"), y=5), Position(x=10, y=10),
        ])
        program = _program(graph, layout)
        controller, scheduler = _controller(program)

        with caplog.at_level(logging.WARNING, logger="netdiagram"):
            controller.apply(_metrics({"link-0": _up(10), "link-1": _up(10)}))
            scheduler.run_until_idle()
        assert "Skipping overlay for link 'link-0'" in caplog.text
        assert controller.layer_for("link-0") is None
        assert controller.layer_for("link-1") is not None

    def test_invisible_links_are_not_tracked(self):
        program = _program(_chain(2, type="invisible"))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        assert controller.pending_count == 0


class TestDoubleLinks:
    def test_all_originals_hidden(self):
        program = _program(_chain(2, redundancy="ha"))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        [group] = program.find_by_attr("data-link-id", "link-0")
        originals = group.children[:3]
        assert all(p.get("stroke-opacity") == 0 for p in originals)
        assert group.children[3] is controller.layer_for("link-0")
        # Widest original is the double outer stroke
        assert controller.layer_for("link-0").children[0].get("stroke-width") == 4.0


class TestBandwidthLanes:
    def test_lanes_hidden_and_restored(self):
        program = _program(_chain(2, bandwidth="25G"))
        before = to_svg(program)
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()

        [group] = program.find_by_attr("data-link-id", "link-0")
        lanes = group.find_by_class("link-lane")
        assert len(lanes) == 3
        assert all(lane.get("stroke-opacity") == 0 for lane in lanes)
        assert group.children[4] is controller.layer_for("link-0")
        # Layer covers the whole bundle: lane width plus two lane gaps
        assert controller.layer_for("link-0").children[0].get("stroke-width") == pytest.approx(1.5 + 6)

        controller.reset()
        assert to_svg(program) == before

    def test_flat_recolor_paints_lanes(self):
        program = _program(_chain(3, bandwidth="10G"))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        [group] = program.find_by_attr("data-link-id", "link-1")
        assert [lane.get("stroke") for lane in group.find_by_class("link-lane")] == [NEUTRAL_COLOR] * 2


class TestRestoration:
    def test_reset_restores_exactly(self):
        graph = Graph.from_json_dict({
            "nodes": [{"id": f"n{i}"} for i in range(4)],
            "links": [
                {"from": "n0", "to": "n1"},
                {"from": "n1", "to": "n2", "redundancy": "ha", "label": "uplink"},
                {"from": "n2:ge-0", "to": "n3:ge-1"},
            ],
        })
        program = _program(graph)
        before = to_svg(program)
        controller, scheduler = _controller(program)

        controller.apply(_metrics({"link-0": _up(10), "link-1": _up(80)}))
        scheduler.run_pending()
        controller.apply(_metrics({"link-1": {"status": "down"}, "link-2": _up(50)}))
        scheduler.run_until_idle()
        controller.set_interacting(True)
        assert to_svg(program) != before

        controller.reset()
        assert to_svg(program) == before
        assert controller.built_count == 0
        assert controller.pending_count == 0
        assert scheduler.pending == 0

    def test_reset_then_rebuild(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        controller.reset()

        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        assert controller.built_count == 1
        assert len(program.find_by_class("weathermap-keyframes")) == 1

    def test_reset_drops_queued_work(self):
        program = _program(_chain(3))
        controller, scheduler = _controller(program)
        before = to_svg(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        controller.reset()
        assert scheduler.run_until_idle() == 0
        assert to_svg(program) == before

    def test_destroy(self, caplog):
        program = _program(_chain(2))
        before = to_svg(program)
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        controller.destroy()
        assert to_svg(program) == before

        with caplog.at_level(logging.WARNING, logger="netdiagram"):
            controller.apply(_metrics({"link-0": _up(10)}))
        assert "destroyed" in caplog.text
        assert to_svg(program) == before


class TestInteraction:
    def test_pause_and_resume(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        flow = controller.layer_for("link-0").children[1]

        controller.set_interacting(True)
        controller.set_interacting(True)
        assert controller.interacting
        assert flow.get("style").endswith("animation-play-state: paused")

        controller.set_interacting(False)
        assert flow.get("style").endswith("animation-play-state: running")

    def test_groups_built_while_interacting_start_paused(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program)
        controller.set_interacting(True)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        assert "paused" in controller.layer_for("link-0").children[1].get("style")


class TestQuality:
    def test_reduced_motion_disables_flow(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program, reduced_motion=True)
        assert controller.tier == QualityTier.HIGH
        assert not controller.settings.animate
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        flow = controller.layer_for("link-0").children[1]
        assert flow.get("display") == "none"

    def test_low_tier_has_no_animation(self):
        program = _program(_chain(2))
        controller, scheduler = _controller(program, tier=QualityTier.LOW)
        controller.apply(_metrics({"link-0": _up(10)}))
        scheduler.run_until_idle()
        assert controller.layer_for("link-0").children[1].get("display") == "none"

    def test_detected_tier(self):
        program = _program(_chain(2))
        controller = WeathermapController(program, ManualScheduler(), OverlayOptions(),
                                          DeviceProfile(cpu_count=2, memory_gb=2))
        assert controller.tier == QualityTier.LOW


class TestScheduling:
    def test_batches_respect_tier(self):
        program = _program(_chain(7))
        controller, scheduler = _controller(program, tier=QualityTier.LOW)
        controller.apply(_metrics({f"link-{i}": _up(10) for i in range(6)}))
        scheduler.run_pending()
        assert controller.built_count == 4
        assert controller.pending_count == 2
        assert scheduler.pending == 1
        scheduler.run_pending()
        assert controller.built_count == 6
        assert scheduler.pending == 0

    def test_viewport_first(self):
        program = _program(_chain(6))
        controller, scheduler = _controller(program, tier=QualityTier.LOW)
        controller.set_viewport(Bounds(x=950, y=50, width=100, height=100))
        controller.apply(_metrics({f"link-{i}": _up(10) for i in range(5)}))
        scheduler.run_pending()
        assert controller.layer_for("link-4") is not None
        assert controller.layer_for("link-3") is None

    def test_viewport_change_reprioritizes_queue(self):
        program = _program(_chain(6))
        controller, scheduler = _controller(program, tier=QualityTier.LOW)
        controller.apply(_metrics({f"link-{i}": _up(10) for i in range(5)}))
        controller.set_viewport(Bounds(x=950, y=50, width=100, height=100))
        scheduler.run_pending()
        assert controller.layer_for("link-4") is not None
        assert controller.layer_for("link-3") is None

    def test_exhausted_slice_still_makes_progress(self):
        ticks = iter(range(0, 10_000, 100))
        program = _program(_chain(4))
        scheduler = ManualScheduler(budget_ms=1.0, clock=lambda: next(ticks) / 1000)
        controller = WeathermapController(program, scheduler, OverlayOptions(tier=QualityTier.HIGH))
        controller.apply(_metrics({f"link-{i}": _up(10) for i in range(3)}))
        scheduler.run_pending()
        assert controller.built_count == 1
        scheduler.run_until_idle()
        assert controller.built_count == 3
