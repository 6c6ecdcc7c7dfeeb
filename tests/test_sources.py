import pytest

from netdiagram.errors import CapabilityError
from netdiagram.models import Graph, LinkBandwidth, LinkStatus, NodeStatus
from netdiagram.sources import (
    DEFAULT_CAPACITY,
    DataSource,
    DataSourceCapability,
    MockMetricsSource,
    bandwidth_capacity,
)


def test_bandwidth_capacity():
    assert bandwidth_capacity(None) == DEFAULT_CAPACITY
    assert bandwidth_capacity(LinkBandwidth.G10) == 10_000_000_000
    assert bandwidth_capacity(LinkBandwidth.G100) == 100_000_000_000


def test_capabilities():
    source = MockMetricsSource(seed=1)
    assert source.has_capability(DataSourceCapability.METRICS)
    assert not source.has_capability(DataSourceCapability.TOPOLOGY)
    source.require_capability(DataSourceCapability.METRICS)
    with pytest.raises(CapabilityError, match="Data source 'mock' does not support topology"):
        source.require_capability(DataSourceCapability.TOPOLOGY)


def test_base_source_has_no_capabilities():
    with pytest.raises(CapabilityError):
        DataSource().require_capability(DataSourceCapability.ALERTS)


class TestMockMetrics:
    def test_covers_every_node_and_link(self, campus_graph):
        data = MockMetricsSource(seed=7, clock=lambda: 1000.0).generate(campus_graph)
        assert set(data.nodes) == {n.id for n in campus_graph.nodes}
        assert set(data.links) == set(campus_graph.link_ids())
        assert data.timestamp == 1000.0

    def test_values_in_range(self, campus_graph):
        source = MockMetricsSource(seed=3, clock=lambda: 1000.0)
        for _ in range(20):
            data = source.generate(campus_graph)
            for metrics in data.links.values():
                assert 0 <= metrics.in_utilization <= 95
                assert 0 <= metrics.out_utilization <= 95
                assert metrics.utilization == max(metrics.in_utilization, metrics.out_utilization)
            for metrics in data.nodes.values():
                expected = 1000.0 if metrics.status == NodeStatus.UP else 940.0
                assert metrics.last_seen == expected

    def test_seed_is_deterministic(self, campus_graph):
        a = MockMetricsSource(seed=42, clock=lambda: 0.0).generate(campus_graph)
        b = MockMetricsSource(seed=42, clock=lambda: 0.0).generate(campus_graph)
        assert a == b

    def test_links_down_when_an_endpoint_is_down(self, campus_graph):
        source = MockMetricsSource(seed=5, clock=lambda: 0.0)
        seen_down = False
        for _ in range(50):
            data = source.generate(campus_graph)
            for index, link in enumerate(campus_graph.links):
                metrics = data.links[link.effective_id(index)]
                ends_up = (data.nodes[link.source_id].status == NodeStatus.UP
                           and data.nodes[link.target_id].status == NodeStatus.UP)
                if not ends_up:
                    seen_down = True
                    assert metrics.status == LinkStatus.DOWN
                    assert metrics.in_bps == 0 and metrics.out_bps == 0
                else:
                    assert metrics.status == LinkStatus.UP
        assert seen_down

    def test_bps_scales_with_bandwidth(self):
        graph = Graph.from_json_dict({
            "nodes": [{"id": "a"}, {"id": "b"}],
            "links": [{"id": "fat", "from": "a", "to": "b", "bandwidth": "100G"}],
        })
        source = MockMetricsSource(seed=11, clock=lambda: 0.0)
        for _ in range(20):
            metrics = source.generate(graph).links["fat"]
            if metrics.status == LinkStatus.UP:
                assert metrics.in_bps == pytest.approx(metrics.in_utilization / 100 * 100e9, rel=0.01, abs=1e8)

    def test_walk_changes_smoothly(self):
        source = MockMetricsSource(seed=9)
        previous = source._walk("k", 0, 95, 10)
        for _ in range(100):
            current = source._walk("k", 0, 95, 10)
            assert abs(current - previous) <= 10 + 95 * 0.05
            assert 0 <= current <= 95
            previous = current
