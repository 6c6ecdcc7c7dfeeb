"""
Data sources feeding a diagram.

A source declares a fixed set of capabilities up front; callers check it
with `has_capability()` or `require_capability()` rather than probing for
methods. `MockMetricsSource` is the only bundled implementation and drives
the CLI demo and the tests.
"""

import random
import time
from enum import Enum
from typing import ClassVar, Optional

from .errors import CapabilityError
from .logging import get_logger
from .models import Graph, LinkBandwidth, LinkMetrics, LinkStatus, MetricsData, NodeMetrics, NodeStatus

logger = get_logger(__name__)


class DataSourceCapability(str, Enum):
    TOPOLOGY = "topology"
    METRICS = "metrics"
    HOSTS = "hosts"
    AUTO_MAPPING = "auto-mapping"
    ALERTS = "alerts"


# Capacity in bits per second
BANDWIDTH_CAPACITY: dict[LinkBandwidth, int] = {
    LinkBandwidth.G1: 1_000_000_000,
    LinkBandwidth.G10: 10_000_000_000,
    LinkBandwidth.G25: 25_000_000_000,
    LinkBandwidth.G40: 40_000_000_000,
    LinkBandwidth.G100: 100_000_000_000,
}
DEFAULT_CAPACITY = 1_000_000_000


def bandwidth_capacity(bandwidth: Optional[LinkBandwidth]) -> int:
    """Capacity of a link in bps (1 Gbps when unspecified)."""
    if bandwidth is None:
        return DEFAULT_CAPACITY
    return BANDWIDTH_CAPACITY.get(bandwidth, DEFAULT_CAPACITY)


class DataSource:
    """Base class for sources. Subclasses set `capabilities`."""

    name: ClassVar[str] = "source"
    capabilities: ClassVar[frozenset[DataSourceCapability]] = frozenset()

    def has_capability(self, capability: DataSourceCapability) -> bool:
        return capability in self.capabilities

    def require_capability(self, capability: DataSourceCapability) -> None:
        """
        Raises:
            CapabilityError: The source does not declare the capability
        """
        if not self.has_capability(capability):
            raise CapabilityError(f"Data source '{self.name}' does not support {capability.value}")


class MockMetricsSource(DataSource):
    """
    Simulated metrics for development and demos.

    Values follow a bounded random walk with a slight pull toward the middle
    of their range, so consecutive snapshots change smoothly.

    Args:
        seed: Seed for the generator (None for nondeterministic output)
        clock: Wall clock in seconds, used for timestamps
    """

    name = "mock"
    capabilities = frozenset({DataSourceCapability.METRICS})

    def __init__(self, seed: Optional[int] = None, clock=time.time):
        self._rng = random.Random(seed)
        self._clock = clock
        self._last: dict[str, float] = {}

    def _walk(self, key: str, low: float, high: float, max_delta: float) -> float:
        current = self._last.get(key)
        if current is None:
            current = low + self._rng.random() * (high - low)
        middle = (low + high) / 2
        delta = (self._rng.random() - 0.5) * 2 * max_delta
        drift = (middle - current) * 0.05
        current = max(low, min(high, current + delta + drift))
        self._last[key] = current
        return current

    def generate(self, graph: Graph) -> MetricsData:
        """
        Produce one metrics snapshot for every node and link of a graph.

        Args:
            graph: The graph to simulate

        Returns:
            Metrics keyed by node id and effective link id
        """
        now = self._clock()
        nodes: dict[str, NodeMetrics] = {}
        for node in graph.nodes:
            status = NodeStatus.UP if self._rng.random() > 0.05 else NodeStatus.DOWN
            nodes[node.id] = NodeMetrics(status=status, last_seen=now if status == NodeStatus.UP else now - 60)

        links: dict[str, LinkMetrics] = {}
        for index, link in enumerate(graph.links):
            link_id = link.effective_id(index)
            source = nodes.get(link.source_id)
            target = nodes.get(link.target_id)
            up = (source is not None and source.status == NodeStatus.UP
                  and target is not None and target.status == NodeStatus.UP)
            if not up:
                links[link_id] = LinkMetrics(status=LinkStatus.DOWN, utilization=0, in_utilization=0,
                                             out_utilization=0, in_bps=0, out_bps=0)
                continue
            in_util = self._walk(f"link:{link_id}:in", 0, 95, 10)
            out_util = self._walk(f"link:{link_id}:out", 0, 95, 10)
            capacity = bandwidth_capacity(link.bandwidth)
            links[link_id] = LinkMetrics(
                status=LinkStatus.UP,
                utilization=round(max(in_util, out_util), 1),
                in_utilization=round(in_util, 1),
                out_utilization=round(out_util, 1),
                in_bps=round(in_util / 100 * capacity),
                out_bps=round(out_util / 100 * capacity),
            )

        down = sum(1 for m in links.values() if m.status == LinkStatus.DOWN)
        logger.debug(f"Generated mock metrics: {len(nodes)} nodes, {len(links)} links ({down} down)")
        return MetricsData(nodes=nodes, links=links, timestamp=now)
