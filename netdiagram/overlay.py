"""
Weathermap overlay - live link-utilization paint on a rendered diagram.

The controller attaches to a DrawingProgram through the markup contract
(link containers carrying `data-link-id`) and never touches anything else.
For each link group it lazily builds a `g.weathermap-layer` with two paths
offset to either side of the original line ("in" and "out"); each carries a
translucent base stroke colored by utilization and a dashed flow stroke
whose speed follows throughput.

Building is deferred: `apply()` only records metrics, repaints what is
already built and queues the rest. Queued groups are built in small,
time-budgeted batches on an idle scheduler, viewport groups first.

Every original attribute the controller changes is captured first;
`reset()` / `destroy()` put the diagram back exactly as it was.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from . import constants as C
from .config import OverlayOptions
from .drawing import CubicTo, DrawingProgram, Element, LineTo, MoveTo, PathElement, QuadTo
from .errors import GeometryError
from .geometry import offset_segments
from .logging import get_logger
from .models import Bounds, LinkMetrics, LinkStatus, MetricsData
from .quality import DeviceProfile, QualityTier, detect_tier, tier_settings
from .scheduler import BuildQueue, IdleDeadline, IdleScheduler, ManualScheduler

logger = get_logger(__name__)

# (upper bound in %, color); values above the last bound use the last color
UTILIZATION_SCALE: list[tuple[float, str]] = [
    (0, "#6b7280"),
    (1, "#22c55e"),
    (25, "#84cc16"),
    (50, "#eab308"),
    (75, "#f97316"),
    (90, "#ef4444"),
    (100, "#dc2626"),
]
NEUTRAL_COLOR = "#6b7280"
DOWN_COLOR = "#ef4444"

ORIGINAL_PATH_CLASSES = ("link", "link-lane", "link-double-outer", "link-double-inner")

KEYFRAMES_CSS = (
    "@keyframes weathermap-flow-out { from { stroke-dashoffset: 24; } to { stroke-dashoffset: 0; } }\n"
    "@keyframes weathermap-flow-in { from { stroke-dashoffset: 0; } to { stroke-dashoffset: 24; } }"
)


def utilization_color(utilization: Optional[float]) -> str:
    """Map a utilization percentage to its color bucket."""
    if utilization is None or math.isnan(utilization):
        return NEUTRAL_COLOR
    for upper, color in UTILIZATION_SCALE:
        if utilization <= upper:
            return color
    return UTILIZATION_SCALE[-1][1]


def flow_duration(bps: float) -> float:
    """Seconds per dash cycle: busier links flow faster, clamped to [0.3, 2]."""
    speed = min(1.0, math.log10(max(0.0, bps) + 1) / 9)
    return max(0.3, 2 - 1.5 * speed)


@dataclass(eq=False)
class _LinkGroup:
    """Overlay state for one link container."""
    link_id: str
    container: Element
    originals: list[PathElement]
    layer: Optional[Element] = None
    in_base: Optional[PathElement] = None
    in_flow: Optional[PathElement] = None
    out_base: Optional[PathElement] = None
    out_flow: Optional[PathElement] = None
    metrics: Optional[LinkMetrics] = None
    durations: tuple[float, float] = (0.0, 0.0)
    animated: bool = False
    _bounds: Optional[Bounds] = field(default=None, repr=False)

    @property
    def built(self) -> bool:
        return self.layer is not None

    @property
    def reference(self) -> PathElement:
        for path in self.originals:
            if path.has_class("link"):
                return path
        return self.originals[-1]

    def bounds(self) -> Bounds:
        if self._bounds is None:
            coords: list[tuple[float, float]] = []
            for seg in self.reference.segments:
                if isinstance(seg, (MoveTo, LineTo)):
                    coords.append((seg.x, seg.y))
                elif isinstance(seg, CubicTo):
                    coords += [(seg.c1x, seg.c1y), (seg.c2x, seg.c2y), (seg.x, seg.y)]
                elif isinstance(seg, QuadTo):
                    coords += [(seg.cx, seg.cy), (seg.x, seg.y)]
            self._bounds = Bounds.around(coords)
        return self._bounds


class WeathermapController:
    """
    Stateful overlay bound to one rendered diagram.

    Args:
        program: The rendered diagram
        scheduler: Idle scheduler for deferred builds (a ManualScheduler if None)
        options: Overlay options (explicit tier, reduced motion, queue size, slice)
        profile: Device profile used to detect the tier when none is given
    """

    def __init__(
        self,
        program: DrawingProgram,
        scheduler: Optional[IdleScheduler] = None,
        options: Optional[OverlayOptions] = None,
        profile: Optional[DeviceProfile] = None,
    ):
        self.program = program
        self.options = options or OverlayOptions()
        self.scheduler = scheduler if scheduler is not None else ManualScheduler(self.options.time_slice_ms)
        reduced_motion = self.options.reduced_motion or bool(profile and profile.reduced_motion)
        profile = profile or DeviceProfile.current(reduced_motion)
        self._tier = self.options.tier or detect_tier(profile)
        self.settings = tier_settings(self._tier, reduced_motion)

        self._queue = BuildQueue(self.options.queue_capacity)
        self._snapshots: dict[Element, dict[str, Any]] = {}
        self._viewport: Optional[Bounds] = None
        self._interacting = False
        self._tick_handle: Optional[int] = None
        self._keyframes: Optional[Element] = None
        self._destroyed = False

        self._groups: dict[str, _LinkGroup] = {}
        for container in program.link_groups():
            paths = [el for el in container.children
                     if isinstance(el, PathElement) and any(el.has_class(c) for c in ORIGINAL_PATH_CLASSES)]
            if paths:
                self._groups[container.get("data-link-id")] = _LinkGroup(container.get("data-link-id"), container, paths)
        logger.debug(f"Overlay attached to {len(self._groups)} link groups at {self._tier.value} quality")

    # --- Introspection ---

    @property
    def tier(self) -> QualityTier:
        return self._tier

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def built_count(self) -> int:
        return sum(1 for group in self._groups.values() if group.built)

    @property
    def interacting(self) -> bool:
        return self._interacting

    def layer_for(self, link_id: str) -> Optional[Element]:
        group = self._groups.get(link_id)
        return group.layer if group else None

    # --- Public operations ---

    def apply(self, metrics: MetricsData) -> None:
        """
        Deliver a metrics snapshot. Returns immediately.

        Built groups are repainted in place; unbuilt groups with metrics are
        queued for building and meanwhile get a flat recolor of their
        original paths, as do groups without metrics.
        """
        if self._destroyed:
            logger.warning("apply() called on a destroyed overlay controller; ignored")
            return

        unknown = [lid for lid in metrics.links if lid not in self._groups]
        if unknown:
            logger.debug(f"Ignoring metrics for {len(unknown)} links not in this diagram")

        for link_id, group in self._groups.items():
            link_metrics = metrics.links.get(link_id)
            group.metrics = link_metrics
            if group.built:
                self._paint(group)
                continue
            if link_metrics is None:
                self._flat(group, NEUTRAL_COLOR)
                continue
            self._flat(group, self._flat_color(link_metrics))
            self._queue.push(link_id, self._priority(group))

        self._schedule()

    def set_interacting(self, interacting: bool) -> None:
        """Pause (True) or resume (False) all flow animation."""
        if interacting == self._interacting:
            return
        self._interacting = interacting
        for group in self._groups.values():
            if group.built and group.animated:
                self._set_flow_style(group)

    def set_viewport(self, viewport: Optional[Bounds]) -> None:
        """Prioritise queued groups that intersect the visible area."""
        self._viewport = viewport
        self._queue.reprioritize(lambda link_id: self._priority(self._groups[link_id]))

    def reset(self) -> None:
        """Drop all queued work, remove every overlay element and restore original attributes."""
        if self._tick_handle is not None:
            self.scheduler.cancel(self._tick_handle)
            self._tick_handle = None
        self._queue.clear()

        for group in self._groups.values():
            if group.layer is not None:
                group.container.remove(group.layer)
            group.layer = group.in_base = group.in_flow = group.out_base = group.out_flow = None
            group.animated = False
            group.metrics = None
            group._bounds = None

        for element, attrs in self._snapshots.items():
            element.attrs.clear()
            element.attrs.update(attrs)
        self._snapshots.clear()

        if self._keyframes is not None:
            self.program.root.remove(self._keyframes)
            self._keyframes = None

    def destroy(self) -> None:
        """Reset and detach; the controller cannot be used afterwards."""
        self.reset()
        self._groups.clear()
        self._destroyed = True

    # --- Scheduling ---

    def _priority(self, group: _LinkGroup) -> int:
        if self._viewport is not None and group.bounds().intersects(self._viewport):
            return 0
        return 1

    def _schedule(self) -> None:
        if self._tick_handle is None and len(self._queue):
            self._tick_handle = self.scheduler.request(self._tick)

    def _tick(self, deadline: IdleDeadline) -> None:
        self._tick_handle = None
        if self._destroyed:
            return
        remaining = self._queue.drain(self._build, deadline, self.settings.batch_size)
        logger.debug(f"Overlay build batch done, {len(remaining)} groups pending")
        self._schedule()

    # --- Building and painting ---

    def _capture(self, element: Element) -> None:
        if element not in self._snapshots:
            self._snapshots[element] = dict(element.attrs)

    def _flat_color(self, metrics: LinkMetrics) -> str:
        if metrics.status == LinkStatus.DOWN:
            return DOWN_COLOR
        in_util, out_util, _, _ = metrics.directional()
        return utilization_color(max(in_util, out_util))

    def _flat(self, group: _LinkGroup, color: str) -> None:
        """Cheap fallback: recolor the original paths in place."""
        for path in group.originals:
            if path.has_class("link-double-inner"):
                continue
            self._capture(path)
            path.set("stroke", color)

    def _build(self, link_id: str) -> None:
        group = self._groups.get(link_id)
        if group is None or group.built:
            return

        width = C.MIN_OVERLAY_STROKE
        for path in group.originals:
            try:
                width = max(width, float(path.get("stroke-width", 0)))
            except (TypeError, ValueError):
                continue
        try:
            in_segments = offset_segments(group.reference.segments, -width / 2,
                                          self.settings.sample_interval, self.settings.min_samples)
            out_segments = offset_segments(group.reference.segments, width / 2,
                                           self.settings.sample_interval, self.settings.min_samples)
        except GeometryError as exc:
            logger.warning(f"Skipping overlay for link '{link_id}' this cycle: {exc}")
            return

        for path in group.originals:
            self._capture(path)
            path.set("stroke-opacity", 0)

        layer = Element("g", {"class": "weathermap-layer", "data-overlay-for": link_id})

        def stroke(direction: str, kind: str, segments) -> PathElement:
            return layer.append(PathElement(attrs={
                "class": f"weathermap-{kind} weathermap-{direction}",
                "fill": "none",
                "stroke-width": width,
                "stroke-linecap": "butt",
                "pointer-events": "none",
            }, segments=list(segments)))

        group.in_base = stroke("in", "base", in_segments)
        group.in_flow = stroke("in", "flow", in_segments)
        group.out_base = stroke("out", "base", out_segments)
        group.out_flow = stroke("out", "flow", out_segments)
        group.container.insert_after(group.originals[-1], layer)
        group.layer = layer

        if self._keyframes is None:
            self._keyframes = self.program.root.append(
                Element("style", {"class": "weathermap-keyframes"}, text=KEYFRAMES_CSS))
        self._paint(group)

    def _paint(self, group: _LinkGroup) -> None:
        metrics = group.metrics
        bases = (group.in_base, group.out_base)
        flows = (group.in_flow, group.out_flow)

        if metrics is not None and metrics.status == LinkStatus.DOWN:
            for base in bases:
                base.set("stroke", DOWN_COLOR)
                base.set("stroke-opacity", 1)
                base.set("stroke-dasharray", C.DOWN_DASHARRAY)
            self._hide_flows(group)
            return

        if metrics is None:
            for base in bases:
                base.set("stroke", NEUTRAL_COLOR)
                base.set("stroke-opacity", C.BASE_STROKE_OPACITY)
                base.attrs.pop("stroke-dasharray", None)
            self._hide_flows(group)
            return

        in_util, out_util, in_bps, out_bps = metrics.directional()
        colors = (utilization_color(in_util), utilization_color(out_util))
        for base, color in zip(bases, colors):
            base.set("stroke", color)
            base.set("stroke-opacity", C.BASE_STROKE_OPACITY)
            base.attrs.pop("stroke-dasharray", None)

        if not self.settings.animate:
            self._hide_flows(group)
            return

        for flow, color in zip(flows, colors):
            flow.set("stroke", color)
            flow.set("stroke-opacity", 0.9)
            flow.set("stroke-dasharray", C.FLOW_DASHARRAY)
            flow.attrs.pop("display", None)
        group.durations = (flow_duration(in_bps), flow_duration(out_bps))
        group.animated = True
        self._set_flow_style(group)

    def _hide_flows(self, group: _LinkGroup) -> None:
        for flow in (group.in_flow, group.out_flow):
            flow.set("display", "none")
            flow.attrs.pop("style", None)
        group.animated = False

    def _set_flow_style(self, group: _LinkGroup) -> None:
        state = "paused" if self._interacting else "running"
        in_duration, out_duration = group.durations
        group.in_flow.set("style", f"animation: weathermap-flow-out {in_duration:.2f}s linear infinite; "
                                   f"animation-play-state: {state}")
        group.out_flow.set("style", f"animation: weathermap-flow-in {out_duration:.2f}s linear infinite; "
                                    f"animation-play-state: {state}")
