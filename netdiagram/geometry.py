"""
Geometry synthesis - node shapes, link paths and path measurement.

- Node shape geometry is a pure function of (shape, center, size)
- Link paths follow the waypoint-count convention: 2 points draw a straight
  segment, 4 points one cubic curve, any other count a polyline
- `PathSampler` flattens segments so paths can be measured, sampled and
  offset (used by the weathermap overlay)
"""

import math
from typing import Optional

from . import constants as C
from .drawing import (
    ClosePath, CubicTo, Element, LineTo, MoveTo, QuadTo, Segment, fmt,
)
from .errors import GeometryError
from .models import NodeShape

Point = tuple[float, float]

CURVE_STEPS = 24  # Flattening resolution per curve segment


# --- Node shapes ---

def _points_attr(points: list[Point]) -> str:
    return " ".join(f"{fmt(float(x))},{fmt(float(y))}" for x, y in points)


def node_shape(shape: NodeShape, cx: float, cy: float, w: float, h: float,
               paint: Optional[dict] = None) -> list[Element]:
    """
    Build the primitives for a node outline.

    Args:
        shape: Node shape tag
        cx: Center x
        cy: Center y
        w: Width
        h: Height
        paint: fill/stroke/stroke-width/stroke-dasharray attributes

    Returns:
        Elements in draw order (the cylinder's front ellipse comes last)
    """
    paint = dict(paint or {})
    half_w = w / 2
    half_h = h / 2

    if shape == NodeShape.ROUNDED:
        radius = C.ROUNDED_CORNER_RADIUS
        return [Element("rect", {"x": cx - half_w, "y": cy - half_h, "width": w, "height": h,
                                 "rx": radius, "ry": radius, **paint})]

    if shape == NodeShape.CIRCLE:
        return [Element("circle", {"cx": cx, "cy": cy, "r": min(half_w, half_h), **paint})]

    if shape == NodeShape.DIAMOND:
        points = [(cx, cy - half_h), (cx + half_w, cy), (cx, cy + half_h), (cx - half_w, cy)]
        return [Element("polygon", {"points": _points_attr(points), **paint})]

    if shape == NodeShape.HEXAGON:
        hx = half_w * 0.866
        points = [
            (cx - half_w, cy), (cx - hx, cy - half_h), (cx + hx, cy - half_h),
            (cx + half_w, cy), (cx + hx, cy + half_h), (cx - hx, cy + half_h),
        ]
        return [Element("polygon", {"points": _points_attr(points), **paint})]

    if shape == NodeShape.CYLINDER:
        ellipse_h = h * 0.15
        top = cy - half_h + ellipse_h
        bottom = cy + half_h - ellipse_h
        stroke = {k: v for k, v in paint.items() if k in ("stroke", "stroke-width")}
        body = {k: v for k, v in paint.items() if k == "fill"}
        return [
            Element("ellipse", {"cx": cx, "cy": bottom, "rx": half_w, "ry": ellipse_h, **paint}),
            Element("rect", {"x": cx - half_w, "y": top, "width": w, "height": h - 2 * ellipse_h,
                             **body, "stroke": "none"}),
            Element("line", {"x1": cx - half_w, "y1": top, "x2": cx - half_w, "y2": bottom, **stroke}),
            Element("line", {"x1": cx + half_w, "y1": top, "x2": cx + half_w, "y2": bottom, **stroke}),
            Element("ellipse", {"cx": cx, "cy": top, "rx": half_w, "ry": ellipse_h, **paint}),
        ]

    if shape == NodeShape.STADIUM:
        return [Element("rect", {"x": cx - half_w, "y": cy - half_h, "width": w, "height": h,
                                 "rx": half_h, "ry": half_h, **paint})]

    if shape == NodeShape.TRAPEZOID:
        indent = w * 0.15
        points = [
            (cx - half_w + indent, cy - half_h), (cx + half_w - indent, cy - half_h),
            (cx + half_w, cy + half_h), (cx - half_w, cy + half_h),
        ]
        return [Element("polygon", {"points": _points_attr(points), **paint})]

    return [Element("rect", {"x": cx - half_w, "y": cy - half_h, "width": w, "height": h, **paint})]


# --- Link paths ---

def link_segments(points: list[Point]) -> list[Segment]:
    """
    Turn layout waypoints into path segments.

    Raises:
        GeometryError: fewer than two waypoints
    """
    if len(points) < 2:
        raise GeometryError(f"Link path needs at least 2 points, got {len(points)}")
    (x0, y0) = points[0]
    if len(points) == 4:
        (x1, y1), (x2, y2), (x3, y3) = points[1:]
        return [MoveTo(x0, y0), CubicTo(x1, y1, x2, y2, x3, y3)]
    return [MoveTo(x0, y0)] + [LineTo(x, y) for x, y in points[1:]]


def cubic_point(p0: Point, p1: Point, p2: Point, p3: Point, t: float) -> Point:
    u = 1 - t
    return (
        u ** 3 * p0[0] + 3 * u ** 2 * t * p1[0] + 3 * u * t ** 2 * p2[0] + t ** 3 * p3[0],
        u ** 3 * p0[1] + 3 * u ** 2 * t * p1[1] + 3 * u * t ** 2 * p2[1] + t ** 3 * p3[1],
    )


def quad_point(p0: Point, p1: Point, p2: Point, t: float) -> Point:
    u = 1 - t
    return (
        u * u * p0[0] + 2 * u * t * p1[0] + t * t * p2[0],
        u * u * p0[1] + 2 * u * t * p1[1] + t * t * p2[1],
    )


def point_on_waypoints(points: list[Point], t: float) -> Point:
    """Point at parameter t along a waypoint route (cubic formula for 4 points)."""
    if len(points) == 4:
        return cubic_point(points[0], points[1], points[2], points[3], t)
    return PathSampler(link_segments(points)).point_at(t)


def direction_on_waypoints(points: list[Point], t: float) -> Point:
    """Unit tangent at parameter t along a waypoint route."""
    dt = 0.01
    a = point_on_waypoints(points, max(0.0, t - dt))
    b = point_on_waypoints(points, min(1.0, t + dt))
    dx, dy = b[0] - a[0], b[1] - a[1]
    length = math.hypot(dx, dy)
    if length == 0:
        return (1.0, 0.0)
    return (dx / length, dy / length)


class PathSampler:
    """
    Arc-length parameterisation of a segment list.

    Curves are flattened into CURVE_STEPS chords; lookups interpolate along
    the flattened polyline.
    """

    def __init__(self, segments: list[Segment]):
        self.points: list[Point] = []
        current: Optional[Point] = None
        start: Optional[Point] = None
        for seg in segments:
            if isinstance(seg, MoveTo):
                current = start = (seg.x, seg.y)
                self.points.append(current)
            elif current is None:
                raise GeometryError("Path does not start with a move")
            elif isinstance(seg, LineTo):
                current = (seg.x, seg.y)
                self.points.append(current)
            elif isinstance(seg, CubicTo):
                c1, c2, end = (seg.c1x, seg.c1y), (seg.c2x, seg.c2y), (seg.x, seg.y)
                for i in range(1, CURVE_STEPS + 1):
                    self.points.append(cubic_point(current, c1, c2, end, i / CURVE_STEPS))
                current = end
            elif isinstance(seg, QuadTo):
                control, end = (seg.cx, seg.cy), (seg.x, seg.y)
                for i in range(1, CURVE_STEPS + 1):
                    self.points.append(quad_point(current, control, end, i / CURVE_STEPS))
                current = end
            elif isinstance(seg, ClosePath) and start is not None:
                current = start
                self.points.append(start)
        if not self.points:
            raise GeometryError("Path has no segments")

        self.cumulative = [0.0]
        for (ax, ay), (bx, by) in zip(self.points, self.points[1:]):
            self.cumulative.append(self.cumulative[-1] + math.hypot(bx - ax, by - ay))

    @property
    def length(self) -> float:
        return self.cumulative[-1]

    @property
    def start(self) -> Point:
        return self.points[0]

    @property
    def end(self) -> Point:
        return self.points[-1]

    def point_at_length(self, s: float) -> Point:
        if s <= 0 or self.length == 0:
            return self.points[0]
        if s >= self.length:
            return self.points[-1]
        lo, hi = 0, len(self.cumulative) - 1
        while hi - lo > 1:
            mid = (lo + hi) // 2
            if self.cumulative[mid] <= s:
                lo = mid
            else:
                hi = mid
        span = self.cumulative[hi] - self.cumulative[lo]
        f = (s - self.cumulative[lo]) / span if span else 0.0
        (ax, ay), (bx, by) = self.points[lo], self.points[hi]
        return (ax + (bx - ax) * f, ay + (by - ay) * f)

    def point_at(self, t: float) -> Point:
        """Point at fraction t of the total arc length."""
        return self.point_at_length(self.length * t)

    def angle_at_length(self, s: float, probe: float) -> float:
        """Tangent angle estimated from points `probe` before and after s."""
        a = self.point_at_length(max(0.0, s - probe))
        b = self.point_at_length(min(self.length, s + probe))
        return math.atan2(b[1] - a[1], b[0] - a[0])

    def chord_deviation(self) -> float:
        """Distance from the arc-length midpoint to the start-end chord."""
        (x0, y0), (x1, y1) = self.start, self.end
        mx, my = self.point_at(0.5)
        chord = math.hypot(x1 - x0, y1 - y0)
        if chord == 0:
            return math.hypot(mx - x0, my - y0)
        return abs((x1 - x0) * (y0 - my) - (x0 - mx) * (y1 - y0)) / chord


def offset_segments(segments: list[Segment], offset: float, sample_interval: float,
                    min_samples: int) -> list[Segment]:
    """
    Displace a path sideways by `offset` along its local normal.

    Near-straight paths take an analytic shortcut (the chord shifted along
    its perpendicular); others are sampled every `sample_interval` px (at
    least `min_samples` points) with tangents from a small probe.

    Raises:
        GeometryError: the path has zero or non-finite length
    """
    sampler = PathSampler(segments)
    length = sampler.length
    if not math.isfinite(length):
        raise GeometryError("Cannot offset a path with non-finite coordinates")
    if length <= 0:
        raise GeometryError("Cannot offset a zero-length path")

    if sampler.chord_deviation() < C.STRAIGHT_TOLERANCE:
        (x0, y0), (x1, y1) = sampler.start, sampler.end
        angle = math.atan2(y1 - y0, x1 - x0)
        dx, dy = -math.sin(angle) * offset, math.cos(angle) * offset
        return [MoveTo(x0 + dx, y0 + dy), LineTo(x1 + dx, y1 + dy)]

    count = max(min_samples, math.ceil(length / sample_interval))
    probe = min(C.MAX_TANGENT_PROBE, length * C.TANGENT_PROBE_RATIO)
    result: list[Segment] = []
    for i in range(count + 1):
        s = length * i / count
        x, y = sampler.point_at_length(s)
        angle = sampler.angle_at_length(s, probe)
        px, py = x - math.sin(angle) * offset, y + math.cos(angle) * offset
        result.append(MoveTo(px, py) if i == 0 else LineTo(px, py))
    return result
