"""
Geometry renderer - turn a sheet (graph + layout) into a DrawingProgram.

Draw order: groupings (outermost first), links, nodes. Output follows the
markup contract the overlay relies on:
- `<g class="link-group" data-link-id=...>` per link, holding `path.link`
  (double links add `path.link-double-outer` and `path.link-double-inner`
  before it; multi-lane bandwidth links add one `path.link-lane` per lane
  and keep `path.link` as a transparent outline of the bundle)
- `<g class="node" data-node-id=...>` per node
- `<g class="grouping" data-grouping-id=... data-file=...>` per grouping
- `<g class="legend">` last, when the graph settings enable one

Rendering is deterministic: everything is emitted in declaration order and
numbers are formatted at serialization time.
"""

import re
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from . import constants as C
from .config import RenderOptions
from .drawing import SVG_NS, DrawingProgram, Element, PathElement, fmt
from .errors import GeometryError
from .geometry import direction_on_waypoints, link_segments, node_shape, offset_segments, point_on_waypoints
from .groupings import GroupingIndex
from .icons import IconRegistry, resolve_icon
from .layout import empty_grouping_box
from .logging import get_logger
from .models import ArrowType, Bounds, LegendPosition, LinkBandwidth, LinkType, Theme
from .partition import is_export_node

if TYPE_CHECKING:
    from .models import Graph, Grouping, LayoutResult, Link, LinkEndpoint, Node
    from .partition import Sheet

logger = get_logger(__name__)


@dataclass(frozen=True)
class ThemeColors:
    background: str
    node_fill: str
    node_stroke: str
    link_stroke: str
    label: str
    label_secondary: str
    grouping_fill: str
    grouping_stroke: str
    grouping_label: str
    endpoint_label_bg: str


LIGHT_THEME = ThemeColors(
    background="#ffffff",
    node_fill="#e2e8f0",
    node_stroke="#64748b",
    link_stroke="#94a3b8",
    label="#1e293b",
    label_secondary="#64748b",
    grouping_fill="#f8fafc",
    grouping_stroke="#cbd5e1",
    grouping_label="#374151",
    endpoint_label_bg="#ffffff",
)

DARK_THEME = ThemeColors(
    background="#1e293b",
    node_fill="#334155",
    node_stroke="#64748b",
    link_stroke="#64748b",
    label="#f1f5f9",
    label_secondary="#94a3b8",
    grouping_fill="#0f172a",
    grouping_stroke="#475569",
    grouping_label="#e2e8f0",
    endpoint_label_bg="#1e293b",
)

THEMES = {Theme.LIGHT: LIGHT_THEME, Theme.DARK: DARK_THEME}

LINK_STROKE_WIDTHS = {LinkType.THICK: 3.0, LinkType.DOUBLE: 2.0}
DEFAULT_LINK_STROKE_WIDTH = 1.5
LINK_DASHARRAYS = {LinkType.DASHED: "5 3"}

# Parallel lanes drawn per nominal bandwidth
BANDWIDTH_LANES = {
    LinkBandwidth.G1: 1,
    LinkBandwidth.G10: 2,
    LinkBandwidth.G25: 3,
    LinkBandwidth.G40: 4,
    LinkBandwidth.G100: 5,
}

_MARKUP = re.compile(r"</?b>|</?strong>|<br\s*/?>", re.IGNORECASE)
_BOLD = re.compile(r"<b>|<strong>", re.IGNORECASE)


def clean_label(line: str) -> tuple[str, bool]:
    """Strip inline markup from a label line; returns (plain text, is bold)."""
    return _MARKUP.sub("", line), bool(_BOLD.search(line))


def endpoint_label_lines(endpoint: "LinkEndpoint") -> list[str]:
    lines = []
    if endpoint.port:
        lines.append(endpoint.port)
    if endpoint.ip:
        lines.append(endpoint.ip)
    for vlan in endpoint.vlan:
        lines.append(f"VLAN {vlan}")
    return lines


def _marker_suffix(color: str) -> str:
    return re.sub(r"[^0-9A-Za-z]", "", color) or "default"


def lane_offsets(count: int, spacing: float = C.BANDWIDTH_LANE_SPACING) -> list[float]:
    """Sideways offsets of `count` parallel lanes centered on the route."""
    start = -(count - 1) * spacing / 2
    return [start + i * spacing for i in range(count)]


class Renderer:
    """
    Renders sheets into drawing programs.

    Args:
        options: Render options (theme override, font family)
        icons: Vendor icon registry; device-type glyphs are always available
    """

    def __init__(self, options: Optional[RenderOptions] = None, icons: Optional[IconRegistry] = None):
        self.options = options or RenderOptions()
        self.icons = icons

    def render(self, graph: "Graph", layout: "LayoutResult") -> DrawingProgram:
        """
        Render one graph with its layout.

        Args:
            graph: Sheet graph
            layout: Layout result for that graph

        Returns:
            The drawing program
        """
        theme = THEMES[self.options.theme or graph.settings.theme]
        index = GroupingIndex.from_graph(graph)
        boxes = self._grouping_boxes(index, layout)
        bounds = _grow(layout.bounds, [box for gid, box in boxes.items() if gid not in layout.groupings])
        legend = self._legend(graph, bounds, theme)
        if legend is not None:
            bounds = Bounds(x=bounds.x, y=bounds.y, width=bounds.width + C.LEGEND_VIEW_PADDING,
                            height=bounds.height + C.LEGEND_VIEW_PADDING)
        root = Element("svg", {
            "xmlns": SVG_NS,
            "viewBox": f"{_num(bounds.x)} {_num(bounds.y)} {_num(bounds.width)} {_num(bounds.height)}",
            "width": bounds.width,
            "height": bounds.height,
            "style": f"background: {theme.background}",
        })
        defs = root.append(Element("defs"))
        root.append(Element("style", text=self._stylesheet(theme)))

        markers: dict[str, str] = {}
        groupings_layer = root.append(Element("g", {"class": "groupings"}))
        links_layer = root.append(Element("g", {"class": "links"}))
        nodes_layer = root.append(Element("g", {"class": "nodes"}))

        order = {gid: i for i, gid in enumerate(index.ids())}
        for gid in sorted(index.ids(), key=lambda g: (index.depth(g), order[g])):
            groupings_layer.append(self._grouping(index.get(gid), boxes[gid], theme))

        for i, link in enumerate(graph.links):
            link_id = link.effective_id(i)
            group = self._link(link, link_id, layout, theme, markers)
            if group is not None:
                links_layer.append(group)

        for node in graph.nodes:
            entry = layout.nodes.get(node.id)
            if entry is None:
                logger.warning(f"No layout for node '{node.id}'; not drawn")
                continue
            nodes_layer.append(self._node(node, entry.position.x, entry.position.y,
                                          entry.size.width or C.DEFAULT_NODE_WIDTH,
                                          entry.size.height or C.DEFAULT_NODE_HEIGHT, theme))

        for suffix, color in markers.items():
            defs.append(self._marker(f"arrow-end-{suffix}", color, "auto"))
            defs.append(self._marker(f"arrow-start-{suffix}", color, "auto-start-reverse"))

        if legend is not None:
            root.append(legend)
        return DrawingProgram(root=root, width=bounds.width, height=bounds.height)

    # --- Pieces ---

    def _stylesheet(self, theme: ThemeColors) -> str:
        font = self.options.font_family
        return (
            f".node-label {{ font-family: {font}; font-size: 12px; fill: {theme.label}; }}\n"
            ".node-label-bold { font-weight: bold; }\n"
            f".node-icon {{ color: {theme.label_secondary}; }}\n"
            f".grouping-label {{ font-family: {font}; font-size: 14px; font-weight: 600; fill: {theme.grouping_label}; }}\n"
            f".link-label {{ font-family: {font}; font-size: 11px; fill: {theme.label_secondary}; }}\n"
            f".endpoint-label {{ font-family: {font}; font-size: 9px; fill: {theme.label}; }}\n"
            f".legend-title {{ font-family: {font}; font-size: 11px; font-weight: 600; fill: {theme.grouping_label}; }}\n"
            f".legend-label {{ font-family: {font}; font-size: 10px; fill: {theme.label}; }}"
        )

    def _marker(self, marker_id: str, color: str, orient: str) -> Element:
        marker = Element("marker", {
            "id": marker_id, "markerWidth": 10, "markerHeight": 7,
            "refX": 9, "refY": 3.5, "orient": orient,
        })
        marker.append(Element("polygon", {"points": "0 0, 10 3.5, 0 7", "fill": color}))
        return marker

    def _grouping_boxes(self, index: GroupingIndex, layout: "LayoutResult") -> dict[str, Bounds]:
        boxes: dict[str, Bounds] = {}
        slot = 0
        for gid in index.ids():
            entry = layout.groupings.get(gid)
            if entry is not None:
                boxes[gid] = entry.bounds
                continue
            logger.warning(f"No layout for grouping '{gid}'; drawing a default box")
            boxes[gid] = empty_grouping_box(layout.bounds, slot)
            slot += 1
        return boxes

    def _legend(self, graph: "Graph", bounds: Bounds, theme: ThemeColors) -> Optional[Element]:
        """Bandwidth legend in a corner of `bounds`, or None when off or nothing to list."""
        settings = graph.settings.legend
        if settings is None or not settings.enabled or not settings.show_bandwidth:
            return None
        used = {link.bandwidth for link in graph.links if link.bandwidth is not None}
        items = [bandwidth for bandwidth in LinkBandwidth if bandwidth in used]
        if not items:
            return None

        width = C.LEGEND_ICON_WIDTH + C.LEGEND_LABEL_WIDTH + 2 * C.LEGEND_PADDING
        height = len(items) * C.LEGEND_LINE_HEIGHT + 2 * C.LEGEND_PADDING + C.LEGEND_TITLE_HEIGHT
        left = settings.position in (LegendPosition.TOP_LEFT, LegendPosition.BOTTOM_LEFT)
        top = settings.position in (LegendPosition.TOP_LEFT, LegendPosition.TOP_RIGHT)
        x = bounds.x + C.LEGEND_MARGIN if left else bounds.right - width - C.LEGEND_MARGIN
        y = bounds.y + C.LEGEND_MARGIN if top else bounds.bottom - height - C.LEGEND_MARGIN

        legend = Element("g", {"class": "legend", "transform": f"translate({_num(x)}, {_num(y)})"})
        legend.append(Element("rect", {
            "x": 0, "y": 0, "width": width, "height": height, "rx": 4,
            "fill": theme.background, "stroke": theme.grouping_stroke, "stroke-width": 1, "opacity": 0.95,
        }))
        legend.append(Element("text", {
            "x": C.LEGEND_PADDING, "y": C.LEGEND_PADDING + 12, "class": "legend-title",
        }, text="Legend"))
        for i, bandwidth in enumerate(items):
            row = C.LEGEND_PADDING + C.LEGEND_ITEMS_TOP + i * C.LEGEND_LINE_HEIGHT
            item = legend.append(Element("g", {
                "class": "legend-item", "data-bandwidth": bandwidth.value,
                "transform": f"translate({C.LEGEND_PADDING}, {row})",
            }))
            for offset in lane_offsets(BANDWIDTH_LANES[bandwidth]):
                item.append(Element("line", {
                    "x1": 0, "y1": offset, "x2": C.LEGEND_ICON_LENGTH, "y2": offset,
                    "stroke": theme.link_stroke, "stroke-width": C.LEGEND_ICON_STROKE,
                }))
            item.append(Element("text", {
                "x": C.LEGEND_ICON_WIDTH + 4, "y": 4, "class": "legend-label",
            }, text=bandwidth.value))
        return legend

    def _grouping(self, grouping: "Grouping", bounds, theme: ThemeColors) -> Element:
        style = grouping.style
        group = Element("g", {"class": "grouping", "data-grouping-id": grouping.id, "data-file": grouping.file})
        group.append(Element("rect", {
            "x": bounds.x, "y": bounds.y, "width": bounds.width, "height": bounds.height,
            "rx": C.GROUPING_CORNER_RADIUS, "ry": C.GROUPING_CORNER_RADIUS,
            "fill": (style and style.fill) or theme.grouping_fill,
            "stroke": (style and style.stroke) or theme.grouping_stroke,
            "stroke-width": (style and style.stroke_width) or 1,
            "stroke-dasharray": style.stroke_dasharray if style else None,
        }))

        icon = None
        if grouping.vendor:
            icon = resolve_icon(self.icons, grouping.vendor, grouping.service or grouping.model,
                                grouping.resource, size=C.GROUPING_ICON_SIZE)
        if icon is not None:
            holder = group.append(Element("g", {
                "class": "grouping-icon",
                "transform": f"translate({_num(bounds.x + C.GROUPING_ICON_PADDING)}, "
                             f"{_num(bounds.y + C.GROUPING_ICON_PADDING)})",
            }))
            holder.append(icon.element)
            label_x = bounds.x + C.GROUPING_ICON_SIZE + 2 * C.GROUPING_ICON_PADDING
        else:
            label_x = bounds.x + C.GROUPING_LABEL_INSET

        group.append(Element("text", {
            "x": label_x, "y": bounds.y + C.GROUPING_LABEL_BASELINE,
            "class": "grouping-label", "text-anchor": "start",
        }, text=grouping.label))
        return group

    def _node(self, node: "Node", x: float, y: float, w: float, h: float, theme: ThemeColors) -> Element:
        style = node.style
        attrs = {"class": "node", "data-node-id": node.id}
        if is_export_node(node):
            attrs["class"] = "node export-connector"
            attrs["data-destination"] = node.metadata.get("destination")
        group = Element("g", attrs)

        paint = {
            "fill": (style and style.fill) or theme.node_fill,
            "stroke": (style and style.stroke) or theme.node_stroke,
            "stroke-width": (style and style.stroke_width) or 1,
        }
        if style and style.stroke_dasharray:
            paint["stroke-dasharray"] = style.stroke_dasharray
        for el in node_shape(node.shape, x, y, w, h, paint):
            group.append(el)

        icon = resolve_icon(
            self.icons, node.vendor, node.service or node.model, node.resource,
            device_type=node.type, size=C.DEFAULT_ICON_SIZE,
            max_width=round(w * C.MAX_ICON_WIDTH_RATIO),
        )
        lines = node.label or [node.id]
        icon_height = icon.height if icon else 0
        gap = C.ICON_LABEL_GAP if icon else 0
        content_top = y - (icon_height + gap + len(lines) * C.LABEL_LINE_HEIGHT) / 2

        if icon is not None:
            holder = group.append(Element("g", {
                "class": "node-icon",
                "transform": f"translate({_num(x - icon.width / 2)}, {_num(content_top)})",
            }))
            holder.append(icon.element)

        first_baseline = content_top + icon_height + gap + C.LABEL_LINE_HEIGHT * 0.7
        for i, line in enumerate(lines):
            text, bold = clean_label(line)
            group.append(Element("text", {
                "x": x, "y": first_baseline + i * C.LABEL_LINE_HEIGHT,
                "class": "node-label node-label-bold" if bold else "node-label",
                "text-anchor": "middle",
            }, text=text))
        return group

    def _route(self, link: "Link", link_id: str, layout: "LayoutResult") -> Optional[list[tuple[float, float]]]:
        entry = layout.links.get(link_id)
        if entry is not None and len(entry.points) >= 2:
            return [(p.x, p.y) for p in entry.points]
        source = layout.nodes.get(link.source_id)
        target = layout.nodes.get(link.target_id)
        if source is None or target is None:
            logger.warning(f"No route or endpoint positions for link '{link_id}'; not drawn")
            return None
        logger.warning(f"No route for link '{link_id}'; drawing a straight line")
        return [(source.position.x, source.position.y), (target.position.x, target.position.y)]

    def _lanes(self, link_id: str, segments, count: int) -> list:
        if count < 2:
            return []
        try:
            return [offset_segments(segments, offset, C.LANE_SAMPLE_INTERVAL, C.LANE_MIN_SAMPLES)
                    for offset in lane_offsets(count)]
        except GeometryError as exc:
            logger.warning(f"Link '{link_id}' drawn as a single line: {exc}")
            return []

    def _link(self, link: "Link", link_id: str, layout: "LayoutResult", theme: ThemeColors,
              markers: dict[str, str]) -> Optional[Element]:
        group = Element("g", {"class": "link-group", "data-link-id": link_id})
        link_type = link.effective_type()
        if link_type == LinkType.INVISIBLE:
            return group

        points = self._route(link, link_id, layout)
        if points is None:
            return None
        try:
            segments = link_segments(points)
        except GeometryError as exc:
            logger.warning(f"Link '{link_id}' not drawn: {exc}")
            return None

        color = link.effective_color() or theme.link_stroke
        style = link.style
        width = (style and style.stroke_width) or LINK_STROKE_WIDTHS.get(link_type, DEFAULT_LINK_STROKE_WIDTH)
        dasharray = (style and style.stroke_dasharray) or LINK_DASHARRAYS.get(link_type)

        lanes = []
        if link_type == LinkType.DOUBLE:
            group.append(PathElement(attrs={
                "class": "link-double-outer", "fill": "none", "stroke": color, "stroke-width": width + 2,
            }, segments=list(segments)))
            group.append(PathElement(attrs={
                "class": "link-double-inner", "fill": "none", "stroke": theme.background,
                "stroke-width": max(width - 1, C.MIN_DOUBLE_INNER_WIDTH),
            }, segments=list(segments)))
        elif link.bandwidth is not None:
            lanes = self._lanes(link_id, segments, BANDWIDTH_LANES[link.bandwidth])
            for lane in lanes:
                group.append(PathElement(attrs={
                    "class": "link-lane", "fill": "none", "stroke": color, "stroke-width": width,
                    "stroke-dasharray": dasharray,
                }, segments=lane))

        attrs = {"class": "link", "fill": "none", "stroke": color, "stroke-width": width,
                 "stroke-dasharray": dasharray}
        if lanes:
            # Outline of the whole bundle; the lanes carry the visible paint
            attrs["stroke-width"] = width + (len(lanes) - 1) * C.BANDWIDTH_LANE_SPACING
            attrs["stroke-opacity"] = 0
        if style and style.opacity is not None:
            attrs["opacity"] = style.opacity
        arrow = link.effective_arrow()
        if arrow != ArrowType.NONE and not lanes:
            suffix = _marker_suffix(color)
            markers.setdefault(suffix, color)
            if arrow in (ArrowType.FORWARD, ArrowType.BOTH):
                attrs["marker-end"] = f"url(#arrow-end-{suffix})"
            if arrow in (ArrowType.BACK, ArrowType.BOTH):
                attrs["marker-start"] = f"url(#arrow-start-{suffix})"
        group.append(PathElement(attrs=attrs, segments=segments))

        self._center_labels(group, link, points)
        for which, endpoint in (("start", link.source), ("end", link.target)):
            lines = endpoint_label_lines(endpoint)
            if lines:
                self._endpoint_labels(group, lines, points, which, theme)
        return group

    def _center_labels(self, group: Element, link: "Link", points) -> None:
        if not link.label and not link.vlan:
            return
        mx, my = point_on_waypoints(points, 0.5)
        y = my - C.LINK_LABEL_OFFSET
        if link.label:
            text = " / ".join(clean_label(line)[0] for line in link.label)
            group.append(Element("text", {"x": mx, "y": y, "class": "link-label", "text-anchor": "middle"}, text=text))
            y += C.LINK_LABEL_LINE_HEIGHT
        if link.vlan:
            text = f"VLAN {', '.join(str(v) for v in link.vlan)}"
            group.append(Element("text", {"x": mx, "y": y, "class": "link-label", "text-anchor": "middle"}, text=text))

    def _endpoint_labels(self, group: Element, lines: list[str], points, which: str, theme: ThemeColors) -> None:
        t = C.ENDPOINT_LABEL_START_T if which == "start" else C.ENDPOINT_LABEL_END_T
        x, y = point_on_waypoints(points, t)
        y -= C.ENDPOINT_LABEL_OFFSET
        dx, _ = direction_on_waypoints(points, t)
        # Text extends away from the node this label sits next to
        if abs(dx) < 1e-9:
            anchor = "start"
        elif which == "start":
            anchor = "start" if dx > 0 else "end"
        else:
            anchor = "end" if dx > 0 else "start"

        padding = C.ENDPOINT_LABEL_PADDING
        line_height = C.ENDPOINT_LABEL_LINE_HEIGHT
        width = max(len(line) for line in lines) * C.ENDPOINT_LABEL_CHAR_WIDTH + padding * 2
        height = len(lines) * line_height + padding * 2
        rect_x = x - padding if anchor == "start" else x - width + padding
        group.append(Element("rect", {
            "class": "endpoint-label-bg", "x": rect_x, "y": y - line_height + 2,
            "width": width, "height": height, "rx": 2, "ry": 2,
            "fill": theme.endpoint_label_bg,
        }))
        for i, line in enumerate(lines):
            group.append(Element("text", {
                "x": x, "y": y + i * line_height, "class": "endpoint-label", "text-anchor": anchor,
            }, text=line))


def _num(value: float) -> str:
    return fmt(float(value))


def _grow(bounds: Bounds, boxes: list[Bounds]) -> Bounds:
    """Extend `bounds` right and down to cover extra boxes, with grouping padding."""
    if not boxes:
        return bounds
    right = max([bounds.right] + [box.right + C.GROUPING_PADDING for box in boxes])
    bottom = max([bounds.bottom] + [box.bottom + C.GROUPING_PADDING for box in boxes])
    return Bounds(x=bounds.x, y=bounds.y, width=right - bounds.x, height=bottom - bounds.y)


def render(sheet: "Sheet", options: Optional[RenderOptions] = None,
           icons: Optional[IconRegistry] = None) -> DrawingProgram:
    """Render a sheet with a fresh renderer."""
    return Renderer(options, icons).render(sheet.graph, sheet.layout)
