"""
Layout oracle interface and reference engines.

Real deployments plug in an external engine; the pipeline only relies on
`layout(graph) -> LayoutResult` and the waypoint-count convention. The
reference engines here let the pipeline run end to end:
- Grid: simple grid arrangement, grouping members kept contiguous
- Tree: layered arrangement based on link directions, honouring
  `settings.direction` (TB/BT/LR/RL)

Both are pure and deterministic: positions depend only on declaration order.
Every link gets a straight 2-point route between node centers; groupings get
the padded bounding box of their members (nested groupings included).
Groupings with nothing inside get a fixed-size box in a row below the content.
"""

from collections import defaultdict
from typing import Awaitable, Protocol, TYPE_CHECKING

from . import constants as C
from .groupings import GroupingIndex
from .models import (
    Bounds, LayoutDirection, LayoutGrouping, LayoutLink, LayoutNode,
    LayoutResult, Position, Size,
)

if TYPE_CHECKING:
    from .models import Graph, Node


# Default layout parameters
DEFAULT_SPACING_X = 200
DEFAULT_SPACING_Y = 150
DEFAULT_START_X = 100
DEFAULT_START_Y = 100


class LayoutEngine(Protocol):
    """Anything that assigns coordinates and waypoints to a graph.

    `layout` may return the result directly or an awaitable of it.
    """

    def layout(self, graph: "Graph") -> "LayoutResult | Awaitable[LayoutResult]":
        ...


def estimate_node_size(node: "Node") -> Size:
    """
    Estimate the box a node needs for its icon and label lines.

    Args:
        node: The node to measure

    Returns:
        Estimated size (never below the default node size)
    """
    lines = node.label or [node.id]
    longest = max(len(line) for line in lines)
    width = longest * C.ESTIMATED_CHAR_WIDTH + 2 * C.NODE_HORIZONTAL_PADDING
    height = 2 * C.NODE_VERTICAL_PADDING + len(lines) * C.LABEL_LINE_HEIGHT
    if node.type or node.vendor or node.icon:
        height += C.DEFAULT_ICON_SIZE + C.ICON_LABEL_GAP
    return Size(width=max(C.DEFAULT_NODE_WIDTH, width), height=max(C.DEFAULT_NODE_HEIGHT, height))


def _ordered_nodes(graph: "Graph", index: GroupingIndex) -> list["Node"]:
    """Nodes ordered so that members of the same top-level grouping are contiguous."""
    rank = {gid: i for i, gid in enumerate(index.ids())}

    def key(item: tuple[int, "Node"]) -> tuple[int, int]:
        position, node = item
        owner = index.owner_of(node.id)
        if owner is None:
            return (-1, position)
        top = index.chain(owner)[-1]
        return (rank[top], position)

    return [node for _, node in sorted(enumerate(graph.nodes), key=key)]


def _finish(graph: "Graph", centers: dict[str, tuple[float, float]]) -> LayoutResult:
    """Build a LayoutResult from node centers: sizes, straight routes, grouping boxes."""
    result = LayoutResult()
    for node in graph.nodes:
        if node.id not in centers:
            continue
        x, y = centers[node.id]
        result.nodes[node.id] = LayoutNode(position=Position(x=x, y=y), size=estimate_node_size(node))

    for i, link in enumerate(graph.links):
        source = result.nodes.get(link.source_id)
        target = result.nodes.get(link.target_id)
        if source is None or target is None:
            continue
        result.links[link.effective_id(i)] = LayoutLink(points=[source.position, target.position])

    index = GroupingIndex.from_graph(graph)
    default_padding = graph.settings.grouping_padding or C.GROUPING_PADDING

    def enclose(gid: str) -> bool:
        grouping = index.get(gid)
        padding = grouping.style.padding if grouping.style and grouping.style.padding else default_padding
        boxes = [result.nodes[n].bounds() for n in index.members_of(gid) if n in result.nodes]
        boxes += [result.groupings[c].bounds for c in index.children_of(gid) if c in result.groupings]
        if not boxes:
            return False
        bounds = Bounds.around(_corners(boxes), padding)
        bounds.y -= C.GROUPING_HEADER
        bounds.height += C.GROUPING_HEADER
        result.groupings[gid] = LayoutGrouping(bounds=bounds)
        return True

    # Deepest first so parents can enclose their children's boxes
    empty = [gid for gid in sorted(index.ids(), key=lambda g: -index.depth(g)) if not enclose(gid)]
    if empty:
        corners = _content_corners(result)
        content = Bounds.around(corners) if corners else Bounds(x=DEFAULT_START_X, y=DEFAULT_START_Y)
        slot = 0
        for gid in empty:
            # An empty parent still wraps its (empty) children once they are placed
            if not enclose(gid):
                result.groupings[gid] = LayoutGrouping(bounds=empty_grouping_box(content, slot))
                slot += 1

    result.bounds = Bounds.around(_content_corners(result), C.GROUPING_PADDING)
    return result


def _corners(boxes: list[Bounds]) -> list[tuple[float, float]]:
    return [corner for box in boxes for corner in ((box.x, box.y), (box.right, box.bottom))]


def _content_corners(result: LayoutResult) -> list[tuple[float, float]]:
    boxes = [entry.bounds() for entry in result.nodes.values()]
    boxes += [entry.bounds for entry in result.groupings.values()]
    return _corners(boxes)


def empty_grouping_box(content: Bounds, slot: int) -> Bounds:
    """
    Default box for a grouping with nothing inside it.

    Such boxes are lined up left to right in a row below `content`, with
    room around each for one enclosing (also empty) parent; `slot` is the
    position in that row.
    """
    gap = 2 * C.GROUPING_PADDING + C.GROUPING_HEADER
    return Bounds(
        x=content.x + slot * (C.EMPTY_GROUPING_WIDTH + gap),
        y=content.bottom + gap,
        width=C.EMPTY_GROUPING_WIDTH,
        height=C.EMPTY_GROUPING_HEIGHT,
    )


class GridLayoutEngine:
    """
    Arrange nodes in a grid pattern.

    Args:
        spacing_x: Horizontal spacing between node centers
        spacing_y: Vertical spacing between node centers
        columns: Number of columns (auto-calculated if None)
    """

    def __init__(
        self,
        spacing_x: float = DEFAULT_SPACING_X,
        spacing_y: float = DEFAULT_SPACING_Y,
        columns: int | None = None,
    ):
        self.spacing_x = spacing_x
        self.spacing_y = spacing_y
        self.columns = columns

    def layout(self, graph: "Graph") -> LayoutResult:
        nodes = _ordered_nodes(graph, GroupingIndex.from_graph(graph))
        if not nodes:
            return _finish(graph, {})

        # Auto-calculate columns based on node count
        columns = self.columns
        if columns is None:
            columns = max(3, int(len(nodes) ** 0.5) + 1)

        centers = {}
        for i, node in enumerate(nodes):
            row = i // columns
            col = i % columns
            centers[node.id] = (DEFAULT_START_X + col * self.spacing_x, DEFAULT_START_Y + row * self.spacing_y)
        return _finish(graph, centers)


class TreeLayoutEngine:
    """
    Arrange nodes in layers based on link directions.

    Nodes with no incoming links form the first layer; every other node sits
    one layer past the first node that links to it. Spacing comes from the
    graph settings when present.
    """

    def __init__(self, spacing_x: float | None = None, spacing_y: float | None = None):
        self.spacing_x = spacing_x
        self.spacing_y = spacing_y

    def layout(self, graph: "Graph") -> LayoutResult:
        nodes = _ordered_nodes(graph, GroupingIndex.from_graph(graph))
        if not nodes:
            return _finish(graph, {})

        node_spacing = self.spacing_x or graph.settings.node_spacing or DEFAULT_SPACING_X
        rank_spacing = self.spacing_y or graph.settings.rank_spacing or DEFAULT_SPACING_Y

        # Build adjacency list (source -> targets)
        children: dict[str, list[str]] = {n.id: [] for n in nodes}
        has_parent: set[str] = set()
        for link in graph.links:
            if link.source_id in children and link.target_id in children and link.source_id != link.target_id:
                children[link.source_id].append(link.target_id)
                has_parent.add(link.target_id)

        # Find roots (nodes with no incoming links)
        roots = [n.id for n in nodes if n.id not in has_parent]
        if not roots:
            roots = [nodes[0].id]

        # BFS to assign levels
        levels: dict[str, int] = {}
        queue = [(r, 0) for r in roots]
        while queue:
            node_id, level = queue.pop(0)
            if node_id in levels:
                continue
            levels[node_id] = level
            for child in children.get(node_id, []):
                queue.append((child, level + 1))

        # Handle nodes only reachable through cycles
        for node in nodes:
            levels.setdefault(node.id, 0)

        level_counts: dict[int, int] = defaultdict(int)
        max_level = max(levels.values())
        direction = graph.settings.direction
        centers = {}
        for node in nodes:
            level = levels[node.id]
            idx = level_counts[level]
            level_counts[level] += 1
            if direction in (LayoutDirection.BT, LayoutDirection.RL):
                level = max_level - level
            if direction in (LayoutDirection.TB, LayoutDirection.BT):
                centers[node.id] = (DEFAULT_START_X + idx * node_spacing, DEFAULT_START_Y + level * rank_spacing)
            else:
                centers[node.id] = (DEFAULT_START_X + level * rank_spacing, DEFAULT_START_Y + idx * node_spacing)
        return _finish(graph, centers)


ENGINES = {
    "grid": GridLayoutEngine,
    "tree": TreeLayoutEngine,
}
