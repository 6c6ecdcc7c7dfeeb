"""
Hierarchical partitioning - split a nested graph into navigable sheets.

One sheet is built per grouping plus the root sheet. A child sheet holds the
grouping's own nodes (re-rooted) and the links among them; links that cross
the grouping boundary are replaced by synthesized export connectors, one
connector node per destination grouping with one dashed link per original
boundary link.

Partitioning never mutates its input graph.
"""

import inspect
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .constants import EXPORT_LINK_PREFIX, EXPORT_NODE_PREFIX, ROOT_SHEET_ID
from .errors import LayoutError
from .groupings import GroupingIndex
from .logging import get_logger
from .models import ArrowType, Graph, LayoutResult, Link, LinkEndpoint, LinkType, Node, NodeShape

if TYPE_CHECKING:
    from .layout import LayoutEngine
    from .models import Grouping

logger = get_logger(__name__)


@dataclass
class Sheet:
    """One navigable diagram page."""
    id: str
    graph: Graph
    layout: LayoutResult
    parent: Optional[str] = None  # Sheet id one level up, None for root


def is_export_node(node: Node) -> bool:
    """
    Check whether a node is a synthesized export connector.

    Ids alone are ambiguous (a grouping named ``link_a`` yields the connector
    ``__export_link_a``), so the connector's own metadata is checked too.
    """
    destination = node.metadata.get("destination")
    return (
        node.metadata.get("export") is True
        and isinstance(destination, str)
        and node.id == export_node_id(destination)
    )


def export_node_ids(graph: Graph) -> set[str]:
    return {node.id for node in graph.nodes if is_export_node(node)}


def is_export_link(link: Link, connector_ids: set[str]) -> bool:
    """Check whether a link was synthesized to reach one of the given connectors."""
    if "original_link" not in link.metadata:
        return False
    return link.source_id in connector_ids or link.target_id in connector_ids


def export_node_id(destination_id: str) -> str:
    return f"{EXPORT_NODE_PREFIX}{destination_id}"


def export_link_id(destination_id: str, n: int) -> str:
    return f"{EXPORT_LINK_PREFIX}{destination_id}_{n}"


def build_child_graph(graph: Graph, grouping: "Grouping", index: GroupingIndex) -> Graph:
    """
    Build the sheet graph for one grouping.

    Args:
        graph: The full graph (not modified)
        grouping: The grouping whose sheet is being built
        index: Grouping arena for the full graph

    Returns:
        A new Graph with the grouping's nodes, internal links and export connectors
    """
    members = [n for n in graph.nodes if index.owner_of(n.id) == grouping.id]
    member_ids = {n.id for n in members}

    nodes = []
    for node in members:
        copy = node.model_copy(deep=True)
        copy.parent = None
        nodes.append(copy)

    links: list[Link] = []
    # destination id -> [(link index, original link, local end is source)]
    boundary: dict[str, list[tuple[int, Link, bool]]] = {}

    for i, link in enumerate(graph.links):
        source_inside = link.source_id in member_ids
        target_inside = link.target_id in member_ids
        if source_inside and target_inside:
            copy = link.model_copy(deep=True)
            copy.id = link.effective_id(i)
            links.append(copy)
        elif source_inside or target_inside:
            far = link.target_id if source_inside else link.source_id
            destination = index.destination_for(far, grouping.id)
            if destination is None:
                logger.warning(
                    f"Dropping boundary link {link.effective_id(i)} on sheet '{grouping.id}': "
                    f"node '{far}' is not inside any grouping"
                )
                continue
            boundary.setdefault(destination, []).append((i, link, source_inside))

    for destination, connections in boundary.items():
        dest_label = index.get(destination).label
        connector_id = export_node_id(destination)
        nodes.append(Node(
            id=connector_id,
            label=[dest_label],
            shape=NodeShape.STADIUM,
            metadata={
                "export": True,
                "destination": destination,
                "destination_label": dest_label,
                "connection_count": len(connections),
            },
        ))
        for n, (i, link, local_is_source) in enumerate(connections):
            local = (link.source if local_is_source else link.target).model_copy(deep=True)
            remote = link.target if local_is_source else link.source
            connector = LinkEndpoint(node=connector_id)
            links.append(Link(
                id=export_link_id(destination, n),
                source=local if local_is_source else connector,
                target=connector if local_is_source else local,
                label=list(link.label),
                type=LinkType.DASHED,
                arrow=link.arrow or ArrowType.FORWARD,
                bandwidth=link.bandwidth,
                metadata={
                    "original_link": link.effective_id(i),
                    "remote_node": remote.node,
                    "remote_port": remote.port,
                    "destination": destination,
                },
            ))

    return Graph(
        version=graph.version,
        name=grouping.label,
        description=graph.description,
        nodes=nodes,
        links=links,
        groupings=[],
        pins=[p.model_copy() for p in grouping.pins],
        settings=graph.settings.model_copy(deep=True),
    )


def _prepare(graph: Graph) -> tuple[Graph, GroupingIndex]:
    root = graph.model_copy(deep=True)
    for grouping in root.groupings:
        grouping.file = grouping.id
    return root, GroupingIndex.from_graph(root)


def _sheet_parent(index: GroupingIndex, grouping_id: str) -> str:
    return index.parent_of(grouping_id) or ROOT_SHEET_ID


def _check_layout(result: object, grouping_id: str) -> LayoutResult:
    if not isinstance(result, LayoutResult):
        raise LayoutError(f"Layout engine returned {type(result).__name__} for sheet '{grouping_id}'")
    return result


def partition(graph: Graph, root_layout: LayoutResult, engine: "LayoutEngine") -> dict[str, Sheet]:
    """
    Partition a graph into a root sheet plus one sheet per grouping.

    Every grouping in the returned root sheet carries `file` set to its own
    id (the sheet to open when it is clicked). Each child graph is laid out
    independently by the engine.

    Args:
        graph: Full graph (not modified)
        root_layout: Layout of the full graph
        engine: Layout engine with a synchronous `layout()`

    Returns:
        Dict of sheet id -> Sheet, root first, then groupings in declaration order

    Raises:
        LayoutError: The engine returned something other than a LayoutResult
    """
    root, index = _prepare(graph)
    sheets = {ROOT_SHEET_ID: Sheet(ROOT_SHEET_ID, root, root_layout)}
    for grouping_id in index.ids():
        child = build_child_graph(root, index.get(grouping_id), index)
        result = engine.layout(child)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise LayoutError("Engine layout() is asynchronous; use partition_async()")
        sheets[grouping_id] = Sheet(grouping_id, child, _check_layout(result, grouping_id), _sheet_parent(index, grouping_id))
        logger.debug(f"Built sheet '{grouping_id}' with {len(child.nodes)} nodes, {len(child.links)} links")
    return sheets


async def partition_async(graph: Graph, root_layout: LayoutResult, engine: "LayoutEngine") -> dict[str, Sheet]:
    """Same as `partition`, awaiting the engine when its `layout()` is asynchronous."""
    root, index = _prepare(graph)
    sheets = {ROOT_SHEET_ID: Sheet(ROOT_SHEET_ID, root, root_layout)}
    for grouping_id in index.ids():
        child = build_child_graph(root, index.get(grouping_id), index)
        result = engine.layout(child)
        if inspect.isawaitable(result):
            result = await result
        sheets[grouping_id] = Sheet(grouping_id, child, _check_layout(result, grouping_id), _sheet_parent(index, grouping_id))
    return sheets
