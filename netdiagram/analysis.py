"""
Sheet analysis - structural summaries of partitioned diagrams.

Used by the CLI to report what each sheet contains without rendering it.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Union

from .partition import export_node_ids, is_export_link

if TYPE_CHECKING:
    from .models import Graph
    from .partition import Sheet


@dataclass
class ConnectedComponent:
    """A connected component in a sheet's graph."""
    node_ids: list[str] = field(default_factory=list)
    link_count: int = 0

    @property
    def size(self) -> int:
        return len(self.node_ids)


@dataclass
class SheetSummary:
    """Counts describing one sheet."""
    sheet_id: str
    name: str
    parent: Optional[str]
    node_count: int
    link_count: int
    grouping_count: int
    export_connector_count: int
    export_link_count: int
    connected_components: int
    orphan_count: int
    nodes_by_type: dict[str, int]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "sheet_id": self.sheet_id,
            "name": self.name,
            "parent": self.parent,
            "node_count": self.node_count,
            "link_count": self.link_count,
            "grouping_count": self.grouping_count,
            "export_connector_count": self.export_connector_count,
            "export_link_count": self.export_link_count,
            "connected_components": self.connected_components,
            "orphan_count": self.orphan_count,
            "nodes_by_type": self.nodes_by_type,
        }


def find_connected_components(graph: "Graph") -> list[ConnectedComponent]:
    """
    Find all connected components using BFS, treating links as undirected.

    Args:
        graph: The graph to analyze

    Returns:
        List of ConnectedComponent objects, in node declaration order
    """
    if not graph.nodes:
        return []

    node_ids = [n.id for n in graph.nodes]

    adjacency: dict[str, set[str]] = {nid: set() for nid in node_ids}
    link_counts: dict[str, int] = defaultdict(int)
    for link in graph.links:
        source, target = link.source_id, link.target_id
        if source in adjacency and target in adjacency:
            adjacency[source].add(target)
            adjacency[target].add(source)
            link_counts[source] += 1
            link_counts[target] += 1

    visited: set[str] = set()
    components: list[ConnectedComponent] = []

    for start_node in node_ids:
        if start_node in visited:
            continue

        component_nodes: list[str] = []
        queue = [start_node]
        while queue:
            current = queue.pop(0)
            if current in visited:
                continue
            visited.add(current)
            component_nodes.append(current)
            for neighbor in sorted(adjacency[current]):
                if neighbor not in visited:
                    queue.append(neighbor)

        # Each link is counted once at either end
        links = sum(link_counts[nid] for nid in component_nodes) // 2
        components.append(ConnectedComponent(node_ids=component_nodes, link_count=links))

    return components


def count_connections(graph: "Graph") -> dict[str, int]:
    """Number of links touching each node (self-loops count twice)."""
    counts: dict[str, int] = {node.id: 0 for node in graph.nodes}
    for link in graph.links:
        for node_id in (link.source_id, link.target_id):
            if node_id in counts:
                counts[node_id] += 1
    return counts


def summarize_sheet(sheet: "Sheet") -> SheetSummary:
    graph = sheet.graph
    connectors = export_node_ids(graph)
    type_counts: dict[str, int] = defaultdict(int)
    for node in graph.nodes:
        if node.type is not None and node.id not in connectors:
            type_counts[node.type.value] += 1

    connections = count_connections(graph)
    return SheetSummary(
        sheet_id=sheet.id,
        name=graph.name or sheet.id,
        parent=sheet.parent,
        node_count=len(graph.nodes),
        link_count=len(graph.links),
        grouping_count=len(graph.groupings),
        export_connector_count=len(connectors),
        export_link_count=sum(1 for link in graph.links if is_export_link(link, connectors)),
        connected_components=len(find_connected_components(graph)),
        orphan_count=sum(1 for count in connections.values() if count == 0),
        nodes_by_type=dict(sorted(type_counts.items())),
    )


def summarize_sheets(sheets: Union[dict[str, "Sheet"], list["Sheet"]]) -> list[SheetSummary]:
    """
    Summarize every sheet of a partition result.

    Args:
        sheets: Sheets keyed by id, or a plain list

    Returns:
        One summary per sheet, root first, then in partition order
    """
    values = list(sheets.values()) if isinstance(sheets, dict) else list(sheets)
    return [summarize_sheet(sheet) for sheet in values]
