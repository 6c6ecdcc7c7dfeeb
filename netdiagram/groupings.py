"""
Grouping arena - flat, id-indexed view of the nested grouping tree.

Groupings reference each other only by id (parent / children edges), so
the index never holds owning references in both directions. The
partitioner uses it to answer "which grouping owns this node" and "which
grouping should a boundary link point at from this sheet".
"""

from typing import Optional, TYPE_CHECKING

from .logging import get_logger

if TYPE_CHECKING:
    from .models import Graph, Grouping

logger = get_logger(__name__)


class GroupingIndex:
    """
    Arena of groupings indexed by id.

    Parent edges come from each grouping's `parent`; a grouping listed in
    another's `children` without declaring a parent adopts that grouping.
    Unknown parents are treated as top level. Cycles in the parent chain are
    cut at the edge that closes them (declaration order) and recorded in
    `cycles`.
    """

    def __init__(self, groupings: list["Grouping"], node_parents: Optional[dict[str, Optional[str]]] = None):
        self._groupings: dict[str, "Grouping"] = {}
        for grouping in groupings:
            # First declaration wins for duplicate ids
            self._groupings.setdefault(grouping.id, grouping)

        self._parent: dict[str, Optional[str]] = {}
        for gid, grouping in self._groupings.items():
            parent = grouping.parent if grouping.parent in self._groupings else None
            self._parent[gid] = parent
        for gid, grouping in self._groupings.items():
            for child in grouping.children:
                if child in self._groupings and self._parent[child] is None and child != gid:
                    self._parent[child] = gid

        self.cycles: list[str] = []
        self._cut_cycles()

        self._children: dict[str, list[str]] = {gid: [] for gid in self._groupings}
        for gid, parent in self._parent.items():
            if parent is not None:
                self._children[parent].append(gid)

        self._node_owner: dict[str, str] = {}
        for node_id, parent in (node_parents or {}).items():
            if parent in self._groupings:
                self._node_owner[node_id] = parent

    @classmethod
    def from_graph(cls, graph: "Graph") -> "GroupingIndex":
        return cls(graph.groupings, {n.id: n.parent for n in graph.nodes})

    def _cut_cycles(self) -> None:
        for start in self._groupings:
            seen = {start}
            current = start
            while self._parent[current] is not None:
                parent = self._parent[current]
                if parent in seen:
                    logger.warning(f"Grouping cycle detected at '{current}' -> '{parent}'; treating '{current}' as top level")
                    self._parent[current] = None
                    self.cycles.append(current)
                    break
                seen.add(parent)
                current = parent

    def __contains__(self, grouping_id: object) -> bool:
        return grouping_id in self._groupings

    def __len__(self) -> int:
        return len(self._groupings)

    def get(self, grouping_id: str) -> Optional["Grouping"]:
        return self._groupings.get(grouping_id)

    def ids(self) -> list[str]:
        """Grouping ids in declaration order."""
        return list(self._groupings)

    def parent_of(self, grouping_id: str) -> Optional[str]:
        return self._parent.get(grouping_id)

    def children_of(self, grouping_id: str) -> list[str]:
        return list(self._children.get(grouping_id, []))

    def ancestors(self, grouping_id: str) -> list[str]:
        """Ancestors of a grouping, nearest first (the grouping itself excluded)."""
        result = []
        current = self._parent.get(grouping_id)
        while current is not None:
            result.append(current)
            current = self._parent.get(current)
        return result

    def chain(self, grouping_id: str) -> list[str]:
        """The grouping followed by its ancestors."""
        if grouping_id not in self._groupings:
            return []
        return [grouping_id] + self.ancestors(grouping_id)

    def is_ancestor(self, ancestor_id: str, grouping_id: str) -> bool:
        """True if `ancestor_id` strictly encloses `grouping_id`."""
        return ancestor_id in self.ancestors(grouping_id)

    def encloses(self, outer_id: str, grouping_id: str) -> bool:
        return outer_id == grouping_id or self.is_ancestor(outer_id, grouping_id)

    def depth(self, grouping_id: str) -> int:
        """Nesting depth; top-level groupings have depth 0."""
        return len(self.ancestors(grouping_id))

    def owner_of(self, node_id: str) -> Optional[str]:
        """The grouping a node directly belongs to, if any."""
        return self._node_owner.get(node_id)

    def members_of(self, grouping_id: str) -> list[str]:
        """Node ids directly owned by a grouping."""
        return [nid for nid, owner in self._node_owner.items() if owner == grouping_id]

    def destination_for(self, node_id: str, sheet_grouping_id: str) -> Optional[str]:
        """
        Resolve which grouping a boundary link should point at.

        Walks the far node's ancestry outward and returns the outermost
        grouping that neither is nor encloses the sheet's grouping (so a
        link into a sibling's nested region points at the sibling). When
        every grouping on the chain encloses the sheet, the nearest one is
        returned. Ungrouped nodes resolve to None.

        Args:
            node_id: The far endpoint of a boundary link
            sheet_grouping_id: The grouping whose sheet is being built

        Returns:
            Destination grouping id, or None
        """
        owner = self.owner_of(node_id)
        if owner is None:
            return None
        chain = self.chain(owner)
        candidates = [g for g in chain if not self.encloses(g, sheet_grouping_id)]
        if candidates:
            return candidates[-1]
        return chain[0]
