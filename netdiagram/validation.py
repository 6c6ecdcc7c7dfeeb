"""
Graph validation - Check topologies for referential integrity problems.

Problems are reported, not raised: an authoring workflow is better served by
a partial diagram than by a hard failure. `prune_invalid` produces the
renderable remainder of a graph.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .errors import GraphValidationError
from .groupings import GroupingIndex
from .logging import get_logger

if TYPE_CHECKING:
    from .models import Graph

logger = get_logger(__name__)


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Dangling reference; the element is pruned before rendering
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    link_id: str | None = None
    grouping_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.link_id:
            result["link_id"] = self.link_id
        if self.grouping_id:
            result["grouping_id"] = self.grouping_id
        return result


def validate_graph(graph: "Graph") -> list[ValidationIssue]:
    """
    Validate a graph and return a list of issues.

    Checks for:
    - Empty graph - INFO
    - Duplicate node or grouping ids - ERROR
    - Node parent referencing an unknown grouping - ERROR
    - Link endpoint referencing an unknown node - ERROR
    - Grouping parent unknown - WARNING
    - Grouping children unknown or disagreeing with the child's parent - WARNING
    - Grouping ancestry cycles - WARNING
    - Pin device unknown - WARNING
    - Self-referencing links - WARNING

    Args:
        graph: The graph to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    if not graph.nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Graph has no nodes"
        ))

    node_ids: set[str] = set()
    for node in graph.nodes:
        if node.id in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id
            ))
        node_ids.add(node.id)

    grouping_ids: set[str] = set()
    for grouping in graph.groupings:
        if grouping.id in grouping_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate grouping id: {grouping.id}",
                grouping_id=grouping.id
            ))
        grouping_ids.add(grouping.id)

    for node in graph.nodes:
        if node.parent is not None and node.parent not in grouping_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node references non-existent grouping: {node.parent}",
                node_id=node.id
            ))

    by_id = {g.id: g for g in reversed(graph.groupings)}
    for grouping in graph.groupings:
        if grouping.parent is not None and grouping.parent not in grouping_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Grouping references non-existent parent: {grouping.parent}",
                grouping_id=grouping.id
            ))
        for child in grouping.children:
            if child not in grouping_ids:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message=f"Grouping lists non-existent child: {child}",
                    grouping_id=grouping.id
                ))
            elif by_id[child].parent not in (None, grouping.id):
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message=f"Grouping lists child {child} whose parent is {by_id[child].parent}",
                    grouping_id=grouping.id
                ))

    index = GroupingIndex(graph.groupings)
    for grouping_id in index.cycles:
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message="Grouping ancestry forms a cycle",
            grouping_id=grouping_id
        ))

    for index_, link in enumerate(graph.links):
        link_id = link.effective_id(index_)
        if link.source_id not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Link references non-existent source node: {link.source_id}",
                link_id=link_id
            ))
        if link.target_id not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Link references non-existent target node: {link.target_id}",
                link_id=link_id
            ))
        if link.source_id == link.target_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing link (node connects to itself)",
                link_id=link_id,
                node_id=link.source_id
            ))

    for pin in graph.pins:
        if pin.device is not None and pin.device not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Pin {pin.id} references non-existent device: {pin.device}"
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }


def prune_invalid(graph: "Graph", strict: bool = False) -> tuple["Graph", list[ValidationIssue]]:
    """
    Return a renderable copy of a graph along with its validation issues.

    Dangling node parents are cleared, links with an unknown endpoint are
    dropped, and duplicate node/grouping ids keep their first declaration.
    Anonymous links keep their positional `link-<index>` id from the input
    so metrics keyed on it still match. The input is not modified.

    Args:
        graph: The graph to clean up
        strict: Raise instead of pruning when ERROR issues are present

    Returns:
        (pruned graph, issues)

    Raises:
        GraphValidationError: strict mode and at least one ERROR issue
    """
    issues = validate_graph(graph)
    for issue in issues:
        if issue.severity != IssueSeverity.INFO:
            logger.warning(issue.message)

    errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
    if strict and errors:
        raise GraphValidationError(f"Graph has {len(errors)} error(s)", issues)
    if not errors:
        return graph.model_copy(deep=True), issues

    pruned = graph.model_copy(deep=True)

    seen: set[str] = set()
    nodes = []
    for node in pruned.nodes:
        if node.id not in seen:
            seen.add(node.id)
            nodes.append(node)

    seen_groupings: set[str] = set()
    groupings = []
    for grouping in pruned.groupings:
        if grouping.id not in seen_groupings:
            seen_groupings.add(grouping.id)
            groupings.append(grouping)

    for node in nodes:
        if node.parent is not None and node.parent not in seen_groupings:
            node.parent = None

    links = []
    for i, link in enumerate(pruned.links):
        if link.source_id in seen and link.target_id in seen:
            link.id = link.effective_id(i)
            links.append(link)

    pruned.nodes = nodes
    pruned.groupings = groupings
    pruned.links = links
    return pruned, issues
