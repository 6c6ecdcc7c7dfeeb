import logging

import pytest

from netdiagram.errors import GraphValidationError
from netdiagram.models import Graph
from netdiagram.validation import IssueSeverity, prune_invalid, validate_graph, validation_summary


def _graph(**data) -> Graph:
    return Graph.from_json_dict(data)


def _messages(issues, severity):
    return [i.message for i in issues if i.severity == severity]


def test_valid_graph_has_no_issues(campus_graph):
    assert validate_graph(campus_graph) == []


def test_empty_graph_is_info_only():
    issues = validate_graph(Graph())
    assert [i.severity for i in issues] == [IssueSeverity.INFO]
    assert validation_summary(issues)["valid"] is True


def test_dangling_references_are_errors():
    graph = _graph(
        nodes=[{"id": "a", "parent": "ghost"}, {"id": "b"}],
        links=[{"from": "a", "to": "missing"}],
    )
    issues = validate_graph(graph)
    errors = _messages(issues, IssueSeverity.ERROR)
    assert "Node references non-existent grouping: ghost" in errors
    assert "Link references non-existent target node: missing" in errors
    link_issue = next(i for i in issues if i.link_id)
    assert link_issue.link_id == "link-0"


def test_duplicates_are_errors():
    graph = _graph(
        nodes=[{"id": "a"}, {"id": "a"}],
        groupings=[{"id": "g"}, {"id": "g"}],
    )
    errors = _messages(validate_graph(graph), IssueSeverity.ERROR)
    assert "Duplicate node id: a" in errors
    assert "Duplicate grouping id: g" in errors


def test_warnings():
    graph = _graph(
        nodes=[{"id": "a"}],
        links=[{"from": "a", "to": "a"}],
        groupings=[
            {"id": "g1", "parent": "nowhere", "children": ["unknown"]},
            {"id": "g2", "children": ["g3"]},
            {"id": "g3", "parent": "g1"},
        ],
        pins=[{"id": "p1", "device": "zzz"}],
    )
    issues = validate_graph(graph)
    assert not _messages(issues, IssueSeverity.ERROR)
    warnings = _messages(issues, IssueSeverity.WARNING)
    assert "Grouping references non-existent parent: nowhere" in warnings
    assert "Grouping lists non-existent child: unknown" in warnings
    assert "Grouping lists child g3 whose parent is g1" in warnings
    assert "Self-referencing link (node connects to itself)" in warnings
    assert "Pin p1 references non-existent device: zzz" in warnings


def test_grouping_cycle_is_warning():
    graph = _graph(
        nodes=[{"id": "a", "parent": "x"}],
        groupings=[{"id": "x", "parent": "y"}, {"id": "y", "parent": "x"}],
    )
    issues = validate_graph(graph)
    assert any(i.message == "Grouping ancestry forms a cycle" for i in issues)
    assert validation_summary(issues)["valid"] is True


def test_summary_counts():
    graph = _graph(nodes=[{"id": "a"}], links=[{"from": "a", "to": "a"}, {"from": "a", "to": "b"}])
    summary = validation_summary(validate_graph(graph))
    assert summary == {"total": 2, "errors": 1, "warnings": 1, "info": 0, "valid": False}


def test_issue_to_dict():
    graph = _graph(nodes=[{"id": "a", "parent": "ghost"}])
    assert validate_graph(graph)[0].to_dict() == {
        "type": "error",
        "message": "Node references non-existent grouping: ghost",
        "node_id": "a",
    }


class TestPrune:
    def test_prunes_dangling_data_without_touching_input(self, caplog):
        graph = _graph(
            nodes=[{"id": "a", "parent": "ghost"}, {"id": "b"}, {"id": "b", "label": "dup"}],
            links=[{"from": "a", "to": "b"}, {"from": "a", "to": "nobody"}, {"from": "b", "to": "a"}],
        )
        with caplog.at_level(logging.WARNING, logger="netdiagram"):
            pruned, issues = prune_invalid(graph)

        assert [n.id for n in pruned.nodes] == ["a", "b"]
        assert pruned.nodes[1].label == ["b"]
        assert pruned.nodes[0].parent is None
        # Surviving links keep their original positional ids
        assert pruned.link_ids() == ["link-0", "link-2"]

        assert graph.nodes[0].parent == "ghost"
        assert len(graph.links) == 3
        assert len(issues) == 3
        assert "Link references non-existent target node: nobody" in caplog.text

    def test_clean_graph_is_copied(self, campus_graph):
        pruned, issues = prune_invalid(campus_graph)
        assert issues == []
        assert pruned == campus_graph
        assert pruned is not campus_graph

    def test_strict_raises(self):
        graph = _graph(nodes=[{"id": "a"}], links=[{"from": "a", "to": "b"}])
        with pytest.raises(GraphValidationError) as excinfo:
            prune_invalid(graph, strict=True)
        assert len(excinfo.value.issues) == 1

    def test_strict_allows_warnings(self):
        graph = _graph(nodes=[{"id": "a"}], links=[{"from": "a", "to": "a"}])
        pruned, issues = prune_invalid(graph, strict=True)
        assert len(pruned.links) == 1
        assert issues[0].severity == IssueSeverity.WARNING
