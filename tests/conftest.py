"""Shared fixtures for netdiagram tests."""

from __future__ import annotations

import pytest

from netdiagram.layout import GridLayoutEngine
from netdiagram.logging import reset_logging
from netdiagram.models import Graph


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Each test starts from an unconfigured package logger."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def two_groupings_graph() -> Graph:
    """Groupings A{n1} and B{n2} joined by one link."""
    return Graph.from_json_dict({
        "nodes": [
            {"id": "n1", "parent": "A"},
            {"id": "n2", "parent": "B"},
        ],
        "links": [{"from": "n1", "to": "n2"}],
        "groupings": [
            {"id": "A", "label": "A"},
            {"id": "B", "label": "B"},
        ],
    })


@pytest.fixture
def campus_graph() -> Graph:
    """A nested topology: core, a campus with two nested buildings, and a DC."""
    return Graph.from_json_dict({
        "name": "campus",
        "nodes": [
            {"id": "edge", "label": "Edge Router", "type": "router"},
            {"id": "core1", "parent": "core", "type": "l3-switch"},
            {"id": "core2", "parent": "core", "type": "l3-switch"},
            {"id": "b1sw", "parent": "bldg1", "type": "l2-switch"},
            {"id": "b2sw", "parent": "bldg2", "type": "l2-switch"},
            {"id": "campus-fw", "parent": "campus", "type": "firewall"},
            {"id": "db", "parent": "dc", "type": "database"},
            {"id": "web", "parent": "dc", "type": "server"},
        ],
        "links": [
            {"from": "edge", "to": "core1"},
            {"id": "core-ha", "from": "core1:xe-0/0/1", "to": "core2:xe-0/0/1", "redundancy": "ha"},
            {"from": {"node": "core1", "port": "ge-1", "ip": "10.0.0.1"}, "to": "campus-fw", "bandwidth": "10G"},
            {"from": "campus-fw", "to": "b1sw"},
            {"from": "campus-fw", "to": "b2sw"},
            {"from": "core2", "to": "db", "label": "db uplink"},
            {"from": "core2", "to": "web"},
            {"from": "db", "to": "web"},
        ],
        "groupings": [
            {"id": "core", "label": "Core"},
            {"id": "campus", "label": "Campus"},
            {"id": "bldg1", "label": "Building 1", "parent": "campus"},
            {"id": "bldg2", "label": "Building 2", "parent": "campus"},
            {"id": "dc", "label": "Data Center"},
        ],
    })


@pytest.fixture
def grid() -> GridLayoutEngine:
    return GridLayoutEngine()
