import xml.etree.ElementTree as ET

import pytest

from netdiagram.drawing import (
    SVG_NS,
    ClosePath,
    CubicTo,
    DrawingProgram,
    Element,
    LineTo,
    MoveTo,
    PathElement,
    QuadTo,
    element_from_etree,
    fmt,
    path_data,
    to_svg,
)


@pytest.mark.parametrize("value,expected", [
    (1, "1"),
    (1.0, "1"),
    (1.5, "1.5"),
    (1.256, "1.26"),
    (100.0, "100"),
    (-0.001, "0"),
    (-2.5, "-2.5"),
    (True, "true"),
    ("5 3", "5 3"),
])
def test_fmt(value, expected):
    assert fmt(value) == expected


def test_path_data():
    segments = [MoveTo(0, 0), LineTo(10.5, 0), CubicTo(1, 2, 3, 4, 5, 6), QuadTo(1, 1, 2, 2), ClosePath()]
    assert path_data(segments) == "M 0 0 L 10.5 0 C 1 2, 3 4, 5 6 Q 1 1, 2 2 Z"


class TestElement:
    def _tree(self):
        root = Element("svg")
        group = root.append(Element("g", {"class": "link-group", "data-link-id": "l1"}))
        first = group.append(PathElement(attrs={"class": "link"}, segments=[MoveTo(0, 0), LineTo(1, 1)]))
        group.append(Element("text", {"class": "link-label"}, text="x"))
        return root, group, first

    def test_find(self):
        root, group, first = self._tree()
        assert root.find_by_attr("data-link-id", "l1") == [group]
        assert root.find_by_class("link") == [first]
        assert root.parent_of(first) is group
        assert [el.tag for el in root.iter()] == ["svg", "g", "path", "text"]

    def test_insert_after_and_remove(self):
        root, group, first = self._tree()
        layer = Element("g", {"class": "overlay"})
        group.insert_after(first, layer)
        assert [el.tag for el in group.children] == ["path", "g", "text"]
        assert group.remove(layer)
        assert not group.remove(layer)

    def test_insert_after_requires_child(self):
        root, group, _ = self._tree()
        with pytest.raises(ValueError):
            root.insert_after(Element("g"), Element("g"))

    def test_identity_semantics(self):
        assert Element("g") != Element("g")
        assert len({Element("g"), Element("g")}) == 2

    def test_classes(self):
        el = Element("g", {"class": "node export-connector"})
        assert el.classes() == ["node", "export-connector"]
        assert el.has_class("export-connector")
        assert not el.has_class("export")


def test_program_queries():
    root = Element("svg")
    root.append(Element("g", {"data-link-id": "a"}))
    root.append(Element("g", {"data-node-id": "n"}))
    program = DrawingProgram(root, 10, 10)
    assert [g.get("data-link-id") for g in program.link_groups()] == ["a"]
    assert [g.get("data-node-id") for g in program.node_groups()] == ["n"]


def test_to_svg():
    root = Element("svg", {"xmlns": SVG_NS, "width": 10.0})
    root.append(PathElement(attrs={"class": "link", "stroke-dasharray": None}, segments=[MoveTo(0, 0), LineTo(3, 4)]))
    root.append(Element("text", {"x": 1.234}, text="a < b"))
    svg = to_svg(DrawingProgram(root, 10, 10))
    assert svg.startswith('<svg xmlns="http://www.w3.org/2000/svg" width="10">')
    assert '<path d="M 0 0 L 3 4" class="link" />' in svg
    assert "stroke-dasharray" not in svg
    assert '<text x="1.23">a &lt; b</text>' in svg


def test_element_from_etree():
    parsed = ET.fromstring('<g xmlns="http://www.w3.org/2000/svg"><circle r="3"/><text>hi</text></g>')
    el = element_from_etree(parsed)
    assert el.tag == "g"
    assert [c.tag for c in el.children] == ["circle", "text"]
    assert el.children[0].get("r") == "3"
    assert el.children[1].text == "hi"
