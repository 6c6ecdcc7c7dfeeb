"""
Drawing program - a render-target-agnostic tree of shapes, paths and text.

The renderer emits a `DrawingProgram`; the overlay controller attaches to one
by the markup contract (link containers with `data-link-id`, node
containers with `data-node-id`). Paths keep structured segments so they can
be measured and sampled without re-parsing markup.

`to_svg()` serializes a program with `xml.etree.ElementTree`. Numbers are
formatted with at most two decimals so equal input gives byte-identical
output.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Union

SVG_NS = "http://www.w3.org/2000/svg"


# --- Path segments ---

@dataclass(frozen=True)
class MoveTo:
    x: float
    y: float


@dataclass(frozen=True)
class LineTo:
    x: float
    y: float


@dataclass(frozen=True)
class CubicTo:
    c1x: float
    c1y: float
    c2x: float
    c2y: float
    x: float
    y: float


@dataclass(frozen=True)
class QuadTo:
    cx: float
    cy: float
    x: float
    y: float


@dataclass(frozen=True)
class ClosePath:
    pass


Segment = Union[MoveTo, LineTo, CubicTo, QuadTo, ClosePath]


def fmt(value: Any) -> str:
    """Format a number with at most two decimals; other values pass through str()."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        text = f"{value:.2f}".rstrip("0").rstrip(".")
        return "0" if text in ("-0", "") else text
    return str(value)


def path_data(segments: list[Segment]) -> str:
    """Serialize segments as SVG path data."""
    parts = []
    for seg in segments:
        if isinstance(seg, MoveTo):
            parts.append(f"M {fmt(seg.x)} {fmt(seg.y)}")
        elif isinstance(seg, LineTo):
            parts.append(f"L {fmt(seg.x)} {fmt(seg.y)}")
        elif isinstance(seg, CubicTo):
            parts.append(
                f"C {fmt(seg.c1x)} {fmt(seg.c1y)}, {fmt(seg.c2x)} {fmt(seg.c2y)}, {fmt(seg.x)} {fmt(seg.y)}"
            )
        elif isinstance(seg, QuadTo):
            parts.append(f"Q {fmt(seg.cx)} {fmt(seg.cy)}, {fmt(seg.x)} {fmt(seg.y)}")
        else:
            parts.append("Z")
    return " ".join(parts)


# --- Elements ---

@dataclass(eq=False)
class Element:
    """A drawing primitive or container. Identity-compared."""
    tag: str
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list["Element"] = field(default_factory=list)
    text: Optional[str] = None

    def append(self, child: "Element") -> "Element":
        self.children.append(child)
        return child

    def get(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self.attrs[name] = value

    def classes(self) -> list[str]:
        return str(self.attrs.get("class", "")).split()

    def has_class(self, name: str) -> bool:
        return name in self.classes()

    def iter(self) -> Iterator["Element"]:
        """Depth-first, document order, self included."""
        yield self
        for child in self.children:
            yield from child.iter()

    def find_all(self, predicate: Callable[["Element"], bool]) -> list["Element"]:
        return [el for el in self.iter() if predicate(el)]

    def find_by_attr(self, name: str, value: Any) -> list["Element"]:
        return self.find_all(lambda el: el.attrs.get(name) == value)

    def find_by_class(self, name: str) -> list["Element"]:
        return self.find_all(lambda el: el.has_class(name))

    def parent_of(self, target: "Element") -> Optional["Element"]:
        """Find the direct container of an element within this subtree."""
        for el in self.iter():
            for child in el.children:
                if child is target:
                    return el
        return None

    def insert_after(self, reference: "Element", new: "Element") -> None:
        """Insert `new` right after the direct child `reference`."""
        for i, child in enumerate(self.children):
            if child is reference:
                self.children.insert(i + 1, new)
                return
        raise ValueError("reference element is not a direct child")

    def remove(self, child: "Element") -> bool:
        """Remove a direct child; returns False if it was not present."""
        for i, existing in enumerate(self.children):
            if existing is child:
                del self.children[i]
                return True
        return False


@dataclass(eq=False)
class PathElement(Element):
    """A `<path>` whose geometry is kept as structured segments."""
    tag: str = "path"
    segments: list[Segment] = field(default_factory=list)

    @property
    def d(self) -> str:
        return path_data(self.segments)


def element_from_etree(node: ET.Element) -> Element:
    """Convert a parsed ElementTree node into drawing elements (namespaces dropped)."""
    tag = node.tag.split("}", 1)[-1]
    attrs = {key.split("}", 1)[-1]: value for key, value in node.attrib.items()}
    el = Element(tag, attrs, text=node.text.strip() if node.text and node.text.strip() else None)
    for child in node:
        if isinstance(child.tag, str):
            el.append(element_from_etree(child))
    return el


@dataclass(eq=False)
class DrawingProgram:
    """The renderer's output: a root `<svg>` element plus its canvas size."""
    root: Element
    width: float
    height: float

    def iter(self) -> Iterator[Element]:
        return self.root.iter()

    def find_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return self.root.find_all(predicate)

    def find_by_attr(self, name: str, value: Any) -> list[Element]:
        return self.root.find_by_attr(name, value)

    def find_by_class(self, name: str) -> list[Element]:
        return self.root.find_by_class(name)

    def parent_of(self, target: Element) -> Optional[Element]:
        return self.root.parent_of(target)

    def link_groups(self) -> list[Element]:
        """Link containers, in document order."""
        return self.find_all(lambda el: el.tag == "g" and "data-link-id" in el.attrs)

    def node_groups(self) -> list[Element]:
        return self.find_all(lambda el: el.tag == "g" and "data-node-id" in el.attrs)


def _to_etree(el: Element) -> ET.Element:
    attrs = {}
    if isinstance(el, PathElement):
        attrs["d"] = el.d
    for key, value in el.attrs.items():
        if value is None:
            continue
        attrs[key] = fmt(value)
    node = ET.Element(el.tag, attrs)
    if el.text is not None:
        node.text = el.text
    for child in el.children:
        node.append(_to_etree(child))
    return node


def to_svg(program: DrawingProgram) -> str:
    """Serialize a drawing program as an SVG document string."""
    return ET.tostring(_to_etree(program.root), encoding="unicode")
