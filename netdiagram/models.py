"""
Core data models for network diagrams.

These models define the canonical schema consumed by the partitioner,
renderer and overlay:
- Nodes (devices) with shape, device type, icon keys and style overrides
- Links between node endpoints (port/ip/vlan aware)
- Groupings (nested regions) and boundary pins
- Layout results and live metrics snapshots supplied by external collaborators

Field Naming Convention:
- Links use `source` and `target` internally (`from` is a Python keyword)
- JSON serialization outputs `from`/`to` to match the authoring format
- Style keys are camelCase on the wire (`strokeWidth`, `minLength`) and
  snake_case in Python
- Legacy `subgraphs` is accepted in place of `groupings`
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NodeShape(str, Enum):
    """Geometric shapes a node can be drawn as."""
    RECTANGLE = "rectangle"
    ROUNDED = "rounded"
    CIRCLE = "circle"
    DIAMOND = "diamond"
    HEXAGON = "hexagon"
    CYLINDER = "cylinder"
    STADIUM = "stadium"
    TRAPEZOID = "trapezoid"


class DeviceType(str, Enum):
    """Device categories used for default icons."""
    ROUTER = "router"
    L3_SWITCH = "l3-switch"
    L2_SWITCH = "l2-switch"
    FIREWALL = "firewall"
    LOAD_BALANCER = "load-balancer"
    SERVER = "server"
    ACCESS_POINT = "access-point"
    CLOUD = "cloud"
    INTERNET = "internet"
    VPN = "vpn"
    DATABASE = "database"
    GENERIC = "generic"


class LinkType(str, Enum):
    """Line styles for links."""
    SOLID = "solid"
    DASHED = "dashed"
    THICK = "thick"
    DOUBLE = "double"
    INVISIBLE = "invisible"  # Layout only, nothing drawn


class ArrowType(str, Enum):
    """Arrowhead placement on a link."""
    NONE = "none"
    FORWARD = "forward"   # Arrow at target
    BACK = "back"         # Arrow at source
    BOTH = "both"


class Redundancy(str, Enum):
    """Redundancy protocol tags that drive link defaults."""
    HA = "ha"
    VC = "vc"
    VSS = "vss"
    VPC = "vpc"
    MLAG = "mlag"
    STACK = "stack"


class LinkBandwidth(str, Enum):
    """Nominal link capacities."""
    G1 = "1G"
    G10 = "10G"
    G25 = "25G"
    G40 = "40G"
    G100 = "100G"


class LayoutDirection(str, Enum):
    """Rank direction for layout."""
    TB = "TB"
    BT = "BT"
    LR = "LR"
    RL = "RL"


class PinDirection(str, Enum):
    IN = "in"
    OUT = "out"
    BIDIRECTIONAL = "bidirectional"


class PinPosition(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class LegendPosition(str, Enum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


class NodeStatus(str, Enum):
    UP = "up"
    DOWN = "down"
    UNKNOWN = "unknown"


class LinkStatus(str, Enum):
    UP = "up"
    DOWN = "down"
    UNKNOWN = "unknown"


# type, arrow and color implied by a redundancy tag when not set explicitly
REDUNDANCY_DEFAULTS: dict[Redundancy, tuple[LinkType, ArrowType, str]] = {
    Redundancy.HA: (LinkType.DOUBLE, ArrowType.NONE, "#dc2626"),
    Redundancy.VC: (LinkType.DOUBLE, ArrowType.NONE, "#7c3aed"),
    Redundancy.VSS: (LinkType.DOUBLE, ArrowType.NONE, "#7c3aed"),
    Redundancy.VPC: (LinkType.DOUBLE, ArrowType.NONE, "#2563eb"),
    Redundancy.MLAG: (LinkType.DOUBLE, ArrowType.NONE, "#2563eb"),
    Redundancy.STACK: (LinkType.THICK, ArrowType.NONE, "#059669"),
}

# Link tint picked by VLAN id (sum of ids when a link carries several)
VLAN_COLORS = (
    "#dc2626", "#ea580c", "#ca8a04", "#16a34a", "#0891b2", "#2563eb",
    "#7c3aed", "#c026d3", "#db2777", "#059669", "#0284c7", "#4f46e5",
)


def vlan_color(vlans: list[int]) -> Optional[str]:
    if not vlans:
        return None
    return VLAN_COLORS[sum(vlans) % len(VLAN_COLORS)]


def _as_lines(value: Any) -> Any:
    """Normalize a scalar label into a list of lines."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


def _as_int_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, int):
        return [value]
    return value


# --- Geometry primitives ---

class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    width: float = 0.0
    height: float = 0.0


class Bounds(BaseModel):
    """Axis-aligned box (x, y is the top-left corner)."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def intersects(self, other: "Bounds") -> bool:
        """Check whether two boxes overlap (touching edges count)."""
        return not (
            other.x > self.right or other.right < self.x
            or other.y > self.bottom or other.bottom < self.y
        )

    @classmethod
    def around(cls, points: list[tuple[float, float]], padding: float = 0.0) -> "Bounds":
        """Smallest box enclosing the given points, grown by padding."""
        if not points:
            return cls()
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        return cls(
            x=min(xs) - padding,
            y=min(ys) - padding,
            width=max(xs) - min(xs) + 2 * padding,
            height=max(ys) - min(ys) + 2 * padding,
        )


# --- Styles ---

class NodeStyle(BaseModel):
    model_config = _WIRE_CONFIG

    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    stroke_dasharray: Optional[str] = None
    text_color: Optional[str] = None
    font_size: Optional[float] = None
    font_weight: Optional[str] = None
    opacity: Optional[float] = None


class LinkStyle(BaseModel):
    model_config = _WIRE_CONFIG

    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    stroke_dasharray: Optional[str] = None
    opacity: Optional[float] = None
    min_length: Optional[float] = None  # Spacing hint for the layout engine


class GroupingStyle(BaseModel):
    model_config = _WIRE_CONFIG

    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    stroke_dasharray: Optional[str] = None
    label_position: Optional[PinPosition] = None
    label_font_size: Optional[float] = None
    padding: Optional[float] = None
    node_spacing: Optional[float] = None
    rank_spacing: Optional[float] = None


# --- Graph elements ---

class Node(BaseModel):
    """A device in the topology."""
    model_config = _WIRE_CONFIG

    id: str
    label: list[str] = Field(default_factory=list)
    shape: NodeShape = NodeShape.RECTANGLE
    type: Optional[DeviceType] = None
    parent: Optional[str] = None
    rank: Optional[int | str] = None
    style: Optional[NodeStyle] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    # Icon keys
    vendor: Optional[str] = None
    service: Optional[str] = None
    model: Optional[str] = None
    resource: Optional[str] = None
    icon: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def normalize_input(cls, data: Any) -> Any:
        """Accept scalar labels and the short `rect` shape name."""
        if isinstance(data, dict):
            data = dict(data)
            if data.get('label') is None:
                data['label'] = [data.get('id', '')]
            else:
                data['label'] = _as_lines(data['label'])
            if data.get('shape') == 'rect':
                data['shape'] = NodeShape.RECTANGLE.value
        return data


class LinkEndpoint(BaseModel):
    """One end of a link: a node plus optional port/ip/vlan detail."""
    node: str
    port: Optional[str] = None
    ip: Optional[str] = None
    vlan: list[int] = Field(default_factory=list)
    pin: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def from_shorthand(cls, data: Any) -> Any:
        """Expand `"node"` and `"node:port"` strings."""
        if isinstance(data, str):
            node, sep, port = data.partition(':')
            return {"node": node, "port": port} if sep and port else {"node": node}
        if isinstance(data, dict) and 'vlan' in data:
            data = dict(data)
            data['vlan'] = _as_int_list(data['vlan'])
        return data

    def is_bare(self) -> bool:
        return not (self.port or self.ip or self.vlan or self.pin)

    def to_json(self) -> str | dict:
        if self.is_bare():
            return self.node
        return self.model_dump(mode="json", exclude_none=True, exclude_defaults=True) | {"node": self.node}


class Link(BaseModel):
    """
    A link between two endpoints.

    Uses `source` and `target` as canonical field names.
    Accepts `from`/`to` on input (the authoring format).
    """
    model_config = _WIRE_CONFIG

    id: Optional[str] = None
    source: LinkEndpoint
    target: LinkEndpoint
    label: list[str] = Field(default_factory=list)
    type: Optional[LinkType] = None
    arrow: Optional[ArrowType] = None
    bandwidth: Optional[LinkBandwidth] = None
    redundancy: Optional[Redundancy] = None
    vlan: list[int] = Field(default_factory=list)
    style: Optional[LinkStyle] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert 'from'/'to' fields to 'source'/'target'."""
        if isinstance(data, dict):
            data = dict(data)
            if 'from' in data and 'source' not in data:
                data['source'] = data.pop('from')
            if 'to' in data and 'target' not in data:
                data['target'] = data.pop('to')
            if 'label' in data:
                data['label'] = _as_lines(data['label'])
            if 'vlan' in data:
                data['vlan'] = _as_int_list(data['vlan'])
        return data

    @property
    def source_id(self) -> str:
        return self.source.node

    @property
    def target_id(self) -> str:
        return self.target.node

    def effective_id(self, index: int) -> str:
        """The declared id, or `link-<index>` for anonymous links."""
        return self.id if self.id else f"link-{index}"

    def effective_type(self) -> LinkType:
        if self.type is not None:
            return self.type
        if self.redundancy is not None:
            return REDUNDANCY_DEFAULTS[self.redundancy][0]
        return LinkType.SOLID

    def effective_arrow(self) -> ArrowType:
        if self.arrow is not None:
            return self.arrow
        if self.redundancy is not None:
            return REDUNDANCY_DEFAULTS[self.redundancy][1]
        return ArrowType.FORWARD

    def effective_color(self) -> Optional[str]:
        """Explicit stroke, then the redundancy tint, then the VLAN tint, else None (theme default)."""
        if self.style and self.style.stroke:
            return self.style.stroke
        if self.redundancy is not None:
            return REDUNDANCY_DEFAULTS[self.redundancy][2]
        return vlan_color(self.vlan)

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict in the authoring shape."""
        result = self.model_dump(
            mode="json", by_alias=True, exclude_none=True,
            exclude={"source", "target"},
        )
        result["from"] = self.source.to_json()
        result["to"] = self.target.to_json()
        for key in ("label", "vlan", "metadata"):
            if not result.get(key):
                result.pop(key, None)
        return result


class Pin(BaseModel):
    """Boundary connection point of a standalone child document."""
    id: str
    label: Optional[str] = None
    device: Optional[str] = None
    port: Optional[str] = None
    direction: PinDirection = PinDirection.BIDIRECTIONAL
    position: Optional[PinPosition] = None


class Grouping(BaseModel):
    """A named (possibly nested) region of the topology."""
    model_config = _WIRE_CONFIG

    id: str
    label: str = ""
    children: list[str] = Field(default_factory=list)
    parent: Optional[str] = None
    direction: Optional[LayoutDirection] = None
    style: Optional[GroupingStyle] = None
    vendor: Optional[str] = None
    service: Optional[str] = None
    model: Optional[str] = None
    resource: Optional[str] = None
    icon: Optional[str] = None
    file: Optional[str] = None  # Set by the partitioner: sheet id to open
    pins: list[Pin] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def default_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get('label'):
            data = dict(data)
            data['label'] = data.get('id', '')
        return data


class LegendSettings(BaseModel):
    """Bandwidth legend box. `legend: true` in settings means all defaults."""
    model_config = _WIRE_CONFIG

    enabled: bool = True
    position: LegendPosition = LegendPosition.TOP_RIGHT
    show_bandwidth: bool = True


class GraphSettings(BaseModel):
    """Diagram-wide rendering and layout hints."""
    model_config = _WIRE_CONFIG

    direction: LayoutDirection = LayoutDirection.TB
    theme: Theme = Theme.LIGHT
    node_spacing: Optional[float] = None
    rank_spacing: Optional[float] = None
    grouping_padding: Optional[float] = None
    legend: Optional[LegendSettings] = None

    @field_validator('legend', mode='before')
    @classmethod
    def convert_legend_flag(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return {'enabled': value}
        return value

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'subgraphPadding' in data:
            data = dict(data)
            data.setdefault('groupingPadding', data.pop('subgraphPadding'))
        return data


class Graph(BaseModel):
    """
    The complete topology description.
    This is what the parser produces and what gets partitioned and rendered.
    """
    model_config = _WIRE_CONFIG

    version: str = "1.0"
    name: Optional[str] = None
    description: Optional[str] = None
    nodes: list[Node] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)
    groupings: list[Grouping] = Field(default_factory=list)
    pins: list[Pin] = Field(default_factory=list)
    settings: GraphSettings = Field(default_factory=GraphSettings)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept the legacy 'subgraphs' key."""
        if isinstance(data, dict) and 'subgraphs' in data and 'groupings' not in data:
            data = dict(data)
            data['groupings'] = data.pop('subgraphs')
        return data

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with authoring field names."""
        result = {
            "version": self.version,
            "nodes": [n.model_dump(mode="json", by_alias=True, exclude_none=True) for n in self.nodes],
            "links": [link.to_json_dict() for link in self.links],
            "groupings": [g.model_dump(mode="json", by_alias=True, exclude_none=True) for g in self.groupings],
            "pins": [p.model_dump(mode="json", exclude_none=True) for p in self.pins],
            "settings": self.settings.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
        if self.name is not None:
            result["name"] = self.name
        if self.description is not None:
            result["description"] = self.description
        return result

    @classmethod
    def from_json_dict(cls, data: dict) -> "Graph":
        """Create a Graph from a JSON dict (handles legacy formats)."""
        return cls.model_validate(data)

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(n) - build a dict for repeated lookups)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_grouping(self, grouping_id: str) -> Optional[Grouping]:
        for grouping in self.groupings:
            if grouping.id == grouping_id:
                return grouping
        return None

    def link_ids(self) -> list[str]:
        """Resolved link ids in declaration order."""
        return [link.effective_id(i) for i, link in enumerate(self.links)]


# --- Layout oracle output ---

class LayoutNode(BaseModel):
    position: Position  # Center of the node
    size: Size

    def bounds(self) -> Bounds:
        return Bounds(
            x=self.position.x - self.size.width / 2,
            y=self.position.y - self.size.height / 2,
            width=self.size.width,
            height=self.size.height,
        )


class LayoutLink(BaseModel):
    points: list[Position] = Field(default_factory=list)


class LayoutGrouping(BaseModel):
    bounds: Bounds


class LayoutResult(BaseModel):
    """Coordinates assigned by a layout engine. Read-only to the pipeline."""
    nodes: dict[str, LayoutNode] = Field(default_factory=dict)
    links: dict[str, LayoutLink] = Field(default_factory=dict)
    groupings: dict[str, LayoutGrouping] = Field(default_factory=dict)
    bounds: Bounds = Field(default_factory=Bounds)


# --- Metrics feed ---

class NodeMetrics(BaseModel):
    model_config = _WIRE_CONFIG

    status: NodeStatus = NodeStatus.UNKNOWN
    last_seen: Optional[float] = None


class LinkMetrics(BaseModel):
    model_config = _WIRE_CONFIG

    status: LinkStatus = LinkStatus.UNKNOWN
    utilization: Optional[float] = None
    in_utilization: Optional[float] = None
    out_utilization: Optional[float] = None
    in_bps: Optional[float] = None
    out_bps: Optional[float] = None

    def directional(self) -> tuple[float, float, float, float]:
        """Resolve (in_util, out_util, in_bps, out_bps).

        `utilization` stands in for either direction that is missing; absent
        values resolve to 0.
        """
        shared = self.utilization if self.utilization is not None else 0.0
        in_util = self.in_utilization if self.in_utilization is not None else shared
        out_util = self.out_utilization if self.out_utilization is not None else shared
        in_bps = self.in_bps if self.in_bps is not None and math.isfinite(self.in_bps) else 0.0
        out_bps = self.out_bps if self.out_bps is not None and math.isfinite(self.out_bps) else 0.0
        return in_util, out_util, in_bps, out_bps


class MetricsData(BaseModel):
    """One snapshot from the metrics feed."""
    nodes: dict[str, NodeMetrics] = Field(default_factory=dict)
    links: dict[str, LinkMetrics] = Field(default_factory=dict)
    timestamp: float = 0.0
