"""
netdiagram - hierarchical network diagrams with a live weathermap overlay.

The pipeline: a `Graph` is validated, laid out by a `LayoutEngine`, split
into navigable sheets by `partition()`, drawn by the `Renderer` into a
`DrawingProgram`, and optionally painted with link utilization by a
`WeathermapController`.
"""

from .models import (
    # Enums
    NodeShape,
    DeviceType,
    LinkType,
    ArrowType,
    Redundancy,
    LinkBandwidth,
    LayoutDirection,
    Theme,
    LegendPosition,
    NodeStatus,
    LinkStatus,
    # Core models
    Node,
    Link,
    LinkEndpoint,
    Grouping,
    Pin,
    GraphSettings,
    LegendSettings,
    Graph,
    Bounds,
    # Layout and metrics
    LayoutResult,
    MetricsData,
    LinkMetrics,
    NodeMetrics,
)

from .errors import NetDiagramError, GraphValidationError, LayoutError, GeometryError, CapabilityError
from .validation import validate_graph, prune_invalid, ValidationIssue, IssueSeverity
from .groupings import GroupingIndex
from .layout import GridLayoutEngine, TreeLayoutEngine
from .partition import Sheet, partition, partition_async
from .drawing import DrawingProgram, to_svg
from .renderer import Renderer, render
from .overlay import WeathermapController, utilization_color
from .quality import QualityTier, DeviceProfile, detect_tier
from .scheduler import ManualScheduler, AsyncioIdleScheduler, BuildQueue
from .config import RenderOptions, OverlayOptions
from .sources import DataSource, DataSourceCapability, MockMetricsSource
from .analysis import summarize_sheets

__all__ = [
    # Enums
    "NodeShape",
    "DeviceType",
    "LinkType",
    "ArrowType",
    "Redundancy",
    "LinkBandwidth",
    "LayoutDirection",
    "Theme",
    "LegendPosition",
    "NodeStatus",
    "LinkStatus",
    # Models
    "Node",
    "Link",
    "LinkEndpoint",
    "Grouping",
    "Pin",
    "GraphSettings",
    "LegendSettings",
    "Graph",
    "Bounds",
    "LayoutResult",
    "MetricsData",
    "LinkMetrics",
    "NodeMetrics",
    # Errors
    "NetDiagramError",
    "GraphValidationError",
    "LayoutError",
    "GeometryError",
    "CapabilityError",
    # Validation
    "validate_graph",
    "prune_invalid",
    "ValidationIssue",
    "IssueSeverity",
    "GroupingIndex",
    # Layout and partitioning
    "GridLayoutEngine",
    "TreeLayoutEngine",
    "Sheet",
    "partition",
    "partition_async",
    # Rendering
    "DrawingProgram",
    "to_svg",
    "Renderer",
    "render",
    # Overlay
    "WeathermapController",
    "utilization_color",
    "QualityTier",
    "DeviceProfile",
    "detect_tier",
    "ManualScheduler",
    "AsyncioIdleScheduler",
    "BuildQueue",
    # Configuration and sources
    "RenderOptions",
    "OverlayOptions",
    "DataSource",
    "DataSourceCapability",
    "MockMetricsSource",
    # Analysis
    "summarize_sheets",
]
