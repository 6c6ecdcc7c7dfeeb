"""
Shared layout, rendering and overlay constants.

Layout engines and the renderer both read these so that node sizes computed
by a layout match what the renderer draws inside them.
"""

# Root sheet identifier for hierarchical diagrams
ROOT_SHEET_ID = "root"

# Export connector id prefixes (synthesized per partition pass, never persisted)
EXPORT_NODE_PREFIX = "__export_"
EXPORT_LINK_PREFIX = "__export_link_"

# --- Node content ---

DEFAULT_ICON_SIZE = 40        # Icon width/height in pixels
ICON_LABEL_GAP = 8            # Gap between icon and first label line
LABEL_LINE_HEIGHT = 16        # Node label line height
NODE_VERTICAL_PADDING = 16
NODE_HORIZONTAL_PADDING = 16
ESTIMATED_CHAR_WIDTH = 7      # For node label width estimation
MAX_ICON_WIDTH_RATIO = 0.6    # Icon width cap relative to node width

DEFAULT_NODE_WIDTH = 120
DEFAULT_NODE_HEIGHT = 60

# --- Groupings ---

GROUPING_CORNER_RADIUS = 8
GROUPING_ICON_SIZE = 24
GROUPING_ICON_PADDING = 8
GROUPING_LABEL_INSET = 10
GROUPING_LABEL_BASELINE = 20
GROUPING_PADDING = 24
GROUPING_HEADER = 28          # Extra top space reserved for the label
EMPTY_GROUPING_WIDTH = 160     # Box for a grouping with no members
EMPTY_GROUPING_HEIGHT = 100

# --- Links ---

LINK_LABEL_OFFSET = 8             # Center label sits this far above the path
LINK_LABEL_LINE_HEIGHT = 12
ENDPOINT_LABEL_START_T = 0.15
ENDPOINT_LABEL_END_T = 0.85
ENDPOINT_LABEL_OFFSET = 6
ENDPOINT_LABEL_LINE_HEIGHT = 12
ENDPOINT_LABEL_PADDING = 3
ENDPOINT_LABEL_CHAR_WIDTH = 5.5   # Approximate glyph width for the 9px font
ROUNDED_CORNER_RADIUS = 8
BANDWIDTH_LANE_SPACING = 3       # Gap between parallel bandwidth lanes
LANE_SAMPLE_INTERVAL = 4.0
LANE_MIN_SAMPLES = 16
MIN_DOUBLE_INNER_WIDTH = 0.5

# --- Legend ---

LEGEND_LINE_HEIGHT = 20
LEGEND_PADDING = 12
LEGEND_ICON_WIDTH = 30
LEGEND_LABEL_WIDTH = 100
LEGEND_TITLE_HEIGHT = 20
LEGEND_ITEMS_TOP = 28            # First item row, below the title
LEGEND_MARGIN = 10               # Inset from the diagram corner
LEGEND_VIEW_PADDING = 20         # Added to the viewBox when a legend is drawn
LEGEND_ICON_LENGTH = 24
LEGEND_ICON_STROKE = 2

# --- Weathermap overlay ---

MIN_OVERLAY_STROKE = 3.0          # Floor for the width of each in/out path
STRAIGHT_TOLERANCE = 0.5          # px; midpoint-to-chord distance treated as straight
TANGENT_PROBE_RATIO = 0.001       # Probe distance relative to path length
MAX_TANGENT_PROBE = 1.0
BASE_STROKE_OPACITY = 0.55
FLOW_DASHARRAY = "16 8"
DOWN_DASHARRAY = "8 4"
DEFAULT_TIME_SLICE_MS = 8.0
DEFAULT_QUEUE_CAPACITY = 4096
