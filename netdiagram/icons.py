"""
Icons - device-type glyphs and a registry for vendor icon sets.

Lookup order for a node: vendor icon (`vendor` + `service`/`model`,
optionally narrowed by `resource`), then the device-type glyph, then no
icon. Missing or malformed icons never fail a render.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional

from .constants import DEFAULT_ICON_SIZE
from .drawing import Element, element_from_etree
from .logging import get_logger
from .models import DeviceType

logger = get_logger(__name__)

# 24x24 glyph path data per device type
DEVICE_ICONS: dict[DeviceType, list[str]] = {
    DeviceType.ROUTER: ["M4 8h16v8H4V8zm2 2v4h12v-4H6zm1 1h2v2H7v-2zm4 0h2v2h-2v-2zm4 0h2v2h-2v-2z"],
    DeviceType.L3_SWITCH: ["M3 6h18v12H3V6zm2 2v8h14V8H5zm2 2h4v1H7v-1zm6 0h4v1h-4v-1zm-6 3h4v1H7v-1zm6 0h4v1h-4v-1z"],
    DeviceType.L2_SWITCH: ["M3 8h18v8H3V8zm2 2v4h14v-4H5zm2 1h2v2H7v-2zm4 0h2v2h-2v-2zm4 0h2v2h-2v-2z"],
    DeviceType.FIREWALL: [
        "M12 2L4 6v6c0 5.5 3.4 10.3 8 12 4.6-1.7 8-6.5 8-12V6l-8-4zm0 2.2l6 3v5.3c0 4.3-2.6 8.1-6 9.5-3.4-1.4-6-5.2-6-9.5V7.2l6-3z",
        "M11 8h2v5h-2V8zm0 6h2v2h-2v-2z",
    ],
    DeviceType.LOAD_BALANCER: ["M12 4L4 8l8 4 8-4-8-4zm0 2.5L16 8l-4 2-4-2 4-1.5zM4 12l8 4 8-4v2l-8 4-8-4v-2zm0 4l8 4 8-4v2l-8 4-8-4v-2z"],
    DeviceType.SERVER: ["M4 4h16v4H4V4zm0 6h16v4H4v-4zm0 6h16v4H4v-4zm2-10v2h2V6H6zm0 6v2h2v-2H6zm0 6v2h2v-2H6zm10-12v2h2V6h-2zm0 6v2h2v-2h-2zm0 6v2h2v-2h-2z"],
    DeviceType.ACCESS_POINT: ["M12 10a2 2 0 100 4 2 2 0 000-4zm-4.5-2.5a6.5 6.5 0 019 0l-1.4 1.4a4.5 4.5 0 00-6.2 0l-1.4-1.4zm-2.8-2.8a10 10 0 0114.6 0l-1.4 1.4a8 8 0 00-11.8 0L4.7 4.7z"],
    DeviceType.CLOUD: ["M19.4 10.6A7 7 0 006 12a5 5 0 00.7 9.9h11.8a4.5 4.5 0 00.9-8.9z"],
    DeviceType.INTERNET: ["M12 2a10 10 0 100 20 10 10 0 000-20zm0 2c.6 0 1.3.8 1.8 2H10.2c.5-1.2 1.2-2 1.8-2zm-3.2.7A8 8 0 005 10h2.5c.1-2 .5-3.7 1.3-5.3zm6.4 0c.8 1.6 1.2 3.3 1.3 5.3H19a8 8 0 00-3.8-5.3zM5 12h2.5c.1 2 .5 3.7 1.3 5.3A8 8 0 015 12zm4.5 0h5c0 1.5-.3 3-1 4h-3c-.7-1-1-2.5-1-4zm7 0H19a8 8 0 01-3.8 5.3c.8-1.6 1.2-3.3 1.3-5.3zM10.2 18h3.6c-.5 1.2-1.2 2-1.8 2s-1.3-.8-1.8-2z"],
    DeviceType.VPN: ["M12 2L4 5v6.5c0 5.3 3.4 10 8 11.5 4.6-1.5 8-6.2 8-11.5V5l-8-3zm0 4a3 3 0 110 6 3 3 0 010-6zm-4 8h8v1c0 2-1.8 3-4 3s-4-1-4-3v-1z"],
    DeviceType.DATABASE: ["M12 4c-4.4 0-8 1.3-8 3v10c0 1.7 3.6 3 8 3s8-1.3 8-3V7c0-1.7-3.6-3-8-3zm0 2c3.3 0 6 .9 6 2s-2.7 2-6 2-6-.9-6-2 2.7-2 6-2zM6 10.5c1.4.7 3.5 1 6 1s4.6-.3 6-1V12c0 1.1-2.7 2-6 2s-6-.9-6-2v-1.5zm0 4c1.4.7 3.5 1 6 1s4.6-.3 6-1V16c0 1.1-2.7 2-6 2s-6-.9-6-2v-1.5z"],
    DeviceType.GENERIC: ["M4 4h16v16H4V4zm2 2v12h12V6H6zm2 2h8v2H8V8zm0 4h8v2H8v-2z"],
}

_VIEW_BOX = re.compile(r"^\s*(-?[\d.]+)\s+(-?[\d.]+)\s+([\d.]+)\s+([\d.]+)\s*$")


@dataclass
class VendorIcon:
    body: str                  # SVG markup without the outer <svg>
    view_box: str = "0 0 48 48"


@dataclass
class IconInfo:
    """A sized icon ready to place: `element` is an `<svg>` of width x height."""
    width: float
    height: float
    element: Element


class IconRegistry:
    """Vendor icon lookup keyed by (vendor, key[, resource])."""

    def __init__(self):
        self._icons: dict[tuple[str, str, Optional[str]], VendorIcon] = {}

    def register(self, vendor: str, key: str, svg_body: str, view_box: str = "0 0 48 48",
                 resource: Optional[str] = None) -> None:
        self._icons[(vendor.lower(), key.lower(), resource.lower() if resource else None)] = VendorIcon(svg_body, view_box)

    def lookup(self, vendor: str, key: str, resource: Optional[str] = None) -> Optional[VendorIcon]:
        """Find an icon, preferring a resource-specific entry."""
        vendor, key = vendor.lower(), key.lower()
        if resource:
            found = self._icons.get((vendor, key, resource.lower()))
            if found is not None:
                return found
        return self._icons.get((vendor, key, None))

    def __len__(self) -> int:
        return len(self._icons)


def _aspect(view_box: str) -> float:
    match = _VIEW_BOX.match(view_box)
    if not match:
        return 1.0
    width, height = float(match.group(3)), float(match.group(4))
    return width / height if height else 1.0


def _vendor_svg(icon: VendorIcon, size: float, max_width: float) -> Optional[IconInfo]:
    try:
        parsed = ET.fromstring(f"<g>{icon.body}</g>")
    except ET.ParseError as exc:
        logger.warning(f"Ignoring malformed vendor icon: {exc}")
        return None
    aspect = _aspect(icon.view_box)
    width = size if abs(aspect - 1) < 0.01 else round(size * aspect)
    height = size
    if width > max_width:
        width = max_width
        height = round(max_width / aspect)
    svg = Element("svg", {"width": width, "height": height, "viewBox": icon.view_box})
    for child in element_from_etree(parsed).children:
        svg.append(child)
    return IconInfo(width, height, svg)


def device_icon(device_type: Optional[DeviceType], size: float = DEFAULT_ICON_SIZE) -> Optional[IconInfo]:
    """The built-in glyph for a device type, or None."""
    if device_type is None or device_type not in DEVICE_ICONS:
        return None
    svg = Element("svg", {"width": size, "height": size, "viewBox": "0 0 24 24", "fill": "currentColor"})
    for d in DEVICE_ICONS[device_type]:
        svg.append(Element("path", {"d": d}))
    return IconInfo(size, size, svg)


def resolve_icon(
    registry: Optional[IconRegistry],
    vendor: Optional[str],
    key: Optional[str],
    resource: Optional[str] = None,
    device_type: Optional[DeviceType] = None,
    size: float = DEFAULT_ICON_SIZE,
    max_width: Optional[float] = None,
) -> Optional[IconInfo]:
    """
    Resolve the icon to draw for a node or grouping.

    Args:
        registry: Vendor icon registry (may be None)
        vendor: Vendor name
        key: Service or model key within the vendor set
        resource: Optional resource variant
        device_type: Fallback device type
        size: Nominal icon height
        max_width: Width cap (aspect ratio preserved)

    Returns:
        IconInfo or None when nothing applies
    """
    if registry is not None and vendor and key:
        icon = registry.lookup(vendor, key, resource)
        if icon is not None:
            info = _vendor_svg(icon, size, max_width if max_width is not None else float("inf"))
            if info is not None:
                return info
    return device_icon(device_type, size)
