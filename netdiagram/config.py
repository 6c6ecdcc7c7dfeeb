"""Runtime options for the renderer and the weathermap overlay."""

import os
from dataclasses import dataclass
from typing import Optional

from .constants import DEFAULT_QUEUE_CAPACITY, DEFAULT_TIME_SLICE_MS
from .models import Theme
from .quality import QualityTier

DEFAULT_FONT_FAMILY = '-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif'

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class RenderOptions:
    """Options for the geometry renderer."""

    # Overrides the graph's own settings.theme when set
    theme: Optional[Theme] = None

    font_family: str = DEFAULT_FONT_FAMILY


@dataclass
class OverlayOptions:
    """Options for the weathermap overlay controller."""

    # Explicit tier; detected from the device profile when None
    tier: Optional[QualityTier] = None

    # Disables flow animation regardless of tier
    reduced_motion: bool = False

    # Maximum number of link groups waiting to be built
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY

    # Idle time budget per build batch
    time_slice_ms: float = DEFAULT_TIME_SLICE_MS

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "OverlayOptions":
        """
        Build options from NETDIAGRAM_* environment variables.

        Reads NETDIAGRAM_QUALITY_TIER (high/medium/low),
        NETDIAGRAM_REDUCED_MOTION (1/true/yes/on) and
        NETDIAGRAM_TIME_SLICE_MS.

        Raises:
            ValueError: A variable is set to an unusable value
        """
        env = os.environ if environ is None else environ
        options = cls()
        tier = env.get("NETDIAGRAM_QUALITY_TIER")
        if tier:
            options.tier = QualityTier(tier.strip().lower())
        motion = env.get("NETDIAGRAM_REDUCED_MOTION")
        if motion:
            options.reduced_motion = motion.strip().lower() in _TRUTHY
        time_slice = env.get("NETDIAGRAM_TIME_SLICE_MS")
        if time_slice:
            options.time_slice_ms = float(time_slice)
        return options
