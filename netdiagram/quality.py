"""
Overlay quality tiers.

A tier fixes the sampling density of offset paths, how many link groups
are built per idle batch, and whether flow animation runs. The tier is
picked once, when an overlay controller is constructed.
"""

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class QualityTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class TierSettings:
    """Per-tier overlay parameters."""
    sample_interval: float  # px between samples along a curved path
    min_samples: int        # floor on samples per curved path
    batch_size: int         # link groups built per idle batch at most
    animate: bool           # run flow animation at all


TIER_SETTINGS: dict[QualityTier, TierSettings] = {
    QualityTier.HIGH: TierSettings(sample_interval=4, min_samples=30, batch_size=24, animate=True),
    QualityTier.MEDIUM: TierSettings(sample_interval=8, min_samples=16, batch_size=12, animate=True),
    QualityTier.LOW: TierSettings(sample_interval=16, min_samples=8, batch_size=4, animate=False),
}


@dataclass
class DeviceProfile:
    """What is known about the host rendering the overlay."""
    cpu_count: Optional[int] = None
    memory_gb: Optional[float] = None
    reduced_motion: bool = False

    @classmethod
    def current(cls, reduced_motion: bool = False) -> "DeviceProfile":
        """Profile of the local machine (memory is not probed)."""
        return cls(cpu_count=os.cpu_count(), memory_gb=None, reduced_motion=reduced_motion)


def detect_tier(profile: DeviceProfile) -> QualityTier:
    """
    Pick a quality tier from a device profile.

    Unknown values are treated optimistically. A reduced-motion preference
    does not lower the tier; it only disables animation (see `tier_settings`).

    Args:
        profile: Host capabilities

    Returns:
        The quality tier
    """
    cpus = profile.cpu_count
    memory = profile.memory_gb
    if (cpus is None or cpus >= 8) and (memory is None or memory >= 8):
        return QualityTier.HIGH
    if cpus is None or cpus >= 4:
        return QualityTier.MEDIUM
    return QualityTier.LOW


def tier_settings(tier: QualityTier, reduced_motion: bool = False) -> TierSettings:
    """Settings for a tier; reduced motion forces animation off."""
    settings = TIER_SETTINGS[tier]
    if reduced_motion:
        settings = replace(settings, animate=False)
    return settings
