import pytest

from netdiagram.quality import TIER_SETTINGS, DeviceProfile, QualityTier, detect_tier, tier_settings


@pytest.mark.parametrize("cpus,memory,tier", [
    (16, 32, QualityTier.HIGH),
    (8, 8, QualityTier.HIGH),
    (None, None, QualityTier.HIGH),
    (8, 4, QualityTier.MEDIUM),
    (4, None, QualityTier.MEDIUM),
    (4, 16, QualityTier.MEDIUM),
    (2, 16, QualityTier.LOW),
    (1, None, QualityTier.LOW),
])
def test_detect_tier(cpus, memory, tier):
    assert detect_tier(DeviceProfile(cpu_count=cpus, memory_gb=memory)) == tier


def test_reduced_motion_does_not_change_tier():
    assert detect_tier(DeviceProfile(cpu_count=16, memory_gb=32, reduced_motion=True)) == QualityTier.HIGH


def test_tier_table():
    high, medium, low = (TIER_SETTINGS[t] for t in (QualityTier.HIGH, QualityTier.MEDIUM, QualityTier.LOW))
    assert (high.sample_interval, high.min_samples, high.batch_size, high.animate) == (4, 30, 24, True)
    assert (medium.sample_interval, medium.min_samples, medium.batch_size, medium.animate) == (8, 16, 12, True)
    assert (low.sample_interval, low.min_samples, low.batch_size, low.animate) == (16, 8, 4, False)


def test_reduced_motion_disables_animation_only():
    settings = tier_settings(QualityTier.HIGH, reduced_motion=True)
    assert not settings.animate
    assert settings.batch_size == 24
    assert TIER_SETTINGS[QualityTier.HIGH].animate


def test_current_profile():
    profile = DeviceProfile.current(reduced_motion=True)
    assert profile.reduced_motion
    assert profile.memory_gb is None
