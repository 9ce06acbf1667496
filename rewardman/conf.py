"""
Rewardman configuration.

Usage in settings.py:
    REWARDMAN = {
        "BOOKING_BACKEND": "bookings.adapters.RewardmanBookingBackend",
        "LEGACY_SPEND_TRACK": "spend",
        "SWEEP_INTERVAL_SECONDS": 3600,
    }

Programme-level business flags (enabled, referral minimum, ...) are not
settings: they live in the RewardsProgramme table so staff can edit them.
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class RewardmanSettings:
    """Rewardman configuration settings."""

    # Dotted path to a BookingBackend implementation
    BOOKING_BACKEND: str = ""

    # Track credited when no service/category mapping matches
    LEGACY_SPEND_TRACK: str = "spend"

    # Used for manual grants and referral rewards without explicit expiry
    DEFAULT_REWARD_EXPIRY_DAYS: int = 90

    # Expiry sweeper loop interval
    SWEEP_INTERVAL_SECONDS: int = 3600

    # Pause before the single retry on lock contention
    CONTENTION_RETRY_DELAY: float = 0.05


def get_rewardman_settings() -> RewardmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "REWARDMAN", {})
    return RewardmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_rewardman_settings(), name)


rewardman_settings = _LazySettings()
