"""Rewardman protocols."""

from rewardman.protocols.booking import (
    BookingBackend,
    BookingSnapshot,
)

__all__ = [
    "BookingBackend",
    "BookingSnapshot",
]
