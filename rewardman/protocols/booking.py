"""Booking protocol for cross-app communication."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class BookingSnapshot:
    """What the rewards engine needs to know about a booking."""

    booking_id: str
    user_id: str
    service_id: str
    service_category: str
    base_price: Decimal  # list price, before any reward discount
    total: Decimal  # amount charged, credited to spend tracks


@runtime_checkable
class BookingBackend(Protocol):
    """
    Protocol for reading and annotating bookings.

    Booking CRUD lives outside rewardman. The host project implements this
    against its own booking tables.

    Configuration in settings.py:
        REWARDMAN = {
            "BOOKING_BACKEND": "bookings.adapters.RewardmanBookingBackend",
        }
    """

    def get_booking(self, booking_id: str) -> BookingSnapshot | None:
        """
        Return the booking, or None if it doesn't exist.

        Args:
            booking_id: Booking identifier

        Returns:
            BookingSnapshot or None
        """
        ...

    def apply_reward(self, booking_id: str, grant_id: str, discount: Decimal) -> None:
        """
        Annotate the booking with a redeemed reward.

        Called inside the redemption transaction: raising rolls the
        redemption back.

        Args:
            booking_id: Booking identifier
            grant_id: RewardGrant id (str)
            discount: Discount amount to apply
        """
        ...
