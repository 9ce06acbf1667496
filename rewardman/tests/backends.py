"""In-memory booking backend used by the test suite."""

from decimal import Decimal

from rewardman.protocols.booking import BookingSnapshot

# booking_id -> BookingSnapshot
BOOKINGS: dict[str, BookingSnapshot] = {}

# booking_id -> (grant_id, discount)
APPLIED: dict[str, tuple[str, Decimal]] = {}


class InMemoryBookingBackend:
    """BookingBackend over module-level dicts (cleared per test by conftest)."""

    fail_on_apply = False

    def get_booking(self, booking_id):
        return BOOKINGS.get(booking_id)

    def apply_reward(self, booking_id, grant_id, discount):
        if self.fail_on_apply:
            raise RuntimeError("booking system unavailable")
        APPLIED[booking_id] = (grant_id, discount)


def add_booking(snapshot: BookingSnapshot) -> BookingSnapshot:
    BOOKINGS[snapshot.booking_id] = snapshot
    return snapshot


def reset():
    BOOKINGS.clear()
    APPLIED.clear()
