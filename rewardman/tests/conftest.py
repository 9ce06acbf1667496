"""Pytest fixtures for Rewardman tests."""

from decimal import Decimal

import pytest

from rewardman.choices import RewardType, TrackType
from rewardman.models import (
    CategoryTrackMapping,
    RewardGrant,
    RewardsProgramme,
    ServicePackage,
    ServiceTrackMapping,
    TrackDefinition,
)
from rewardman.protocols.booking import BookingSnapshot
from rewardman.tests import backends


@pytest.fixture(autouse=True)
def booking_store():
    """Fresh in-memory booking system per test."""
    backends.reset()
    backends.InMemoryBookingBackend.fail_on_apply = False
    yield backends
    backends.reset()


@pytest.fixture
def programme(db):
    """Programme row with referrals on, minimum booking value 1000."""
    return RewardsProgramme.load()


@pytest.fixture
def make_booking():
    """Factory for booking snapshots, registered with the fake backend."""
    counter = {"n": 0}

    def _make(
        user_id="user-1",
        service_id="gel-manicure",
        service_category="nails",
        total="500.00",
        base_price=None,
        booking_id=None,
    ):
        counter["n"] += 1
        snapshot = BookingSnapshot(
            booking_id=booking_id or f"BK-{counter['n']:04d}",
            user_id=user_id,
            service_id=service_id,
            service_category=service_category,
            base_price=Decimal(base_price if base_price is not None else total),
            total=Decimal(total),
        )
        return backends.add_booking(snapshot)

    return _make


@pytest.fixture
def nails_track(db):
    """Visit track: repeating 10% off every 5 nail visits."""
    return TrackDefinition.objects.create(
        name="nails",
        display_name="Nail Visits",
        track_type=TrackType.VISIT_COUNT,
        milestones=[
            {"count": 5, "reward_type": "percentage_discount", "reward_value": 10, "repeating": True},
        ],
        reward_expiry_days=60,
    )


@pytest.fixture
def nails_mapping(nails_track):
    return CategoryTrackMapping.objects.create(category_name="nails", track=nails_track)


@pytest.fixture
def spend_track(db):
    """Legacy flat spend track: free service every 1000 spent."""
    return TrackDefinition.objects.create(
        name="spend",
        display_name="Total Spend",
        track_type=TrackType.SPEND_AMOUNT,
        milestones=[
            {"amount": 1000, "reward_type": "free_service", "reward_value": 0, "repeating": True,
             "description": "Free blow-dry"},
        ],
    )


@pytest.fixture
def hair_track(db):
    """Visit track with one-time milestones at 3 and 6 visits."""
    track = TrackDefinition.objects.create(
        name="hair",
        display_name="Hair Visits",
        track_type=TrackType.VISIT_COUNT,
        milestones=[
            {"count": 3, "reward_type": "fixed_discount", "reward_value": 200},
            {"count": 6, "reward_type": "percentage_discount", "reward_value": 50},
        ],
        reward_applicable_to="same_category",
    )
    ServiceTrackMapping.objects.create(service_id="haircut", track=track)
    return track


@pytest.fixture
def active_grant(db):
    """Active 20% grant for user-1, applicable to any service."""
    from datetime import timedelta

    from django.utils import timezone

    return RewardGrant.objects.create(
        user_id="user-1",
        reward_type=RewardType.PERCENTAGE_DISCOUNT,
        reward_value=Decimal("20"),
        description="20% off",
        source_track="manual",
        expires_at=timezone.now() + timedelta(days=30),
    )


@pytest.fixture
def monthly_package(db):
    return ServicePackage.objects.create(
        name="4 Blow-dries",
        service_type="hair",
        total_sessions=4,
        base_price=Decimal("2000.00"),
        discount_percent=Decimal("20"),
        final_price=Decimal("1600.00"),
    )
