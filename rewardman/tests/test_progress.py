"""Customer progress query tests."""

from decimal import Decimal

import pytest

from rewardman.choices import TrackType
from rewardman.models import TrackDefinition
from rewardman.services.issuance import IssuanceService
from rewardman.services.progress import ProgressService

pytestmark = pytest.mark.django_db


class TestProgressForUser:
    def test_untouched_tracks_listed_at_zero(self, nails_track, spend_track):
        views = {v.track_name: v for v in ProgressService.for_user("user-1")}

        assert set(views) == {"nails", "spend"}
        assert views["nails"].current_count == Decimal("0")
        assert views["nails"].next_threshold == Decimal("5")
        assert views["nails"].remaining == Decimal("5")
        assert views["spend"].next_reward == "Free blow-dry"

    def test_progress_after_visits(self, programme, nails_mapping, make_booking):
        for _ in range(7):
            IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        view = ProgressService.for_user("user-1")[0]

        assert view.current_count == Decimal("7")
        assert view.last_milestone_reached == 1
        assert view.next_threshold == Decimal("10")
        assert view.remaining == Decimal("3")
        assert view.progress_percent == 70

    def test_all_one_time_milestones_reached(self, programme, hair_track, make_booking):
        for _ in range(6):
            IssuanceService.process_booking(
                make_booking(service_id="haircut", service_category="hair"), payment_confirmed=True
            )

        view = next(v for v in ProgressService.for_user("user-1") if v.track_name == "hair")

        assert view.next_threshold is None
        assert view.progress_percent == 100

    def test_inactive_tracks_hidden(self, nails_track):
        nails_track.is_active = False
        nails_track.save()
        assert ProgressService.for_user("user-1") == []

    def test_broken_track_still_listed(self):
        TrackDefinition.objects.create(
            name="broken",
            display_name="Broken",
            track_type=TrackType.VISIT_COUNT,
            milestones="not json",
        )

        view = ProgressService.for_user("user-1")[0]

        assert view.track_name == "broken"
        assert view.next_threshold is None

    def test_lifetime_counters_follow_credits(self, programme, spend_track, make_booking):
        IssuanceService.process_booking(make_booking(service_category="skin", total="600"), payment_confirmed=True)
        IssuanceService.process_booking(make_booking(service_category="skin", total="700"), payment_confirmed=True)

        progress = ProgressService.get("user-1", "spend")

        assert progress.lifetime_amount == Decimal("1300.00")
        assert progress.lifetime_amount == progress.current_amount
        assert progress.lifetime_count == Decimal("0")

    def test_get(self, programme, nails_mapping, make_booking):
        assert ProgressService.get("user-1", "nails") is None
        IssuanceService.process_booking(make_booking(), payment_confirmed=True)
        assert ProgressService.get("user-1", "nails").current_count == Decimal("1")
