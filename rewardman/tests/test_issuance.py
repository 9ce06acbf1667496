"""
Issuance tests.

Booking → track resolution → ledger credit → milestone grants.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import OperationalError
from django.utils import timezone

from rewardman.choices import GrantStatus, RewardType, TrackType
from rewardman.exceptions import RewardmanError
from rewardman.models import (
    CategoryTrackMapping,
    ProgressCredit,
    RewardGrant,
    RewardsProgramme,
    ServiceTrackMapping,
    TrackDefinition,
    TrackProgress,
)
from rewardman.services.issuance import (
    CREDITED,
    DUPLICATE,
    ERROR,
    PAYMENT_PENDING,
    SKIPPED,
    IssuanceService,
)
from rewardman.services.progress import ProgressLedger
from rewardman.signals import progress_updated, reward_granted

pytestmark = pytest.mark.django_db


def _progress(user_id, track_name):
    return TrackProgress.objects.get(user_id=user_id, track_name=track_name)


# ═══════════════════════════════════════════════════════════════════
# Milestone crossing
# ═══════════════════════════════════════════════════════════════════


class TestVisitTrack:
    """Repeating 10% reward every 5 nail visits."""

    def test_fifth_visit_issues_one_grant(self, programme, nails_mapping, make_booking):
        results = [
            IssuanceService.process_booking(make_booking(), payment_confirmed=True)
            for _ in range(5)
        ]

        assert all(not r.grants for r in results[:4])
        assert len(results[4].grants) == 1

        grant = results[4].grants[0]
        assert grant.reward_type == RewardType.PERCENTAGE_DISCOUNT
        assert grant.reward_value == Decimal("10")
        assert grant.status == GrantStatus.ACTIVE
        assert grant.source_track == "nails"
        assert grant.source_milestone == "count:5/repeat#1"

        progress = _progress("user-1", "nails")
        assert progress.current_count == Decimal("5")
        assert progress.last_milestone_reached == 1

    def test_tenth_visit_issues_second_cycle(self, programme, nails_mapping, make_booking):
        for _ in range(10):
            IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        grants = RewardGrant.objects.filter(user_id="user-1", source_track="nails")
        assert grants.count() == 2
        assert {g.source_milestone for g in grants} == {"count:5/repeat#1", "count:5/repeat#2"}
        assert _progress("user-1", "nails").last_milestone_reached == 2

    def test_grant_expiry_from_track(self, programme, nails_mapping, make_booking):
        for _ in range(4):
            IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        before = timezone.now()
        result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)
        grant = result.grants[0]

        assert grant.expires_at >= before + timedelta(days=60)
        assert grant.expires_at <= timezone.now() + timedelta(days=60)

    def test_progress_is_per_user(self, programme, nails_mapping, make_booking):
        for _ in range(3):
            IssuanceService.process_booking(make_booking(user_id="user-1"), payment_confirmed=True)
        IssuanceService.process_booking(make_booking(user_id="user-2"), payment_confirmed=True)

        assert _progress("user-1", "nails").current_count == Decimal("3")
        assert _progress("user-2", "nails").current_count == Decimal("1")


class TestSpendTrack:
    """Legacy spend track: free service every 1000."""

    def test_600_then_600_issues_one_grant(self, programme, spend_track, make_booking):
        first = IssuanceService.process_booking(
            make_booking(service_category="massage", total="600"), payment_confirmed=True
        )
        second = IssuanceService.process_booking(
            make_booking(service_category="massage", total="600"), payment_confirmed=True
        )

        assert first.grants == []
        assert len(second.grants) == 1
        assert second.grants[0].description == "Free blow-dry"
        assert _progress("user-1", "spend").current_amount == Decimal("1200.00")

    def test_jump_of_two_cycles_issues_two_grants(self, programme, spend_track, make_booking):
        result = IssuanceService.process_booking(
            make_booking(service_category="bridal", total="2000"), payment_confirmed=True
        )

        assert len(result.grants) == 2
        assert sorted(g.source_milestone for g in result.grants) == [
            "amount:1000/repeat#1",
            "amount:1000/repeat#2",
        ]

    def test_multiplier_scales_amount(self, programme, spend_track, make_booking):
        CategoryTrackMapping.objects.create(
            category_name="colour",
            track=spend_track,
            points_multiplier=Decimal("1.5"),
        )

        outcome = IssuanceService.process_booking(
            make_booking(service_category="colour", total="800"), payment_confirmed=True
        ).outcome("spend")

        assert outcome.status == CREDITED
        assert outcome.source == "category"
        assert outcome.current_amount == Decimal("1200.00")
        assert len(outcome.grants) == 1


class TestOneTimeMilestones:
    """Hair track: 200 off at 3 visits, 50% off at 6 visits, no repeats."""

    def test_each_threshold_crossed_once(self, programme, hair_track, make_booking):
        grants_per_visit = [
            len(
                IssuanceService.process_booking(
                    make_booking(service_id="haircut", service_category="hair"),
                    payment_confirmed=True,
                ).grants
            )
            for _ in range(8)
        ]

        assert grants_per_visit == [0, 0, 1, 0, 0, 1, 0, 0]
        assert _progress("user-1", "hair").last_milestone_reached == 6

    def test_same_category_restriction(self, programme, hair_track, make_booking):
        for _ in range(3):
            result = IssuanceService.process_booking(
                make_booking(service_id="haircut", service_category="hair"),
                payment_confirmed=True,
            )

        grant = result.grants[0]
        assert grant.applicable_to == "hair"
        assert grant.reward_type == RewardType.FIXED_DISCOUNT
        assert grant.source_milestone == "count:3"

    def test_existing_grants_kept_when_threshold_changes(self, programme, hair_track, make_booking):
        for _ in range(3):
            IssuanceService.process_booking(
                make_booking(service_id="haircut", service_category="hair"), payment_confirmed=True
            )

        hair_track.milestones = [{"count": 10, "reward_type": "free_service"}]
        hair_track.save()
        IssuanceService.process_booking(
            make_booking(service_id="haircut", service_category="hair"), payment_confirmed=True
        )

        grant = RewardGrant.objects.get(source_track="hair")
        assert grant.status == GrantStatus.ACTIVE
        assert _progress("user-1", "hair").current_count == Decimal("4")

    def test_mixed_track_records_repeating_cycles(self, programme, make_booking):
        brows = TrackDefinition.objects.create(
            name="brows",
            display_name="Brows",
            track_type=TrackType.VISIT_COUNT,
            milestones=[
                {"count": 3, "reward_type": "fixed_discount", "reward_value": 100},
                {"count": 5, "reward_type": "percentage_discount", "reward_value": 10, "repeating": True},
            ],
        )
        CategoryTrackMapping.objects.create(category_name="brows", track=brows)

        watermarks = []
        for _ in range(10):
            IssuanceService.process_booking(make_booking(service_category="brows"), payment_confirmed=True)
            watermarks.append(_progress("user-1", "brows").last_milestone_reached)

        assert watermarks == [0, 0, 0, 0, 1, 1, 1, 1, 1, 2]
        assert RewardGrant.objects.filter(source_track="brows").count() == 3


# ═══════════════════════════════════════════════════════════════════
# Idempotence and payment
# ═══════════════════════════════════════════════════════════════════


class TestDuplicateDelivery:
    def test_same_booking_credited_once(self, programme, nails_mapping, make_booking):
        booking = make_booking()

        first = IssuanceService.process_booking(booking, payment_confirmed=True)
        second = IssuanceService.process_booking(booking, payment_confirmed=True)

        assert first.outcome("nails").status == CREDITED
        assert second.outcome("nails").status == DUPLICATE
        assert _progress("user-1", "nails").current_count == Decimal("1")
        assert ProgressCredit.objects.filter(booking_id=booking.booking_id).count() == 1

    def test_redelivered_milestone_booking_issues_no_second_grant(self, programme, nails_mapping, make_booking):
        for _ in range(4):
            IssuanceService.process_booking(make_booking(), payment_confirmed=True)
        fifth = make_booking()

        IssuanceService.process_booking(fifth, payment_confirmed=True)
        replay = IssuanceService.process_booking(fifth, payment_confirmed=True)

        assert replay.grants == []
        assert RewardGrant.objects.filter(user_id="user-1").count() == 1


class TestPaymentPending:
    def test_mapping_requiring_payment_is_skipped(self, programme, nails_mapping, make_booking):
        booking = make_booking()

        result = IssuanceService.process_booking(booking, payment_confirmed=False)

        outcome = result.outcome("nails")
        assert outcome.status == SKIPPED
        assert outcome.reason == PAYMENT_PENDING
        assert not TrackProgress.objects.exists()
        assert not ProgressCredit.objects.exists()

    def test_credited_once_payment_confirmed(self, programme, nails_mapping, make_booking):
        booking = make_booking()

        IssuanceService.process_booking(booking, payment_confirmed=False)
        result = IssuanceService.process_booking(booking, payment_confirmed=True)

        assert result.outcome("nails").status == CREDITED
        assert _progress("user-1", "nails").current_count == Decimal("1")

    def test_mapping_without_payment_requirement(self, programme, nails_track, make_booking):
        CategoryTrackMapping.objects.create(category_name="nails", track=nails_track, requires_payment=False)

        result = IssuanceService.process_booking(make_booking(), payment_confirmed=False)

        assert result.outcome("nails").status == CREDITED


# ═══════════════════════════════════════════════════════════════════
# Resolution and track independence
# ═══════════════════════════════════════════════════════════════════


class TestResolution:
    def test_service_and_category_tracks_both_credited(self, programme, nails_mapping, make_booking):
        gel = TrackDefinition.objects.create(
            name="gel",
            display_name="Gel",
            track_type=TrackType.VISIT_COUNT,
            milestones=[],
        )
        ServiceTrackMapping.objects.create(service_id="gel-manicure", track=gel)

        result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert {o.track_name: o.source for o in result.tracks} == {"gel": "service", "nails": "category"}
        assert {o.status for o in result.tracks} == {CREDITED}
        assert _progress("user-1", "gel").current_count == Decimal("1")
        assert _progress("user-1", "nails").current_count == Decimal("1")

    def test_service_mapping_wins_over_category_for_same_track(self, programme, nails_mapping, nails_track, make_booking):
        ServiceTrackMapping.objects.create(
            service_id="gel-manicure", track=nails_track, points_multiplier=Decimal("2")
        )

        result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert [o.track_name for o in result.tracks] == ["nails"]
        assert result.tracks[0].source == "service"
        assert _progress("user-1", "nails").current_count == Decimal("2")

    def test_mapped_booking_skips_legacy_spend(self, programme, nails_mapping, spend_track, make_booking):
        result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert [o.track_name for o in result.tracks] == ["nails"]

    def test_legacy_spend_fallback_for_unmapped_booking(self, programme, nails_mapping, spend_track, make_booking):
        result = IssuanceService.process_booking(
            make_booking(service_id="facial", service_category="skin"), payment_confirmed=True
        )

        assert [o.track_name for o in result.tracks] == ["spend"]
        assert result.tracks[0].source == "legacy_spend"

    def test_no_fallback_when_spend_tracking_disabled(self, programme, spend_track, make_booking):
        programme.spend_tracking_enabled = False
        programme.save()

        result = IssuanceService.process_booking(
            make_booking(service_category="skin"), payment_confirmed=True
        )

        assert result.tracks == []
        assert not TrackProgress.objects.exists()

    def test_inactive_track_not_credited(self, programme, nails_mapping, nails_track, make_booking):
        nails_track.is_active = False
        nails_track.save()

        result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert result.tracks == []

    def test_misconfigured_track_does_not_block_others(self, programme, nails_mapping, make_booking):
        broken = TrackDefinition.objects.create(
            name="broken",
            display_name="Broken",
            track_type=TrackType.VISIT_COUNT,
            milestones=[{"count": 0, "reward_type": "free_service"}],
        )
        CategoryTrackMapping.objects.create(category_name="nails", track=broken)

        result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert result.outcome("broken").status == ERROR
        assert result.outcome("broken").errors
        assert "broken" in result.errors
        assert result.outcome("nails").status == CREDITED
        assert not TrackProgress.objects.filter(track_name="broken").exists()


class TestProgrammeDisabled:
    def test_nothing_credited(self, programme, nails_mapping, make_booking):
        programme.programme_enabled = False
        programme.save()

        result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert result.enabled is False
        assert result.tracks == []
        assert not TrackProgress.objects.exists()
        assert not ProgressCredit.objects.exists()


# ═══════════════════════════════════════════════════════════════════
# Contention and signals
# ═══════════════════════════════════════════════════════════════════


class TestContention:
    def test_single_lock_timeout_is_retried(self, programme, nails_mapping, make_booking):
        real_credit = ProgressLedger.credit
        calls = {"n": 0}

        def flaky(**kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("database is locked")
            return real_credit(**kwargs)

        with patch.object(ProgressLedger, "credit", side_effect=flaky):
            result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert calls["n"] == 2
        assert result.outcome("nails").status == CREDITED
        assert ProgressCredit.objects.count() == 1

    def test_persistent_contention_raises_transient(self, programme, nails_mapping, make_booking):
        with patch.object(ProgressLedger, "credit", side_effect=OperationalError("database is locked")):
            with pytest.raises(RewardmanError) as exc:
                IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert exc.value.code == "TRANSIENT"
        assert not ProgressCredit.objects.exists()


class TestSignals:
    def test_signals_sent_after_commit(self, programme, nails_mapping, make_booking, django_capture_on_commit_callbacks):
        granted, updated = [], []

        def on_granted(sender, grant, **kwargs):
            granted.append(grant)

        def on_updated(sender, progress, booking_id, **kwargs):
            updated.append(booking_id)

        reward_granted.connect(on_granted)
        progress_updated.connect(on_updated)
        try:
            for _ in range(4):
                IssuanceService.process_booking(make_booking(), payment_confirmed=True)
            with django_capture_on_commit_callbacks(execute=True):
                result = IssuanceService.process_booking(make_booking(), payment_confirmed=True)
        finally:
            reward_granted.disconnect(on_granted)
            progress_updated.disconnect(on_updated)

        assert granted == result.grants
        assert updated == [result.booking_id]


class TestDeltas:
    def test_visit_delta_uses_multiplier(self, nails_track, make_booking):
        count, amount = IssuanceService.deltas(nails_track, make_booking(), Decimal("2"))
        assert count == Decimal("2.00")
        assert amount == Decimal("0")

    def test_spend_delta_uses_total(self, spend_track, make_booking):
        count, amount = IssuanceService.deltas(spend_track, make_booking(total="333.33"), Decimal("1.5"))
        assert count == Decimal("0")
        assert amount == Decimal("500.00")


def test_programme_row_created_on_demand():
    assert not RewardsProgramme.objects.exists()
    assert RewardsProgramme.load().programme_enabled is True
    assert RewardsProgramme.objects.count() == 1
