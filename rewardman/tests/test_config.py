"""ConfigService and gate tests."""

from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from rewardman.choices import TrackType
from rewardman.exceptions import RewardmanError
from rewardman.gates import GateError, Gates
from rewardman.models import CategoryTrackMapping, RewardsProgramme, ServiceTrackMapping, TrackDefinition
from rewardman.services.config import ConfigService
from rewardman.services.issuance import IssuanceService

pytestmark = pytest.mark.django_db

NAIL_MILESTONES = [
    {"count": 6, "reward_type": "percentage_discount", "reward_value": 10},
    {"count": 12, "reward_type": "percentage_discount", "reward_value": 50},
]


# ═══════════════════════════════════════════════════════════════════
# Gates
# ═══════════════════════════════════════════════════════════════════


class TestG1MilestoneSchedule:
    def test_valid_schedule_passes(self):
        assert Gates.milestone_schedule(TrackType.VISIT_COUNT, NAIL_MILESTONES).passed

    def test_invalid_schedule_raises(self):
        with pytest.raises(GateError) as exc:
            Gates.milestone_schedule(TrackType.VISIT_COUNT, [{"count": -1, "reward_type": "free_service"}])
        assert exc.value.details["errors"]

    def test_check_variant_returns_bool(self):
        assert Gates.check_milestone_schedule(TrackType.VISIT_COUNT, NAIL_MILESTONES) is True
        assert Gates.check_milestone_schedule(TrackType.SPEND_AMOUNT, NAIL_MILESTONES) is False


class TestG2CreditReplay:
    def test_first_credit_passes(self):
        assert Gates.credit_replay("BK-1", "nails", "user-1").passed
        assert Gates.is_credited("BK-1", "nails")

    def test_replay_raises(self):
        Gates.credit_replay("BK-1", "nails", "user-1")
        with pytest.raises(GateError, match="Replay detected"):
            Gates.credit_replay("BK-1", "nails", "user-1")

    def test_same_booking_other_track_passes(self):
        Gates.credit_replay("BK-1", "nails", "user-1")
        assert Gates.credit_replay("BK-1", "spend", "user-1").passed

    def test_empty_booking_id_raises(self):
        with pytest.raises(GateError):
            Gates.credit_replay("", "nails", "user-1")


class TestG3ReferralEligibility:
    def test_distinct_customers_pass(self):
        assert Gates.referral_eligibility("alice", "bob").passed

    def test_self_referral(self):
        assert Gates.check_referral_eligibility("alice", "alice") is False

    def test_missing_ids(self):
        with pytest.raises(GateError):
            Gates.referral_eligibility("", "bob")


# ═══════════════════════════════════════════════════════════════════
# Tracks
# ═══════════════════════════════════════════════════════════════════


class TestTracks:
    def test_create_track(self):
        track = ConfigService.create_track("nails", "Nail Visits", TrackType.VISIT_COUNT, NAIL_MILESTONES, icon="💅")

        assert track.pk
        assert [m.count for m in track.milestone_schedule] == [6, 12]
        assert track.icon == "💅"

    def test_invalid_milestones_rejected(self):
        with pytest.raises(RewardmanError) as exc:
            ConfigService.create_track(
                "nails",
                "Nail Visits",
                TrackType.VISIT_COUNT,
                [{"count": 12, "reward_type": "free_service"}, {"count": 6, "reward_type": "free_service"}],
            )

        assert exc.value.code == "INVALID_CONFIG"
        assert "milestones" in exc.value.data["errors"]
        assert not TrackDefinition.objects.exists()

    def test_duplicate_name_rejected(self):
        ConfigService.create_track("nails", "Nail Visits", TrackType.VISIT_COUNT, [])
        with pytest.raises(RewardmanError):
            ConfigService.create_track("nails", "Again", TrackType.VISIT_COUNT, [])

    def test_zero_expiry_rejected(self):
        with pytest.raises(RewardmanError) as exc:
            ConfigService.create_track("nails", "Nail Visits", TrackType.VISIT_COUNT, [], reward_expiry_days=0)
        assert "reward_expiry_days" in exc.value.data["errors"]

    def test_update_track(self):
        ConfigService.create_track("nails", "Nail Visits", TrackType.VISIT_COUNT, NAIL_MILESTONES)

        track = ConfigService.update_track("nails", display_name="Nails", reward_expiry_days=30)

        assert track.display_name == "Nails"
        assert TrackDefinition.objects.get(name="nails").reward_expiry_days == 30

    def test_update_rejects_bad_milestones(self):
        ConfigService.create_track("nails", "Nail Visits", TrackType.VISIT_COUNT, NAIL_MILESTONES)

        with pytest.raises(RewardmanError):
            ConfigService.update_track("nails", milestones=[{"amount": 100, "reward_type": "free_service"}])

        assert TrackDefinition.objects.get(name="nails").milestones == NAIL_MILESTONES

    def test_type_cannot_change(self):
        ConfigService.create_track("nails", "Nail Visits", TrackType.VISIT_COUNT, [])
        with pytest.raises(RewardmanError):
            ConfigService.update_track("nails", track_type=TrackType.SPEND_AMOUNT)

    def test_deactivate_track(self, programme, make_booking):
        ConfigService.create_track("nails", "Nail Visits", TrackType.VISIT_COUNT, NAIL_MILESTONES)
        ConfigService.map_category("nails", "nails")

        track = ConfigService.deactivate_track("nails")

        assert track.is_active is False
        assert IssuanceService.process_booking(make_booking(), payment_confirmed=True).tracks == []

    def test_unknown_track(self):
        with pytest.raises(RewardmanError) as exc:
            ConfigService.update_track("missing", display_name="x")
        assert exc.value.code == "TRACK_NOT_FOUND"

    def test_model_clean_validates_milestones(self):
        track = TrackDefinition(
            name="bad",
            display_name="Bad",
            track_type=TrackType.VISIT_COUNT,
            milestones=[{"count": "many", "reward_type": "free_service"}],
        )
        with pytest.raises(ValidationError) as exc:
            track.full_clean()
        assert "milestones" in exc.value.message_dict


# ═══════════════════════════════════════════════════════════════════
# Mappings and programme
# ═══════════════════════════════════════════════════════════════════


class TestMappings:
    @pytest.fixture
    def track(self):
        return ConfigService.create_track("nails", "Nail Visits", TrackType.VISIT_COUNT, NAIL_MILESTONES)

    def test_map_service(self, track):
        mapping = ConfigService.map_service("gel-manicure", "nails", multiplier="1.5")
        assert mapping.points_multiplier == Decimal("1.5")
        assert mapping.requires_payment is True

    def test_map_service_updates_existing(self, track):
        ConfigService.map_service("gel-manicure", "nails")
        ConfigService.map_service("gel-manicure", "nails", multiplier=2, requires_payment=False)

        mapping = ServiceTrackMapping.objects.get(service_id="gel-manicure")
        assert mapping.points_multiplier == Decimal("2")
        assert mapping.requires_payment is False

    def test_negative_multiplier_rejected(self, track):
        with pytest.raises(RewardmanError) as exc:
            ConfigService.map_category("nails", "nails", multiplier=-1)
        assert exc.value.code == "INVALID_CONFIG"

    def test_map_to_unknown_track(self):
        with pytest.raises(RewardmanError) as exc:
            ConfigService.map_category("nails", "missing")
        assert exc.value.code == "TRACK_NOT_FOUND"

    def test_unmap(self, track):
        ConfigService.map_category("nails", "nails")
        ConfigService.map_service("gel-manicure", "nails")

        assert ConfigService.unmap_category("nails", "nails") is True
        assert ConfigService.unmap_service("gel-manicure", "nails") is True
        assert ConfigService.unmap_service("gel-manicure", "nails") is False
        assert not CategoryTrackMapping.objects.exists()

    def test_mapping_change_applies_to_next_booking(self, programme, track, make_booking):
        first = IssuanceService.process_booking(make_booking(), payment_confirmed=True)
        assert first.tracks == []

        ConfigService.map_category("nails", "nails")
        second = IssuanceService.process_booking(make_booking(), payment_confirmed=True)

        assert [o.track_name for o in second.tracks] == ["nails"]


class TestProgramme:
    def test_update_programme(self):
        programme = ConfigService.update_programme(
            programme_enabled=False,
            referral_min_booking_value=Decimal("1500"),
        )

        assert programme.programme_enabled is False
        assert ConfigService.programme().referral_min_booking_value == Decimal("1500")

    def test_unknown_field(self):
        with pytest.raises(RewardmanError):
            ConfigService.update_programme(points_per_rupee=3)

    def test_negative_minimum(self):
        with pytest.raises(RewardmanError) as exc:
            ConfigService.update_programme(referral_min_booking_value=Decimal("-1"))
        assert exc.value.code == "INVALID_CONFIG"
        assert "referral_min_booking_value" in exc.value.data["errors"]
        assert RewardsProgramme.load().referral_min_booking_value == Decimal("1000")

    def test_negative_minimum_rejected_by_model_validation(self):
        programme = RewardsProgramme.load()
        programme.referral_min_booking_value = Decimal("-1")
        with pytest.raises(ValidationError) as exc:
            programme.full_clean()
        assert "referral_min_booking_value" in exc.value.message_dict

    def test_invalid_reward_type(self):
        with pytest.raises(RewardmanError):
            ConfigService.update_programme(referral_reward_type="cashback")
