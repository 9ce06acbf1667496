"""
Rewardman Gates - Validation rules.

G1: MilestoneSchedule - Milestone list parses; thresholds > 0 and strictly increasing
G2: CreditReplay - A booking is credited to a track at most once (persistent via DB)
G3: ReferralEligibility - No self-referral; a customer is referred only once
"""

from dataclasses import dataclass
from decimal import Decimal

from django.db import IntegrityError, transaction

from rewardman.exceptions import RewardmanError


class GateError(Exception):
    """Gate validation error."""

    def __init__(self, gate_name: str, message: str, details: dict | None = None):
        self.gate_name = gate_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{gate_name}] {message}")


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Rewardman validation gates."""

    # =========================================================================
    # G1: Milestone Schedule
    # =========================================================================

    @classmethod
    def milestone_schedule(cls, track_type: str, milestones) -> GateResult:
        """
        G1: Milestone configuration must parse cleanly.

        Args:
            track_type: visit_count or spend_amount
            milestones: Raw milestone list (as stored on TrackDefinition)

        Raises:
            GateError: With every validation problem in details["errors"]
        """
        from rewardman.milestones import parse_milestones

        try:
            parse_milestones(track_type, milestones)
        except RewardmanError as exc:
            raise GateError(
                "G1_MilestoneSchedule",
                "Invalid milestone configuration.",
                {"errors": exc.data.get("errors", [])},
            )

        return GateResult(True, "G1_MilestoneSchedule")

    @classmethod
    def check_milestone_schedule(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.milestone_schedule(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G2: Credit Replay (persistent via DB)
    # =========================================================================

    @classmethod
    def credit_replay(
        cls,
        booking_id: str,
        track_name: str,
        user_id: str,
        count_delta: Decimal = Decimal("0"),
        amount_delta: Decimal = Decimal("0"),
    ) -> GateResult:
        """
        G2: A booking cannot be credited to the same track twice.

        Claims the (booking_id, track_name) ProgressCredit row. Call inside
        the same transaction that updates the ledger so a rollback releases
        the claim.

        Raises:
            GateError: If the booking was already credited to this track
        """
        from rewardman.models import ProgressCredit

        if not booking_id:
            raise GateError(
                "G2_CreditReplay",
                "Booking id is required.",
            )

        # Unique constraint decides; savepoint keeps the outer transaction usable
        try:
            with transaction.atomic():
                ProgressCredit.objects.create(
                    booking_id=booking_id,
                    track_name=track_name,
                    user_id=user_id,
                    count_delta=count_delta,
                    amount_delta=amount_delta,
                )
        except IntegrityError:
            if ProgressCredit.objects.filter(booking_id=booking_id, track_name=track_name).exists():
                raise GateError(
                    "G2_CreditReplay",
                    "Replay detected: booking already credited to this track.",
                    {"booking_id": booking_id, "track_name": track_name},
                )
            raise

        return GateResult(True, "G2_CreditReplay")

    @classmethod
    def is_credited(cls, booking_id: str, track_name: str) -> bool:
        """Check if booking was already credited (doesn't record)."""
        from rewardman.models import ProgressCredit

        return ProgressCredit.objects.filter(booking_id=booking_id, track_name=track_name).exists()

    # =========================================================================
    # G3: Referral Eligibility
    # =========================================================================

    @classmethod
    def referral_eligibility(cls, referrer_id: str, referee_id: str) -> GateResult:
        """
        G3: Referral must link two different customers, referee not yet referred.

        Raises:
            GateError: On self-referral or an existing referral for the referee
        """
        from rewardman.models import Referral

        if not referrer_id or not referee_id:
            raise GateError(
                "G3_ReferralEligibility",
                "Referrer and referee are required.",
            )

        if referrer_id == referee_id:
            raise GateError(
                "G3_ReferralEligibility",
                "Customers cannot refer themselves.",
            )

        existing = Referral.objects.filter(referee_id=referee_id).first()
        if existing:
            raise GateError(
                "G3_ReferralEligibility",
                "Customer was already referred.",
                {"existing_referrer_id": existing.referrer_id},
            )

        return GateResult(True, "G3_ReferralEligibility")

    @classmethod
    def check_referral_eligibility(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.referral_eligibility(*args, **kwargs)
            return True
        except GateError:
            return False
