"""
Issuance service — credits a completed booking to reward tracks.

For every track the booking resolves to, one atomic unit:

    claim (booking_id, track_name)  → duplicate delivery stops here
    lock + update TrackProgress     → exact old/new values
    evaluate milestones(old, new)   → one grant per crossing / cycle

Tracks are independent: a misconfigured track is reported and skipped,
the others still credit. Contention is retried once, then surfaces as
RewardmanError("TRANSIENT").
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from rewardman.exceptions import RewardmanError
from rewardman.gates import GateError, Gates
from rewardman.milestones import Crossing, Milestone, evaluate, watermark_for
from rewardman.models import RewardGrant, RewardsProgramme, TrackDefinition, TrackProgress
from rewardman.models.track import SAME_CATEGORY
from rewardman.protocols.booking import BookingSnapshot
from rewardman.services.grants import GrantService
from rewardman.services.progress import ProgressLedger
from rewardman.services.referral import ReferralService
from rewardman.services.resolution import ResolvedTrack, resolve_tracks
from rewardman.signals import progress_updated
from rewardman.utils import quantize_money, retry_on_contention

logger = logging.getLogger(__name__)

CREDITED = "credited"
DUPLICATE = "duplicate"
SKIPPED = "skipped"
ERROR = "error"

PAYMENT_PENDING = "payment_pending"


@dataclass
class TrackOutcome:
    """What happened to one track for one booking."""

    track_name: str
    status: str
    source: str = ""
    current_count: Decimal | None = None
    current_amount: Decimal | None = None
    grants: list[RewardGrant] = field(default_factory=list)
    reason: str = ""
    errors: list[str] = field(default_factory=list)


@dataclass
class IssuanceResult:
    """Per-booking summary returned to the booking flow."""

    booking_id: str
    enabled: bool = True
    tracks: list[TrackOutcome] = field(default_factory=list)
    referral_grant: RewardGrant | None = None

    @property
    def grants(self) -> list[RewardGrant]:
        grants = [grant for outcome in self.tracks for grant in outcome.grants]
        if self.referral_grant is not None:
            grants.append(self.referral_grant)
        return grants

    @property
    def errors(self) -> dict[str, str]:
        return {o.track_name: o.reason for o in self.tracks if o.status == ERROR}

    def outcome(self, track_name: str) -> TrackOutcome | None:
        for o in self.tracks:
            if o.track_name == track_name:
                return o
        return None


class IssuanceService:
    """Booking → progress → grants."""

    @classmethod
    def process_booking(cls, booking: BookingSnapshot, payment_confirmed: bool = False) -> IssuanceResult:
        """
        Credit a completed booking to every track it resolves to.

        Idempotent per (booking_id, track): redelivering the same booking
        reports "duplicate" for tracks already credited and never issues a
        second grant.

        Args:
            booking: Snapshot of the completed booking
            payment_confirmed: Whether payment for the booking is confirmed.
                Tracks whose mapping requires payment are skipped (and can be
                credited by a later call) until it is.

        Raises:
            RewardmanError: TRANSIENT if storage contention persists
        """
        programme = RewardsProgramme.load()
        if not programme.programme_enabled:
            logger.info("Rewards programme disabled; booking %s not credited", booking.booking_id)
            return IssuanceResult(booking_id=booking.booking_id, enabled=False)

        result = IssuanceResult(booking_id=booking.booking_id)

        for resolved in resolve_tracks(booking, programme):
            result.tracks.append(cls._process_track(booking, resolved, payment_confirmed))

        result.referral_grant = ReferralService.evaluate(booking, programme=programme)

        logger.info(
            "Booking %s processed: %s",
            booking.booking_id,
            ", ".join(f"{o.track_name}={o.status}" for o in result.tracks) or "no tracks",
        )
        return result

    @classmethod
    def _process_track(cls, booking: BookingSnapshot, resolved: ResolvedTrack, payment_confirmed: bool) -> TrackOutcome:
        track = resolved.track

        if resolved.requires_payment and not payment_confirmed:
            return TrackOutcome(track.name, SKIPPED, resolved.source, reason=PAYMENT_PENDING)

        try:
            schedule = track.milestone_schedule
        except RewardmanError as exc:
            logger.warning(
                "Track %s has invalid milestones, booking %s not credited: %s",
                track.name, booking.booking_id, exc.data.get("errors") or exc.message,
            )
            return TrackOutcome(
                track.name,
                ERROR,
                resolved.source,
                reason=exc.message,
                errors=exc.data.get("errors", []),
            )

        if resolved.multiplier < 0:
            logger.warning("Track %s mapping has negative multiplier %s", track.name, resolved.multiplier)
            return TrackOutcome(track.name, ERROR, resolved.source, reason="Negative points multiplier")

        count_delta, amount_delta = cls.deltas(track, booking, resolved.multiplier)
        return cls._credit_track(booking, resolved, schedule, count_delta, amount_delta)

    @staticmethod
    def deltas(track: TrackDefinition, booking: BookingSnapshot, multiplier: Decimal) -> tuple[Decimal, Decimal]:
        """(count_delta, amount_delta) one booking adds to a track."""
        if track.is_spend:
            return Decimal("0"), quantize_money(booking.total * multiplier)
        return quantize_money(multiplier), Decimal("0")

    @classmethod
    @retry_on_contention
    def _credit_track(
        cls,
        booking: BookingSnapshot,
        resolved: ResolvedTrack,
        schedule: list[Milestone],
        count_delta: Decimal,
        amount_delta: Decimal,
    ) -> TrackOutcome:
        track = resolved.track
        now = timezone.now()

        try:
            with transaction.atomic():
                Gates.credit_replay(
                    booking.booking_id,
                    track.name,
                    booking.user_id,
                    count_delta=count_delta,
                    amount_delta=amount_delta,
                )

                transition = ProgressLedger.credit(
                    user_id=booking.user_id,
                    track=track,
                    count_delta=count_delta,
                    amount_delta=amount_delta,
                )

                crossings = evaluate(transition.old_value, transition.new_value, schedule)
                grants = [cls._grant_for(booking, track, crossing, now) for crossing in crossings]
                watermark = watermark_for(crossings, schedule)
                if watermark is not None:
                    ProgressLedger.mark_milestone(transition.progress, watermark)

                progress = transition.progress
                transaction.on_commit(
                    lambda: progress_updated.send(
                        sender=TrackProgress,
                        progress=progress,
                        booking_id=booking.booking_id,
                    )
                )
        except GateError:
            logger.info("Booking %s already credited to track %s", booking.booking_id, track.name)
            return TrackOutcome(track.name, DUPLICATE, resolved.source)

        logger.debug(
            "Track %s for %s: %s → %s (%d grants)",
            track.name, booking.user_id, transition.old_value, transition.new_value, len(grants),
        )
        return TrackOutcome(
            track.name,
            CREDITED,
            resolved.source,
            current_count=transition.progress.current_count,
            current_amount=transition.progress.current_amount,
            grants=grants,
        )

    @classmethod
    def _grant_for(cls, booking: BookingSnapshot, track: TrackDefinition, crossing: Crossing, now) -> RewardGrant:
        reward = crossing.milestone.reward

        applicable_to = track.reward_applicable_to
        if applicable_to == SAME_CATEGORY:
            applicable_to = booking.service_category

        source_milestone = crossing.milestone.label
        if crossing.cycle is not None:
            source_milestone = f"{source_milestone}#{crossing.cycle}"

        return GrantService.issue(
            user_id=booking.user_id,
            reward_type=reward.reward_type,
            reward_value=reward.value,
            description=reward.label,
            source_track=track.name,
            source_milestone=source_milestone,
            source_booking_id=booking.booking_id,
            applicable_to=applicable_to,
            expires_at=now + timedelta(days=track.reward_expiry_days),
        )
