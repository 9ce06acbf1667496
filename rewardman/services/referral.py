"""Referral service — referrer/referee links and the one-time referrer reward."""

import logging
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.utils import timezone

from rewardman.exceptions import RewardmanError
from rewardman.gates import GateError, Gates
from rewardman.models import Referral, RewardGrant, RewardsProgramme
from rewardman.protocols.booking import BookingSnapshot
from rewardman.services.grants import GrantService
from rewardman.signals import referral_rewarded
from rewardman.utils import retry_on_contention

logger = logging.getLogger(__name__)

REFERRAL_SOURCE = "referral"


class ReferralService:
    """
    Referral operations.

    A referral pays out once: the first qualifying booking by the referee
    flips reward_issued through a conditional UPDATE, and only the caller
    whose UPDATE matched issues the referrer's grant.
    """

    @classmethod
    def register(cls, referrer_id: str, referee_id: str, referral_code: str = "") -> Referral:
        """
        Link a referee to the customer who referred them.

        Raises:
            RewardmanError: REFERRAL_INVALID (self-referral, already referred)
        """
        try:
            Gates.referral_eligibility(referrer_id, referee_id)
        except GateError as exc:
            raise RewardmanError("REFERRAL_INVALID", message=exc.message, **exc.details)

        try:
            with transaction.atomic():
                referral = Referral.objects.create(
                    referrer_id=referrer_id,
                    referee_id=referee_id,
                    referral_code=referral_code,
                )
        except IntegrityError:
            raise RewardmanError("REFERRAL_INVALID", message="Customer was already referred.")

        logger.info("Referral registered: %s → %s", referrer_id, referee_id)
        return referral

    @classmethod
    def get_for_referee(cls, referee_id: str) -> Referral | None:
        return Referral.objects.filter(referee_id=referee_id).first()

    @classmethod
    def referrals_by(cls, referrer_id: str) -> list[Referral]:
        return list(Referral.objects.filter(referrer_id=referrer_id))

    @classmethod
    def evaluate(cls, booking: BookingSnapshot, programme: RewardsProgramme | None = None) -> RewardGrant | None:
        """
        Reward the referrer if this booking qualifies the referee.

        Safe to call for every booking, any number of times: at most one
        grant is ever issued per referral.

        Returns:
            The referrer's new grant, or None
        """
        programme = programme or RewardsProgramme.load()
        if not programme.programme_enabled or not programme.referral_enabled:
            return None
        if booking.total < programme.referral_min_booking_value:
            return None

        return cls._claim(booking, programme)

    @classmethod
    @retry_on_contention
    def _claim(cls, booking: BookingSnapshot, programme: RewardsProgramme) -> RewardGrant | None:
        now = timezone.now()

        with transaction.atomic():
            claimed = Referral.objects.filter(
                referee_id=booking.user_id,
                reward_issued=False,
            ).update(
                reward_issued=True,
                first_booking_id=booking.booking_id,
                first_booking_value=booking.total,
                rewarded_at=now,
            )
            if not claimed:
                return None

            referral = Referral.objects.get(referee_id=booking.user_id)
            expires_at = None
            if programme.referral_reward_expiry_days:
                expires_at = now + timedelta(days=programme.referral_reward_expiry_days)

            grant = GrantService.issue(
                user_id=referral.referrer_id,
                reward_type=programme.referral_reward_type,
                reward_value=programme.referral_reward_value,
                description=programme.referral_reward_description,
                source_track=REFERRAL_SOURCE,
                source_milestone=f"referee:{referral.referee_id}",
                source_booking_id=booking.booking_id,
                expires_at=expires_at,
            )
            referral.reward_grant = grant
            referral.save(update_fields=["reward_grant"])

            transaction.on_commit(
                lambda: referral_rewarded.send(sender=Referral, referral=referral, grant=grant)
            )

        logger.info(
            "Referral reward %s issued to %s (referee %s, booking %s)",
            grant.pk, referral.referrer_id, referral.referee_id, booking.booking_id,
        )
        return grant
