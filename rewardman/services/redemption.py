"""
Redemption service — applies a reward grant to a booking.

The booking system is reached through the BookingBackend protocol,
configured as REWARDMAN["BOOKING_BACKEND"] (dotted path to a class).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.module_loading import import_string

from rewardman.choices import GrantStatus, RewardType
from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.models import RewardGrant
from rewardman.protocols.booking import BookingBackend, BookingSnapshot
from rewardman.services.grants import GrantService
from rewardman.signals import reward_redeemed
from rewardman.utils import quantize_money, retry_on_contention

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def get_booking_backend() -> BookingBackend:
    """Instantiate the configured booking backend."""
    backend_path = rewardman_settings.BOOKING_BACKEND
    if not backend_path:
        raise ImproperlyConfigured("REWARDMAN['BOOKING_BACKEND'] is not configured")
    try:
        backend_class = import_string(backend_path)
    except ImportError as exc:
        raise ImproperlyConfigured(f"Cannot import booking backend {backend_path!r}: {exc}") from exc
    return backend_class()


def calculate_discount(reward_type: str, reward_value: Decimal, base_price: Decimal) -> Decimal:
    """
    Discount a reward gives on a booking, rounded to cents.

    Never negative and never more than the base price:
        percentage_discount  base × value / 100
        fixed_discount       min(value, base)
        free_service         base
    """
    base = quantize_money(base_price)
    if base <= 0:
        return ZERO

    if reward_type == RewardType.PERCENTAGE_DISCOUNT:
        discount = base * Decimal(reward_value) / Decimal("100")
    elif reward_type == RewardType.FIXED_DISCOUNT:
        discount = min(Decimal(reward_value), base)
    elif reward_type == RewardType.FREE_SERVICE:
        discount = base
    else:
        raise RewardmanError("INVALID_REWARD", message=f"Unknown reward type: {reward_type!r}")

    return quantize_money(max(ZERO, min(discount, base)))


@dataclass(frozen=True)
class RedemptionQuote:
    """Discount a grant would give on a booking."""

    grant: RewardGrant
    booking: BookingSnapshot
    discount: Decimal

    @property
    def new_total(self) -> Decimal:
        return max(ZERO, quantize_money(self.booking.total - self.discount))


class RedemptionService:
    """
    Single-use redemption of reward grants.

    The grant's active → redeemed transition is one conditional UPDATE
    (status=active, not expired). Of two concurrent redemptions of the same
    grant exactly one matches; the other gets a clean error. The booking
    side (apply_reward) runs in the same transaction, so a failure there
    leaves the grant active.
    """

    @classmethod
    def quote(cls, user_id: str, grant_id, booking_id: str, backend: BookingBackend | None = None) -> RedemptionQuote:
        """
        Validate a redemption and compute its discount without applying it.

        Raises:
            RewardmanError: Same codes as redeem()
        """
        backend = backend or get_booking_backend()
        now = timezone.now()

        grant = cls._get_grant(user_id, grant_id)
        cls._check_usable(grant, now)
        booking = cls._get_booking(backend, user_id, booking_id)

        if not grant.applies_to(booking.service_id, booking.service_category):
            raise RewardmanError(
                "GRANT_NOT_APPLICABLE",
                grant_id=str(grant.pk),
                applicable_to=grant.applicable_to,
            )

        discount = calculate_discount(grant.reward_type, grant.reward_value, booking.base_price)
        return RedemptionQuote(grant=grant, booking=booking, discount=discount)

    @classmethod
    def redeem(cls, user_id: str, grant_id, booking_id: str, backend: BookingBackend | None = None) -> RedemptionQuote:
        """
        Redeem a grant against a booking.

        A grant found past its expiry is marked expired before GRANT_EXPIRED
        is raised. That write commits only when redeem() runs outside any
        transaction; called inside an atomic block (ATOMIC_REQUESTS included)
        it rolls back with the caller's transaction, and the grant stays
        active until the next sweep.

        Args:
            user_id: Customer redeeming (must own both grant and booking)
            grant_id: RewardGrant id
            booking_id: Booking to discount
            backend: Booking backend (defaults to REWARDMAN["BOOKING_BACKEND"])

        Returns:
            RedemptionQuote with the redeemed grant and applied discount

        Raises:
            RewardmanError: GRANT_NOT_FOUND, GRANT_ALREADY_REDEEMED,
                GRANT_NOT_ACTIVE, GRANT_EXPIRED, BOOKING_NOT_FOUND,
                GRANT_NOT_APPLICABLE, BOOKING_ALREADY_DISCOUNTED, TRANSIENT
        """
        backend = backend or get_booking_backend()
        quote = cls.quote(user_id, grant_id, booking_id, backend=backend)
        grant, booking = quote.grant, quote.booking

        if RewardGrant.objects.filter(redeemed_booking_id=booking.booking_id).exists():
            raise RewardmanError("BOOKING_ALREADY_DISCOUNTED", booking_id=booking.booking_id)

        now = timezone.now()
        if not cls._consume(backend, grant, booking, quote.discount, now):
            # Lost the race: report the state the winner left behind
            current = RewardGrant.objects.get(pk=grant.pk)
            cls._check_usable(current, now)
            raise RewardmanError("GRANT_NOT_ACTIVE", grant_id=str(grant.pk), status=current.status)

        grant.refresh_from_db()
        logger.info(
            "Grant %s redeemed by %s on booking %s (discount %s)",
            grant.pk, user_id, booking.booking_id, quote.discount,
        )
        return RedemptionQuote(grant=grant, booking=booking, discount=quote.discount)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @classmethod
    @retry_on_contention
    def _consume(cls, backend: BookingBackend, grant: RewardGrant, booking: BookingSnapshot, discount: Decimal, now) -> bool:
        with transaction.atomic():
            try:
                with transaction.atomic():
                    updated = (
                        RewardGrant.objects.filter(pk=grant.pk, status=GrantStatus.ACTIVE)
                        .filter(Q(expires_at__isnull=True) | Q(expires_at__gte=now))
                        .update(
                            status=GrantStatus.REDEEMED,
                            redeemed_at=now,
                            redeemed_booking_id=booking.booking_id,
                            discount_amount=discount,
                        )
                    )
            except IntegrityError:
                raise RewardmanError("BOOKING_ALREADY_DISCOUNTED", booking_id=booking.booking_id)

            if not updated:
                return False

            backend.apply_reward(booking.booking_id, str(grant.pk), discount)

            transaction.on_commit(
                lambda: reward_redeemed.send(
                    sender=RewardGrant,
                    grant=grant,
                    booking_id=booking.booking_id,
                    discount=discount,
                )
            )
        return True

    @classmethod
    def _get_grant(cls, user_id: str, grant_id) -> RewardGrant:
        grant = GrantService.get(grant_id, user_id=user_id)
        if grant is None:
            raise RewardmanError("GRANT_NOT_FOUND", grant_id=str(grant_id))
        return grant

    @classmethod
    def _check_usable(cls, grant: RewardGrant, now) -> None:
        """Raise the error matching the grant's state; expire it if overdue."""
        if grant.status == GrantStatus.REDEEMED:
            raise RewardmanError(
                "GRANT_ALREADY_REDEEMED",
                grant_id=str(grant.pk),
                booking_id=grant.redeemed_booking_id,
            )
        if grant.status != GrantStatus.ACTIVE:
            raise RewardmanError("GRANT_NOT_ACTIVE", grant_id=str(grant.pk), status=grant.status)
        if grant.is_expired(now):
            cls._expire(grant, now)
            raise RewardmanError("GRANT_EXPIRED", grant_id=str(grant.pk), expires_at=grant.expires_at)

    @classmethod
    def _expire(cls, grant: RewardGrant, now) -> None:
        # A savepoint when the caller holds a transaction; see redeem()
        with transaction.atomic():
            updated = RewardGrant.objects.filter(pk=grant.pk, status=GrantStatus.ACTIVE).update(
                status=GrantStatus.EXPIRED,
                expired_at=now,
            )
        if updated:
            logger.info("Grant %s expired on redemption attempt", grant.pk)

    @classmethod
    def _get_booking(cls, backend: BookingBackend, user_id: str, booking_id: str) -> BookingSnapshot:
        booking = backend.get_booking(booking_id)
        if booking is None or booking.user_id != user_id:
            raise RewardmanError("BOOKING_NOT_FOUND", booking_id=booking_id)
        return booking
