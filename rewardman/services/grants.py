"""Grant service — issuing, revoking and querying reward grants."""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from rewardman.choices import GrantStatus, RewardType
from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.models import RewardGrant
from rewardman.signals import reward_granted, reward_revoked

logger = logging.getLogger(__name__)

MANUAL_SOURCE = "manual"


def validate_reward(reward_type: str, reward_value) -> Decimal:
    """
    Check a reward definition and return its value as Decimal.

    Raises:
        RewardmanError: INVALID_REWARD
    """
    if reward_type not in RewardType.values:
        raise RewardmanError("INVALID_REWARD", message=f"Unknown reward type: {reward_type!r}")
    try:
        value = Decimal(str(reward_value))
    except (InvalidOperation, ValueError):
        raise RewardmanError("INVALID_REWARD", message=f"Invalid reward value: {reward_value!r}")
    if value < 0:
        raise RewardmanError("INVALID_REWARD", message="Reward value cannot be negative")
    if reward_type == RewardType.PERCENTAGE_DISCOUNT and not (0 < value <= 100):
        raise RewardmanError("INVALID_REWARD", message="Percentage must be between 0 and 100")
    return value


class GrantService:
    """
    Reward grant operations.

    Issuance of milestone and referral grants happens inside the issuing
    service's transaction via issue(); the reward_granted signal fires only
    after that transaction commits.
    """

    @classmethod
    def issue(
        cls,
        *,
        user_id: str,
        reward_type: str,
        reward_value: Decimal,
        description: str,
        source_track: str,
        source_milestone: str = "",
        source_booking_id: str = "",
        applicable_to: str = "",
        expires_at: datetime | None = None,
        created_by: str = "system",
    ) -> RewardGrant:
        """Create an active grant. Call inside the caller's transaction."""
        grant = RewardGrant.objects.create(
            user_id=user_id,
            reward_type=reward_type,
            reward_value=reward_value,
            description=description,
            source_track=source_track,
            source_milestone=source_milestone,
            source_booking_id=source_booking_id,
            applicable_to=applicable_to,
            expires_at=expires_at,
            created_by=created_by,
        )
        transaction.on_commit(lambda: reward_granted.send(sender=RewardGrant, grant=grant))

        logger.info(
            "Granted %s (%s %s) to %s from %s",
            grant.pk, reward_type, reward_value, user_id, source_milestone or source_track,
        )
        return grant

    @classmethod
    def issue_manual(
        cls,
        user_id: str,
        reward_type: str,
        reward_value,
        description: str,
        expiry_days: int | None = None,
        applicable_to: str = "",
        created_by: str = "",
    ) -> RewardGrant:
        """
        Staff-issued goodwill reward.

        Args:
            expiry_days: Days until expiry. None uses DEFAULT_REWARD_EXPIRY_DAYS;
                0 issues a grant that never expires.

        Raises:
            RewardmanError: INVALID_REWARD
        """
        value = validate_reward(reward_type, reward_value)
        if not user_id:
            raise RewardmanError("INVALID_REWARD", message="user_id is required")

        if expiry_days is None:
            expiry_days = rewardman_settings.DEFAULT_REWARD_EXPIRY_DAYS
        if expiry_days < 0:
            raise RewardmanError("INVALID_REWARD", message="expiry_days cannot be negative")
        expires_at = timezone.now() + timedelta(days=expiry_days) if expiry_days else None

        with transaction.atomic():
            return cls.issue(
                user_id=user_id,
                reward_type=reward_type,
                reward_value=value,
                description=description,
                source_track=MANUAL_SOURCE,
                applicable_to=applicable_to,
                expires_at=expires_at,
                created_by=created_by,
            )

    @classmethod
    def get(cls, grant_id, user_id: str | None = None) -> RewardGrant | None:
        """Grant by id (optionally scoped to a user). Malformed ids return None."""
        qs = RewardGrant.objects.all()
        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        try:
            return qs.get(pk=grant_id)
        except (RewardGrant.DoesNotExist, ValidationError, ValueError):
            return None

    @classmethod
    def revoke(cls, grant_id, revoked_by: str = "", reason: str = "") -> RewardGrant:
        """
        Revoke an active grant (admin action).

        Raises:
            RewardmanError: GRANT_NOT_FOUND, GRANT_ALREADY_REDEEMED, GRANT_NOT_ACTIVE
        """
        grant = cls.get(grant_id)
        if grant is None:
            raise RewardmanError("GRANT_NOT_FOUND", grant_id=str(grant_id))

        with transaction.atomic():
            updated = RewardGrant.objects.filter(pk=grant.pk, status=GrantStatus.ACTIVE).update(
                status=GrantStatus.REVOKED,
                revoked_by=revoked_by,
                revoked_reason=reason,
            )
            if updated:
                grant.refresh_from_db()
                transaction.on_commit(lambda: reward_revoked.send(sender=RewardGrant, grant=grant))

        if not updated:
            grant.refresh_from_db()
            if grant.status == GrantStatus.REDEEMED:
                raise RewardmanError("GRANT_ALREADY_REDEEMED", grant_id=str(grant.pk))
            raise RewardmanError("GRANT_NOT_ACTIVE", grant_id=str(grant.pk), status=grant.status)

        logger.info("Revoked grant %s by %s: %s", grant.pk, revoked_by or "-", reason or "-")
        return grant

    @classmethod
    def active_for_user(cls, user_id: str, now=None) -> list[RewardGrant]:
        """Usable grants: active and not past expiry, soonest expiry first."""
        now = now or timezone.now()
        return list(
            RewardGrant.objects.filter(user_id=user_id, status=GrantStatus.ACTIVE)
            .filter(Q(expires_at__isnull=True) | Q(expires_at__gte=now))
            .order_by("expires_at", "created_at")
        )

    @classmethod
    def applicable_for_booking(
        cls,
        user_id: str,
        service_id: str,
        service_category: str,
        now=None,
    ) -> list[RewardGrant]:
        """Usable grants that apply to a booking of this service."""
        return [
            grant
            for grant in cls.active_for_user(user_id, now=now)
            if grant.applies_to(service_id, service_category)
        ]

    @classmethod
    def history(cls, user_id: str, limit: int = 50) -> list[RewardGrant]:
        """All grants for a user, newest first."""
        return list(RewardGrant.objects.filter(user_id=user_id)[:limit])

    @classmethod
    def stats(cls) -> dict:
        """Programme-wide grant counts by status plus total discount given."""
        by_status = {
            row["status"]: row["total"]
            for row in RewardGrant.objects.order_by().values("status").annotate(total=Count("id"))
        }
        discount = RewardGrant.objects.filter(status=GrantStatus.REDEEMED).aggregate(
            total=Sum("discount_amount")
        )["total"]
        return {
            "total": sum(by_status.values()),
            "active": by_status.get(GrantStatus.ACTIVE, 0),
            "redeemed": by_status.get(GrantStatus.REDEEMED, 0),
            "expired": by_status.get(GrantStatus.EXPIRED, 0),
            "revoked": by_status.get(GrantStatus.REVOKED, 0),
            "discount_total": discount or Decimal("0.00"),
        }
