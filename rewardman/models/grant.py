"""RewardGrant model — issued, redeemable reward instances."""

import uuid as uuid_lib

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from rewardman.choices import GrantStatus, RewardType


class RewardGrant(models.Model):
    """
    A single issued reward.

    Lifecycle (every transition leaves ACTIVE through a conditional UPDATE
    that re-checks status=active, so two callers can never both win):

        active ──RedemptionService──▶ redeemed
               ──ExpirySweeper / expired redemption attempt──▶ expired
               ──GrantService.revoke (admin)──▶ revoked

    redeemed_booking_id is set iff status is redeemed (DB check constraint),
    and a booking carries at most one redeemed grant.
    """

    id = models.UUIDField(primary_key=True, default=uuid_lib.uuid4, editable=False)

    user_id = models.CharField(_("user id"), max_length=64, db_index=True)

    reward_type = models.CharField(_("reward type"), max_length=30, choices=RewardType.choices)
    reward_value = models.DecimalField(_("reward value"), max_digits=10, decimal_places=2)
    applicable_to = models.CharField(
        _("applicable to"),
        max_length=100,
        blank=True,
        help_text=_("Empty = any booking; otherwise a category name or service id"),
    )
    description = models.CharField(_("description"), max_length=200)

    source_track = models.CharField(
        _("source track"),
        max_length=50,
        db_index=True,
        help_text=_("Track name, 'referral', or 'manual'"),
    )
    source_milestone = models.CharField(_("source milestone"), max_length=100, blank=True)
    source_booking_id = models.CharField(_("source booking"), max_length=64, blank=True)

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=GrantStatus.choices,
        default=GrantStatus.ACTIVE,
        db_index=True,
    )
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True, db_index=True)

    # Redemption
    redeemed_at = models.DateTimeField(_("redeemed at"), null=True, blank=True)
    redeemed_booking_id = models.CharField(
        _("redeemed on booking"), max_length=64, null=True, blank=True
    )
    discount_amount = models.DecimalField(
        _("discount applied"), max_digits=10, decimal_places=2, null=True, blank=True
    )

    # Expiry / revocation
    expired_at = models.DateTimeField(_("expired at"), null=True, blank=True)
    revoked_by = models.CharField(_("revoked by"), max_length=100, blank=True)
    revoked_reason = models.CharField(_("revoke reason"), max_length=255, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    created_by = models.CharField(_("created by"), max_length=100, blank=True)

    class Meta:
        db_table = "user_rewards"
        verbose_name = _("reward grant")
        verbose_name_plural = _("reward grants")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user_id", "status"], name="user_rewards_user_status_idx"),
            models.Index(fields=["status", "expires_at"], name="user_rewards_status_exp_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status=GrantStatus.REDEEMED, redeemed_booking_id__isnull=False)
                    | (~Q(status=GrantStatus.REDEEMED) & Q(redeemed_booking_id__isnull=True))
                ),
                name="grant_redeemed_booking_iff_redeemed",
            ),
            models.UniqueConstraint(
                fields=["redeemed_booking_id"],
                condition=Q(redeemed_booking_id__isnull=False),
                name="unique_grant_per_booking",
            ),
        ]

    def __str__(self):
        return f"{self.user_id}: {self.description} [{self.status}]"

    def is_expired(self, now=None) -> bool:
        """True once now is strictly past expires_at."""
        if self.expires_at is None:
            return False
        return (now or timezone.now()) > self.expires_at

    @property
    def is_usable(self) -> bool:
        return self.status == GrantStatus.ACTIVE and not self.is_expired()

    def applies_to(self, service_id: str, service_category: str) -> bool:
        if not self.applicable_to:
            return True
        return self.applicable_to in (service_id, service_category)
