"""Referral model."""

from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _


class Referral(models.Model):
    """
    Referrer → referee relationship.

    reward_issued flips false → true at most once, through a conditional
    UPDATE in ReferralService.evaluate(). Only the caller whose UPDATE
    matched issues the referrer's grant.
    """

    referrer_id = models.CharField(_("referrer"), max_length=64, db_index=True)
    referee_id = models.CharField(
        _("referee"),
        max_length=64,
        unique=True,
        help_text=_("A customer can only be referred once"),
    )
    referral_code = models.CharField(_("referral code"), max_length=50, blank=True)

    first_booking_id = models.CharField(_("first booking"), max_length=64, blank=True)
    first_booking_value = models.DecimalField(
        _("first booking value"), max_digits=10, decimal_places=2, null=True, blank=True
    )

    reward_issued = models.BooleanField(_("reward issued"), default=False, db_index=True)
    reward_grant = models.ForeignKey(
        "rewardman.RewardGrant",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name=_("reward grant"),
    )
    rewarded_at = models.DateTimeField(_("rewarded at"), null=True, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        db_table = "referrals"
        verbose_name = _("referral")
        verbose_name_plural = _("referrals")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=~Q(referrer_id=F("referee_id")),
                name="referral_not_self",
            ),
        ]

    def __str__(self):
        state = "rewarded" if self.reward_issued else "pending"
        return f"{self.referrer_id} → {self.referee_id} ({state})"
