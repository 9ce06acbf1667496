"""Progress ledger models."""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class TrackProgress(models.Model):
    """
    Per (user, track) progress counters.

    Created lazily on the first qualifying booking and mutated only by
    IssuanceService, always under a row lock inside a transaction. Never
    deleted: lowering a threshold or deactivating a track leaves the
    counters where they are.

    last_milestone_reached holds the cycle count for repeating milestones
    and the absolute threshold for one-time milestones.
    """

    user_id = models.CharField(_("user id"), max_length=64, db_index=True)
    track_name = models.CharField(_("track"), max_length=50, db_index=True)

    current_count = models.DecimalField(
        _("current count"), max_digits=12, decimal_places=2, default=Decimal("0")
    )
    current_amount = models.DecimalField(
        _("current amount"), max_digits=14, decimal_places=2, default=Decimal("0")
    )
    lifetime_count = models.DecimalField(
        _("lifetime count"), max_digits=12, decimal_places=2, default=Decimal("0")
    )
    lifetime_amount = models.DecimalField(
        _("lifetime amount"), max_digits=14, decimal_places=2, default=Decimal("0")
    )
    last_milestone_reached = models.IntegerField(_("last milestone reached"), default=0)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "user_track_progress"
        verbose_name = _("track progress")
        verbose_name_plural = _("track progress")
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "track_name"],
                name="unique_user_track_progress",
            ),
        ]

    def __str__(self):
        return f"{self.user_id}:{self.track_name} ({self.current_count} / {self.current_amount})"

    def value_for(self, spend: bool) -> Decimal:
        """Counter the milestones of this track are measured against."""
        return self.current_amount if spend else self.current_count


class ProgressCredit(models.Model):
    """
    One row per (booking, track) credit.

    The unique constraint is what stops a booking delivered twice
    (completion, then payment confirmation) from being counted twice.
    Append-only.
    """

    booking_id = models.CharField(_("booking id"), max_length=64)
    track_name = models.CharField(_("track"), max_length=50)
    user_id = models.CharField(_("user id"), max_length=64, db_index=True)

    count_delta = models.DecimalField(
        _("count delta"), max_digits=12, decimal_places=2, default=Decimal("0")
    )
    amount_delta = models.DecimalField(
        _("amount delta"), max_digits=14, decimal_places=2, default=Decimal("0")
    )
    credited_at = models.DateTimeField(_("credited at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "progress_credits"
        verbose_name = _("progress credit")
        verbose_name_plural = _("progress credits")
        constraints = [
            models.UniqueConstraint(
                fields=["booking_id", "track_name"],
                name="unique_booking_track_credit",
            ),
        ]

    def __str__(self):
        return f"booking:{self.booking_id} → {self.track_name}"
