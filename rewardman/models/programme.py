"""Programme-level rewards configuration (single row)."""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from rewardman.choices import RewardType


class RewardsProgramme(models.Model):
    """
    Staff-editable programme switches.

    Always a single row (pk=1). Read with RewardsProgramme.load() on every
    call; nothing caches it, so admin edits apply to the next booking.
    """

    SINGLETON_PK = 1

    programme_enabled = models.BooleanField(_("programme enabled"), default=True)
    programme_name = models.CharField(_("programme name"), max_length=100, default="Salon Rewards")
    terms_conditions = models.TextField(_("terms & conditions"), blank=True)
    terms_version = models.CharField(_("terms version"), max_length=20, default="1.0")

    spend_tracking_enabled = models.BooleanField(
        _("spend tracking enabled"),
        default=True,
        help_text=_("Credit the legacy spend track when no mapping matches"),
    )

    # Referrals
    referral_enabled = models.BooleanField(_("referrals enabled"), default=True)
    referral_min_booking_value = models.DecimalField(
        _("referral minimum booking value"),
        max_digits=10,
        decimal_places=2,
        default=Decimal("1000"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    referral_reward_type = models.CharField(
        _("referral reward type"),
        max_length=30,
        choices=RewardType.choices,
        default=RewardType.FREE_SERVICE,
    )
    referral_reward_value = models.DecimalField(
        _("referral reward value"),
        max_digits=10,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    referral_reward_description = models.CharField(
        _("referral reward description"),
        max_length=200,
        default="Complimentary wash & blow-dry",
    )
    referral_reward_expiry_days = models.PositiveIntegerField(
        _("referral reward expiry (days)"), default=90
    )

    packages_enabled = models.BooleanField(_("packages enabled"), default=True)

    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "rewards_programme"
        verbose_name = _("rewards programme")
        verbose_name_plural = _("rewards programme")

    def __str__(self):
        state = "on" if self.programme_enabled else "off"
        return f"{self.programme_name} ({state})"

    def save(self, *args, **kwargs):
        self.pk = self.SINGLETON_PK
        super().save(*args, **kwargs)

    @classmethod
    def load(cls) -> "RewardsProgramme":
        obj, _created = cls.objects.get_or_create(pk=cls.SINGLETON_PK)
        return obj
