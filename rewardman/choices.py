"""Shared choices for rewardman models and the milestone engine."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class TrackType(models.TextChoices):
    """How progress on a track is measured."""

    VISIT_COUNT = "visit_count", _("Visit count")
    SPEND_AMOUNT = "spend_amount", _("Spend amount")


class RewardType(models.TextChoices):
    """Kinds of reward a milestone can issue."""

    PERCENTAGE_DISCOUNT = "percentage_discount", _("Percentage discount")
    FIXED_DISCOUNT = "fixed_discount", _("Fixed discount")
    FREE_SERVICE = "free_service", _("Free service")


class GrantStatus(models.TextChoices):
    """Reward grant lifecycle. Only ACTIVE is non-terminal."""

    ACTIVE = "active", _("Active")
    REDEEMED = "redeemed", _("Redeemed")
    EXPIRED = "expired", _("Expired")
    REVOKED = "revoked", _("Revoked")


class PackageStatus(models.TextChoices):
    """User package lifecycle."""

    ACTIVE = "active", _("Active")
    EXHAUSTED = "exhausted", _("Exhausted")
    EXPIRED = "expired", _("Expired")


class ValidityType(models.TextChoices):
    """How a purchased package's validity window is computed."""

    CALENDAR_MONTH = "calendar_month", _("Until end of calendar month")
    DAYS_FROM_PURCHASE = "days_from_purchase", _("Days from purchase")
