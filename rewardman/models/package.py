"""Prepaid session packages."""

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from rewardman.choices import PackageStatus, ValidityType


class ServicePackage(models.Model):
    """Package offered for sale (e.g. 4 wash & blow-dries at 20% off)."""

    name = models.CharField(_("name"), max_length=100)
    description = models.TextField(_("description"), blank=True)
    service_type = models.CharField(_("service type"), max_length=50)
    applicable_service_id = models.CharField(
        _("applicable service"), max_length=64, blank=True
    )

    total_sessions = models.PositiveIntegerField(
        _("sessions"), validators=[MinValueValidator(1)]
    )
    base_price = models.DecimalField(_("base price"), max_digits=10, decimal_places=2)
    discount_percent = models.DecimalField(
        _("discount %"),
        max_digits=5,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    final_price = models.DecimalField(_("final price"), max_digits=10, decimal_places=2)

    validity_type = models.CharField(
        _("validity"),
        max_length=30,
        choices=ValidityType.choices,
        default=ValidityType.CALENDAR_MONTH,
    )
    validity_days = models.PositiveIntegerField(_("validity (days)"), null=True, blank=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        db_table = "service_packages"
        verbose_name = _("service package")
        verbose_name_plural = _("service packages")
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.total_sessions} sessions)"


class UserPackage(models.Model):
    """
    A package bought by a customer.

    sessions_used never exceeds total_sessions (DB check constraint) and is
    only incremented by a conditional UPDATE that also requires the package
    to be active and within its validity window.
    """

    user_id = models.CharField(_("user id"), max_length=64, db_index=True)
    package = models.ForeignKey(
        ServicePackage,
        on_delete=models.PROTECT,
        related_name="purchases",
        verbose_name=_("package"),
    )
    package_name = models.CharField(_("package name"), max_length=100)

    total_sessions = models.PositiveIntegerField(_("sessions"))
    sessions_used = models.PositiveIntegerField(_("sessions used"), default=0)
    purchase_price = models.DecimalField(_("purchase price"), max_digits=10, decimal_places=2)

    valid_from = models.DateTimeField(_("valid from"))
    valid_until = models.DateTimeField(_("valid until"), db_index=True)

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=PackageStatus.choices,
        default=PackageStatus.ACTIVE,
        db_index=True,
    )
    expired_at = models.DateTimeField(_("expired at"), null=True, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        db_table = "user_packages"
        verbose_name = _("customer package")
        verbose_name_plural = _("customer packages")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(sessions_used__lte=F("total_sessions")),
                name="package_sessions_within_total",
            ),
        ]

    def __str__(self):
        return f"{self.user_id}: {self.package_name} {self.sessions_used}/{self.total_sessions}"

    @property
    def sessions_remaining(self) -> int:
        return max(0, self.total_sessions - self.sessions_used)

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) > self.valid_until


class PackageSession(models.Model):
    """One consumed session. Append-only."""

    user_package = models.ForeignKey(
        UserPackage,
        on_delete=models.CASCADE,
        related_name="sessions",
        verbose_name=_("package"),
    )
    booking_id = models.CharField(_("booking id"), max_length=64, blank=True)
    used_at = models.DateTimeField(_("used at"), auto_now_add=True)

    class Meta:
        db_table = "package_sessions"
        verbose_name = _("package session")
        verbose_name_plural = _("package sessions")
        ordering = ["-used_at"]

    def __str__(self):
        return f"{self.user_package_id}: booking {self.booking_id}"
