"""Service and category → track mappings."""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class TrackMappingBase(models.Model):
    """Fields shared by service and category mappings."""

    track = models.ForeignKey(
        "rewardman.TrackDefinition",
        on_delete=models.CASCADE,
        verbose_name=_("track"),
    )
    points_multiplier = models.DecimalField(
        _("multiplier"),
        max_digits=6,
        decimal_places=2,
        default=Decimal("1.00"),
        validators=[MinValueValidator(Decimal("0"))],
        help_text=_("1.5 = 150% credit toward the track"),
    )
    requires_payment = models.BooleanField(
        _("requires payment"),
        default=True,
        help_text=_("Only credit once payment is confirmed"),
    )
    is_active = models.BooleanField(_("active"), default=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        abstract = True


class ServiceTrackMapping(TrackMappingBase):
    """Explicit mapping of one bookable service to a track."""

    service_id = models.CharField(_("service id"), max_length=64, db_index=True)

    class Meta:
        db_table = "service_track_mappings"
        verbose_name = _("service → track mapping")
        verbose_name_plural = _("service → track mappings")
        constraints = [
            models.UniqueConstraint(
                fields=["service_id", "track"],
                name="unique_service_track_mapping",
            ),
            models.CheckConstraint(
                condition=models.Q(points_multiplier__gte=0),
                name="service_mapping_multiplier_non_negative",
            ),
        ]

    def __str__(self):
        return f"service:{self.service_id} → {self.track.name} (x{self.points_multiplier})"


class CategoryTrackMapping(TrackMappingBase):
    """Bulk mapping of every service in a category to a track."""

    category_name = models.CharField(_("category"), max_length=100, db_index=True)

    class Meta:
        db_table = "category_track_mappings"
        verbose_name = _("category → track mapping")
        verbose_name_plural = _("category → track mappings")
        constraints = [
            models.UniqueConstraint(
                fields=["category_name", "track"],
                name="unique_category_track_mapping",
            ),
            models.CheckConstraint(
                condition=models.Q(points_multiplier__gte=0),
                name="category_mapping_multiplier_non_negative",
            ),
        ]

    def __str__(self):
        return f"category:{self.category_name} → {self.track.name} (x{self.points_multiplier})"
