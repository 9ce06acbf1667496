"""TrackDefinition model — admin-configurable reward tracks."""

import uuid as uuid_lib

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from rewardman.choices import TrackType
from rewardman.milestones import Milestone, parse_milestones

SAME_CATEGORY = "same_category"


class TrackDefinition(models.Model):
    """
    A named, independently-configured counter customers progress along.

    Milestones are stored as JSON and validated on every full_clean() and
    ConfigService write, so a malformed list never reaches issuance through
    the supported paths. Issuance still parses per call via
    milestone_schedule and treats failures as a per-track error.

    Example milestones (visit_count):
        [{"count": 6, "reward_type": "percentage_discount", "reward_value": 10},
         {"count": 12, "reward_type": "percentage_discount", "reward_value": 50}]
    """

    id = models.UUIDField(primary_key=True, default=uuid_lib.uuid4, editable=False)

    name = models.SlugField(
        _("internal name"),
        max_length=50,
        unique=True,
        help_text=_("Stable key used by the progress ledger (e.g. nails, spend)"),
    )
    display_name = models.CharField(_("display name"), max_length=100)
    description = models.TextField(_("description"), blank=True)
    icon = models.CharField(_("icon"), max_length=20, blank=True, default="🎁")

    track_type = models.CharField(
        _("type"),
        max_length=20,
        choices=TrackType.choices,
    )
    milestones = models.JSONField(
        _("milestones"),
        default=list,
        blank=True,
        help_text=_("Ordered list of milestone objects"),
    )

    reward_expiry_days = models.PositiveIntegerField(_("reward expiry (days)"), default=90)
    reward_applicable_to = models.CharField(
        _("reward applicable to"),
        max_length=100,
        blank=True,
        help_text=_(
            "Empty = any service. 'same_category' = category of the earning "
            "booking. Otherwise a category name or service id."
        ),
    )

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    display_order = models.IntegerField(_("display order"), default=0)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "track_definitions"
        verbose_name = _("reward track")
        verbose_name_plural = _("reward tracks")
        ordering = ["display_order", "name"]

    def __str__(self):
        return f"{self.display_name} ({self.name})"

    @property
    def milestone_schedule(self) -> list[Milestone]:
        """Parsed milestones. Raises RewardmanError(INVALID_CONFIG)."""
        return parse_milestones(self.track_type, self.milestones)

    @property
    def is_spend(self) -> bool:
        return self.track_type == TrackType.SPEND_AMOUNT

    def clean(self):
        from rewardman.gates import GateError, Gates

        super().clean()
        if self.reward_expiry_days is not None and self.reward_expiry_days < 1:
            raise ValidationError({"reward_expiry_days": _("Rewards must stay valid for at least one day.")})
        try:
            Gates.milestone_schedule(self.track_type, self.milestones)
        except GateError as exc:
            raise ValidationError({"milestones": exc.details.get("errors") or [exc.message]})
