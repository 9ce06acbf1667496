"""Progress ledger — atomic counter updates and customer progress queries."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from rewardman.exceptions import RewardmanError
from rewardman.milestones import next_milestone
from rewardman.models import TrackDefinition, TrackProgress
from rewardman.utils import quantize_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressTransition:
    """Exact before/after values of one locked ledger update."""

    progress: TrackProgress
    old_value: Decimal
    new_value: Decimal
    created: bool


@dataclass
class TrackProgressView:
    """Customer-facing progress on one track."""

    track_name: str
    display_name: str
    icon: str
    track_type: str
    current_count: Decimal
    current_amount: Decimal
    last_milestone_reached: int
    next_threshold: Decimal | None = None
    remaining: Decimal | None = None
    next_reward: str = ""

    @property
    def progress_percent(self) -> int:
        """Progress toward next_threshold (0-100)."""
        if not self.next_threshold:
            return 100
        done = self.next_threshold - (self.remaining or Decimal("0"))
        return max(0, min(100, int(done / self.next_threshold * 100)))


class ProgressLedger:
    """
    Writes to TrackProgress.

    Only IssuanceService calls this. All methods MUST run inside
    transaction.atomic().
    """

    @classmethod
    def credit(
        cls,
        *,
        user_id: str,
        track: TrackDefinition,
        count_delta: Decimal,
        amount_delta: Decimal,
    ) -> ProgressTransition:
        """
        Add deltas to the (user, track) row under a row lock.

        The row is created on first use. The returned old/new values come
        from this single locked read-modify-write, so milestone evaluation
        never sees another request's increment.
        """
        count_delta = quantize_money(count_delta)
        amount_delta = quantize_money(amount_delta)

        progress, created = TrackProgress.objects.select_for_update().get_or_create(
            user_id=user_id,
            track_name=track.name,
        )

        old_value = progress.value_for(track.is_spend)

        progress.current_count += count_delta
        progress.current_amount += amount_delta
        progress.lifetime_count += count_delta
        progress.lifetime_amount += amount_delta
        progress.save(update_fields=[
            "current_count",
            "current_amount",
            "lifetime_count",
            "lifetime_amount",
            "updated_at",
        ])

        return ProgressTransition(
            progress=progress,
            old_value=old_value,
            new_value=progress.value_for(track.is_spend),
            created=created,
        )

    @classmethod
    def mark_milestone(cls, progress: TrackProgress, watermark: int) -> None:
        """Record the last milestone reached (cycle count or threshold)."""
        progress.last_milestone_reached = watermark
        progress.save(update_fields=["last_milestone_reached", "updated_at"])


class ProgressService:
    """Read-only progress queries for the customer-facing API."""

    @classmethod
    def get(cls, user_id: str, track_name: str) -> TrackProgress | None:
        """Ledger row for (user, track), or None before the first credit."""
        return TrackProgress.objects.filter(user_id=user_id, track_name=track_name).first()

    @classmethod
    def for_user(cls, user_id: str) -> list[TrackProgressView]:
        """
        Progress on every active track, including tracks not started yet.

        A track with broken milestone config still shows its counters, just
        without a next milestone.
        """
        ledger = {p.track_name: p for p in TrackProgress.objects.filter(user_id=user_id)}
        views = []

        for track in TrackDefinition.objects.filter(is_active=True):
            progress = ledger.get(track.name)
            view = TrackProgressView(
                track_name=track.name,
                display_name=track.display_name,
                icon=track.icon,
                track_type=track.track_type,
                current_count=progress.current_count if progress else Decimal("0"),
                current_amount=progress.current_amount if progress else Decimal("0"),
                last_milestone_reached=progress.last_milestone_reached if progress else 0,
            )

            try:
                schedule = track.milestone_schedule
            except RewardmanError:
                logger.warning("Track %s has invalid milestones; progress shown without target", track.name)
                schedule = []

            value = view.current_amount if track.is_spend else view.current_count
            upcoming = next_milestone(value, schedule)
            if upcoming:
                view.next_threshold = upcoming.threshold
                view.remaining = upcoming.remaining
                view.next_reward = upcoming.milestone.reward.label

            views.append(view)

        return views
