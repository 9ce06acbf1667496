"""
Milestone engine.

Pure computation over parsed milestones; nothing here touches the database.

Milestone JSON (as stored on TrackDefinition.milestones) is parsed once at
the configuration boundary into a tagged union:

    VisitMilestone(count, reward, repeating)   - visit_count tracks
    SpendMilestone(amount, reward, repeating)  - spend_amount tracks

Crossing rules:
    one-time threshold T:  crossed iff old < T <= new
    repeating cycle L:     floor(new / L) - floor(old / L) cycles completed,
                           one Crossing per completed cycle
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from rewardman.choices import RewardType, TrackType
from rewardman.exceptions import RewardmanError


@dataclass(frozen=True)
class Reward:
    """What a milestone issues when crossed."""

    reward_type: str
    value: Decimal
    description: str = ""

    def default_description(self) -> str:
        if self.reward_type == RewardType.PERCENTAGE_DISCOUNT:
            return f"{self.value.normalize():f}% off your next service"
        if self.reward_type == RewardType.FIXED_DISCOUNT:
            return f"{self.value.normalize():f} off your next service"
        return "Complimentary service"

    @property
    def label(self) -> str:
        return self.description or self.default_description()


@dataclass(frozen=True)
class VisitMilestone:
    """Threshold on a visit_count track."""

    count: int
    reward: Reward
    repeating: bool = False

    @property
    def threshold(self) -> Decimal:
        return Decimal(self.count)

    @property
    def label(self) -> str:
        suffix = "/repeat" if self.repeating else ""
        return f"count:{self.count}{suffix}"


@dataclass(frozen=True)
class SpendMilestone:
    """Threshold on a spend_amount track."""

    amount: Decimal
    reward: Reward
    repeating: bool = False

    @property
    def threshold(self) -> Decimal:
        return self.amount

    @property
    def label(self) -> str:
        suffix = "/repeat" if self.repeating else ""
        return f"amount:{self.amount.normalize():f}{suffix}"


Milestone = VisitMilestone | SpendMilestone


@dataclass(frozen=True)
class Crossing:
    """A single crossed milestone. Repeating milestones carry the cycle number."""

    milestone: Milestone
    cycle: int | None = None

    @property
    def watermark(self) -> int:
        """Value stored as last_milestone_reached on the ledger."""
        if self.cycle is not None:
            return self.cycle
        return int(self.milestone.threshold)


@dataclass(frozen=True)
class UpcomingMilestone:
    """Nearest milestone ahead of the current progress value."""

    milestone: Milestone
    threshold: Decimal
    remaining: Decimal


# =============================================================================
# Parsing (configuration boundary)
# =============================================================================


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation("boolean is not a number")
    return Decimal(str(value))


def parse_milestones(track_type: str, raw) -> list[Milestone]:
    """
    Parse and validate a milestone list.

    Args:
        track_type: visit_count or spend_amount
        raw: list of milestone dicts (or its JSON text)

    Returns:
        Ordered list of VisitMilestone / SpendMilestone

    Raises:
        RewardmanError: INVALID_CONFIG with every problem found in ``errors``
    """
    if track_type not in TrackType.values:
        raise RewardmanError(
            "INVALID_CONFIG",
            errors=[f"Unknown track type: {track_type!r}"],
        )

    if isinstance(raw, str):
        try:
            raw = json.loads(raw or "[]")
        except ValueError:
            raise RewardmanError("INVALID_CONFIG", errors=["Milestones are not valid JSON"])

    if not isinstance(raw, list):
        raise RewardmanError("INVALID_CONFIG", errors=["Milestones must be a list"])

    key = "count" if track_type == TrackType.VISIT_COUNT else "amount"
    errors: list[str] = []
    parsed: list[Milestone] = []
    previous: Decimal | None = None

    for position, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            errors.append(f"Milestone {position}: must be an object")
            continue

        if key not in item:
            errors.append(f"Milestone {position}: {track_type} milestones need '{key}'")
            continue

        try:
            threshold = _to_decimal(item[key])
        except (InvalidOperation, ValueError, TypeError):
            errors.append(f"Milestone {position}: '{key}' must be a number")
            continue

        if not threshold.is_finite() or threshold <= 0:
            errors.append(f"Milestone {position}: '{key}' must be greater than zero")
            continue
        if key == "count" and threshold != threshold.to_integral_value():
            errors.append(f"Milestone {position}: 'count' must be a whole number")
            continue
        if previous is not None and threshold <= previous:
            errors.append(
                f"Milestone {position}: thresholds must be strictly increasing "
                f"({threshold} after {previous})"
            )
        previous = threshold

        repeating = item.get("repeating", False)
        if not isinstance(repeating, bool):
            errors.append(f"Milestone {position}: 'repeating' must be true or false")
            continue

        reward_type = item.get("reward_type")
        if reward_type not in RewardType.values:
            errors.append(f"Milestone {position}: unknown reward_type {reward_type!r}")
            continue

        try:
            value = _to_decimal(item.get("reward_value", 0))
        except (InvalidOperation, ValueError, TypeError):
            errors.append(f"Milestone {position}: 'reward_value' must be a number")
            continue

        if not value.is_finite() or value < 0:
            errors.append(f"Milestone {position}: 'reward_value' cannot be negative")
            continue
        if reward_type == RewardType.PERCENTAGE_DISCOUNT and not 0 < value <= 100:
            errors.append(f"Milestone {position}: percentage must be between 0 and 100")
            continue

        reward = Reward(
            reward_type=reward_type,
            value=value,
            description=str(item.get("description") or ""),
        )
        if key == "count":
            parsed.append(VisitMilestone(count=int(threshold), reward=reward, repeating=repeating))
        else:
            parsed.append(SpendMilestone(amount=threshold, reward=reward, repeating=repeating))

    if errors:
        raise RewardmanError("INVALID_CONFIG", errors=errors)

    return parsed


# =============================================================================
# Crossing detection
# =============================================================================


def crossed_count(old, new, milestone: Milestone) -> int:
    """
    Number of times ``milestone`` was crossed moving from ``old`` to ``new``.

    One-time milestones return 0 or 1. Repeating milestones return the number
    of completed cycles, however large the jump.
    """
    old = _to_decimal(old)
    new = _to_decimal(new)
    if new <= old:
        return 0

    threshold = milestone.threshold
    if milestone.repeating:
        return max(0, math.floor(new / threshold) - math.floor(old / threshold))
    return 1 if old < threshold <= new else 0


def evaluate(old, new, milestones: list[Milestone]) -> list[Crossing]:
    """Every crossing between ``old`` and ``new``, one per completed cycle."""
    old = _to_decimal(old)
    crossings: list[Crossing] = []

    for milestone in milestones:
        times = crossed_count(old, new, milestone)
        if not times:
            continue
        if milestone.repeating:
            first = math.floor(old / milestone.threshold) + 1
            crossings.extend(Crossing(milestone, cycle) for cycle in range(first, first + times))
        else:
            crossings.append(Crossing(milestone))

    return crossings


def watermark_for(crossings: list[Crossing], milestones: list[Milestone]) -> int | None:
    """
    Value to store as last_milestone_reached after ``crossings``.

    A track with a repeating milestone records the cycle count of its first
    repeating milestone; crossing only one-time milestones leaves it as is.
    A track of one-time milestones records the highest threshold crossed.
    None when nothing should be recorded.
    """
    primary = next((m for m in milestones if m.repeating), None)
    if primary is not None:
        cycles = [c.cycle for c in crossings if c.milestone == primary]
        return max(cycles) if cycles else None

    thresholds = [c.watermark for c in crossings]
    return max(thresholds) if thresholds else None


def next_milestone(value, milestones: list[Milestone]) -> UpcomingMilestone | None:
    """Nearest milestone still ahead of ``value`` (None when all are behind)."""
    value = _to_decimal(value)
    best: UpcomingMilestone | None = None

    for milestone in milestones:
        threshold = milestone.threshold
        if milestone.repeating:
            target = (math.floor(value / threshold) + 1) * threshold
        elif threshold > value:
            target = threshold
        else:
            continue

        if best is None or target < best.threshold:
            best = UpcomingMilestone(milestone, target, target - value)

    return best
