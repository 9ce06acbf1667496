"""
Track resolution — which tracks a booking credits.

Mapping sources are merged per track, in order; an earlier source keeps its
multiplier and payment flag for a track a later source also maps:

    1. ServiceMappingSource   explicit service_id → track mappings
    2. CategoryMappingSource  service category → track mappings

Fallback sources are consulted only when no mapping matched:

    3. LegacySpendSource      the flat "spend" track, if spend tracking is on

Configuration is queried on every call. Inactive tracks and inactive
mappings never resolve.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from rewardman.choices import TrackType
from rewardman.conf import rewardman_settings
from rewardman.models import (
    CategoryTrackMapping,
    RewardsProgramme,
    ServiceTrackMapping,
    TrackDefinition,
)
from rewardman.protocols.booking import BookingSnapshot


@dataclass(frozen=True)
class ResolvedTrack:
    """A track a booking should credit, with the mapping's parameters."""

    track: TrackDefinition
    multiplier: Decimal
    requires_payment: bool
    source: str


class TrackSource(Protocol):
    """One step of the resolution chain."""

    name: str
    fallback: bool

    def resolve(self, booking: BookingSnapshot, programme: RewardsProgramme) -> list[ResolvedTrack]:
        ...


class ServiceMappingSource:
    name = "service"
    fallback = False

    def resolve(self, booking, programme):
        if not booking.service_id:
            return []
        mappings = (
            ServiceTrackMapping.objects.filter(
                service_id=booking.service_id,
                is_active=True,
                track__is_active=True,
            )
            .select_related("track")
            .order_by("track__display_order", "track__name")
        )
        return [
            ResolvedTrack(m.track, m.points_multiplier, m.requires_payment, self.name)
            for m in mappings
        ]


class CategoryMappingSource:
    name = "category"
    fallback = False

    def resolve(self, booking, programme):
        if not booking.service_category:
            return []
        mappings = (
            CategoryTrackMapping.objects.filter(
                category_name=booking.service_category,
                is_active=True,
                track__is_active=True,
            )
            .select_related("track")
            .order_by("track__display_order", "track__name")
        )
        return [
            ResolvedTrack(m.track, m.points_multiplier, m.requires_payment, self.name)
            for m in mappings
        ]


class LegacySpendSource:
    name = "legacy_spend"
    fallback = True

    def resolve(self, booking, programme):
        if not programme.spend_tracking_enabled:
            return []
        track = TrackDefinition.objects.filter(
            name=rewardman_settings.LEGACY_SPEND_TRACK,
            track_type=TrackType.SPEND_AMOUNT,
            is_active=True,
        ).first()
        if track is None:
            return []
        return [ResolvedTrack(track, Decimal("1"), True, self.name)]


DEFAULT_SOURCES: tuple[TrackSource, ...] = (
    ServiceMappingSource(),
    CategoryMappingSource(),
    LegacySpendSource(),
)


def resolve_tracks(
    booking: BookingSnapshot,
    programme: RewardsProgramme,
    sources: tuple[TrackSource, ...] = DEFAULT_SOURCES,
) -> list[ResolvedTrack]:
    """
    Union of the mapping sources, one entry per track.

    A track keeps the entry of the first source that maps it. Fallback
    sources only run when the mapping sources resolved nothing.
    """
    by_track: dict[str, ResolvedTrack] = {}
    for source in sources:
        if source.fallback:
            continue
        for resolved in source.resolve(booking, programme):
            by_track.setdefault(resolved.track.name, resolved)

    if by_track:
        return list(by_track.values())

    for source in sources:
        if not source.fallback:
            continue
        resolved = source.resolve(booking, programme)
        if resolved:
            return resolved
    return []
