"""
Configuration service — staff-facing writes to tracks, mappings and the
programme switches.

Every write is validated before it is saved; validation failures raise
RewardmanError("INVALID_CONFIG") with field errors in data["errors"].
Changes apply to the next booking processed. Grants already issued are
never touched by a configuration change.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import transaction

from rewardman.exceptions import RewardmanError
from rewardman.models import (
    CategoryTrackMapping,
    RewardsProgramme,
    ServiceTrackMapping,
    TrackDefinition,
)

logger = logging.getLogger(__name__)

TRACK_EDITABLE_FIELDS = {
    "display_name",
    "description",
    "icon",
    "milestones",
    "reward_expiry_days",
    "reward_applicable_to",
    "is_active",
    "display_order",
}

PROGRAMME_EDITABLE_FIELDS = {
    "programme_enabled",
    "programme_name",
    "terms_conditions",
    "terms_version",
    "spend_tracking_enabled",
    "referral_enabled",
    "referral_min_booking_value",
    "referral_reward_type",
    "referral_reward_value",
    "referral_reward_description",
    "referral_reward_expiry_days",
    "packages_enabled",
}


def _validated_save(instance) -> None:
    try:
        instance.full_clean()
    except ValidationError as exc:
        raise RewardmanError("INVALID_CONFIG", errors=exc.message_dict)
    instance.save()


def _check_fields(changes: dict, allowed: set[str]) -> None:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise RewardmanError(
            "INVALID_CONFIG",
            message=f"Fields cannot be changed: {', '.join(unknown)}",
            errors={name: ["Not editable."] for name in unknown},
        )


def _to_multiplier(value) -> Decimal:
    try:
        multiplier = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise RewardmanError("INVALID_CONFIG", errors={"points_multiplier": [f"Invalid number: {value!r}"]})
    if multiplier < 0:
        raise RewardmanError("INVALID_CONFIG", errors={"points_multiplier": ["Must be zero or more."]})
    return multiplier


class ConfigService:
    """Admin configuration operations."""

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    @classmethod
    def get_track(cls, name: str) -> TrackDefinition:
        try:
            return TrackDefinition.objects.get(name=name)
        except TrackDefinition.DoesNotExist:
            raise RewardmanError("TRACK_NOT_FOUND", track_name=name)

    @classmethod
    def create_track(
        cls,
        name: str,
        display_name: str,
        track_type: str,
        milestones,
        **fields,
    ) -> TrackDefinition:
        """
        Create a track.

        Raises:
            RewardmanError: INVALID_CONFIG (bad milestones, duplicate name, ...)
        """
        _check_fields(fields, TRACK_EDITABLE_FIELDS)
        track = TrackDefinition(
            name=name,
            display_name=display_name,
            track_type=track_type,
            milestones=milestones,
            **fields,
        )
        _validated_save(track)
        logger.info("Track %s created (%s)", track.name, track.track_type)
        return track

    @classmethod
    def update_track(cls, name: str, **changes) -> TrackDefinition:
        """
        Update editable fields of a track.

        name and track_type are fixed once created: the progress ledger is
        keyed by name and its values are interpreted by type.
        """
        _check_fields(changes, TRACK_EDITABLE_FIELDS)
        track = cls.get_track(name)
        for attr, value in changes.items():
            setattr(track, attr, value)
        _validated_save(track)
        logger.info("Track %s updated: %s", track.name, ", ".join(sorted(changes)))
        return track

    @classmethod
    def deactivate_track(cls, name: str) -> TrackDefinition:
        return cls.update_track(name, is_active=False)

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    @classmethod
    def map_service(
        cls,
        service_id: str,
        track_name: str,
        multiplier=Decimal("1"),
        requires_payment: bool = True,
        is_active: bool = True,
    ) -> ServiceTrackMapping:
        """Map a service to a track (updates the existing mapping if any)."""
        if not service_id:
            raise RewardmanError("INVALID_CONFIG", errors={"service_id": ["Required."]})
        track = cls.get_track(track_name)
        with transaction.atomic():
            mapping, _created = ServiceTrackMapping.objects.update_or_create(
                service_id=service_id,
                track=track,
                defaults={
                    "points_multiplier": _to_multiplier(multiplier),
                    "requires_payment": requires_payment,
                    "is_active": is_active,
                },
            )
        logger.info("Service %s mapped to track %s", service_id, track.name)
        return mapping

    @classmethod
    def map_category(
        cls,
        category_name: str,
        track_name: str,
        multiplier=Decimal("1"),
        requires_payment: bool = True,
        is_active: bool = True,
    ) -> CategoryTrackMapping:
        """Map a service category to a track (updates the existing mapping if any)."""
        if not category_name:
            raise RewardmanError("INVALID_CONFIG", errors={"category_name": ["Required."]})
        track = cls.get_track(track_name)
        with transaction.atomic():
            mapping, _created = CategoryTrackMapping.objects.update_or_create(
                category_name=category_name,
                track=track,
                defaults={
                    "points_multiplier": _to_multiplier(multiplier),
                    "requires_payment": requires_payment,
                    "is_active": is_active,
                },
            )
        logger.info("Category %s mapped to track %s", category_name, track.name)
        return mapping

    @classmethod
    def unmap_service(cls, service_id: str, track_name: str) -> bool:
        deleted, _details = ServiceTrackMapping.objects.filter(
            service_id=service_id, track__name=track_name
        ).delete()
        return bool(deleted)

    @classmethod
    def unmap_category(cls, category_name: str, track_name: str) -> bool:
        deleted, _details = CategoryTrackMapping.objects.filter(
            category_name=category_name, track__name=track_name
        ).delete()
        return bool(deleted)

    # ------------------------------------------------------------------
    # Programme
    # ------------------------------------------------------------------

    @classmethod
    def programme(cls) -> RewardsProgramme:
        return RewardsProgramme.load()

    @classmethod
    def update_programme(cls, **changes) -> RewardsProgramme:
        """Update programme switches (e.g. programme_enabled=False)."""
        _check_fields(changes, PROGRAMME_EDITABLE_FIELDS)
        programme = RewardsProgramme.load()
        for attr, value in changes.items():
            setattr(programme, attr, value)

        _validated_save(programme)
        logger.info("Rewards programme updated: %s", ", ".join(sorted(changes)))
        return programme
