"""Package service — prepaid session packages."""

import logging
from datetime import datetime, timedelta

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from rewardman.choices import PackageStatus, ValidityType
from rewardman.exceptions import RewardmanError
from rewardman.models import PackageSession, RewardsProgramme, ServicePackage, UserPackage
from rewardman.utils import retry_on_contention

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 30


def package_valid_until(package: ServicePackage, purchased_at: datetime) -> datetime:
    """
    End of a package's validity window.

    calendar_month: last instant of the purchase month (local time)
    days_from_purchase: purchased_at + validity_days
    """
    if package.validity_type == ValidityType.DAYS_FROM_PURCHASE:
        return purchased_at + timedelta(days=package.validity_days or DEFAULT_VALIDITY_DAYS)

    local = timezone.localtime(purchased_at)
    month_start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    next_month = (month_start + timedelta(days=32)).replace(day=1)
    return next_month - timedelta(microseconds=1)


class PackageService:
    """
    Package purchase and session use.

    Sessions are consumed with a conditional UPDATE that re-checks status,
    remaining sessions and the validity window, so concurrent use can never
    push sessions_used past total_sessions.
    """

    @classmethod
    def available(cls) -> list[ServicePackage]:
        return list(ServicePackage.objects.filter(is_active=True))

    @classmethod
    def purchase(cls, user_id: str, package_id: int, now=None) -> UserPackage:
        """
        Record a package purchase.

        Raises:
            RewardmanError: PROGRAMME_DISABLED, PACKAGE_NOT_FOUND
        """
        programme = RewardsProgramme.load()
        if not programme.packages_enabled:
            raise RewardmanError("PROGRAMME_DISABLED", message="Packages are not available")

        package = ServicePackage.objects.filter(pk=package_id, is_active=True).first()
        if package is None:
            raise RewardmanError("PACKAGE_NOT_FOUND", package_id=package_id)

        now = now or timezone.now()
        user_package = UserPackage.objects.create(
            user_id=user_id,
            package=package,
            package_name=package.name,
            total_sessions=package.total_sessions,
            purchase_price=package.final_price,
            valid_from=now,
            valid_until=package_valid_until(package, now),
        )

        logger.info("Package %s purchased by %s (valid until %s)", package.name, user_id, user_package.valid_until)
        return user_package

    @classmethod
    def active_for_user(cls, user_id: str, now=None) -> list[UserPackage]:
        now = now or timezone.now()
        return list(
            UserPackage.objects.filter(
                user_id=user_id,
                status=PackageStatus.ACTIVE,
                valid_until__gte=now,
            ).order_by("valid_until")
        )

    @classmethod
    def use_session(cls, user_id: str, user_package_id: int, booking_id: str = "", now=None) -> UserPackage:
        """
        Consume one session.

        Raises:
            RewardmanError: PACKAGE_NOT_FOUND, PACKAGE_EXPIRED,
                PACKAGE_EXHAUSTED, PACKAGE_NOT_ACTIVE, TRANSIENT
        """
        now = now or timezone.now()
        user_package = UserPackage.objects.filter(pk=user_package_id, user_id=user_id).first()
        if user_package is None:
            raise RewardmanError("PACKAGE_NOT_FOUND", package_id=user_package_id)

        cls._check_usable(user_package, now)

        if not cls._consume(user_package, booking_id, now):
            user_package.refresh_from_db()
            cls._check_usable(user_package, now)
            raise RewardmanError("PACKAGE_NOT_ACTIVE", package_id=user_package.pk)

        user_package.refresh_from_db()
        logger.info(
            "Package %s session used by %s (%d/%d)",
            user_package.pk, user_id, user_package.sessions_used, user_package.total_sessions,
        )
        return user_package

    @classmethod
    @retry_on_contention
    def _consume(cls, user_package: UserPackage, booking_id: str, now) -> bool:
        with transaction.atomic():
            updated = UserPackage.objects.filter(
                pk=user_package.pk,
                status=PackageStatus.ACTIVE,
                sessions_used__lt=F("total_sessions"),
                valid_until__gte=now,
            ).update(sessions_used=F("sessions_used") + 1)
            if not updated:
                return False

            UserPackage.objects.filter(
                pk=user_package.pk,
                status=PackageStatus.ACTIVE,
                sessions_used__gte=F("total_sessions"),
            ).update(status=PackageStatus.EXHAUSTED)

            PackageSession.objects.create(user_package_id=user_package.pk, booking_id=booking_id)
        return True

    @classmethod
    def _check_usable(cls, user_package: UserPackage, now) -> None:
        if user_package.status == PackageStatus.EXHAUSTED:
            raise RewardmanError("PACKAGE_EXHAUSTED", package_id=user_package.pk)
        if user_package.status == PackageStatus.EXPIRED:
            raise RewardmanError("PACKAGE_EXPIRED", package_id=user_package.pk)
        if user_package.status != PackageStatus.ACTIVE:
            raise RewardmanError("PACKAGE_NOT_ACTIVE", package_id=user_package.pk)
        if user_package.is_expired(now):
            UserPackage.objects.filter(pk=user_package.pk, status=PackageStatus.ACTIVE).update(
                status=PackageStatus.EXPIRED,
                expired_at=now,
            )
            raise RewardmanError("PACKAGE_EXPIRED", package_id=user_package.pk)
        if user_package.sessions_remaining <= 0:
            raise RewardmanError("PACKAGE_EXHAUSTED", package_id=user_package.pk)
