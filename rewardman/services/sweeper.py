"""Expiry sweeper — moves overdue grants and packages to expired."""

import logging
from dataclasses import dataclass

from django.utils import timezone

from rewardman.choices import GrantStatus, PackageStatus
from rewardman.models import RewardGrant, UserPackage
from rewardman.utils import retry_on_contention

logger = logging.getLogger(__name__)


@dataclass
class SweepStats:
    grants_expired: int = 0
    packages_expired: int = 0

    @property
    def total(self) -> int:
        return self.grants_expired + self.packages_expired


class ExpirySweeper:
    """
    Periodic expiry pass.

    Every transition is a conditional bulk UPDATE on status=active, so a
    sweep racing a redemption can never expire a grant that was just
    redeemed (or the reverse). Running it twice is harmless.
    """

    @classmethod
    def sweep(cls, now=None) -> SweepStats:
        now = now or timezone.now()
        stats = SweepStats(
            grants_expired=cls.expire_grants(now),
            packages_expired=cls.expire_packages(now),
        )
        if stats.total:
            logger.info(
                "Expiry sweep: %d grants, %d packages expired",
                stats.grants_expired, stats.packages_expired,
            )
        return stats

    @classmethod
    @retry_on_contention
    def expire_grants(cls, now) -> int:
        return RewardGrant.objects.filter(
            status=GrantStatus.ACTIVE,
            expires_at__isnull=False,
            expires_at__lt=now,
        ).update(status=GrantStatus.EXPIRED, expired_at=now)

    @classmethod
    @retry_on_contention
    def expire_packages(cls, now) -> int:
        return UserPackage.objects.filter(
            status=PackageStatus.ACTIVE,
            valid_until__lt=now,
        ).update(status=PackageStatus.EXPIRED, expired_at=now)
