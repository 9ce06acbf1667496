"""Rewardman models.

Configuration (staff-editable):
- TrackDefinition, ServiceTrackMapping, CategoryTrackMapping, RewardsProgramme

Ledger and grants (mutated only through services):
- TrackProgress, ProgressCredit, RewardGrant, Referral

Packages:
- ServicePackage, UserPackage, PackageSession
"""

from rewardman.models.track import TrackDefinition
from rewardman.models.mapping import ServiceTrackMapping, CategoryTrackMapping
from rewardman.models.programme import RewardsProgramme
from rewardman.models.progress import TrackProgress, ProgressCredit
from rewardman.models.grant import RewardGrant
from rewardman.models.referral import Referral
from rewardman.models.package import ServicePackage, UserPackage, PackageSession

__all__ = [
    # Configuration
    "TrackDefinition",
    "ServiceTrackMapping",
    "CategoryTrackMapping",
    "RewardsProgramme",
    # Progress ledger (credit dedup included)
    "TrackProgress",
    "ProgressCredit",
    # Grants and referrals
    "RewardGrant",
    "Referral",
    # Packages
    "ServicePackage",
    "UserPackage",
    "PackageSession",
]
