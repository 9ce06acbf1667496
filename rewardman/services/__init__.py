"""Rewardman services.

- IssuanceService: booking → progress → grants
- RedemptionService: apply a grant to a booking
- GrantService: manual grants, revocation, queries
- ProgressService: customer progress queries
- ReferralService: referral links and referrer rewards
- PackageService: prepaid session packages
- ConfigService: tracks, mappings, programme switches
- ExpirySweeper: periodic expiry
"""

from rewardman.services.config import ConfigService
from rewardman.services.grants import GrantService
from rewardman.services.issuance import IssuanceResult, IssuanceService, TrackOutcome
from rewardman.services.packages import PackageService
from rewardman.services.progress import ProgressService
from rewardman.services.redemption import RedemptionQuote, RedemptionService
from rewardman.services.referral import ReferralService
from rewardman.services.sweeper import ExpirySweeper, SweepStats

__all__ = [
    "ConfigService",
    "ExpirySweeper",
    "GrantService",
    "IssuanceResult",
    "IssuanceService",
    "PackageService",
    "ProgressService",
    "RedemptionQuote",
    "RedemptionService",
    "ReferralService",
    "SweepStats",
    "TrackOutcome",
]
