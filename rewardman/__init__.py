"""
Django Rewardman - Salon rewards engine.

Usage:
    from rewardman import IssuanceService, RedemptionService
    from rewardman.protocols import BookingSnapshot

    booking = BookingSnapshot(
        booking_id="BK-1001",
        user_id="user-42",
        service_id="gel-manicure",
        service_category="nails",
        base_price=Decimal("450.00"),
        total=Decimal("450.00"),
    )
    result = IssuanceService.process_booking(booking, payment_confirmed=True)
    for grant in result.grants:
        notify(grant)

    RedemptionService.redeem("user-42", grant_id, "BK-1002")
"""

_SERVICES = {
    "ConfigService": "rewardman.services.config",
    "ExpirySweeper": "rewardman.services.sweeper",
    "GrantService": "rewardman.services.grants",
    "IssuanceService": "rewardman.services.issuance",
    "PackageService": "rewardman.services.packages",
    "ProgressService": "rewardman.services.progress",
    "RedemptionService": "rewardman.services.redemption",
    "ReferralService": "rewardman.services.referral",
}


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module

        return getattr(import_module(_SERVICES[name]), name)
    if name == "RewardmanError":
        from rewardman.exceptions import RewardmanError

        return RewardmanError
    if name == "Gates":
        from rewardman.gates import Gates

        return Gates
    if name == "GateError":
        from rewardman.gates import GateError

        return GateError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [*_SERVICES, "RewardmanError", "Gates", "GateError"]
__version__ = "0.1.0"
