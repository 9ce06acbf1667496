"""Rewardman exceptions."""


class BaseError(Exception):
    """
    Structured exception with a machine-readable code.

    Subclasses declare ``_default_messages`` mapping codes to human text.
    Extra keyword arguments are kept in ``data`` for callers and APIs.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class RewardmanError(BaseError):
    """
    Structured exception for rewards operations.

    Usage:
        try:
            RedemptionService.redeem(user_id, grant_id, booking_id)
        except RewardmanError as e:
            if e.code == "GRANT_EXPIRED":
                show_expired_banner()
    """

    _default_messages = {
        "GRANT_NOT_FOUND": "Reward not found",
        "GRANT_NOT_ACTIVE": "Reward is no longer active",
        "GRANT_ALREADY_REDEEMED": "Reward has already been redeemed",
        "GRANT_EXPIRED": "Reward has expired",
        "GRANT_NOT_APPLICABLE": "Reward cannot be used for this booking",
        "BOOKING_NOT_FOUND": "Booking not found",
        "BOOKING_ALREADY_DISCOUNTED": "Booking already has a reward applied",
        "INVALID_CONFIG": "Invalid rewards configuration",
        "INVALID_REWARD": "Invalid reward definition",
        "TRACK_NOT_FOUND": "Reward track not found",
        "REFERRAL_INVALID": "Invalid referral",
        "PACKAGE_NOT_FOUND": "Package not found",
        "PACKAGE_NOT_ACTIVE": "Package is no longer active",
        "PACKAGE_EXPIRED": "Package has expired",
        "PACKAGE_EXHAUSTED": "No sessions remaining on package",
        "PROGRAMME_DISABLED": "Rewards programme is disabled",
        "TRANSIENT": "Temporary storage contention, try again",
    }
