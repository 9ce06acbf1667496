"""Rewardman utilities."""

import functools
import logging
import time
from decimal import ROUND_HALF_UP, Decimal

from django.db import OperationalError

from rewardman.exceptions import RewardmanError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def quantize_money(value) -> Decimal:
    """Round to cents (half up)."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def retry_on_contention(func):
    """
    Retry a transactional unit once on OperationalError (lock timeout,
    "database is locked"), then surface RewardmanError("TRANSIENT").

    Wrap the function that opens the transaction, never code running inside
    one: the retry needs a fresh transaction (or savepoint).
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from rewardman.conf import rewardman_settings

        try:
            return func(*args, **kwargs)
        except OperationalError as exc:
            logger.warning("%s: storage contention, retrying once (%s)", func.__qualname__, exc)
            time.sleep(rewardman_settings.CONTENTION_RETRY_DELAY)

        try:
            return func(*args, **kwargs)
        except OperationalError as exc:
            logger.error("%s: storage contention persisted (%s)", func.__qualname__, exc)
            raise RewardmanError("TRANSIENT", operation=func.__qualname__) from exc

    return wrapper
