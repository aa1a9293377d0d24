"""
Spending Limiter.

Rolling daily quota on value moved out of the wallet. Days are coarse
buckets (``now // SECONDS_PER_DAY``) and the counter resets lazily on the
first spend check of a new bucket. There is no timer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from qwallet.core.constants import SECONDS_PER_DAY, UNLIMITED
from qwallet.core.exceptions import DailyLimitExceeded, InvalidValue

logger = logging.getLogger(__name__)


def day_bucket(now: int) -> int:
    return now // SECONDS_PER_DAY


@dataclass
class SpendingLimiter:
    """
    Daily spending quota.

    ``daily_limit == 0`` means unlimited: nothing is tracked or consumed.
    """

    daily_limit: int = 0
    spent_today: int = 0
    last_day_bucket: int = 0

    @property
    def unlimited(self) -> bool:
        return self.daily_limit == 0

    def check_and_consume(self, value: int, now: int) -> None:
        """
        Consume ``value`` from today's quota.

        Raises:
            InvalidValue: If value is negative.
            DailyLimitExceeded: If the spend would push today's total past the limit.
        """
        if value < 0:
            raise InvalidValue(f"Spend value cannot be negative: {value}")

        if self.unlimited:
            return

        today = day_bucket(now)
        if today > self.last_day_bucket:
            logger.debug(
                "Spending window rolled over",
                extra={
                    "event": "limiter.rollover",
                    "previous_bucket": self.last_day_bucket,
                    "bucket": today,
                    "previous_spent": self.spent_today,
                },
            )
            self.spent_today = 0
            self.last_day_bucket = today

        if self.spent_today + value > self.daily_limit:
            logger.warning(
                "Daily limit exceeded",
                extra={
                    "event": "limiter.exceeded",
                    "value": value,
                    "spent_today": self.spent_today,
                    "daily_limit": self.daily_limit,
                },
            )
            raise DailyLimitExceeded(
                f"Spending {value} would exceed daily limit "
                f"({self.spent_today}/{self.daily_limit} used)",
                details={
                    "value": value,
                    "spent_today": self.spent_today,
                    "daily_limit": self.daily_limit,
                },
            )

        self.spent_today += value

    def remaining(self, now: int) -> int:
        """Quota left for the bucket containing ``now``. Read-only."""
        if self.unlimited:
            return UNLIMITED
        if day_bucket(now) > self.last_day_bucket:
            return self.daily_limit
        return max(0, self.daily_limit - self.spent_today)

    def set_daily_limit(self, limit: int) -> None:
        """Change the limit. Today's spend is kept."""
        if limit < 0:
            raise InvalidValue(f"Daily limit cannot be negative: {limit}")
        old_limit = self.daily_limit
        self.daily_limit = limit
        logger.info(
            "Daily limit updated",
            extra={
                "event": "limiter.limit_updated",
                "old_limit": old_limit,
                "new_limit": limit,
            },
        )
