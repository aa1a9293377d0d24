"""
Tests for the pause switch and the daily spending limiter.
"""

import pytest

from qwallet.core.constants import SECONDS_PER_DAY, UNLIMITED
from qwallet.core.contracts.pause_controller import PauseController, PauseState
from qwallet.core.contracts.spending_limiter import SpendingLimiter, day_bucket
from qwallet.core.exceptions import (
    ContractPaused,
    DailyLimitExceeded,
    InvalidValue,
    NotPaused,
)

NOW = 10 * SECONDS_PER_DAY + 100


class TestPauseController:

    def test_starts_active(self):
        controller = PauseController()
        assert controller.state is PauseState.ACTIVE
        controller.require_active()

    def test_pause_blocks(self):
        controller = PauseController()
        controller.pause(by="0xguardian")
        assert controller.is_paused
        with pytest.raises(ContractPaused):
            controller.require_active()

    def test_double_pause_rejected(self):
        controller = PauseController()
        controller.pause()
        with pytest.raises(ContractPaused):
            controller.pause()

    def test_unpause_when_active_rejected(self):
        with pytest.raises(NotPaused):
            PauseController().unpause()

    def test_unpause_restores(self):
        controller = PauseController(state=PauseState.PAUSED)
        controller.unpause()
        assert not controller.is_paused


class TestSpendingLimiter:

    def test_spend_within_limit_then_exceed_then_rollover(self):
        limiter = SpendingLimiter(daily_limit=100)

        limiter.check_and_consume(60, NOW)
        assert limiter.spent_today == 60

        with pytest.raises(DailyLimitExceeded) as exc_info:
            limiter.check_and_consume(50, NOW + 10)
        assert exc_info.value.details["spent_today"] == 60
        assert limiter.spent_today == 60

        limiter.check_and_consume(90, NOW + SECONDS_PER_DAY)
        assert limiter.spent_today == 90
        assert limiter.last_day_bucket == day_bucket(NOW) + 1

    def test_exact_limit_allowed(self):
        limiter = SpendingLimiter(daily_limit=100)
        limiter.check_and_consume(100, NOW)
        assert limiter.remaining(NOW) == 0

    def test_zero_value_always_allowed(self):
        limiter = SpendingLimiter(daily_limit=100, spent_today=100, last_day_bucket=day_bucket(NOW))
        limiter.check_and_consume(0, NOW)
        assert limiter.spent_today == 100

    def test_unlimited_tracks_nothing(self):
        limiter = SpendingLimiter()
        limiter.check_and_consume(10**30, NOW)
        assert limiter.spent_today == 0
        assert limiter.remaining(NOW) == UNLIMITED

    def test_negative_value_rejected(self):
        with pytest.raises(InvalidValue):
            SpendingLimiter(daily_limit=100).check_and_consume(-1, NOW)

    def test_day_boundary_is_exact(self):
        limiter = SpendingLimiter(daily_limit=100)
        end_of_day = 11 * SECONDS_PER_DAY - 1
        limiter.check_and_consume(100, end_of_day)
        with pytest.raises(DailyLimitExceeded):
            limiter.check_and_consume(1, end_of_day)
        limiter.check_and_consume(100, end_of_day + 1)

    def test_remaining_is_read_only(self):
        limiter = SpendingLimiter(daily_limit=100)
        limiter.check_and_consume(70, NOW)

        assert limiter.remaining(NOW) == 30
        # A later day reports a fresh quota without resetting the counter
        assert limiter.remaining(NOW + SECONDS_PER_DAY) == 100
        assert limiter.spent_today == 70

    def test_lowering_limit_keeps_spend(self):
        limiter = SpendingLimiter(daily_limit=100)
        limiter.check_and_consume(70, NOW)
        limiter.set_daily_limit(50)
        assert limiter.spent_today == 70
        assert limiter.remaining(NOW) == 0
        with pytest.raises(DailyLimitExceeded):
            limiter.check_and_consume(1, NOW)

    def test_negative_limit_rejected(self):
        with pytest.raises(InvalidValue):
            SpendingLimiter().set_daily_limit(-5)
