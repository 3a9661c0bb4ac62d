"""Tests for the sliding-window submission ledger."""

import pytest

from citadel_engine.errors import RateLimitExceeded
from citadel_engine.identity.rate_limits import DAY_SECS, HOUR_SECS, SubmissionLedger
from citadel_engine.identity.trust_scorer import RateLimit


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000_000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestSubmissionLedger:
    def test_hourly_limit(self, clock: FakeClock) -> None:
        ledger = SubmissionLedger(clock=clock)
        limit = RateLimit("restricted", per_hour=5, per_day=50)
        for _ in range(5):
            ledger.acquire("ID", limit)

        with pytest.raises(RateLimitExceeded) as exc:
            ledger.acquire("ID", limit)
        assert exc.value.window == "hour"
        assert exc.value.limit == 5
        assert exc.value.retry_after_secs == pytest.approx(HOUR_SECS)

    def test_hour_window_slides(self, clock: FakeClock) -> None:
        ledger = SubmissionLedger(clock=clock)
        limit = RateLimit("restricted", per_hour=1, per_day=50)
        ledger.acquire("ID", limit)
        clock.now += HOUR_SECS
        ledger.acquire("ID", limit)
        assert ledger.usage("ID") == {"last_hour": 1, "last_day": 2}

    def test_daily_limit(self, clock: FakeClock) -> None:
        ledger = SubmissionLedger(clock=clock)
        limit = RateLimit("custom", per_hour=100, per_day=3)
        for _ in range(3):
            ledger.acquire("ID", limit)
            clock.now += HOUR_SECS

        with pytest.raises(RateLimitExceeded) as exc:
            ledger.acquire("ID", limit)
        assert exc.value.window == "day"

        clock.now += DAY_SECS
        ledger.acquire("ID", limit)

    def test_rejected_submission_not_recorded(self, clock: FakeClock) -> None:
        ledger = SubmissionLedger(clock=clock)
        limit = RateLimit("restricted", per_hour=1, per_day=50)
        ledger.acquire("ID", limit)
        with pytest.raises(RateLimitExceeded):
            ledger.acquire("ID", limit)
        assert ledger.usage("ID")["last_day"] == 1

    def test_identities_are_independent(self, clock: FakeClock) -> None:
        ledger = SubmissionLedger(clock=clock)
        limit = RateLimit("restricted", per_hour=1, per_day=50)
        ledger.acquire("A", limit)
        ledger.acquire("B", limit)
        ledger.reset("A")
        ledger.acquire("A", limit)
