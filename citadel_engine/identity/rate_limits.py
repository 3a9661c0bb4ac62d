"""Sliding-window submission ledger for per-identity rate limits.

Limits come from the identity's trust tier (see trust_scorer.rate_limit_for).
The ledger only counts; callers decide what a submission is.
"""

import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from loguru import logger

from citadel_engine.errors import RateLimitExceeded
from citadel_engine.identity.trust_scorer import RateLimit

HOUR_SECS = 3600.0
DAY_SECS = 86400.0


class SubmissionLedger:
    """
    Per-identity submission timestamps over the last 24 hours.

    Usage:
        ledger = SubmissionLedger()
        ledger.acquire("3FA2C0D19B7E4A11", rate_limit_for(trust))

    Attributes:
        clock: Callable returning seconds; injectable for tests
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self.clock = clock or time.time
        self._submissions: Dict[str, Deque[float]] = {}
        self.logger = logger.bind(component="SubmissionLedger")

    def _window(self, public_id: str, now: float) -> Deque[float]:
        stamps = self._submissions.setdefault(public_id, deque())
        while stamps and now - stamps[0] >= DAY_SECS:
            stamps.popleft()
        return stamps

    def usage(self, public_id: str) -> Dict[str, int]:
        now = self.clock()
        stamps = self._window(public_id, now)
        return {
            "last_hour": sum(1 for t in stamps if now - t < HOUR_SECS),
            "last_day": len(stamps),
        }

    def acquire(self, public_id: str, limit: RateLimit) -> None:
        """
        Record one submission, or raise if the identity is over its limit.

        Raises:
            RateLimitExceeded: Hourly or daily limit reached (nothing recorded)
        """
        now = self.clock()
        stamps = self._window(public_id, now)

        if len(stamps) >= limit.per_day:
            retry_after = DAY_SECS - (now - stamps[0])
            self.logger.warning(f"Daily limit reached for {public_id}", tier=limit.tier)
            raise RateLimitExceeded(public_id, "day", limit.per_day, retry_after)

        recent = [t for t in stamps if now - t < HOUR_SECS]
        if len(recent) >= limit.per_hour:
            retry_after = HOUR_SECS - (now - recent[0])
            self.logger.warning(f"Hourly limit reached for {public_id}", tier=limit.tier)
            raise RateLimitExceeded(public_id, "hour", limit.per_hour, retry_after)

        stamps.append(now)

    def reset(self, public_id: Optional[str] = None) -> None:
        if public_id is None:
            self._submissions.clear()
        else:
            self._submissions.pop(public_id, None)
