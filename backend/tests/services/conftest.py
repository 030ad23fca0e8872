"""Service test fixtures — a gatekeeper over a fresh limiter and a controllable clock.

Invariants:
    - Every test gets its own FixedWindowRateLimiter (no state leaks between tests)
    - The clock only moves when a test advances it
    - EventLogger is a MagicMock so tests can assert which events fired
"""

from unittest.mock import MagicMock

import pytest

from medgate.core.rate_limit import FixedWindowRateLimiter, RateLimitPolicy
from medgate.services.gatekeeper import Gatekeeper

T0 = 1_700_000_000_000.0


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return MagicMock()


@pytest.fixture
def limiter():
    return FixedWindowRateLimiter()


@pytest.fixture
def gatekeeper(limiter, events, clock):
    return Gatekeeper(
        limiter,
        RateLimitPolicy(max_requests=3, window_ms=60_000),
        events,
        clock=clock,
    )
