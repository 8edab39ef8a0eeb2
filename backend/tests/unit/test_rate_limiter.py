"""
Unit tests for the fixed-window rate limiter.

Tests:
- Requests up to the ceiling pass, the next one is refused
- Windows reset after window_seconds
- Keys are counted independently
- Expired buckets are swept
"""

import pytest

from buildservice.middleware.rate_limiting import FixedWindowRateLimiter
from support import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(max_requests=200, window_seconds=60, clock=clock)


@pytest.mark.unit
class TestFixedWindow:
    def test_allows_up_to_ceiling(self, limiter):
        decisions = [limiter.check("10.0.0.1") for _ in range(200)]
        assert all(d.allowed for d in decisions)
        assert decisions[0].remaining == 199
        assert decisions[-1].remaining == 0

    def test_refuses_request_over_ceiling(self, limiter):
        for _ in range(200):
            limiter.check("10.0.0.1")

        decision = limiter.check("10.0.0.1")
        assert decision.allowed is False
        assert decision.limit == 200
        assert decision.remaining == 0
        assert decision.retry_after == 60

    def test_refused_requests_are_not_counted(self, limiter):
        for _ in range(205):
            limiter.check("10.0.0.1")
        assert limiter.buckets["10.0.0.1"].request_count == 200

    def test_window_resets(self, limiter, clock):
        for _ in range(201):
            limiter.check("10.0.0.1")

        clock.advance(59)
        assert limiter.check("10.0.0.1").allowed is False

        clock.advance(1)
        decision = limiter.check("10.0.0.1")
        assert decision.allowed is True
        assert decision.remaining == 199

    def test_keys_are_independent(self, limiter):
        for _ in range(201):
            limiter.check("10.0.0.1")
        assert limiter.check("10.0.0.2").allowed is True


@pytest.mark.unit
class TestSweep:
    def test_removes_only_expired_buckets(self, limiter, clock):
        limiter.check("old")
        clock.advance(30)
        limiter.check("new")
        clock.advance(30)

        assert limiter.sweep() == 1
        assert "old" not in limiter.buckets
        assert "new" in limiter.buckets

    def test_sweep_on_empty_limiter(self, limiter):
        assert limiter.sweep() == 0

    def test_sweeper_thread_starts_and_stops(self, limiter):
        limiter.start_sweeper(interval=3600)
        assert limiter._sweeper is not None and limiter._sweeper.is_alive()

        limiter.stop_sweeper()
        assert limiter._sweeper is None
