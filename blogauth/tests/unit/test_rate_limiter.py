"""
Tests for the fixed-window rate limiter and limit parsing
"""
import threading

import pytest

from blogauth.api.rate_limiting import (
    POLICY_GENERAL,
    POLICY_KEY_MANAGEMENT,
    POLICY_LOGIN,
    FixedWindowRateLimiter,
    RateLimitPolicy,
    policy_for,
)
from blogauth.core.config import Settings, parse_rate_limit


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(clock=clock)


LOGIN = RateLimitPolicy(name="login", max_requests=5, window_seconds=60)


class TestFixedWindow:

    def test_allows_up_to_max(self, limiter):
        decisions = [limiter.hit(LOGIN, "1.2.3.4") for _ in range(6)]
        assert [d.allowed for d in decisions] == [True] * 5 + [False]
        assert [d.remaining for d in decisions[:5]] == [4, 3, 2, 1, 0]
        assert decisions[-1].limit == 5

    def test_retry_after_points_at_window_end(self, limiter, clock):
        # Windows are aligned: 1000s falls in [960, 1020)
        for _ in range(5):
            limiter.hit(LOGIN, "ip")
        clock.now = 1005.5
        decision = limiter.hit(LOGIN, "ip")
        assert not decision.allowed
        assert decision.retry_after == 15

    def test_new_window_resets_count(self, limiter, clock):
        for _ in range(6):
            limiter.hit(LOGIN, "ip")
        clock.now = 1020.0
        assert limiter.hit(LOGIN, "ip").allowed

    def test_sources_and_policies_are_independent(self, limiter):
        other = RateLimitPolicy(name="key_management", max_requests=1, window_seconds=60)
        for _ in range(5):
            limiter.hit(LOGIN, "a")
        assert not limiter.hit(LOGIN, "a").allowed
        assert limiter.hit(LOGIN, "b").allowed
        assert limiter.hit(other, "a").allowed

    def test_concurrent_hits_never_exceed_max(self):
        limiter = FixedWindowRateLimiter()
        policy = RateLimitPolicy(name="login", max_requests=25, window_seconds=3600)
        allowed = []
        lock = threading.Lock()
        barrier = threading.Barrier(10)

        def worker():
            barrier.wait()
            for _ in range(20):
                if limiter.hit(policy, "shared").allowed:
                    with lock:
                        allowed.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(allowed) == 25

    def test_cleanup_drops_finished_windows(self, limiter, clock):
        limiter.hit(LOGIN, "a")
        limiter.hit(RateLimitPolicy("general", 100, 900), "a")
        clock.now = 1100.0
        limiter.cleanup()
        assert list(limiter.windows) == [("general", "a")]

    def test_reset(self, limiter):
        limiter.hit(LOGIN, "a")
        limiter.reset()
        assert limiter.windows == {}


class TestPolicies:

    def test_defaults(self):
        settings = Settings()
        assert policy_for(POLICY_LOGIN, settings) == RateLimitPolicy("login", 5, 60)
        assert policy_for(POLICY_KEY_MANAGEMENT, settings) == RateLimitPolicy("key_management", 3, 60)
        assert policy_for(POLICY_GENERAL, settings) == RateLimitPolicy("general", 100, 900)

    def test_from_settings(self):
        settings = Settings(rate_limit_login="10/30")
        assert policy_for(POLICY_LOGIN, settings) == RateLimitPolicy("login", 10, 30)

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match="Unknown rate limit policy"):
            policy_for("uploads", Settings())


class TestParseRateLimit:

    def test_parse(self):
        assert parse_rate_limit("5/60") == (5, 60)
        assert parse_rate_limit(" 100 / 900 ") == (100, 900)

    @pytest.mark.parametrize("value", ["", "5", "five/60", "5/0", "0/60", "-1/60", None])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid rate limit"):
            parse_rate_limit(value)
