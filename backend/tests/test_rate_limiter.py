"""
Rate limiter tests

Run:
    cd backend
    pytest tests/test_rate_limiter.py -v
"""

import threading

import pytest

from rate_limit import FixedWindowRateLimiter, rate_limit_key

from conftest import FakeClock


class TestFixedWindow:
    """Per-client budget over a fixed window"""

    def test_limit_boundary(self, limiter):
        """Test: calls 1-10 admitted, 11th denied"""
        decisions = [limiter.allow("c1") for _ in range(11)]

        assert all(d.permitted for d in decisions[:10])
        assert decisions[9].remaining == 0
        assert not decisions[10].permitted

    def test_denial_carries_retry_after(self, limiter, clock):
        for _ in range(10):
            limiter.allow("c1")
        clock.advance(15)

        decision = limiter.allow("c1")
        assert not decision.permitted
        assert decision.retry_after == pytest.approx(45)

    def test_window_rollover_admits_again(self, limiter, clock):
        for _ in range(11):
            limiter.allow("c1")

        clock.advance(60)
        decision = limiter.allow("c1")
        assert decision.permitted
        assert decision.remaining == 9

    def test_denied_calls_do_not_extend_window(self, limiter, clock):
        """Test: hammering while denied does not push the reset further out"""
        for _ in range(10):
            limiter.allow("c1")
        for _ in range(5):
            clock.advance(10)
            assert not limiter.allow("c1").permitted

        clock.advance(10)
        assert limiter.allow("c1").permitted

    def test_clients_are_independent(self, limiter):
        for _ in range(11):
            limiter.allow("c1")

        assert limiter.allow("c2").permitted

    def test_concurrent_calls_never_exceed_limit(self):
        """Test: 50 simultaneous calls for one client admit exactly 10"""
        limiter = FixedWindowRateLimiter(limit=10, window_seconds=60, clock=FakeClock())
        barrier = threading.Barrier(50)
        admitted = []
        admitted_lock = threading.Lock()

        def call():
            barrier.wait()
            decision = limiter.allow("burst")
            if decision.permitted:
                with admitted_lock:
                    admitted.append(decision)

        threads = [threading.Thread(target=call) for _ in range(50)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(admitted) == 10

    def test_configurable_policy(self, clock):
        limiter = FixedWindowRateLimiter(limit=2, window_seconds=5, clock=clock)

        assert limiter.allow("c").permitted
        assert limiter.allow("c").permitted
        assert not limiter.allow("c").permitted
        clock.advance(5)
        assert limiter.allow("c").permitted

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(limit=0)
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(window_seconds=0)


class TestMaintenance:
    """Pruning, stats and keys"""

    def test_prune_expired(self, limiter, clock):
        limiter.allow("old")
        clock.advance(30)
        limiter.allow("recent")
        clock.advance(30)

        assert limiter.prune_expired() == 1
        assert limiter.stats()["tracked_clients"] == 1

    def test_stats_and_reset(self, limiter):
        for _ in range(12):
            limiter.allow("c1")

        stats = limiter.stats()
        assert stats["total_checks"] == 12
        assert stats["total_denied"] == 2
        assert stats["limit"] == 10

        limiter.reset()
        assert limiter.stats()["tracked_clients"] == 0
        assert limiter.allow("c1").permitted

    def test_key_family(self):
        assert rate_limit_key("203.0.113.7") == "ratelimit:203.0.113.7"
