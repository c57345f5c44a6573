"""
Tests for SqlCounterStore on a temporary SQLite DB (see conftest).
"""

from __future__ import annotations

from backend_shield.rate_limit import RateLimiter, SqlCounterStore


def test_increment_and_read(counter_store):
    """Counts increase per key and keys are independent."""
    assert counter_store.increment("1.1.1.1", 100) == 1
    assert counter_store.increment("1.1.1.1", 100) == 2
    assert counter_store.increment("1.1.1.1", 101) == 1
    assert counter_store.increment("2.2.2.2", 100) == 1
    assert counter_store.read("1.1.1.1", 100) == 2
    assert counter_store.read("9.9.9.9", 100) == 0


def test_evict_expired(counter_store):
    """Rows with bucket below the cutoff are deleted."""
    for bucket in (10, 11, 12):
        counter_store.increment("a", bucket)
    assert counter_store.evict_expired(12) == 2
    assert counter_store.read("a", 10) == 0
    assert counter_store.read("a", 12) == 1


def test_counts_survive_restart(tmp_path):
    """A new store on the same DB sees earlier counts (process restart / other instance)."""
    url = f"sqlite:///{tmp_path / 'shared.db'}"
    first = SqlCounterStore(url)
    first.increment("a", 5)
    first.increment("a", 5)
    first.dispose()

    second = SqlCounterStore(url)
    assert second.increment("a", 5) == 3
    second.dispose()


def test_limiter_with_durable_store(counter_store):
    """Two limiters sharing the SQL store enforce one combined limit."""
    a = RateLimiter(max_requests=2, window_ms=60_000, durable_store=counter_store)
    b = RateLimiter(max_requests=2, window_ms=60_000, durable_store=counter_store)
    now = 1_700_000_000_000
    assert a.check("ip", now_ms=now).allowed
    assert b.check("ip", now_ms=now).allowed
    assert not a.check("ip", now_ms=now).allowed
