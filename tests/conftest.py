"""
Pytest fixtures for Backend Shield tests. Uses a temporary SQLite DB for
durable rate-limit counters and in-process fake upstream sources.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from backend_shield.upstreams.models import Err, Ok, Settled, UpstreamStatus
from backend_shield.upstreams.sources import UpstreamSource

# Valid Solana pubkeys (base58, 32 bytes)
VALID_MINT = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
VALID_MINT_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"


class StaticSource(UpstreamSource):
    """Fake upstream: optional delay, then a fixed Ok/Err or a raised exception."""

    def __init__(
        self,
        name: str,
        settled: Settled | None = None,
        *,
        delay: float = 0.0,
        raises: BaseException | None = None,
        deadline_ms: int = 1000,
    ):
        super().__init__(None, timeout_ms=deadline_ms)  # type: ignore[arg-type]
        self.name = name
        self.settled = settled if settled is not None else Ok({})
        self.delay = delay
        self.raises = raises
        self.calls: list[str] = []

    async def fetch(self, mint: str) -> Settled:
        self.calls.append(mint)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        return self.settled


@pytest.fixture
def make_source():
    """Factory for StaticSource fakes."""
    return StaticSource


@pytest.fixture
def ok_sources():
    """Four healthy sources; bags carries a full risky payload."""
    bags_payload: dict[str, Any] = {
        "authorities": {"mint": {"active": True}, "freeze": {"renounced": False}},
        "holders": {"top10": {"pct": 85}},
        "liquidity": {"usd": 1500, "locked": False},
        "creator": {"reputation": 10},
        "socials": [],
        "verified": False,
        "tokenAgeDays": 1,
    }
    return [
        StaticSource("bags", Ok(bags_payload)),
        StaticSource("dexscreener", Ok([{"liquidity": {"usd": 900}}])),
        StaticSource("birdeye", Ok({"data": {"liquidity": 1200}})),
        StaticSource("meteora", Ok([])),
    ]


@pytest.fixture
def failing_source():
    """A non-primary source that reports a timeout."""
    return StaticSource("birdeye", Err(UpstreamStatus.TIMEOUT, "deadline"))


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_sleep():
    return SleepRecorder()


@pytest.fixture
def counter_store(tmp_path):
    """SqlCounterStore on a temporary SQLite file; engine disposed after the test."""
    from backend_shield.rate_limit import SqlCounterStore

    store = SqlCounterStore(f"sqlite:///{tmp_path / 'rate_limit.db'}")
    store.init_db()
    yield store
    store.dispose()


@pytest.fixture
def settings(tmp_path):
    from backend_shield.config import Settings

    return Settings(rate_max=5, rate_limit_db_url=f"sqlite:///{tmp_path / 'rate_limit.db'}")


@pytest.fixture
def app_factory(settings):
    """Build an app with injected fake sources and an in-memory limiter."""
    from backend_shield.api_server.server import create_app
    from backend_shield.rate_limit import RateLimiter
    from backend_shield.upstreams import UpstreamAggregator

    def _build(sources, *, rate_max: int = 100, window_ms: int = 60_000):
        limiter = RateLimiter(rate_max, window_ms)
        return create_app(settings, aggregator=UpstreamAggregator(sources), limiter=limiter)

    return _build


@pytest.fixture
def client(app_factory, ok_sources):
    """FastAPI TestClient over healthy fake upstreams."""
    from fastapi.testclient import TestClient

    return TestClient(app_factory(ok_sources))
