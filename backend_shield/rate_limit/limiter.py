"""
Fixed-window rate limiter for the gateway.

Each check increments an in-process counter and, independently, a durable
counter; the worse (larger) of the two decides. A failing durable store is
logged and the in-process count is used alone.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass

from backend_shield.rate_limit.store import CounterStore, InMemoryCounterStore
from backend_shield.shield_logging import get_logger

logger = get_logger(__name__)

DEFAULT_WINDOW_MS = 60_000
DEFAULT_MAX = 60


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_epoch_seconds: int
    retry_after_seconds: int | None = None

    def headers(self) -> dict[str, str]:
        """X-RateLimit-* headers, plus Retry-After when rejected."""
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_epoch_seconds),
        }
        if self.retry_after_seconds is not None:
            out["Retry-After"] = str(self.retry_after_seconds)
        return out


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """
    Usage:
        limiter = RateLimiter(max_requests=60, window_ms=60_000, durable_store=SqlCounterStore(url))
        decision = limiter.check("203.0.113.7")
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX,
        window_ms: int = DEFAULT_WINDOW_MS,
        *,
        local_store: CounterStore | None = None,
        durable_store: CounterStore | None = None,
    ):
        if max_requests < 1 or window_ms < 1:
            raise ValueError("max_requests and window_ms must be positive")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.local_store = local_store if local_store is not None else InMemoryCounterStore()
        self.durable_store = durable_store

    def bucket_for(self, now_ms: int) -> int:
        return now_ms // self.window_ms

    def min_live_bucket(self, now_ms: int) -> int:
        """Smallest bucket whose start is not older than two window widths."""
        cutoff = now_ms - 2 * self.window_ms
        return -(-cutoff // self.window_ms)

    def _durable_increment(self, identity: str, bucket: int, min_bucket: int) -> int | None:
        if self.durable_store is None:
            return None
        try:
            count = self.durable_store.increment(identity, bucket)
        except Exception as e:
            logger.warning("rate_limit_store_failed", identity=identity, error=str(e), error_type=type(e).__name__)
            return None
        # A failed eviction still returns the count.
        try:
            self.durable_store.evict_expired(min_bucket)
        except Exception as e:
            logger.warning("rate_limit_evict_failed", min_bucket=min_bucket, error=str(e), error_type=type(e).__name__)
        return count

    def check(self, identity: str, now_ms: int | None = None) -> RateLimitDecision:
        """Count one request for identity and decide whether it is allowed."""
        now_ms = _now_ms() if now_ms is None else now_ms
        bucket = self.bucket_for(now_ms)
        min_bucket = self.min_live_bucket(now_ms)

        count = self.local_store.increment(identity, bucket)
        self.local_store.evict_expired(min_bucket)
        durable = self._durable_increment(identity, bucket, min_bucket)
        if durable is not None:
            count = max(count, durable)

        window_end_ms = (bucket + 1) * self.window_ms
        reset = math.ceil(window_end_ms / 1000)
        remaining = max(0, self.max_requests - count)
        if count <= self.max_requests:
            return RateLimitDecision(True, self.max_requests, remaining, reset)

        retry_after = math.ceil((window_end_ms - now_ms) / 1000)
        logger.info("rate_limit_rejected", identity=identity, count=count, limit=self.max_requests, retry_after=retry_after)
        return RateLimitDecision(False, self.max_requests, remaining, reset, retry_after)
