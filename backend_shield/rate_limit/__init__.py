"""
Gateway rate limiting: fixed-window limiter over pluggable counter stores.
"""

from backend_shield.rate_limit.limiter import RateLimitDecision, RateLimiter
from backend_shield.rate_limit.store import (
    CounterStore,
    InMemoryCounterStore,
    SqlCounterStore,
)

__all__ = [
    "CounterStore",
    "InMemoryCounterStore",
    "RateLimitDecision",
    "RateLimiter",
    "SqlCounterStore",
]
