"""
Upstream data providers: retrying fetcher, per-source adapters, and the
concurrent aggregator that settles them into per-source outcomes.
"""

from backend_shield.upstreams.aggregator import (
    AggregatorConfig,
    UpstreamAggregator,
    format_upstreams_header,
)
from backend_shield.upstreams.fetcher import FetchResponse, RetryingFetcher
from backend_shield.upstreams.models import (
    AggregateResult,
    Err,
    Ok,
    UpstreamOutcome,
    UpstreamStatus,
)
from backend_shield.upstreams.sources import UpstreamSource, build_default_sources

__all__ = [
    "AggregateResult",
    "AggregatorConfig",
    "Err",
    "FetchResponse",
    "Ok",
    "RetryingFetcher",
    "UpstreamAggregator",
    "UpstreamOutcome",
    "UpstreamSource",
    "UpstreamStatus",
    "build_default_sources",
    "format_upstreams_header",
]
