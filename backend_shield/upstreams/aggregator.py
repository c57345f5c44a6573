"""
Concurrent fan-out to all upstream sources for one mint.

Responsibilities:
- Start every source at once; each runs under its own deadline.
- Isolate failures: a slow, failing or crashing source never affects the others.
- Record one UpstreamOutcome per source, in source order.
- Compute `degraded` from the configured policy set.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Iterable, Sequence

from backend_shield.shield_logging import get_logger
from backend_shield.upstreams.models import (
    PRIMARY_SOURCE,
    AggregateResult,
    Err,
    Settled,
    UpstreamOutcome,
    UpstreamStatus,
)
from backend_shield.upstreams.sources import UpstreamSource

logger = get_logger(__name__)


@dataclass(frozen=True)
class AggregatorConfig:
    """Which sources count toward `degraded`. By default the primary does not."""

    primary_source: str = PRIMARY_SOURCE
    primary_counts_toward_degraded: bool = False

    def degraded_policy(self, source_names: Iterable[str]) -> frozenset[str]:
        names = frozenset(source_names)
        if self.primary_counts_toward_degraded:
            return names
        return names - {self.primary_source}


class UpstreamAggregator:
    """Queries every source in parallel and settles each into an outcome."""

    def __init__(self, sources: Sequence[UpstreamSource], config: AggregatorConfig | None = None):
        self.sources = list(sources)
        self.config = config or AggregatorConfig()

    @property
    def source_names(self) -> list[str]:
        return [s.name for s in self.sources]

    async def _run_source(self, source: UpstreamSource, mint: str) -> UpstreamOutcome:
        started = time.perf_counter()
        try:
            settled: Settled = await asyncio.wait_for(source.fetch(mint), timeout=source.deadline_ms / 1000.0)
        except asyncio.TimeoutError:
            settled = Err(UpstreamStatus.TIMEOUT, f"deadline {source.deadline_ms}ms exceeded")
        except Exception as e:
            logger.warning("upstream_unexpected_error", source=source.name, error=str(e), error_type=type(e).__name__)
            settled = Err(UpstreamStatus.DOWN, type(e).__name__)
        latency_ms = round((time.perf_counter() - started) * 1000, 1)
        outcome = UpstreamOutcome.from_settled(source.name, settled, latency_ms=latency_ms)
        logger.info(
            "upstream_settled",
            source=source.name,
            status=outcome.status.value,
            latency_ms=latency_ms,
            mint=mint,
        )
        return outcome

    async def aggregate(self, mint: str) -> AggregateResult:
        """Fan out to every source; never raises for provider failures."""
        results = await asyncio.gather(
            *(self._run_source(s, mint) for s in self.sources),
            return_exceptions=True,
        )
        outcomes: dict[str, UpstreamOutcome] = {}
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                # _run_source already converts errors; this only catches defects in it
                logger.warning("upstream_task_failed", source=source.name, error=str(result))
                result = UpstreamOutcome(source=source.name, status=UpstreamStatus.DOWN, detail=type(result).__name__)
            outcomes[source.name] = result

        policy = self.config.degraded_policy(outcomes)
        degraded = any(not outcomes[name].ok for name in policy)
        if degraded:
            logger.info(
                "aggregate_degraded",
                mint=mint,
                failed=[n for n in outcomes if n in policy and not outcomes[n].ok],
            )
        return AggregateResult(outcomes=outcomes, degraded=degraded)


def format_upstreams_header(result: AggregateResult) -> str:
    """`bags=ok; dexscreener=timeout; ...` for the X-BS-Upstreams response header."""
    return "; ".join(f"{name}={o.status.value}" for name, o in result.outcomes.items())
