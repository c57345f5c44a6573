"""
Scan pipeline: validate -> aggregate -> normalize -> score -> report.

Only ValidationFailure and InternalFailure leave this module as errors;
upstream problems are reported as per-source statuses in the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from solders.pubkey import Pubkey

from backend_shield.analysis_engine.hints import Hints
from backend_shield.analysis_engine.normalizer import normalize
from backend_shield.analysis_engine.scorer import ScoreResult, score
from backend_shield.core.exceptions import InternalFailure, ValidationFailure
from backend_shield.shield_logging import bind_mint, get_logger
from backend_shield.upstreams.aggregator import UpstreamAggregator
from backend_shield.upstreams.models import AggregateResult

logger = get_logger(__name__)


def validate_mint(mint: Any) -> str:
    """Return the stripped mint if it is a valid base58 Solana pubkey; else raise ValidationFailure."""
    if not isinstance(mint, str) or not mint.strip():
        raise ValidationFailure("mint is required")
    candidate = mint.strip()
    try:
        Pubkey.from_string(candidate)
    except Exception as e:
        raise ValidationFailure(f"invalid mint address: {candidate}") from e
    return candidate


@dataclass
class ScanReport:
    """Everything a scan response needs."""

    mint: str
    hints: Hints
    result: ScoreResult
    aggregate: AggregateResult = field(default_factory=AggregateResult)

    def to_dict(self) -> dict[str, Any]:
        body = self.result.to_dict()
        body["upstreams"] = self.aggregate.statuses()
        body["degraded"] = self.aggregate.degraded
        return body


def build_report(mint: str, hints: Hints, aggregate: AggregateResult | None = None) -> ScanReport:
    """Score hints and wrap them in a report; scoring defects become InternalFailure."""
    try:
        result = score(hints)
    except Exception as e:
        logger.exception("scoring_failed", mint=mint, hints=hints.to_dict())
        raise InternalFailure("scoring failed") from e
    return ScanReport(mint=mint, hints=hints, result=result, aggregate=aggregate or AggregateResult())


async def evaluate_mint(
    mint: str,
    aggregator: UpstreamAggregator,
    *,
    now: datetime | None = None,
) -> ScanReport:
    """Full live scan of one mint."""
    mint = validate_mint(mint)
    log = bind_mint(mint)
    aggregate = await aggregator.aggregate(mint)
    try:
        hints = normalize(aggregate.outcomes.values(), now=now)
    except Exception as e:
        log.exception("normalization_failed", upstreams=aggregate.statuses())
        raise InternalFailure("normalization failed") from e
    report = build_report(mint, hints, aggregate)
    log.info(
        "scan_completed",
        score=report.result.score,
        level=report.result.level.value,
        degraded=aggregate.degraded,
        hints=hints.present(),
    )
    return report
