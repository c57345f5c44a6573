"""
Risk score computation — rules and classification.

Responsibilities:
- Apply the ordered, additive rule table to a Hints record.
- Apply the verified discount last, capped by the running total.
- Clamp and round to [0, 100]; classify into safe / warn / block.
- Output the score, badge, reason and the factor breakdown for API exposure.

Pure and deterministic: no I/O, no clock, no randomness.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from backend_shield.analysis_engine.hints import Hints

# Lower bound (inclusive) of each level above safe
WARN_MIN = 50
BLOCK_MIN = 80
MAX_VERIFIED_DISCOUNT = 10


class RiskLevel(str, Enum):
    SAFE = "safe"
    WARN = "warn"
    BLOCK = "block"


RISK_THRESHOLDS = {
    RiskLevel.SAFE: (0, WARN_MIN - 1),
    RiskLevel.WARN: (WARN_MIN, BLOCK_MIN - 1),
    RiskLevel.BLOCK: (BLOCK_MIN, 100),
}

_BADGES = {
    RiskLevel.BLOCK: {"text": "BLOCK", "color": "#FF3B30"},
    RiskLevel.WARN: {"text": "WARN", "color": "#FFD166"},
    RiskLevel.SAFE: {"text": "SAFE", "color": "#00FFA3"},
}

_REASONS = {
    RiskLevel.BLOCK: "Critical risk detected",
    RiskLevel.WARN: "Moderate risk signals",
    RiskLevel.SAFE: "No relevant risk signals",
}


@dataclass(frozen=True)
class Factor:
    """One triggered rule."""

    key: str
    score_delta: int
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "score": self.score_delta, "detail": self.detail}


@dataclass(frozen=True)
class ScoreResult:
    score: int
    level: RiskLevel
    factors: tuple[Factor, ...] = field(default_factory=tuple)

    @property
    def badge(self) -> dict[str, str]:
        return risk_badge(self.level)

    @property
    def reason(self) -> str:
        return _REASONS[self.level]

    def to_dict(self) -> dict[str, Any]:
        """Response shape: score, decision, reason and the risk block."""
        return {
            "score": self.score,
            "decision": self.level.value,
            "reason": self.reason,
            "risk": {
                "level": self.level.value,
                "badge": self.badge,
                "factors": [f.to_dict() for f in self.factors],
            },
        }


def level_for_score(score: int) -> RiskLevel:
    """Contiguous bands over [0, 100]: >=80 block, 50-79 warn, else safe."""
    if score >= BLOCK_MIN:
        return RiskLevel.BLOCK
    if score >= WARN_MIN:
        return RiskLevel.WARN
    return RiskLevel.SAFE


def risk_badge(level: RiskLevel) -> dict[str, str]:
    return dict(_BADGES[level])


def _fmt_pct(value: float) -> str:
    return f"{value:g}"


def score(hints: Hints) -> ScoreResult:
    """
    Score a Hints record.

    Args:
        hints: Normalized signals; absent fields are unknown.

    Returns:
        ScoreResult with the clamped score, its level and the ordered factors.
    """
    running = 0
    factors: list[Factor] = []

    def add(key: str, delta: int, detail: str) -> None:
        nonlocal running
        running += delta
        factors.append(Factor(key, delta, detail))

    if hints.mint_authority_active is True:
        add("mint_authority_active", 25, "Mint authority is active")

    top10 = hints.top10_holders_pct
    if top10 is not None:
        if top10 >= 80:
            add("holders_concentrated", 25, f"Top 10 holders own ~{_fmt_pct(top10)}%")
        elif top10 >= 60:
            add("holders_concentrated", 15, f"Top 10 holders own ~{_fmt_pct(top10)}%")

    if hints.freeze_not_renounced is True:
        add("freeze_not_renounced", 15, "Freeze authority not renounced")

    age = hints.token_age_days
    if age is not None:
        if age < 3:
            add("young_token", 10, f"Very new token ({age}d)")
        elif age < 14:
            add("young_token", 5, f"Relatively new token ({age}d)")

    if hints.liquidity_locked is False:
        add("liquidity_unlocked", 15, "Liquidity is not locked")
    elif hints.liquidity_locked is None:
        add("liquidity_unknown", 5, "Liquidity lock status unknown")

    reputation = hints.creator_reputation
    if reputation is not None:
        if reputation <= 20:
            add("creator_low_reputation", 10, "Creator reputation is low")
        elif reputation < 50:
            add("creator_mixed_reputation", 5, "Creator reputation is mixed")

    if hints.socials_ok is False:
        add("no_socials", 5, "No social presence")

    if hints.verified is True:
        discount = min(MAX_VERIFIED_DISCOUNT, max(0, running))
        if discount > 0:
            add("bags_verified", -discount, "Verified on Bags")

    final = max(0, min(100, round(running)))
    return ScoreResult(score=final, level=level_for_score(final), factors=tuple(factors))


def actions_for(result: ScoreResult) -> list[dict[str, Any]]:
    """Suggested client actions for a decision."""
    if result.level is RiskLevel.BLOCK:
        return [
            {"type": "deny_transaction", "reason": result.reason},
            {"type": "alert_user", "severity": "critical", "score": result.score},
        ]
    if result.level is RiskLevel.WARN:
        return [{"type": "require_manual_review", "reason": result.reason, "score": result.score}]
    return [{"type": "allow", "score": result.score}]
