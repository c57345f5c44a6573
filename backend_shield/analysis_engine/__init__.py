"""
Analysis engine package — hint normalization and risk scoring.

Consumes per-source upstream outcomes, normalizes them into canonical Hints,
and applies the weighted rule table to produce a score, level and factors.
"""

from backend_shield.analysis_engine.hints import Hints
from backend_shield.analysis_engine.normalizer import (
    HINT_FIELDS,
    HintField,
    coerce_hints,
    normalize,
    normalize_payload,
    resolve_path,
)
from backend_shield.analysis_engine.pipeline import (
    ScanReport,
    build_report,
    evaluate_mint,
    validate_mint,
)
from backend_shield.analysis_engine.scorer import (
    RISK_THRESHOLDS,
    Factor,
    RiskLevel,
    ScoreResult,
    actions_for,
    level_for_score,
    risk_badge,
    score,
)

__all__ = [
    "Hints",
    "HINT_FIELDS",
    "HintField",
    "coerce_hints",
    "normalize",
    "normalize_payload",
    "resolve_path",
    "ScanReport",
    "build_report",
    "evaluate_mint",
    "validate_mint",
    "RISK_THRESHOLDS",
    "Factor",
    "RiskLevel",
    "ScoreResult",
    "actions_for",
    "level_for_score",
    "risk_badge",
    "score",
]
