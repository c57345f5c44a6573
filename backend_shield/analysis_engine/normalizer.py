"""
Hint normalization — arbitrary upstream JSON to canonical Hints.

Responsibilities:
- Declare, per hint field, the ordered candidate paths to probe (HINT_FIELDS).
- Resolve dot paths generically (integer segments index into lists).
- Coerce and clamp values; anything that does not coerce is left absent.
- Merge per-source hints in aggregator order (primary first wins).

Adding a provider usually means appending paths here, not writing new code.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from backend_shield.analysis_engine.hints import ATTR_NAMES, Hints
from backend_shield.upstreams.models import UpstreamOutcome

MS_PER_DAY = 86_400_000
# Epoch values above this are milliseconds (year ~2286 in seconds)
EPOCH_MS_THRESHOLD = 10_000_000_000

Coercer = Callable[[Any, datetime], Any]

_MISSING = object()


# -----------------------------------------------------------------------------
# Path resolution
# -----------------------------------------------------------------------------


def resolve_path(payload: Any, path: str) -> Any:
    """
    Walk `payload` along a dot path. Returns None when any segment is missing.

        resolve_path({"a": [{"b": 1}]}, "a.0.b") -> 1
    """
    node = payload
    for segment in path.split("."):
        if isinstance(node, Mapping):
            node = node.get(segment)
        elif isinstance(node, list) and segment.isdigit():
            index = int(segment)
            node = node[index] if index < len(node) else None
        else:
            return None
        if node is None:
            return None
    return node


# -----------------------------------------------------------------------------
# Coercers (return None when the value is unusable)
# -----------------------------------------------------------------------------


def to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        n = float(value)
    elif isinstance(value, str):
        try:
            n = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return n if math.isfinite(n) else None


def _clamp_pct(value: Any, now: datetime) -> float | None:
    n = to_number(value)
    return None if n is None else max(0.0, min(100.0, n))


def _number(value: Any, now: datetime) -> float | None:
    return to_number(value)


def _days(value: Any, now: datetime) -> int | None:
    n = to_number(value)
    return None if n is None else max(0, math.floor(n))


def _literal_bool(value: Any, now: datetime) -> bool | None:
    return value if isinstance(value, bool) else None


def _socials(value: Any, now: datetime) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, list):
        return len(value) > 0
    if isinstance(value, Mapping):
        return any(bool(v) for v in value.values())
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 string or epoch (seconds or milliseconds) to an aware datetime."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            n = to_number(text)
            return parse_timestamp(n) if n is not None else None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    n = to_number(value)
    if n is None:
        return None
    seconds = n / 1000.0 if abs(n) >= EPOCH_MS_THRESHOLD else n
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def age_days(created_at: Any, now: datetime) -> int | None:
    """max(0, floor((now - createdAt) / 1 day)), or None when unparseable."""
    created = parse_timestamp(created_at)
    if created is None:
        return None
    delta_ms = (now - created).total_seconds() * 1000
    return max(0, math.floor(delta_ms / MS_PER_DAY))


def _age_from_timestamp(value: Any, now: datetime) -> int | None:
    return age_days(value, now)


# -----------------------------------------------------------------------------
# Field table
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class HintField:
    """
    One rule for one canonical field. Several rules may target the same field;
    they are tried in table order and the first present candidate decides it.
    """

    name: str
    paths: tuple[str, ...]
    coerce: Coercer
    invert: bool = False


HINT_FIELDS: list[HintField] = [
    HintField(
        "mintAuthorityActive",
        ("authorities.mint.active", "mintAuthority.active", "token.mintAuthorityActive", "mintAuthorityActive"),
        _literal_bool,
    ),
    HintField("mintAuthorityActive", ("authorities.mint.renounced", "mintAuthority.renounced"), _literal_bool, invert=True),
    HintField(
        "top10HoldersPct",
        ("holders.top10.pct", "ownership.top10Pct", "distribution.top10Pct", "top10HoldersPct", "data.top10HolderPercent"),
        _clamp_pct,
    ),
    HintField("freezeNotRenounced", ("token.freezeNotRenounced", "freezeNotRenounced"), _literal_bool),
    HintField(
        "freezeNotRenounced",
        ("authorities.freeze.renounced", "freezeAuthority.renounced"),
        _literal_bool,
        invert=True,
    ),
    HintField("tokenAgeDays", ("tokenAgeDays", "token.ageDays"), _days),
    HintField(
        "tokenAgeDays",
        ("createdAt", "mintedAt", "token.createdAt", "metadata.createdAt", "0.pairCreatedAt", "data.createdAt"),
        _age_from_timestamp,
    ),
    HintField("liquidityLocked", ("liquidity.locked", "locks.hasActiveLock", "pool.locked", "liquidityLocked"), _literal_bool),
    HintField(
        "creatorReputation",
        ("creator.reputation", "owner.reputation", "project.reputation", "creatorReputation"),
        _clamp_pct,
    ),
    HintField(
        "socialsOk",
        ("socials", "metadata.socials", "links.social", "socialsOk", "0.info.socials", "data.extensions"),
        _socials,
    ),
    HintField("verified", ("verified", "badges.verified", "flags.verified", "bagsVerified"), _literal_bool),
    HintField(
        "liquidityUsd",
        (
            "liquidity.usd",
            "market.liquidityUsd",
            "metrics.liquidity.usd",
            "liquidityUsd",
            "data.liquidity",
            "0.liquidity.usd",
            "0.liquidity",
        ),
        _number,
    ),
]


# -----------------------------------------------------------------------------
# Normalization
# -----------------------------------------------------------------------------


def _first_present(payload: Any, paths: Iterable[str]) -> Any:
    for path in paths:
        value = resolve_path(payload, path)
        if value is not None:
            return value
    return _MISSING


def normalize_payload(
    payload: Any,
    *,
    now: datetime | None = None,
    fields: Iterable[HintField] = HINT_FIELDS,
) -> Hints:
    """Extract Hints from one upstream payload."""
    now = now or datetime.now(timezone.utc)
    decided: set[str] = set()
    values: dict[str, Any] = {}
    for field in fields:
        if field.name in decided:
            continue
        raw = _first_present(payload, field.paths)
        if raw is _MISSING:
            continue
        decided.add(field.name)
        coerced = field.coerce(raw, now)
        if coerced is None:
            continue
        values[field.name] = (not coerced) if field.invert else coerced
    return Hints.from_dict(values)


def normalize(
    outcomes: Iterable[UpstreamOutcome],
    *,
    now: datetime | None = None,
) -> Hints:
    """Merge hints from successful outcomes; earlier outcomes take precedence."""
    now = now or datetime.now(timezone.utc)
    merged = Hints()
    for outcome in outcomes:
        if not outcome.ok or outcome.payload is None:
            continue
        merged = merged.merged(normalize_payload(outcome.payload, now=now))
    return merged


def coerce_hints(data: Mapping[str, Any] | None, *, now: datetime | None = None) -> Hints:
    """
    Coerce client-supplied camelCase hints (simulate / mock) with the same
    rules as upstream data. Unknown keys are ignored; `bagsVerified` is
    accepted as an alias of `verified`.
    """
    if not data:
        return Hints()
    now = now or datetime.now(timezone.utc)
    by_name: dict[str, Coercer] = {}
    for field in HINT_FIELDS:
        if field.name in ATTR_NAMES and not field.invert:
            by_name.setdefault(field.name, field.coerce)
    by_name["tokenAgeDays"] = _days
    source = dict(data)
    if source.get("verified") is None and "bagsVerified" in source:
        source["verified"] = source["bagsVerified"]
    values: dict[str, Any] = {}
    for name, coerce in by_name.items():
        raw = source.get(name)
        if raw is None:
            continue
        coerced = coerce(raw, now)
        if coerced is not None:
            values[name] = coerced
    return Hints.from_dict(values)
