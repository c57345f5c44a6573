"""
Tests for hint normalization: path resolution, candidate ordering, coercion
rules, derived token age and multi-source merge precedence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from backend_shield.analysis_engine import Hints, coerce_hints, normalize, normalize_payload, resolve_path
from backend_shield.upstreams.models import UpstreamOutcome, UpstreamStatus

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _ok(source: str, payload) -> UpstreamOutcome:
    return UpstreamOutcome(source=source, status=UpstreamStatus.OK, payload=payload)


def test_resolve_path_dicts_and_lists():
    """Dot paths walk mappings; integer segments index lists; misses are None."""
    payload = {"a": {"b": [{"c": 7}]}}
    assert resolve_path(payload, "a.b.0.c") == 7
    assert resolve_path(payload, "a.b.1.c") is None
    assert resolve_path(payload, "a.x") is None
    assert resolve_path(payload, "a.b.c") is None
    assert resolve_path([{"pairCreatedAt": 1}], "0.pairCreatedAt") == 1


def test_first_candidate_path_wins():
    """Earlier candidate paths take precedence over later ones."""
    hints = normalize_payload(
        {"holders": {"top10": {"pct": 70}}, "ownership": {"top10Pct": 10}},
        now=NOW,
    )
    assert hints.top10_holders_pct == 70


def test_later_candidate_used_when_earlier_missing():
    """A missing or null path falls through to the next candidate."""
    hints = normalize_payload({"holders": {"top10": {"pct": None}}, "distribution": {"top10Pct": "42.5"}}, now=NOW)
    assert hints.top10_holders_pct == 42.5


def test_uncoercible_first_value_leaves_field_absent():
    """The first present value decides; if it does not coerce the field stays unknown."""
    hints = normalize_payload({"holders": {"top10": {"pct": "lots"}}, "ownership": {"top10Pct": 10}}, now=NOW)
    assert hints.top10_holders_pct is None


def test_percentages_clamped_and_booleans_literal_only():
    """Percent values clamp to [0, 100]; string booleans are rejected."""
    hints = normalize_payload(
        {
            "holders": {"top10": {"pct": 140}},
            "creator": {"reputation": -5},
            "liquidity": {"locked": "true"},
            "verified": 1,
        },
        now=NOW,
    )
    assert hints.top10_holders_pct == 100
    assert hints.creator_reputation == 0
    assert hints.liquidity_locked is None
    assert hints.verified is None


def test_numbers_reject_bool_and_non_finite():
    """Booleans and NaN/inf are not numbers."""
    assert normalize_payload({"liquidity": {"usd": True}}, now=NOW).liquidity_usd is None
    assert normalize_payload({"liquidity": {"usd": "nan"}}, now=NOW).liquidity_usd is None
    assert normalize_payload({"liquidity": {"usd": "inf"}}, now=NOW).liquidity_usd is None
    assert normalize_payload({"liquidity": {"usd": "1234.5"}}, now=NOW).liquidity_usd == 1234.5


def test_inverted_renounced_fallbacks():
    """Renounced flags invert into the authority hints when no direct flag exists."""
    hints = normalize_payload(
        {"authorities": {"mint": {"renounced": True}, "freeze": {"renounced": False}}},
        now=NOW,
    )
    assert hints.mint_authority_active is False
    assert hints.freeze_not_renounced is True

    direct = normalize_payload(
        {"authorities": {"mint": {"active": True, "renounced": True}}},
        now=NOW,
    )
    assert direct.mint_authority_active is True


def test_token_age_from_iso_and_epoch():
    """Age derives from ISO strings and epoch seconds or milliseconds."""
    created = NOW - timedelta(days=3, hours=5)
    assert normalize_payload({"createdAt": created.isoformat()}, now=NOW).token_age_days == 3
    assert normalize_payload({"createdAt": created.strftime("%Y-%m-%dT%H:%M:%SZ")}, now=NOW).token_age_days == 3
    assert normalize_payload({"token": {"createdAt": int(created.timestamp())}}, now=NOW).token_age_days == 3
    epoch_ms = int(created.timestamp() * 1000)
    assert normalize_payload([{"pairCreatedAt": epoch_ms}], now=NOW).token_age_days == 3


def test_token_age_never_negative_and_explicit_age_preferred():
    """Future timestamps clamp to 0; an explicit age beats a timestamp."""
    future = (NOW + timedelta(days=2)).isoformat()
    assert normalize_payload({"createdAt": future}, now=NOW).token_age_days == 0
    hints = normalize_payload({"tokenAgeDays": 9.7, "createdAt": (NOW - timedelta(days=1)).isoformat()}, now=NOW)
    assert hints.token_age_days == 9


def test_socials_shapes():
    """socialsOk accepts bools, lists and mappings."""
    assert normalize_payload({"socials": []}, now=NOW).socials_ok is False
    assert normalize_payload({"socials": [{"type": "twitter"}]}, now=NOW).socials_ok is True
    assert normalize_payload({"links": {"social": {"twitter": "", "telegram": "t.me/x"}}}, now=NOW).socials_ok is True
    assert normalize_payload({"metadata": {"socials": {"twitter": None}}}, now=NOW).socials_ok is False
    assert normalize_payload({"socials": "twitter"}, now=NOW).socials_ok is None


def test_provider_shapes():
    """DexScreener pair lists, Birdeye overview and Meteora pairs yield liquidity."""
    dex = normalize_payload([{"liquidity": {"usd": 5000}, "info": {"socials": [{"type": "x"}]}}], now=NOW)
    assert dex.liquidity_usd == 5000
    assert dex.socials_ok is True
    birdeye = normalize_payload({"data": {"liquidity": 321.0, "extensions": {"website": "https://x"}}}, now=NOW)
    assert birdeye.liquidity_usd == 321.0
    assert birdeye.socials_ok is True
    meteora = normalize_payload([{"liquidity": "777.25"}], now=NOW)
    assert meteora.liquidity_usd == 777.25


def test_normalize_merges_primary_first_and_skips_failures():
    """Earlier successful outcomes win per field; failed outcomes are ignored."""
    outcomes = [
        _ok("bags", {"liquidity": {"usd": 100}, "verified": True}),
        UpstreamOutcome(source="dexscreener", status=UpstreamStatus.TIMEOUT),
        _ok("birdeye", {"data": {"liquidity": 999}, "holders": {"top10": {"pct": 30}}}),
    ]
    hints = normalize(outcomes, now=NOW)
    assert hints.liquidity_usd == 100
    assert hints.verified is True
    assert hints.top10_holders_pct == 30


def test_normalize_no_successful_outcomes():
    """Nothing usable means all fields absent (not defaulted)."""
    outcomes = [UpstreamOutcome(source="bags", status=UpstreamStatus.DOWN)]
    assert normalize(outcomes, now=NOW) == Hints()
    assert normalize_payload({"liquidity": {"usd": 50000}}, now=NOW).liquidity_locked is None


def test_coerce_hints_client_input():
    """Client hints use the same coercion; bagsVerified is an alias of verified."""
    hints = coerce_hints(
        {
            "mintAuthorityActive": True,
            "top10HoldersPct": "85",
            "tokenAgeDays": 2.9,
            "liquidityLocked": "no",
            "bagsVerified": True,
            "unknownKey": 1,
        },
        now=NOW,
    )
    assert hints.mint_authority_active is True
    assert hints.top10_holders_pct == 85
    assert hints.token_age_days == 2
    assert hints.liquidity_locked is None
    assert hints.verified is True
    assert coerce_hints(None) == Hints()


def test_hints_round_trip_and_merge():
    """camelCase serialization and present-wins merge."""
    a = Hints(verified=True)
    b = Hints(verified=False, socials_ok=True)
    merged = a.merged(b)
    assert merged.to_dict() == {"socialsOk": True, "verified": True}
    assert Hints.from_dict(merged.to_dict()) == merged
