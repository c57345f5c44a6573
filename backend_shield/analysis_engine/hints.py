"""
Canonical risk signal record consumed by the scorer.

Every field is optional; None means unknown. Serialized with camelCase keys to
match the public API.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

# Python attribute -> API key
CAMEL_KEYS: dict[str, str] = {
    "mint_authority_active": "mintAuthorityActive",
    "top10_holders_pct": "top10HoldersPct",
    "freeze_not_renounced": "freezeNotRenounced",
    "token_age_days": "tokenAgeDays",
    "liquidity_locked": "liquidityLocked",
    "creator_reputation": "creatorReputation",
    "socials_ok": "socialsOk",
    "verified": "verified",
    "liquidity_usd": "liquidityUsd",
}
ATTR_NAMES: dict[str, str] = {v: k for k, v in CAMEL_KEYS.items()}


@dataclass(frozen=True)
class Hints:
    mint_authority_active: bool | None = None
    top10_holders_pct: float | None = None
    freeze_not_renounced: bool | None = None
    token_age_days: int | None = None
    liquidity_locked: bool | None = None
    creator_reputation: float | None = None
    socials_ok: bool | None = None
    verified: bool | None = None
    liquidity_usd: float | None = None

    def merged(self, fallback: "Hints") -> "Hints":
        """Fields present here win; absent ones are taken from fallback."""
        missing = {
            f.name: getattr(fallback, f.name)
            for f in fields(self)
            if getattr(self, f.name) is None and getattr(fallback, f.name) is not None
        }
        return replace(self, **missing) if missing else self

    def present(self) -> list[str]:
        """camelCase names of known fields."""
        return [CAMEL_KEYS[f.name] for f in fields(self) if getattr(self, f.name) is not None]

    def to_dict(self) -> dict[str, Any]:
        """camelCase dict of present fields only."""
        return {
            CAMEL_KEYS[f.name]: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Hints":
        """Build from camelCase keys without coercion; unknown keys are ignored."""
        return cls(**{ATTR_NAMES[k]: v for k, v in data.items() if k in ATTR_NAMES and v is not None})
