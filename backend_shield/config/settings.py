"""
Application settings.

Responsibilities:
- Load configuration from environment variables and the .env file.
- Provide defaults for every optional setting.
- Expose a typed, frozen Settings object (rate limit window, upstream
  timeouts, provider credentials, API host/port) for the API server,
  limiter, and aggregator.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qsl

from backend_shield.config.env import (
    env_bool,
    env_int,
    env_list,
    env_str,
    load_shield_env,
)

DEFAULT_RATE_MAX = 60
DEFAULT_RATE_WINDOW_MS = 60_000
DEFAULT_UPSTREAM_TIMEOUT_MS = 4_000
DEFAULT_PRIMARY_TIMEOUT_MS = 5_000
DEFAULT_PRIMARY_MAX_RETRIES = 2

DEFAULT_BAGS_API_BASE = "https://public-api-v2.bags.fm"
DEFAULT_BAGS_TOKENS_PATH = "/api/v1/token-launch/lifetime-fees"
DEFAULT_DEXSCREENER_API_BASE = "https://api.dexscreener.com"
DEFAULT_BIRDEYE_API_BASE = "https://public-api.birdeye.so"
DEFAULT_METEORA_API_BASE = "https://dlmm-api.meteora.ag"


@dataclass(frozen=True)
class Settings:
    """Gateway configuration. Build with get_settings() or directly in tests."""

    rate_max: int = DEFAULT_RATE_MAX
    rate_window_ms: int = DEFAULT_RATE_WINDOW_MS
    rate_limit_db_url: str = "sqlite:///rate_limit.db"

    upstream_timeout_ms: int = DEFAULT_UPSTREAM_TIMEOUT_MS
    primary_timeout_ms: int = DEFAULT_PRIMARY_TIMEOUT_MS
    primary_max_retries: int = DEFAULT_PRIMARY_MAX_RETRIES
    primary_counts_toward_degraded: bool = False

    bags_api_key: str = ""
    bags_api_bases: tuple[str, ...] = (DEFAULT_BAGS_API_BASE,)
    bags_tokens_path: str = DEFAULT_BAGS_TOKENS_PATH
    bags_mint_param: str = "tokenMint"
    bags_auth_mode: str = "header"
    bags_auth_header: str = "x-api-key"
    bags_network_param: str = ""
    bags_network: str = "mainnet"
    bags_extra_query: tuple[tuple[str, str], ...] = ()

    birdeye_api_key: str = ""
    dexscreener_api_base: str = DEFAULT_DEXSCREENER_API_BASE
    birdeye_api_base: str = DEFAULT_BIRDEYE_API_BASE
    meteora_api_base: str = DEFAULT_METEORA_API_BASE

    api_host: str = "0.0.0.0"
    api_port: int = 8000


def _rate_limit_db_url() -> str:
    url = env_str("RATE_LIMIT_DB_URL")
    if url:
        return url
    path = env_str("RATE_LIMIT_DB_PATH", "rate_limit.db") or "rate_limit.db"
    return f"sqlite:///{path}"


def _extra_query(raw: str) -> tuple[tuple[str, str], ...]:
    """Parse "foo=1&bar=2" into ordered pairs; keys without a value map to ""."""
    return tuple((k, v) for k, v in parse_qsl(raw, keep_blank_values=True) if k)


def get_settings() -> Settings:
    """
    Return settings from the current environment (after loading .env).

    Not cached: tests and the app factory call it after adjusting env vars.
    """
    load_shield_env()
    return Settings(
        rate_max=max(1, env_int("RATE_MAX", DEFAULT_RATE_MAX)),
        rate_window_ms=max(1, env_int("RATE_WINDOW_MS", DEFAULT_RATE_WINDOW_MS)),
        rate_limit_db_url=_rate_limit_db_url(),
        upstream_timeout_ms=env_int("UPSTREAM_TIMEOUT_MS", DEFAULT_UPSTREAM_TIMEOUT_MS),
        primary_timeout_ms=env_int("PRIMARY_TIMEOUT_MS", DEFAULT_PRIMARY_TIMEOUT_MS),
        primary_max_retries=max(0, env_int("PRIMARY_MAX_RETRIES", DEFAULT_PRIMARY_MAX_RETRIES)),
        primary_counts_toward_degraded=env_bool("PRIMARY_COUNTS_TOWARD_DEGRADED", False),
        bags_api_key=env_str("BAGS_API_KEY"),
        bags_api_bases=env_list("BAGS_API_BASE", DEFAULT_BAGS_API_BASE),
        bags_tokens_path=env_str("BAGS_API_TOKENS_PATH", DEFAULT_BAGS_TOKENS_PATH),
        bags_mint_param=env_str("BAGS_API_MINT_PARAM", "tokenMint"),
        bags_auth_mode=env_str("BAGS_AUTH_MODE", "header").lower(),
        bags_auth_header=env_str("BAGS_AUTH_HEADER", "x-api-key"),
        bags_network_param=env_str("BAGS_API_NETWORK_PARAM"),
        bags_network=env_str("BAGS_NETWORK", "mainnet"),
        bags_extra_query=_extra_query(env_str("BAGS_API_EXTRA_QUERY")),
        birdeye_api_key=env_str("BIRDEYE_API_KEY"),
        dexscreener_api_base=env_str("DEXSCREENER_API_BASE", DEFAULT_DEXSCREENER_API_BASE).rstrip("/"),
        birdeye_api_base=env_str("BIRDEYE_API_BASE", DEFAULT_BIRDEYE_API_BASE).rstrip("/"),
        meteora_api_base=env_str("METEORA_API_BASE", DEFAULT_METEORA_API_BASE).rstrip("/"),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", 8000),
    )
