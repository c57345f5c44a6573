"""
Environment variable loading for Backend Shield.

- Loads .env from project root when available.
- Typed readers (str / int / bool / list) with defaults, used by settings.py.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_shield/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

_TRUE_VALUES = ("1", "true", "yes", "on")


def load_shield_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in _TRUE_VALUES


def env_list(name: str, default: str = "") -> tuple[str, ...]:
    """Comma-separated list; blanks dropped, trailing slashes stripped (base URLs)."""
    raw = env_str(name, default)
    return tuple(part.strip().rstrip("/") for part in raw.split(",") if part.strip())
