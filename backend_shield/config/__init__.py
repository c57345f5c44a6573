"""
Configuration management for the Backend Shield gateway.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for limiter, upstream, and server configuration.
"""

from backend_shield.config.env import load_shield_env  # noqa: F401
from backend_shield.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings", "load_shield_env"]
