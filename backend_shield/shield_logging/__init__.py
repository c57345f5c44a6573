"""
Structured logging for Backend Shield.

JSON logs with timestamp, event_type, and request context (request_id,
identity, mint). Use get_logger() in all modules.
"""

from backend_shield.shield_logging.logger import (
    bind_mint,
    bind_request_context,
    configure_stdlib_logging,
    get_logger,
)

__all__ = ["bind_mint", "bind_request_context", "configure_stdlib_logging", "get_logger"]
