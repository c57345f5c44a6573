"""
Application-level exceptions.

Upstream failures are recorded as per-source status data and never cross the
aggregator boundary. RateLimitExceeded fails a request before any upstream
work. Only ValidationFailure and InternalFailure leave the scan pipeline as
errors (400 and 500 at the HTTP layer).
"""

from __future__ import annotations

from typing import Any


class ShieldError(Exception):
    """Base class for all Backend Shield errors."""

    code = "SHIELD_ERROR"


class UpstreamFailure(ShieldError):
    """A data provider call failed. Non-fatal; captured as an outcome status."""

    code = "UPSTREAM_FAILURE"

    def __init__(self, source: str, detail: str = "", http_status: int | None = None):
        super().__init__(f"{source}: {detail}" if detail else source)
        self.source = source
        self.detail = detail
        self.http_status = http_status


class UpstreamTimeout(UpstreamFailure):
    """Per-attempt deadline expired before a response arrived."""

    code = "UPSTREAM_TIMEOUT"


class UpstreamConnectionError(UpstreamFailure):
    """Transport failure: no HTTP response at all."""

    code = "UPSTREAM_CONNECTION_ERROR"


class UpstreamHTTPError(UpstreamFailure):
    """Provider answered with a non-2xx status."""

    code = "UPSTREAM_HTTP_ERROR"


class UpstreamAuthError(UpstreamHTTPError):
    """401/403 from a provider. Never retried."""

    code = "UPSTREAM_AUTH_ERROR"


class RateLimitExceeded(ShieldError):
    """Gateway fixed-window limit hit for this identity."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, decision: Any):
        super().__init__("Too Many Requests")
        self.decision = decision


class ValidationFailure(ShieldError, ValueError):
    """Malformed pipeline input (e.g. not a valid mint address)."""

    code = "VALIDATION_ERROR"


class InternalFailure(ShieldError):
    """Unexpected defect during normalization or scoring."""

    code = "INTERNAL_ERROR"
