"""
HTTP middleware — request logging and rate limiting.

Responsibilities:
- Request/response logging with a correlation ID and timing.
- Derive the rate-limit identity from proxy headers or the socket peer.
- Enforce the fixed-window limit before any upstream work.
- Attach X-RateLimit-* headers to every limited response, error responses included.
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response

from backend_shield.core.exceptions import RateLimitExceeded
from backend_shield.rate_limit import RateLimitDecision, RateLimiter
from backend_shield.shield_logging import bind_request_context, get_logger

logger = get_logger(__name__)

UNKNOWN_IDENTITY = "unknown"
REQUEST_ID_HEADER = "X-Request-ID"


def client_identity(request: Request) -> str:
    """First X-Forwarded-For entry, else X-Real-IP, else socket peer, else 'unknown'."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IDENTITY


async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Bind request_id, identity and path for every log line of this request; log completion."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    bind_request_context(
        request_id=request_id,
        identity=client_identity(request),
        method=request.method,
        path=request.url.path,
    )
    started = time.perf_counter()
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    logger.info(
        "request_completed",
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return response


def rate_limit_headers(request: Request) -> dict[str, str]:
    """Headers for the decision taken on this request; empty for ungated routes."""
    decision: RateLimitDecision | None = getattr(request.state, "rate_limit", None)
    return decision.headers() if decision is not None else {}


def enforce_rate_limit(request: Request, response: Response) -> RateLimitDecision:
    """Dependency: count this request; raise RateLimitExceeded when over the limit."""
    limiter: RateLimiter = request.app.state.limiter
    decision = limiter.check(client_identity(request))
    request.state.rate_limit = decision
    if not decision.allowed:
        raise RateLimitExceeded(decision)
    response.headers.update(decision.headers())
    return decision
