"""
Retrying JSON fetcher for upstream providers.

One logical outbound call: every attempt has a hard deadline, transient
failures (429, 5xx, timeouts, transport errors) are retried with exponential
backoff and jitter, auth rejections raise at once, and anything else returns
after a single attempt. When retries run out the last error is raised so the
caller can classify it.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from backend_shield.core.exceptions import (
    UpstreamAuthError,
    UpstreamConnectionError,
    UpstreamFailure,
    UpstreamHTTPError,
    UpstreamTimeout,
)
from backend_shield.shield_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 5_000
DEFAULT_MAX_RETRIES = 2
BACKOFF_BASE_SEC = 0.2
# Jitter factor drawn from [1 - r, 1 + r]
JITTER_RATIO = 0.125
AUTH_STATUSES = (401, 403)


def is_retryable_status(status: int) -> bool:
    return status >= 500 or status == 429


def backoff_delay(
    attempt: int,
    *,
    base: float = BACKOFF_BASE_SEC,
    rng: random.Random | None = None,
) -> float:
    """Seconds to wait after a failed `attempt` (0-based): base * 2**attempt * jitter."""
    source = rng if rng is not None else random
    jitter = source.uniform(1.0 - JITTER_RATIO, 1.0 + JITTER_RATIO)
    return base * (2 ** attempt) * jitter


@dataclass
class FetchResponse:
    """Settled HTTP response. body is parsed JSON when possible, else text."""

    ok: bool
    status: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


def _to_fetch_response(response: httpx.Response) -> FetchResponse:
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    return FetchResponse(
        ok=response.is_success,
        status=response.status_code,
        body=body,
        headers=dict(response.headers),
    )


class RetryingFetcher:
    """
    Timeout + retry wrapper around a shared httpx.AsyncClient.

    rng and sleep are injectable so tests can pin jitter and skip real waits.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        source: str = "upstream",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE_SEC,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._client = client
        self.source = source
        self.timeout_ms = timeout_ms
        self.max_retries = max(0, max_retries)
        self.backoff_base = backoff_base
        self._rng = rng
        self._sleep = sleep

    async def fetch_json(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        json: Any = None,
        params: dict[str, str] | None = None,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
    ) -> FetchResponse:
        """
        Perform the call with up to max_retries extra attempts.

        Returns the first 2xx or non-retryable response. 401/403 raise
        UpstreamAuthError after one attempt. Raises UpstreamTimeout,
        UpstreamConnectionError, or UpstreamHTTPError once attempts are exhausted.
        """
        timeout_sec = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000.0
        retries = self.max_retries if max_retries is None else max(0, max_retries)
        attempts = retries + 1
        last_error: UpstreamFailure = UpstreamConnectionError(self.source, "no attempt made")

        for attempt in range(attempts):
            try:
                response = await asyncio.wait_for(
                    self._client.request(
                        method,
                        url,
                        headers=headers,
                        json=json,
                        params=params,
                        timeout=timeout_sec,
                    ),
                    timeout=timeout_sec,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                last_error = UpstreamTimeout(self.source, f"no response within {timeout_sec:.1f}s")
            except httpx.HTTPError as e:
                last_error = UpstreamConnectionError(self.source, str(e) or type(e).__name__)
            else:
                result = _to_fetch_response(response)
                if result.status in AUTH_STATUSES:
                    logger.warning("fetch_auth_rejected", source=self.source, status=result.status)
                    raise UpstreamAuthError(self.source, f"HTTP {result.status}", http_status=result.status)
                if result.ok or not is_retryable_status(result.status):
                    if attempt > 0:
                        logger.info("fetch_recovered", source=self.source, attempt=attempt, status=result.status)
                    return result
                last_error = UpstreamHTTPError(
                    self.source, f"HTTP {result.status}", http_status=result.status
                )

            logger.warning(
                "fetch_attempt_failed",
                source=self.source,
                attempt=attempt,
                attempts=attempts,
                error=str(last_error),
            )
            if attempt < attempts - 1:
                await self._sleep(backoff_delay(attempt, base=self.backoff_base, rng=self._rng))

        logger.warning("fetch_retries_exhausted", source=self.source, attempts=attempts, error=str(last_error))
        raise last_error
