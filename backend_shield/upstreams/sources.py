"""
Upstream data providers queried per scan.

- bags (primary): token info from the Bags API; retried, tries each base URL.
- dexscreener: token pairs on Solana.
- birdeye: token overview (requires BIRDEYE_API_KEY).
- meteora: DLMM pairs filtered to the scanned mint.

Each source returns an explicit Ok(payload) or Err(status); none raises for
provider-side failures.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import httpx

from backend_shield.config import Settings
from backend_shield.core.exceptions import UpstreamAuthError, UpstreamFailure
from backend_shield.shield_logging import get_logger
from backend_shield.upstreams.fetcher import BACKOFF_BASE_SEC, JITTER_RATIO, FetchResponse, RetryingFetcher
from backend_shield.upstreams.models import (
    BAGS,
    BIRDEYE,
    DEXSCREENER,
    METEORA,
    Err,
    Ok,
    Settled,
    UpstreamStatus,
    classify_failure,
    classify_http_status,
)

logger = get_logger(__name__)

USER_AGENT = "backend-shield/0.1.0"
BIRDEYE_MIN_KEY_LEN = 20


class UpstreamSource:
    """One independently queried provider. Subclasses implement fetch()."""

    name: str = "upstream"

    def __init__(self, fetcher: RetryingFetcher, *, timeout_ms: int):
        self._fetcher = fetcher
        self.timeout_ms = timeout_ms

    @property
    def deadline_ms(self) -> int:
        """Budget the aggregator grants this source end to end."""
        return self.timeout_ms

    async def fetch(self, mint: str) -> Settled:
        raise NotImplementedError

    async def _get_json(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> Settled:
        """Single-attempt GET; failures become Err with a classified status."""
        try:
            resp = await self._fetcher.fetch_json(
                url,
                headers={"Accept": "application/json", "User-Agent": USER_AGENT, **(headers or {})},
                params=params,
                timeout_ms=self.timeout_ms,
                max_retries=0,
            )
        except UpstreamFailure as e:
            return Err(classify_failure(e), str(e))
        return _settle_response(resp)


def _settle_response(resp: FetchResponse) -> Settled:
    if not resp.ok:
        return Err(classify_http_status(resp.status), f"HTTP {resp.status}")
    if isinstance(resp.body, str):
        return Err(UpstreamStatus.DOWN, "invalid_json")
    return Ok(resp.body)


class BagsSource(UpstreamSource):
    """
    Primary provider. Walks the configured base URLs in order and returns the
    first 2xx payload. Missing API key reports down without a network call.
    """

    name = BAGS

    def __init__(self, fetcher: RetryingFetcher, settings: Settings):
        super().__init__(fetcher, timeout_ms=settings.primary_timeout_ms)
        self.settings = settings

    @property
    def deadline_ms(self) -> int:
        # Every base may use all attempts plus the worst-case backoff between them.
        retries = self._fetcher.max_retries
        backoff_ms = sum(
            BACKOFF_BASE_SEC * (2 ** a) * (1.0 + JITTER_RATIO) * 1000 for a in range(retries)
        )
        per_base = self.timeout_ms * (retries + 1) + backoff_ms
        return int(per_base * max(1, len(self.settings.bags_api_bases)))

    def _auth_headers(self) -> dict[str, str]:
        key = self.settings.bags_api_key
        if self.settings.bags_auth_mode == "bearer":
            return {"Authorization": f"Bearer {key}"}
        return {self.settings.bags_auth_header or "x-api-key": key}

    def _url_and_params(self, base: str, mint: str) -> tuple[str, dict[str, str]]:
        path = self.settings.bags_tokens_path
        params: dict[str, str] = {}
        if self.settings.bags_network_param and self.settings.bags_network:
            params[self.settings.bags_network_param] = self.settings.bags_network
        if ":mint" in path:
            path = path.replace(":mint", quote(mint, safe=""))
        elif self.settings.bags_mint_param:
            params[self.settings.bags_mint_param] = mint
        params.update(self.settings.bags_extra_query)
        return f"{base}{path}", params

    async def fetch(self, mint: str) -> Settled:
        if not self.settings.bags_api_key:
            return Err(UpstreamStatus.DOWN, "no_api_key")
        if not self.settings.bags_api_bases:
            return Err(UpstreamStatus.DOWN, "no_api_base")

        headers = {"Accept": "application/json", "User-Agent": USER_AGENT, **self._auth_headers()}
        last: Err = Err(UpstreamStatus.DOWN, "no_base_responded")
        tried: list[str] = []
        for base in self.settings.bags_api_bases:
            url, params = self._url_and_params(base, mint)
            try:
                resp = await self._fetcher.fetch_json(url, headers=headers, params=params or None)
            except UpstreamAuthError as e:
                # Credentials are shared across bases; another base will not accept them either.
                tried.append(f"{base} {e.detail}")
                logger.info("bags_base_rejected_credentials", base=base, http_status=e.http_status)
                return Err(classify_failure(e), "; ".join(tried))
            except UpstreamFailure as e:
                last = Err(classify_failure(e), str(e))
                tried.append(f"{base} {e.detail}")
                logger.info("bags_base_failed", base=base, status=last.status.value)
                continue
            settled = _settle_response(resp)
            if isinstance(settled, Ok):
                if tried:
                    logger.info("bags_base_fallback_ok", base=base, tried=tried)
                return settled
            last = settled
            tried.append(f"{base} {settled.detail}")
            logger.info("bags_base_failed", base=base, status=last.status.value, http_status=resp.status)
        return Err(last.status, "; ".join(tried) or last.detail)


class DexScreenerSource(UpstreamSource):
    name = DEXSCREENER

    def __init__(self, fetcher: RetryingFetcher, settings: Settings):
        super().__init__(fetcher, timeout_ms=settings.upstream_timeout_ms)
        self.base = settings.dexscreener_api_base

    async def fetch(self, mint: str) -> Settled:
        return await self._get_json(f"{self.base}/token-pairs/v1/solana/{quote(mint, safe='')}")


class BirdeyeSource(UpstreamSource):
    name = BIRDEYE

    def __init__(self, fetcher: RetryingFetcher, settings: Settings):
        super().__init__(fetcher, timeout_ms=settings.upstream_timeout_ms)
        self.base = settings.birdeye_api_base
        self.api_key = settings.birdeye_api_key

    async def fetch(self, mint: str) -> Settled:
        if len(self.api_key) < BIRDEYE_MIN_KEY_LEN:
            return Err(UpstreamStatus.DOWN, "no_api_key")
        return await self._get_json(
            f"{self.base}/defi/token_overview",
            headers={"x-chain": "solana", "X-API-KEY": self.api_key},
            params={"address": mint},
        )


def _pair_mints(pair: dict[str, Any]) -> tuple[Any, ...]:
    return (pair.get("baseMint"), pair.get("quoteMint"), pair.get("mint_x"), pair.get("mint_y"))


class MeteoraSource(UpstreamSource):
    name = METEORA

    def __init__(self, fetcher: RetryingFetcher, settings: Settings):
        super().__init__(fetcher, timeout_ms=settings.upstream_timeout_ms)
        self.base = settings.meteora_api_base

    async def fetch(self, mint: str) -> Settled:
        settled = await self._get_json(f"{self.base}/pair/all")
        if isinstance(settled, Err):
            return settled
        pairs = settled.payload if isinstance(settled.payload, list) else []
        return Ok([p for p in pairs if isinstance(p, dict) and mint in _pair_mints(p)])


def build_default_sources(
    client: httpx.AsyncClient,
    settings: Settings,
    *,
    rng: random.Random | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> list[UpstreamSource]:
    """Primary first; the order here is the merge priority for hints."""
    primary_fetcher = RetryingFetcher(
        client,
        source=BAGS,
        timeout_ms=settings.primary_timeout_ms,
        max_retries=settings.primary_max_retries,
        rng=rng,
        sleep=sleep,
    )
    return [
        BagsSource(primary_fetcher, settings),
        DexScreenerSource(RetryingFetcher(client, source=DEXSCREENER, max_retries=0), settings),
        BirdeyeSource(RetryingFetcher(client, source=BIRDEYE, max_retries=0), settings),
        MeteoraSource(RetryingFetcher(client, source=METEORA, max_retries=0), settings),
    ]
