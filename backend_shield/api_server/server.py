"""
FastAPI server — token risk scan gateway.

Exposes GET/POST /api/scan (live upstream scan), POST /api/simulate (score
client-supplied hints), POST /api/apply (scan + suggested actions) and
GET /health. Scan routes are rate limited per client identity before any
upstream work. Config via env (see backend_shield.config).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend_shield.analysis_engine import (
    ScanReport,
    actions_for,
    build_report,
    coerce_hints,
    evaluate_mint,
    validate_mint,
)
from backend_shield.api_server.middleware import enforce_rate_limit, log_requests, rate_limit_headers
from backend_shield.config import Settings, get_settings
from backend_shield.core.exceptions import InternalFailure, RateLimitExceeded, ValidationFailure
from backend_shield.rate_limit import RateLimiter, SqlCounterStore
from backend_shield.shield_logging import get_logger
from backend_shield.upstreams import (
    AggregatorConfig,
    UpstreamAggregator,
    build_default_sources,
    format_upstreams_header,
)

logger = get_logger(__name__)

UPSTREAMS_HEADER = "X-BS-Upstreams"


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class ScanRequest(BaseModel):
    """POST /api/scan body."""

    mint: str | None = Field(None, description="Token mint address (base58)")
    tokenMint: str | None = Field(None, description="Alias of mint")


class SimulateRequest(ScanRequest):
    """POST /api/simulate body: hints to score (camelCase keys). `mock` is accepted as an alias."""

    hints: dict[str, Any] | None = Field(None, description="Client-supplied hints")
    mock: dict[str, Any] | None = Field(None, description="Alias of hints")


class ApplyRequest(ScanRequest):
    """POST /api/apply body. With `mock`, scores those hints instead of calling upstreams."""

    mock: dict[str, Any] | None = Field(None, description="Mock hints; skips upstream calls")


class RiskBadge(BaseModel):
    text: str
    color: str


class RiskFactor(BaseModel):
    key: str = Field(..., description="Rule identifier")
    score: int = Field(..., description="Signed score delta")
    detail: str = Field(..., description="Human-readable explanation")


class RiskBlock(BaseModel):
    level: str
    badge: RiskBadge
    factors: list[RiskFactor] = Field(default_factory=list)


class ScanResponse(BaseModel):
    """Evaluation response shared by scan and simulate."""

    score: int = Field(..., ge=0, le=100, description="Risk score (0–100)")
    decision: str = Field(..., description="safe | warn | block")
    reason: str
    risk: RiskBlock
    upstreams: dict[str, dict[str, str]] = Field(default_factory=dict, description="Per-source status")
    degraded: bool = Field(False, description="True when a non-primary source failed")


class ApplyResponse(ScanResponse):
    actions: list[dict[str, Any]] = Field(default_factory=list, description="Suggested client actions")
    mockUsed: bool = False


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _requested_mint(body: ScanRequest) -> str:
    return validate_mint(body.mint or body.tokenMint)


def get_aggregator(request: Request) -> UpstreamAggregator:
    aggregator = getattr(request.app.state, "aggregator", None)
    if aggregator is None:
        raise InternalFailure("upstream aggregator not initialized")
    return aggregator


async def _live_scan(mint: str, aggregator: UpstreamAggregator, response: Response) -> ScanReport:
    report = await evaluate_mint(mint, aggregator)
    response.headers[UPSTREAMS_HEADER] = format_upstreams_header(report.aggregate)
    return report


def build_limiter(settings: Settings) -> RateLimiter:
    return RateLimiter(
        settings.rate_max,
        settings.rate_window_ms,
        durable_store=SqlCounterStore(settings.rate_limit_db_url),
    )


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    aggregator: UpstreamAggregator | None = None,
    limiter: RateLimiter | None = None,
) -> FastAPI:
    """
    Build the gateway app. Without an injected aggregator, the lifespan opens a
    shared httpx.AsyncClient and wires the default sources to it.
    """
    settings = settings or get_settings()
    limiter = limiter or build_limiter(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client: httpx.AsyncClient | None = None
        if app.state.aggregator is None:
            client = httpx.AsyncClient(follow_redirects=True)
            app.state.aggregator = UpstreamAggregator(
                build_default_sources(client, settings),
                AggregatorConfig(primary_counts_toward_degraded=settings.primary_counts_toward_degraded),
            )
            logger.info("api_upstreams_ready", sources=app.state.aggregator.source_names)
        yield
        if client is not None:
            await client.aclose()
            app.state.aggregator = None
            logger.info("api_upstreams_closed")

    app = FastAPI(
        title="Backend Shield API",
        description="Token risk scan gateway: aggregates upstream signals and scores them.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.aggregator = aggregator
    app.state.limiter = limiter
    app.middleware("http")(log_requests)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe: API is up."""
        return {"status": "ok"}

    @app.get("/api/scan/{mint}", response_model=ScanResponse, dependencies=[Depends(enforce_rate_limit)])
    async def scan_get(mint: str, response: Response, aggregator: UpstreamAggregator = Depends(get_aggregator)):
        """Live scan: query all upstreams, normalize, score."""
        report = await _live_scan(validate_mint(mint), aggregator, response)
        return report.to_dict()

    @app.post("/api/scan", response_model=ScanResponse, dependencies=[Depends(enforce_rate_limit)])
    async def scan_post(body: ScanRequest, response: Response, aggregator: UpstreamAggregator = Depends(get_aggregator)):
        report = await _live_scan(_requested_mint(body), aggregator, response)
        return report.to_dict()

    @app.post("/api/simulate", response_model=ScanResponse, dependencies=[Depends(enforce_rate_limit)])
    def simulate(body: SimulateRequest):
        """Score client-supplied hints. No upstream calls."""
        mint = _requested_mint(body)
        hints = coerce_hints(body.hints if body.hints is not None else body.mock)
        report = build_report(mint, hints)
        logger.info("simulate_completed", mint=mint, score=report.result.score, hints=hints.present())
        return report.to_dict()

    @app.post("/api/apply", response_model=ApplyResponse, dependencies=[Depends(enforce_rate_limit)])
    async def apply(body: ApplyRequest, request: Request, response: Response):
        """Evaluate (live, or from mock hints) and suggest actions for the decision."""
        mint = _requested_mint(body)
        if body.mock is not None:
            report = build_report(mint, coerce_hints(body.mock))
        else:
            report = await _live_scan(mint, get_aggregator(request), response)
        out = report.to_dict()
        out["actions"] = actions_for(report.result)
        out["mockUsed"] = body.mock is not None
        logger.info("apply_completed", mint=mint, decision=out["decision"], mock_used=out["mockUsed"])
        return out

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.exception_handler(ValidationFailure)
    def validation_failure_handler(request: Request, exc: ValidationFailure) -> JSONResponse:
        logger.info("request_rejected", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc), "code": exc.code},
            headers=rate_limit_headers(request),
        )

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"detail": "Too Many Requests", "code": exc.code},
            headers=exc.decision.headers(),
        )

    @app.exception_handler(InternalFailure)
    def internal_failure_handler(request: Request, exc: InternalFailure) -> JSONResponse:
        logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "code": exc.code},
            headers=rate_limit_headers(request),
        )

    @app.exception_handler(HTTPException)
    def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Consistent JSON error response for HTTPException."""
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    return app
