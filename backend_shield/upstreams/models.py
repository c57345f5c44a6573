"""
Upstream outcome types and status classification.

Every source task settles into an explicit Ok or Err value; the aggregator
turns both into an UpstreamOutcome so that failures travel as data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from backend_shield.core.exceptions import (
    UpstreamAuthError,
    UpstreamConnectionError,
    UpstreamFailure,
    UpstreamTimeout,
)

BAGS = "bags"
DEXSCREENER = "dexscreener"
BIRDEYE = "birdeye"
METEORA = "meteora"

PRIMARY_SOURCE = BAGS


class UpstreamStatus(str, Enum):
    OK = "ok"
    DOWN = "down"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rateLimited"
    SERVER_ERROR = "serverError"


def classify_http_status(status: int | None) -> UpstreamStatus:
    """Map an HTTP status (None or 0 = no response) to an UpstreamStatus."""
    if status is None or status == 0:
        return UpstreamStatus.SERVER_ERROR
    if status == 401:
        return UpstreamStatus.UNAUTHORIZED
    if status == 403:
        return UpstreamStatus.FORBIDDEN
    if status == 429:
        return UpstreamStatus.RATE_LIMITED
    if status == 408:
        return UpstreamStatus.TIMEOUT
    if status >= 500:
        return UpstreamStatus.SERVER_ERROR
    if 200 <= status < 300:
        return UpstreamStatus.OK
    return UpstreamStatus.DOWN


def classify_failure(exc: UpstreamFailure) -> UpstreamStatus:
    if isinstance(exc, UpstreamAuthError):
        return UpstreamStatus.FORBIDDEN if exc.http_status == 403 else UpstreamStatus.UNAUTHORIZED
    if isinstance(exc, UpstreamTimeout):
        return UpstreamStatus.TIMEOUT
    if isinstance(exc, UpstreamConnectionError):
        return UpstreamStatus.SERVER_ERROR
    if exc.http_status is not None:
        return classify_http_status(exc.http_status)
    return UpstreamStatus.DOWN


@dataclass(frozen=True)
class Ok:
    """Source returned a usable payload."""

    payload: Any


@dataclass(frozen=True)
class Err:
    """Source failed; status says how."""

    status: UpstreamStatus
    detail: str = ""


Settled = Union[Ok, Err]


@dataclass
class UpstreamOutcome:
    """Result of one source query within one aggregation call."""

    source: str
    status: UpstreamStatus
    payload: Any = None
    detail: str = ""
    latency_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is UpstreamStatus.OK

    @classmethod
    def from_settled(cls, source: str, settled: Settled, latency_ms: float = 0.0) -> "UpstreamOutcome":
        if isinstance(settled, Ok):
            return cls(source=source, status=UpstreamStatus.OK, payload=settled.payload, latency_ms=latency_ms)
        return cls(source=source, status=settled.status, detail=settled.detail, latency_ms=latency_ms)

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value}


@dataclass
class AggregateResult:
    """All source outcomes for one mint, in source order, plus the degraded flag."""

    outcomes: dict[str, UpstreamOutcome] = field(default_factory=dict)
    degraded: bool = False

    def __getitem__(self, source: str) -> UpstreamOutcome:
        return self.outcomes[source]

    def statuses(self) -> dict[str, dict[str, str]]:
        return {name: o.to_dict() for name, o in self.outcomes.items()}
