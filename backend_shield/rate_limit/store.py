"""
Fixed-window counter stores for the gateway rate limiter.

InMemoryCounterStore is per-process. SqlCounterStore is SQLAlchemy-backed and
shared across processes/instances: SQLite by default (RATE_LIMIT_DB_PATH),
any SQLAlchemy URL in production (RATE_LIMIT_DB_URL).
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Protocol

from sqlalchemy import BigInteger, Column, Integer, String, create_engine, delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_shield.shield_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


class CounterStore(Protocol):
    """Counts hits per (identity, window bucket)."""

    def increment(self, identity: str, bucket: int) -> int:
        """Add one hit and return the new count."""
        ...

    def read(self, identity: str, bucket: int) -> int:
        ...

    def evict_expired(self, min_bucket: int) -> int:
        """Delete buckets older than min_bucket; return how many were removed."""
        ...


def counter_key(identity: str, bucket: int) -> str:
    return f"{identity}:{bucket}"


class InMemoryCounterStore:
    """Lock-guarded dict keyed identity:bucket."""

    def __init__(self) -> None:
        self._counts: dict[tuple[str, int], int] = {}
        self._lock = threading.Lock()

    def increment(self, identity: str, bucket: int) -> int:
        with self._lock:
            key = (identity, bucket)
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]

    def read(self, identity: str, bucket: int) -> int:
        with self._lock:
            return self._counts.get((identity, bucket), 0)

    def evict_expired(self, min_bucket: int) -> int:
        with self._lock:
            expired = [k for k in self._counts if k[1] < min_bucket]
            for k in expired:
                del self._counts[k]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)


# -----------------------------------------------------------------------------
# SQLAlchemy-backed store
# -----------------------------------------------------------------------------


class RateLimitCounter(Base):
    """One row per identity per window bucket."""

    __tablename__ = "rate_limit_counters"

    identity = Column(String(128), primary_key=True)
    bucket = Column(BigInteger, primary_key=True, autoincrement=False, index=True)
    count = Column(Integer, nullable=False, default=0)


class SqlCounterStore:
    """Durable counters. Engine is created lazily on first use."""

    def __init__(self, url: str):
        self.url = url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None
        self._init_lock = threading.Lock()

    def _get_session_factory(self) -> sessionmaker:
        self._get_engine()
        factory = self._session_factory
        if factory is None:
            raise RuntimeError("rate limit store was disposed during use")
        return factory

    def _get_engine(self) -> Engine:
        with self._init_lock:
            if self._engine is None:
                connect_args = {}
                if self.url.startswith("sqlite"):
                    connect_args["check_same_thread"] = False
                engine = create_engine(self.url, connect_args=connect_args, pool_pre_ping=True)
                Base.metadata.create_all(bind=engine)
                self._engine = engine
                self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
                logger.info("rate_limit_store_engine", url=self.url.split("?")[0].split("//")[-1])
            return self._engine

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Commits on success, rolls back on error."""
        session = self._get_session_factory()()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_db(self) -> None:
        """Create the counters table if missing. Safe to call on every startup."""
        self._get_engine()

    def increment(self, identity: str, bucket: int) -> int:
        # UPDATE first; INSERT on a miss; a concurrent insert falls back to UPDATE.
        for _ in range(2):
            try:
                with self._session_scope() as session:
                    result = session.execute(
                        update(RateLimitCounter)
                        .where(RateLimitCounter.identity == identity, RateLimitCounter.bucket == bucket)
                        .values(count=RateLimitCounter.count + 1)
                    )
                    if result.rowcount == 0:
                        session.add(RateLimitCounter(identity=identity, bucket=bucket, count=1))
                        session.flush()
                    return session.execute(
                        select(RateLimitCounter.count).where(
                            RateLimitCounter.identity == identity, RateLimitCounter.bucket == bucket
                        )
                    ).scalar_one()
            except IntegrityError:
                logger.debug("rate_limit_insert_race", identity=identity, bucket=bucket)
        raise RuntimeError(f"could not increment counter {counter_key(identity, bucket)}")

    def read(self, identity: str, bucket: int) -> int:
        with self._session_scope() as session:
            value = session.execute(
                select(RateLimitCounter.count).where(
                    RateLimitCounter.identity == identity, RateLimitCounter.bucket == bucket
                )
            ).scalar_one_or_none()
            return int(value or 0)

    def evict_expired(self, min_bucket: int) -> int:
        with self._session_scope() as session:
            result = session.execute(delete(RateLimitCounter).where(RateLimitCounter.bucket < min_bucket))
            return int(result.rowcount or 0)

    def dispose(self) -> None:
        """Close pooled connections and drop the cached engine (tests, shutdown)."""
        with self._init_lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None
