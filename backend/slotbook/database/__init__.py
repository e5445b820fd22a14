"""
Database engine, session factory, and metadata shared across the application.

The engine is owned by a ``Database`` instance that the process entry point
(API lifespan, Celery worker, CLI) constructs, connects and closes. Nothing
here opens a connection at import time.
"""

from __future__ import annotations

from datetime import datetime
import logging
import random
import time
from typing import Any, Callable, Generator, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.exceptions import TransientStoreException

logger = logging.getLogger(__name__)

Base: DeclarativeMeta = declarative_base()

T = TypeVar("T")

# SQLSTATE codes Postgres uses for serialization failures and deadlocks.
_RETRYABLE_SQLSTATES = ("40001", "40P01")
# SQLite reports writer contention through the message text only.
_RETRYABLE_ERROR_SNIPPETS = (
    "database is locked",
    "could not serialize access",
    "deadlock detected",
)


def _build_engine_kwargs(db_url: str, echo: bool, pool_size: int, max_overflow: int) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": echo, "future": True}
    if db_url.startswith("sqlite"):
        # Request threads share the pool; writers wait on the file lock instead of failing.
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    else:
        kwargs.update(
            {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": True,
                "pool_recycle": 300,
            }
        )
    return kwargs


class Database:
    """Owner of the SQLAlchemy engine and session factory."""

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
    ) -> None:
        self.url = url
        self._engine_kwargs = _build_engine_kwargs(url, echo, pool_size, max_overflow)
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @classmethod
    def from_settings(cls, settings: Any) -> "Database":
        return cls(
            settings.database_url,
            echo=settings.database_echo,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._engine

    def connect(self) -> "Database":
        """Create the engine and session factory. Safe to call twice."""
        if self._engine is not None:
            return self
        engine = create_engine(self.url, **self._engine_kwargs)
        if self.url.startswith("sqlite"):
            event.listen(engine, "connect", _configure_sqlite_connection)
        event.listen(engine, "connect", _record_connect_time)

        self._engine = engine
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
        )
        logger.info("Database engine created", extra={"dialect": engine.dialect.name})
        return self

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")

    def create_all(self) -> None:
        """Create every table known to the metadata (local runs and tests)."""
        # Register the models on Base.metadata.
        from .. import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        from .. import models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._session_factory()

    def get_db(self) -> Generator[Session, None, None]:
        """Yield a session and always close it."""
        db = self.session()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return True
        except DBAPIError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False


def _configure_sqlite_connection(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _record_connect_time(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


def is_transient_error(exc: BaseException) -> bool:
    """True for serialization failures, deadlocks and SQLite writer contention."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in _RETRYABLE_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def _retry_delay(attempt: int, base_delay: float) -> float:
    base = base_delay * (2 ** (attempt - 1))
    return base + random.uniform(0, base_delay * attempt)


def with_db_retry(
    op_name: str,
    func: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.05,
    on_retry: Optional[Callable[[int], None]] = None,
) -> T:
    """
    Execute a transactional unit, retrying transient serialization failures.

    ``func`` must run a complete transaction (commit or rollback) on each call.
    When every attempt fails with a transient error the caller receives a
    TransientStoreException; any other error propagates unchanged.
    """

    attempt = 1
    while True:
        try:
            return func()
        except DBAPIError as exc:
            if not is_transient_error(exc):
                raise
            if attempt >= max_attempts:
                logger.error(
                    "Transient DB failure persisted, giving up",
                    extra={"event": "db_retry_exhausted", "op": op_name, "attempts": attempt},
                )
                raise TransientStoreException(op_name, attempt) from exc

            delay = _retry_delay(attempt, base_delay)
            logger.warning(
                "Transient DB failure detected, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": str(exc),
                },
            )
            if on_retry is not None:
                on_retry(attempt)
            time.sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "Database",
    "is_transient_error",
    "with_db_retry",
]
