"""
Engine and session management for batch persistence.

One module-level engine serves the process.  ``init_engine_from_url``
creates it (replacing any previous one), ``session_scope`` wraps a unit
of work, and ``reset_engine`` tears everything down for tests.

Calling any accessor before ``init_engine_from_url`` raises RuntimeError.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Create the process engine for ``database_url``.

    An in-memory SQLite database lives in a single shared connection, so
    every session opened afterwards sees the same tables.
    """
    global _engine, _session_factory
    reset_engine()

    options: dict[str, Any] = {"echo": echo}
    if _is_memory_sqlite(database_url):
        options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True

    _engine = create_engine(database_url, **options)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={
        "dialect": _engine.dialect.name,
        "in_memory": _is_memory_sqlite(database_url),
    })
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first")
    return _session_factory


def get_session() -> Session:
    """New session; the caller commits and closes it."""
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back and re-raise on error, always close."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the ``stock_batches`` table (and any other registered model)."""
    from stock_kernel.db.base import Base
    from stock_kernel.models import BatchModel  # noqa: F401  registers the table

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    from stock_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())
    logger.info("tables_dropped")


def reset_engine() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
