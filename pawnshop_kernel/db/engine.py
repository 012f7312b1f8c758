"""
Module: pawnshop_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  Single point of database connection
    configuration for the worker.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from repositories/ or outer layers (create_tables imports models
    lazily so their tables are registered on Base.metadata).

Invariants enforced:
    - PostgreSQL in production: READ COMMITTED with a pre-pinged QueuePool.
    - In-memory SQLite (tests): a single shared connection (StaticPool) with
      cross-thread access enabled, otherwise each thread would see its own
      empty database.
    - File SQLite (local runs): pooled connections, cross-thread access enabled
      because every scheduler job runs on its own thread.

Failure modes:
    - RuntimeError if get_engine/get_session_factory called before
      init_engine_from_url().
"""

from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from pawnshop_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_recycle: int = 1800,
) -> Engine:
    """Create an engine suited to the URL's dialect without touching module state."""
    if database_url.startswith("sqlite"):
        if _is_memory_sqlite(database_url):
            return create_engine(
                database_url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        # File databases: one pooled connection per job thread.
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, **engine_options) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Postconditions: get_engine/get_session_factory return the new objects.
        A second call replaces the first.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    _engine = build_engine(database_url, **engine_options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name},
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Repositories take this factory rather than a session so each job thread
    opens its own session per call.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    session_factory: Callable[[], Session],
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed and the exception
        is re-raised.

    Usage:
        with session_scope(factory) as session:
            session.add(entity)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create all tables defined on Base.metadata."""
    from pawnshop_kernel.db.base import Base
    import pawnshop_kernel.models  # noqa: F401  (registers tables)

    target = engine or get_engine()
    Base.metadata.create_all(target)
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def reset_engine() -> None:
    """Dispose the engine and clear module state. FOR TESTING ONLY."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
