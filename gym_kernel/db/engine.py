"""
Module: gym_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  Single point of database connection
    configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from gateways/, services/ or domain/ (create_tables imports the
    models package lazily so Base.metadata is populated).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with pre-ping pooling.
    - SQLite connections open every transaction with BEGIN IMMEDIATE, so
      SAVEPOINT/RELEASE behave transactionally and concurrent writers are
      serialized instead of deadlocking on lock upgrade.
    - The partial unique index uq_contract_vigente_pair exists on both
      backends once create_tables() has run.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory are called
      before init_engine_from_url().
    - OperationalError ("database is locked") on SQLite if a writer waits
      longer than the busy timeout.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from gym_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    """Take over transaction control from pysqlite (SQLAlchemy's documented recipe)."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    """
    Create an engine configured for the backend named in the URL.

    In-memory SQLite uses a StaticPool so every session shares the one
    database; file SQLite and PostgreSQL use the default QueuePool.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        kwargs: dict = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
            },
        }
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        _install_sqlite_transaction_hooks(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Postconditions: all subsequent get_engine/get_session calls use the new
        engine.  A second call replaces the first.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(database_url, echo=echo)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
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


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory.  Each thread or request should create its own
    session from it; sessions are never shared across threads.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit the session is committed and closed.
        On exception it is rolled back, closed, and the exception re-raised.

    Usage:
        with session_scope() as session:
            PlanService(session, auto_commit=False).change_state(plan_id, "cancelado")
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create all tables and indexes defined by the models."""
    from gym_kernel.db.base import Base
    import gym_kernel.models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from gym_kernel.db.base import Base
    import gym_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Reset the engine and session factory. Useful for test cleanup."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"
