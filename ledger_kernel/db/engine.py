"""
Module: ledger_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  Single point of database connection
    configuration for the whole system.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/ or domain/ (create_tables imports
    models lazily so their tables are registered).

Invariants enforced:
    - PostgreSQL is the production backend: READ COMMITTED plus explicit
      ``SELECT ... FOR UPDATE`` where settlement needs serialization, and a
      server-side ``statement_timeout`` so no ledger query hangs a request.
    - SQLite is accepted for tests and local runs.  The pysqlite driver's
      implicit transaction handling is disabled so SAVEPOINTs behave.
    - session_scope() commits on success and rolls back on any exception.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
    - OperationalError from the driver on connect or statement timeout.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_savepoint_support(engine: Engine) -> None:
    """Let SQLAlchemy, not pysqlite, emit BEGIN so nested transactions work."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    statement_timeout_ms: int = 5000,
    connect_timeout_s: int = 5,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level engine and session factory are initialized;
        a second call replaces the first.

    Args:
        database_url: PostgreSQL URL in production, ``sqlite://`` for tests.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: Test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        statement_timeout_ms: Server-side per-statement timeout (PostgreSQL).
        connect_timeout_s: Connect timeout in seconds.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        dialect = "sqlite"
        in_memory = database_url in ("sqlite://", "sqlite:///:memory:")
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool if in_memory else None,
            connect_args={
                "check_same_thread": False,
                "timeout": connect_timeout_s,
            },
        )
        _install_sqlite_savepoint_support(_engine)
    else:
        dialect = "postgresql"
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
            connect_args={
                "connect_timeout": connect_timeout_s,
                "options": f"-c statement_timeout={statement_timeout_ms}",
            },
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": pool_size,
            "statement_timeout_ms": statement_timeout_ms,
            "echo": echo,
        },
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
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory (one session per thread in scheduler code).

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit the session is committed and closed.
        On exception it is rolled back and closed, and the exception is
        re-raised to the caller.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create all ledger tables.  Idempotent."""
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401  (registers every table)

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (test cleanup)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"
