"""
Module: procurement_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/triggers.py.  MUST NOT import from services/, selectors/, domain/
    (except create_tables, which imports models so metadata is complete).

Invariants enforced:
    - PostgreSQL is the production backend: READ COMMITTED isolation with
      explicit row-level locking (SELECT ... FOR UPDATE) where stronger
      isolation is needed (receiving, sequence counters).
    - SQLite is accepted for local runs and the default test suite.  It
      serializes writers at the database level and ignores FOR UPDATE.
    - Connection pooling via QueuePool with pre-ping on PostgreSQL.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from procurement_kernel.logging_config import get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level _engine and _SessionFactory are initialized.
        All subsequent get_engine/get_session calls use this engine.  A second
        call overwrites the first.

    Args:
        database_url: PostgreSQL or SQLite URL.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: Test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": pool_timeout}}
        if url.database in (None, "", ":memory:"):
            # One shared connection so every session sees the same database
            kwargs["poolclass"] = StaticPool
        _engine = create_engine(database_url, echo=echo, **kwargs)
        _enable_sqlite_transactions(_engine)
    else:
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
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )

    return _engine


def _enable_sqlite_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy own SQLite transaction boundaries.

    pysqlite defers BEGIN until the first DML statement and treats SAVEPOINT
    as a transaction start, which breaks nested transactions.  The driver's
    handling is disabled and every transaction opens with BEGIN IMMEDIATE,
    which takes the database write lock up front.  SQLite ignores
    ``FOR UPDATE``, so this lock is what serializes concurrent
    read-check-write sequences such as two receipts against one order: the
    second waits (up to ``timeout`` seconds) and then reads the first one's
    committed rows.  Foreign keys are switched on per connection.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


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
    Get the session factory for creating sessions.

    Useful for multi-threaded scenarios where each thread needs its own session.

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

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.

    Usage:
        with session_scope() as session:
            session.add(entity)
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


def create_tables(install_triggers: bool = True) -> None:
    """
    Create all tables defined in the models and, on PostgreSQL, install the
    append-only ledger triggers.

    Raises:
        RuntimeError: If engine is not initialized.
    """
    from procurement_kernel.db.base import Base
    import procurement_kernel.models  # noqa: F401

    engine = get_engine()
    Base.metadata.create_all(engine)

    if install_triggers and is_postgres():
        from procurement_kernel.db.triggers import install_immutability_triggers

        install_immutability_triggers(engine)

    logger.info(
        "tables_created",
        extra={"table_count": len(Base.metadata.tables)},
    )


def drop_tables() -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from procurement_kernel.db.base import Base
    import procurement_kernel.models  # noqa: F401

    engine = get_engine()
    if is_postgres():
        from procurement_kernel.db.triggers import uninstall_immutability_triggers

        uninstall_immutability_triggers(engine)
    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"
