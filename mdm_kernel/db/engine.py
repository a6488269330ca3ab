"""
Module: mdm_kernel.db.engine
Responsibility: SQLAlchemy engine initialization and session factory
    management.  Single point of database connection configuration for the
    kernel.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/, domain/, or outer layers (except
    create_tables/drop_tables which import models so metadata is complete).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED behind a pre-pinging QueuePool.
    - SQLite (tests, single-user tooling) enforces foreign keys on every
      connection; in-memory databases share one connection via StaticPool so
      every session sees the same schema.
    - Sessions never expire attributes on commit: DTOs may be built after the
      unit of work closes.

Failure modes:
    - RuntimeError if get_session_factory is called before
      init_engine_from_url().

Audit relevance:
    Sessions from the factory carry one command each; the command layer
    commits or rolls back, so a failed command leaves neither request rows
    nor workflow events behind.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from mdm_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine configured for the URL's backend.

    Preconditions: database_url is a SQLite or PostgreSQL SQLAlchemy URL.
    Postconditions: Returned engine is NOT registered as the module engine;
        use init_engine_from_url() for that.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options) -> Engine:
    """
    Initialize the module-level engine and session factory.

    A second call overwrites the first.  Logging is left to the caller; the
    command layer configures it from settings.
    """
    global _engine, _SessionFactory

    _engine = build_engine(database_url, echo=echo, **pool_options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def create_tables(engine: Engine) -> None:
    """Create every kernel table on the given engine."""
    from mdm_kernel.db.base import Base
    import mdm_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(engine)


def drop_tables(engine: Engine) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from mdm_kernel.db.base import Base
    import mdm_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None
