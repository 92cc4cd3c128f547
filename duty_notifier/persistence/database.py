"""Engine and session lifecycle for the duty store.

The duty store is usually the scheduling system's PostgreSQL database; SQLite
is supported for local runs and tests. init_database() builds the engine and
session factory once at startup; every pipeline phase then opens its own
short session through get_session().
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from duty_notifier.logging import get_logger

from .exceptions import DatabaseConnectionError

_engine: Engine | None = None
_session_factory: sessionmaker | None = None

NOT_INITIALIZED = "Database not initialized. Call init_database() first"

logger = get_logger(__name__, component="database")


def _is_in_memory(url: URL) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _engine_options(url: URL) -> Dict[str, Any]:
    """Connection options per backend.

    SQLite connections are shared with scheduler threads, and an in-memory
    database must live on a single connection to be visible at all.
    """
    options: Dict[str, Any] = {"pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        return options

    options["connect_args"] = {"check_same_thread": False, "timeout": 30}
    if _is_in_memory(url):
        options["poolclass"] = StaticPool
    else:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return options


def _install_sqlite_pragmas(engine: Engine, journal_wal: bool) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if journal_wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def init_database(database_url: str, create_tables: bool = True) -> None:
    """Create the engine and session factory, then check connectivity.

    Args:
        database_url: SQLAlchemy URL, e.g. "sqlite:///./data/duty_notifier.db"
        create_tables: Create missing tables; pass False when the scheduling
            system owns the schema

    Raises:
        DatabaseConnectionError: Invalid URL, unreachable database or schema
            creation failure
    """
    global _engine, _session_factory

    if not isinstance(database_url, str) or not database_url:
        raise DatabaseConnectionError("Database URL must be a non-empty string")
    try:
        url = make_url(database_url)
    except ArgumentError as e:
        raise DatabaseConnectionError(f"Invalid database URL: {e}") from e

    backend = url.get_backend_name()
    logger.info(
        "Initializing database",
        extra={"event": "database.initializing", "database_url": url.render_as_string(hide_password=True)},
    )

    try:
        engine = create_engine(url, **_engine_options(url))
        if backend == "sqlite":
            _install_sqlite_pragmas(engine, journal_wal=not _is_in_memory(url))

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        if create_tables:
            from .schema import create_schema

            create_schema(engine)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise DatabaseConnectionError(f"Failed to initialize database: {e}") from e

    _engine = engine
    _session_factory = sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)
    logger.info("Database ready", extra={"event": "database.initialised", "backend": backend})


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on error.

    Raises:
        DatabaseConnectionError: If init_database() has not run
    """
    if _session_factory is None:
        raise DatabaseConnectionError(NOT_INITIALIZED)

    session = _session_factory()
    try:
        yield session
        session.commit()
        logger.debug("Session committed", extra={"event": "database.session.committed"})
    except Exception as e:
        session.rollback()
        logger.warning(
            f"Session rolled back: {e}",
            extra={"event": "database.session.rolled_back", "error_type": type(e).__name__},
        )
        raise
    finally:
        session.close()


def get_engine() -> Engine:
    if _engine is None:
        raise DatabaseConnectionError(NOT_INITIALIZED)
    return _engine


def close_database() -> None:
    """Dispose of the engine; safe to call when nothing was initialized."""
    global _engine, _session_factory

    if _engine is None:
        return
    logger.info("Closing database connections")
    _engine.dispose()
    _engine = None
    _session_factory = None
