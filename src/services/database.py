"""
Database connection and session management for the SendIT parcel core.

This module provides:
- Database engine creation and configuration
- Session factory for database operations
- Database initialization (create tables)
- session_scope() / run_atomic(): the single transaction boundary every
  multi-step parcel operation runs inside
- run_non_critical(): SAVEPOINT-isolated steps whose failure must not abort
  the surrounding transaction
"""

from typing import Callable, Optional, TypeVar
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base
from .logging_utils import StepOutcome

# Configure logging
logger = logging.getLogger(__name__)

T = TypeVar("T")

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Set SQLite pragmas on connection.

    Enables foreign key constraints and WAL mode. Non-SQLite connections
    are left untouched.
    """
    module = type(dbapi_connection).__module__
    if "sqlite" not in module:
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create and configure the database engine.

    Args:
        database_url: Optional database URL. If None, uses config default.
        echo: If True, log all SQL statements (useful for debugging)

    Returns:
        Configured SQLAlchemy Engine
    """
    config = get_config()
    if database_url is None:
        config.ensure_directories()
        database_url = config.database_url

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        # For in-memory databases (testing), use StaticPool
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": config.db_timeout},
        )
    else:
        engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

    return engine


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Initialize the database by creating all tables.

    Safe to call multiple times - existing tables won't be recreated.

    Args:
        engine: Optional engine to use. If None, uses global engine.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Initializing database tables")

    # Import all models so they are registered with Base
    from .. import models  # noqa: F401

    Base.metadata.create_all(engine)

    logger.info("Database tables initialized successfully")


def get_engine(force_recreate: bool = False) -> Engine:
    """
    Get the global database engine.

    Args:
        force_recreate: If True, recreate the engine even if one exists

    Returns:
        Database engine
    """
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """
    Get the global session factory.

    Returns:
        Session factory (sessionmaker)
    """
    global _SessionFactory

    if _SessionFactory is None:
        engine = get_engine()
        _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    """Create a new database session from the global factory."""
    session_factory = get_session_factory()
    return session_factory()


@contextmanager
def session_scope():
    """
    Provide a transactional scope for database operations.

    - Creates a new session
    - Commits on success
    - Rolls back on exception
    - Always closes the session

    Yields:
        Database session

    Example:
        with session_scope() as session:
            session.add(parcel)
            # Commit happens automatically if no exception
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def run_atomic(fn: Callable[[Session], T], session: Optional[Session] = None) -> T:
    """
    Run ``fn(session)`` as one all-or-nothing unit.

    If ``session`` is given, ``fn`` joins the caller's transaction and the
    caller owns commit/rollback. Otherwise a new session_scope() is opened,
    committed when ``fn`` returns and rolled back if it raises.

    Args:
        fn: Callable receiving the session
        session: Optional session for transaction sharing

    Returns:
        Whatever ``fn`` returns
    """
    if session is not None:
        return fn(session)

    with session_scope() as session:
        return fn(session)


def run_non_critical(session: Session, step: str, fn: Callable[[Session], object]) -> StepOutcome:
    """
    Run a best-effort step inside a SAVEPOINT.

    A storage failure inside ``fn`` rolls back only the savepoint; the
    surrounding transaction stays usable and the failure is returned as a
    StepOutcome for the caller to log after commit.

    Args:
        session: Session of the surrounding transaction
        step: Step name used in the outcome
        fn: Callable receiving the session

    Returns:
        StepOutcome describing success or failure
    """
    try:
        with session.begin_nested():
            fn(session)
    except SQLAlchemyError as e:
        return StepOutcome.failed(step, e)
    return StepOutcome.ok(step)


def verify_database() -> bool:
    """
    Verify that the database is accessible and has tables.

    Returns:
        True if database is valid, False otherwise
    """
    try:
        engine = get_engine()
        inspector = inspect(engine)
        tables = inspector.get_table_names()
        return "parcels" in tables
    except SQLAlchemyError as e:
        logger.error(f"Database verification failed: {e}")
        return False


def close_connections() -> None:
    """
    Close all database connections.

    Useful for cleanup or before application exit.
    """
    global _engine, _SessionFactory

    _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")


def initialize_app_database() -> None:
    """
    Initialize the application database.

    Main entry point at process start: creates the database and tables if
    they don't exist, then verifies them.
    """
    config = get_config()

    if config.database_type == "sqlite":
        if not config.database_exists():
            logger.info(f"Creating new database at: {config.database_path}")
        else:
            logger.info(f"Using existing database at: {config.database_path}")

    engine = get_engine()
    init_database(engine)

    if verify_database():
        logger.info("Database initialized and verified successfully")
    else:
        logger.warning("Database verification failed - tables may not exist")
