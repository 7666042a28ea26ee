"""
Database connection and session management for the food package engine.

This module provides:
- Database engine creation and configuration
- Session factory and the session_scope() transaction helper
- Database initialization (create tables)
- Foreign key enforcement and WAL mode for SQLite

Locales, foods, categories, nutrient tables and image assets all live in one
store, so a single session is the transaction boundary of a whole import.
"""

from typing import Optional
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base

logger = logging.getLogger(__name__)

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Set SQLite pragmas on every new connection.

    Foreign keys must be on: child rows rely on ON DELETE CASCADE and
    link rows on their parent/category references.
    """
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
        echo: If True, log all SQL statements

    Returns:
        Configured SQLAlchemy Engine
    """
    if database_url is None:
        database_url = get_config().database_url

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    return engine


def _register_models() -> None:
    # Importing the package registers every model with Base.metadata
    from .. import models  # noqa: F401


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Create all tables that do not exist yet.

    Args:
        engine: Optional engine to use. If None, uses global engine.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Initializing database tables")
    _register_models()
    Base.metadata.create_all(engine)
    logger.info("Database tables initialized successfully")


def get_engine(force_recreate: bool = False) -> Engine:
    """
    Get the global database engine, creating it on first use.

    Args:
        force_recreate: If True, recreate the engine even if one exists
    """
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """Get the global session factory."""
    global _SessionFactory

    if _SessionFactory is None:
        engine = get_engine()
        _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    """
    Create a new database session.

    Prefer session_scope(); a bare session must be committed, rolled back
    and closed by the caller.
    """
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
            bulk_update_categories("en_GB", categories, "overwrite", session=session)
            bulk_update_foods("en_GB", foods, "overwrite", session=session)
            # Both commit together, or neither does
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


def verify_database() -> bool:
    """
    Verify that the database is accessible and has the core tables.

    Returns:
        True if the locales and foods tables exist
    """
    engine = get_engine()
    tables = set(inspect(engine).get_table_names())
    return {"locales", "foods", "categories"}.issubset(tables)


def reset_database(confirm: bool = False) -> None:
    """
    Drop all tables and recreate the database.

    WARNING: This will delete all data!

    Args:
        confirm: Must be True to actually reset. Safety check.

    Raises:
        ValueError: If confirm is not True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    logger.warning("RESETTING DATABASE - ALL DATA WILL BE LOST")

    engine = get_engine()
    _register_models()

    Base.metadata.drop_all(engine)
    logger.info("All tables dropped")

    Base.metadata.create_all(engine)
    logger.info("Tables recreated")


def close_connections() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _SessionFactory

    _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")
