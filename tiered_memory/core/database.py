"""
Database handle with explicit lifecycle.

Wraps a SQLAlchemy engine and session factory. PostgreSQL is the production
target; any SQLAlchemy URL works, which keeps SQLite usable for tests.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import Settings
from .exceptions import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)

# SQLAlchemy base class for models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _engine_options(database_url: str, settings: Settings) -> Dict[str, Any]:
    """
    Build engine keyword arguments for the target dialect.

    Args:
        database_url: SQLAlchemy database URL
        settings: Application settings

    Returns:
        Dict: Keyword arguments for create_engine
    """
    if database_url.startswith("sqlite"):
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            # A single shared connection keeps the in-memory database alive
            options["poolclass"] = StaticPool
        return options

    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
        "echo": settings.log_level.upper() == "DEBUG",
    }


class Database:
    """
    Explicit database handle passed to every component.

    connect(), init_schema() and close() are lifecycle calls made by the
    application entry point; nothing connects at import time.
    """

    def __init__(self, settings: Settings, database_url: Optional[str] = None):
        """
        Initialize the handle without connecting.

        Args:
            settings: Application settings
            database_url: Overrides settings.database_url when given
        """
        self.settings = settings
        self.database_url = database_url or settings.database_url
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._shared_connection_lock = None

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    @property
    def dialect_name(self) -> str:
        return self._require_engine().dialect.name

    def connect(self) -> Engine:
        """
        Create the engine and verify the database is reachable.

        Returns:
            Engine: Connected SQLAlchemy engine

        Raises:
            ConfigurationError: If no URL is configured or the database is unreachable
        """
        if self.engine is not None:
            return self.engine

        if not self.database_url:
            raise ConfigurationError("DATABASE_URL is not configured")

        engine = create_engine(self.database_url, **_engine_options(self.database_url, self.settings))

        if engine.dialect.name == "postgresql":
            @event.listens_for(engine, "connect")
            def set_postgresql_session(dbapi_connection, connection_record):
                """Pin every pooled connection to UTC."""
                cursor = dbapi_connection.cursor()
                cursor.execute("SET timezone = 'UTC'")
                cursor.close()

        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            engine.dispose()
            logger.error(f"Database connection check failed: {e}")
            raise ConfigurationError(f"Database is not reachable: {e}") from e

        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False
        )
        if isinstance(engine.pool, StaticPool):
            # Every session shares one connection; sessions from worker threads must not interleave
            self._shared_connection_lock = threading.RLock()
        logger.info(f"Connected to {engine.dialect.name} database")
        return engine

    def init_schema(self) -> None:
        """
        Create all tables and indexes if they do not exist.

        Raises:
            PersistenceError: If schema creation fails
        """
        engine = self._require_engine()

        # Import models to ensure they're registered
        from tiered_memory.models import memory  # noqa: F401

        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as e:
            logger.error(f"Schema initialization failed: {e}")
            raise PersistenceError(f"Schema initialization failed: {e}") from e

        logger.info("Memory schema initialized")

    def check_connection(self) -> bool:
        """
        Check if the database connection is working.

        Returns:
            bool: True if connection is healthy, False otherwise
        """
        if self.engine is None:
            return False
        try:
            with self._session_guard(), self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Session for reads. Storage errors surface as PersistenceError.

        Example:
            >>> with database.session() as db:
            ...     db.get(LongTermMemory, memory_id)
        """
        factory = self._require_factory()
        with self._session_guard():
            session = factory()
            try:
                yield session
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Database session error: {e}")
                raise PersistenceError(str(e)) from e
            finally:
                session.close()

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Session that commits on success and rolls back on any error.

        Example:
            >>> with database.transaction() as db:
            ...     db.add(turn)
        """
        factory = self._require_factory()
        with self._session_guard():
            session = factory()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Transaction failed: {e}")
                raise PersistenceError(str(e)) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def close(self) -> None:
        """Dispose of all pooled connections."""
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self._session_factory = None
        self._shared_connection_lock = None

    def _session_guard(self):
        if self._shared_connection_lock is None:
            return nullcontext()
        return self._shared_connection_lock

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise ConfigurationError("Database not connected. Call connect() first.")
        return self.engine

    def _require_factory(self) -> sessionmaker:
        self._require_engine()
        return self._session_factory
