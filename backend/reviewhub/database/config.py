"""
Database configuration and session management.

This module provides RDBMS-agnostic configuration for the authoritative store:
- SQLite (default, file or in-memory)
- MySQL/MariaDB
- PostgreSQL

Configuration is loaded from environment variables with sensible defaults.
Session scopes translate driver failures into ``StoreUnavailableError``.
"""

import os
import logging
from typing import Optional, Dict, Any
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .models import create_all_tables

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    """Raised when the authoritative store cannot serve a request."""
    pass


class DatabaseConfig:
    """
    Database configuration manager supporting multiple RDBMS backends.

    Supports SQLite (default), MySQL, and PostgreSQL with connection pooling
    and session management.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        """
        Initialize database configuration.

        Args:
            database_url: Optional database URL override
            echo: Enable SQL query logging for debugging
        """
        self.database_url = database_url or self._build_database_url()
        self.echo = echo
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._is_initialized = False

        self.db_type = self._detect_database_type()
        self.engine_kwargs = self._get_engine_kwargs()

        logger.info(f"Database configuration initialized for {self.db_type}")

    def _build_database_url(self) -> str:
        """
        Build database URL from environment variables.

        Environment variables:
        - DATABASE_URL: Complete database URL (takes precedence)
        - DB_TYPE: Database type (sqlite, mysql, postgresql)
        - DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD
        """
        database_url = os.getenv('DATABASE_URL')
        if database_url:
            return database_url

        db_type = os.getenv('DB_TYPE', 'sqlite').lower()

        if db_type == 'sqlite':
            db_name = os.getenv('DB_NAME', 'reviewhub.db')
            return f"sqlite:///{db_name}"

        elif db_type in ['mysql', 'mariadb']:
            host = os.getenv('DB_HOST', 'localhost')
            port = os.getenv('DB_PORT', '3306')
            database = os.getenv('DB_NAME', 'reviewhub')
            username = os.getenv('DB_USER', 'root')
            password = os.getenv('DB_PASSWORD', '')
            return f"mysql+pymysql://{username}:{password}@{host}:{port}/{database}?charset=utf8mb4"

        elif db_type == 'postgresql':
            host = os.getenv('DB_HOST', 'localhost')
            port = os.getenv('DB_PORT', '5432')
            database = os.getenv('DB_NAME', 'reviewhub')
            username = os.getenv('DB_USER', 'postgres')
            password = os.getenv('DB_PASSWORD', '')
            return f"postgresql://{username}:{password}@{host}:{port}/{database}"

        else:
            raise ValueError(f"Unsupported database type: {db_type}")

    def _detect_database_type(self) -> str:
        """Detect database type from URL."""
        if self.database_url.startswith('sqlite'):
            return 'sqlite'
        elif self.database_url.startswith('mysql'):
            return 'mysql'
        elif self.database_url.startswith('postgresql'):
            return 'postgresql'
        else:
            return 'unknown'

    @property
    def is_memory_database(self) -> bool:
        return self.db_type == 'sqlite' and self.database_url in ('sqlite://', 'sqlite:///:memory:')

    def _get_engine_kwargs(self) -> Dict[str, Any]:
        """Database-specific engine configuration."""
        kwargs = {
            'echo': self.echo,
            'future': True,
        }

        if self.db_type == 'sqlite':
            kwargs.update({
                'poolclass': StaticPool,
                'connect_args': {
                    'check_same_thread': False,
                    'timeout': 30,
                },
            })

        elif self.db_type in ['mysql', 'postgresql']:
            kwargs.update({
                'poolclass': QueuePool,
                'pool_size': int(os.getenv('DB_POOL_SIZE', '10')),
                'max_overflow': int(os.getenv('DB_MAX_OVERFLOW', '20')),
                'pool_timeout': int(os.getenv('DB_POOL_TIMEOUT', '30')),
                'pool_recycle': int(os.getenv('DB_POOL_RECYCLE', '3600')),
                'pool_pre_ping': True,
            })

        return kwargs

    def initialize(self) -> None:
        """
        Initialize database engine and session factory.

        Raises:
            StoreUnavailableError: If database connection fails
        """
        if self._is_initialized:
            return

        try:
            self.engine = create_engine(self.database_url, **self.engine_kwargs)
            self._setup_event_listeners()

            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine,
                expire_on_commit=False
            )

            self._is_initialized = True
            logger.info(f"Database engine initialized successfully ({self.db_type})")

        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise StoreUnavailableError(f"Database initialization failed: {e}") from e

    def _setup_event_listeners(self) -> None:
        """Set up SQLAlchemy event listeners for connection management."""

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Configure SQLite-specific settings."""
            if self.db_type == 'sqlite':
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                if not self.is_memory_database:
                    cursor.execute("PRAGMA journal_mode=WAL")
                cursor.close()

    def create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        if not self._is_initialized:
            self.initialize()

        try:
            create_all_tables(self.engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create tables: {e}")
            raise StoreUnavailableError(f"Table creation failed: {e}") from e

    def get_session(self) -> Session:
        """Get a new database session."""
        if not self._is_initialized:
            self.initialize()
        return self.SessionLocal()

    @contextmanager
    def get_session_context(self):
        """
        Session scope: commit on success, rollback on any error.

        Integrity violations are re-raised unchanged for the caller to map
        to a business outcome; every other driver error becomes
        StoreUnavailableError.

        Usage:
            with db_config.get_session_context() as session:
                ...
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise StoreUnavailableError(f"Store operation failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def test_connection(self) -> bool:
        """Check database connectivity."""
        try:
            if not self._is_initialized:
                self.initialize()

            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, StoreUnavailableError) as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        """Connection details for monitoring (credentials stripped)."""
        return {
            'database_type': self.db_type,
            'database_url': self.database_url.split('@')[-1] if '@' in self.database_url else self.database_url,
            'is_initialized': self._is_initialized,
            'echo_enabled': self.echo,
        }

    def close(self) -> None:
        """Dispose of the engine and its pool."""
        if self.engine:
            self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.SessionLocal = None
        self._is_initialized = False
