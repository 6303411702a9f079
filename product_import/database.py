"""
Database Module for the Product Importer

This module handles engine creation, connection management, and session handling.
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .models import Base
from .config import Config

# Configure logging
logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages database connections and sessions."""

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        """Initialize database manager."""
        self.database_url = database_url or Config.DATABASE_URL
        self.echo = Config.DATABASE_ECHO if echo is None else echo
        self.engine = None
        self.session_factory = None

    def initialize(self, create_tables: bool = False) -> None:
        """Create the engine and session factory, optionally creating the schema."""
        try:
            if self.database_url.startswith('sqlite'):
                in_memory = self.database_url in ('sqlite://', 'sqlite:///:memory:')
                if not in_memory:
                    db_dir = os.path.dirname(self.database_url.replace('sqlite:///', ''))
                    if db_dir and not os.path.exists(db_dir):
                        os.makedirs(db_dir, exist_ok=True)
                        logger.info(f"Created database directory: {db_dir}")

                kwargs = {'connect_args': {'check_same_thread': False, 'timeout': 30}}
                if in_memory:
                    # one shared connection, otherwise every session sees its own empty database
                    kwargs['poolclass'] = StaticPool
                self.engine = create_engine(self.database_url, echo=self.echo, **kwargs)

                @event.listens_for(self.engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA synchronous=NORMAL")
                    cursor.execute("PRAGMA temp_store=MEMORY")
                    cursor.close()
            else:
                # MySQL / PostgreSQL
                self.engine = create_engine(
                    self.database_url,
                    echo=self.echo,
                    pool_size=5,
                    max_overflow=10,
                    pool_pre_ping=True,
                    pool_recycle=3600,
                )

            # Sessions are committed explicitly per batch
            self.session_factory = sessionmaker(
                bind=self.engine,
                autoflush=False,
                expire_on_commit=False
            )

            with self.session_scope() as session:
                session.execute(text("SELECT 1")).scalar()

            if create_tables:
                self.create_tables()

            safe_url = self.database_url
            if '@' in safe_url:
                safe_url = safe_url.split('://')[0] + '://***@' + safe_url.split('@')[1]
            logger.info(f"Database initialized successfully: {safe_url}")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def create_tables(self) -> None:
        """Create all catalog tables."""
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create database tables: {e}")
            raise

    def get_session(self) -> Session:
        """Get a new database session."""
        if not self.session_factory:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Close database connections."""
        if self.engine:
            self.engine.dispose()
        logger.info("Database connections closed")
