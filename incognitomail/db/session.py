"""
Database Session Management

Provides:
- Async SQLAlchemy engine for the embedded SQLite store
- Session factory
- Schema creation
"""

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from incognitomail.config import Settings
from incognitomail.db.models import Base


logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for the configured database file.

    Args:
        settings: Application settings

    Returns:
        AsyncEngine: SQLAlchemy async engine
    """
    engine = create_async_engine(
        settings.database_url,
        echo=settings.DATABASE_ECHO,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """
    Create the session factory bound to an engine.

    Args:
        engine: Async engine

    Returns:
        async_sessionmaker: Session factory
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine):
    """
    Create all database tables that do not exist yet.

    Args:
        engine: Async engine
    """
    logger.info("Creating database tables...")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}", exc_info=True)
        raise
