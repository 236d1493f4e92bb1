"""
Database configuration and session management for the SQL key/value storage.
"""

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from loguru import logger


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def create_engine(database_url: str):
    """Create an async engine; pool settings only apply to server databases."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False)
    return create_async_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,  # 1 hour
        echo=False,  # Set to True for SQL query logging
    )


def create_session_factory(engine):
    """Create a session factory bound to the given engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine):
    """Initialize the database by creating all tables."""
    # Import models so they are registered on the metadata
    from wallbox_bridge.models import schema  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")


async def close_db(engine):
    """Close the database engine."""
    await engine.dispose()
    logger.info("Database connection closed")
