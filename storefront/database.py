"""
Database Connection Module
Handles PostgreSQL connection using SQLAlchemy async engine.

The engine is created from ``settings.database_url``; in development mode no
connection is ever opened because the mock collaborators never touch it.
"""

import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from storefront.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Create async engine (lazy: no connection until first use)
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,  # Logs all SQL queries in debug mode
    pool_size=5,
    max_overflow=10,
)

# Session factory - creates new database sessions
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Objects remain accessible after commit
)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def init_db():
    """
    Create all tables in database.
    Called once at application startup in production/staging modes.
    """
    # Import models so they register on Base.metadata
    from storefront import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Database tables created successfully")
