"""
Database engine and session factory construction (SQLAlchemy async)

Engines and session factories are built explicitly and handed to the
components that need them; nothing here is created at import time.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """Create an async engine for the given URL (defaults to settings)."""
    url = database_url or settings.DATABASE_URL
    engine = create_async_engine(
        url,
        echo=settings.SQL_ECHO if echo is None else echo,
        poolclass=NullPool,
    )
    logger.debug(f"Created database engine for dialect {engine.dialect.name}")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to `engine`."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine):
    """Create all tables known to the ORM metadata."""
    from models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(engine: AsyncEngine):
    from models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


def dialect_insert(session):
    """
    `insert()` construct with ON CONFLICT support for the session's dialect.

    PostgreSQL and SQLite share the `on_conflict_do_update` /
    `on_conflict_do_nothing` API.
    """
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert
