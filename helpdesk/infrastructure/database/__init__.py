"""
Database Infrastructure
=======================

Async SQLAlchemy engine and session handling for the assistant tables.

PostgreSQL (asyncpg) in deployed environments; SQLite (aiosqlite) for
local runs and the test suite.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from helpdesk.config import settings


class Base(DeclarativeBase):
    """Declarative base shared by every ORM model in the service."""


_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_database() first.")
    return _engine


def _engine_options(database_url: str) -> dict:
    """Pool options per backend; SQLite has no connection pool to size."""
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.endswith("://"):
            # One shared connection, otherwise every session sees an empty database
            options["poolclass"] = StaticPool
        return options

    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create the engine and session factory. Called once from the app lifespan.

    Args:
        database_url: Overrides settings.database_url
    """
    global _engine, _session_maker

    # asyncpg expects ssl= rather than libpq's sslmode=
    url = (database_url or settings.database_url).replace("sslmode=", "ssl=")

    _engine = create_async_engine(url, echo=settings.debug, **_engine_options(url))
    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _engine


async def close_database() -> None:
    """Dispose of pooled connections on shutdown."""
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work: commit on clean exit, roll back on any exception.

    Used directly by background jobs:

        async with get_session_context() as session:
            repo = SQLAlchemyMemoryRepository(session)
    """
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed when the handler returns."""
    async with get_session_context() as session:
        yield session


async def create_tables() -> None:
    """
    Create missing assistant tables.

    Development convenience only; schema changes in production go
    through migrations.
    """
    # Registers the assistant tables on Base.metadata
    import helpdesk.assistant.infrastructure.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
