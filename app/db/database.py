"""
Database engine and sessions for the reviews store.

PostgreSQL through asyncpg in deployment; the tests point DATABASE_URL at a
SQLite file through aiosqlite.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from app.core.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if settings.DEBUG or url.startswith("sqlite"):
        # SQLite connections must not outlive the event loop that opened them
        options["poolclass"] = NullPool
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Objects stay readable after commit: handlers serialize reviews they just saved
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

Base = declarative_base()


def _register_models() -> None:
    # metadata only knows the tables of imported models
    from app.models import product, review  # noqa: F401


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session that commits when the block succeeds and rolls back when it raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Create missing tables. Called from the application lifespan and scripts.

    Schema changes to existing tables need a migration; create_all never
    alters a table that already exists.
    """
    _register_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db() -> None:
    """Drop every table. Used by the tests and `seed_catalog.py --reset`."""
    _register_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def close_db() -> None:
    await engine.dispose()
