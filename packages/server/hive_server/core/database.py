"""
Database engine and units of work.

Every request runs in one ``session_scope``: it commits when the endpoint
returns and rolls back when it raises. Services only flush.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from hive_server.core.config import get_settings

settings = get_settings()
log = structlog.get_logger()


def _engine_options() -> dict:
    options = {"echo": settings.debug, "pool_pre_ping": True}
    if settings.database_url.startswith("postgresql"):
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
    return options


engine = create_async_engine(settings.database_url, **_engine_options())

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one unit of work per request."""
    async with session_scope() as session:
        yield session


async def init_db() -> None:
    """Create missing tables. Local seeding only; deployments run the Alembic migrations."""
    import hive_server.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    log.info("db.tables_ready", url=engine.url.render_as_string(hide_password=True))


async def close_db() -> None:
    await engine.dispose()
