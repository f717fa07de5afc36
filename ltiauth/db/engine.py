"""Async SQLAlchemy engine, session factory, and store management."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ltiauth.core.settings import DatabaseSettings
from ltiauth.db.base import BaseEntity
from ltiauth.db.models_store import StoredRecordEntity
from ltiauth.db.store import SQLStore

_registered = (StoredRecordEntity,)


class _EngineHolder:
    """Lazy singleton for the async session factory."""

    factory: async_sessionmaker[AsyncSession] | None = None


_holder = _EngineHolder()


def _get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Lazily create the async session factory."""
    if _holder.factory is None:
        db = DatabaseSettings()
        engine = create_async_engine(
            db.async_url,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
        )
        _holder.factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _holder.factory


def get_store() -> SQLStore:
    """FastAPI dependency returning the shared record store."""
    return SQLStore(_get_session_factory())


async def init_schema(engine: AsyncEngine) -> None:
    """Create the store tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)
