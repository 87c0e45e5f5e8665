"""Async SQLAlchemy engine and session factory."""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from blockflow.config import config

engine = create_async_engine(config.database_url, echo=config.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to an explicit engine (tests, CLI overrides)."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: AsyncEngine = None):
    """Create all tables. Called at startup and by `blockflow setup-db`."""
    from blockflow.db.models import Base
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
