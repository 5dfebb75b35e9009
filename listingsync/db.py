# listingsync/db.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .models import Base

engine: AsyncEngine = create_async_engine(settings.SYNC_DB_URL, echo=False, future=True)

# Canonical async session factory; the app and CLI default to it.
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Single place where tables are created (app startup, CLI).
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
