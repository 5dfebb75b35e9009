# listingsync/adapters/repos/sync_runs.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.types import RunStatus
from ...models import SyncRun


class SyncRunRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def last_run(self, source: str, status: RunStatus | None = None) -> SyncRun | None:
        """
        Most recent run for a source. With status=completed this is the
        "last sync" time shown per platform.
        """
        q = select(SyncRun).where(SyncRun.source == source)
        if status is not None:
            q = q.where(SyncRun.status == status)
        q = q.order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(1)
        return (await self.session.execute(q)).scalars().first()

    async def recent(self, limit: int = 20) -> list[SyncRun]:
        q = select(SyncRun).order_by(SyncRun.id.desc()).limit(limit)
        return list((await self.session.execute(q)).scalars().all())
