from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.types import RunStatus, SyncSummary
from ..models import SyncRun


async def start_run(session: AsyncSession, source: str) -> SyncRun:
    run = SyncRun(source=source, started_at=datetime.utcnow(), status=RunStatus.running)
    session.add(run)
    await session.flush()
    return run


async def finish_run(session: AsyncSession, run: SyncRun, status: RunStatus, summary: SyncSummary) -> None:
    run.status = status
    run.finished_at = datetime.utcnow()
    run.success_count = summary.success_count
    run.failed_count = summary.failed_count
    run.summary_json = json.dumps(summary.as_dict())
    run.error = None
    await session.flush()


async def fail_run(session: AsyncSession, run: SyncRun, reason: str) -> None:
    run.status = RunStatus.failed
    run.finished_at = datetime.utcnow()
    run.error = reason
    await session.flush()
