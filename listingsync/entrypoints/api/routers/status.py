# listingsync/entrypoints/api/routers/status.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..deps import session_maker_dep
from ....adapters.repos.sync_runs import SyncRunRepository
from ....domain.types import RunStatus
from ....schemas import LogsResponse, PlatformStatus, RunsResponse, StatusResponse, SyncRunOut
from ....service_layer.run_log import read_log_lines
from ....service_layer.sources import LABELS, SOURCES, credentials_configured

router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse)
async def status(
    session_maker: async_sessionmaker[AsyncSession] = Depends(session_maker_dep),
) -> StatusResponse:
    platforms: list[PlatformStatus] = []
    async with session_maker() as session:
        repo = SyncRunRepository(session)
        for source in SOURCES:
            last_ok = await repo.last_run(source, RunStatus.completed)
            latest = await repo.last_run(source)
            platforms.append(
                PlatformStatus(
                    name=source,
                    label=LABELS[source],
                    status="Connected" if credentials_configured(source) else "Not Authorized",
                    last_sync=(last_ok.finished_at or last_ok.started_at) if last_ok else None,
                    last_run_status=latest.status.value if latest else None,
                )
            )
    return StatusResponse(platforms=platforms)


@router.get("/runs", response_model=RunsResponse)
async def runs(
    limit: int = Query(20, ge=1, le=500),
    session_maker: async_sessionmaker[AsyncSession] = Depends(session_maker_dep),
) -> RunsResponse:
    async with session_maker() as session:
        rows = await SyncRunRepository(session).recent(limit)
    return RunsResponse(
        runs=[
            SyncRunOut(
                id=r.id,
                source=r.source,
                status=r.status.value,
                started_at=r.started_at,
                finished_at=r.finished_at,
                success_count=r.success_count,
                failed_count=r.failed_count,
                error=r.error,
            )
            for r in rows
        ]
    )


@router.get("/logs", response_model=LogsResponse)
def logs(limit: int | None = Query(None, ge=1, le=10_000)) -> LogsResponse:
    return LogsResponse(logs=read_log_lines(limit=limit))
