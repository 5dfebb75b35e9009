# listingsync/entrypoints/api/routers/sync.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..deps import log_registry, progress_registry, require_api_key, session_maker_dep
from ....domain.types import JoinMode, RunStatus
from ....schemas import SyncResponse, SyncSummaryOut
from ....service_layer.progress import BroadcastRegistry, broadcast_progress
from ....service_layer.run_log import RunLogger
from ....service_layer.sources import SOURCES
from ....service_layer.use_cases.sync import execute_sync

router = APIRouter(tags=["sync"])

_HTTP_STATUS = {
    RunStatus.completed: 200,
    RunStatus.partially_failed: 207,
    RunStatus.failed: 502,
}

_MESSAGES = {
    RunStatus.completed: "Sync completed successfully",
    RunStatus.partially_failed: "Sync completed with failed records",
    RunStatus.failed: "Sync failed",
}


@router.post("/sync/{source}", response_model=SyncResponse, dependencies=[Depends(require_api_key)])
async def sync_source(
    source: str,
    request: Request,
    response: Response,
    join_mode: JoinMode | None = Query(None),
    dry_run: bool = Query(False),
    session_maker: async_sessionmaker[AsyncSession] = Depends(session_maker_dep),
    progress: BroadcastRegistry = Depends(progress_registry),
    logs: BroadcastRegistry = Depends(log_registry),
) -> SyncResponse:
    if source not in SOURCES:
        raise HTTPException(status_code=404, detail=f"Unknown source {source!r}")

    result = await execute_sync(
        source,
        session_maker=session_maker,
        build=request.app.state.pipeline_factory,
        on_progress=broadcast_progress(progress, source),
        on_log=RunLogger(source, broadcast=logs),
        join_mode=join_mode,
        dry_run=dry_run,
    )

    response.status_code = _HTTP_STATUS[result.status]
    return SyncResponse(
        source=source,
        status=result.status.value,
        message=_MESSAGES[result.status],
        summary=SyncSummaryOut(**result.summary.as_dict()) if result.summary else None,
        reason=result.reason,
        ledger_path=result.ledger_path,
    )
