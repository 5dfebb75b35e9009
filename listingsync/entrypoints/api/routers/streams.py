# listingsync/entrypoints/api/routers/streams.py
from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..deps import log_registry, progress_registry
from ....service_layer.progress import BroadcastRegistry

router = APIRouter(tags=["streams"])

# Idle streams send a comment line so proxies keep the connection open.
_KEEPALIVE_S = 15.0


async def _sse(request: Request, registry: BroadcastRegistry) -> AsyncIterator[str]:
    q = registry.subscribe()
    try:
        yield ": connected\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                payload = await asyncio.wait_for(q.get(), timeout=_KEEPALIVE_S)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield f"data: {json.dumps(payload, default=str)}\n\n"
    finally:
        registry.unsubscribe(q)


def _stream(request: Request, registry: BroadcastRegistry) -> StreamingResponse:
    return StreamingResponse(
        _sse(request, registry),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/progress/stream")
async def progress_stream(request: Request, registry: BroadcastRegistry = Depends(progress_registry)):
    return _stream(request, registry)


@router.get("/logs/stream")
async def logs_stream(request: Request, registry: BroadcastRegistry = Depends(log_registry)):
    return _stream(request, registry)
