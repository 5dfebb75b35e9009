# listingsync/entrypoints/fastapi_app.py
from __future__ import annotations

from typing import Any, Callable

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db import AsyncSessionLocal, init_db
from ..service_layer.progress import BroadcastRegistry
from ..service_layer.sources import SourcePipeline, build_pipeline, build_store
from .api.routers import health, options, status, streams, sync


def create_app(
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    pipeline_factory: Callable[..., SourcePipeline] | None = None,
    store_factory: Callable[[str], Any] | None = None,
    create_tables: bool = True,
) -> FastAPI:
    app = FastAPI(title="Listing Sync")

    # Process-wide fan-out; one registry per stream.
    app.state.progress = BroadcastRegistry("progress")
    app.state.logs = BroadcastRegistry("logs")

    app.state.session_maker = session_maker or AsyncSessionLocal
    app.state.pipeline_factory = pipeline_factory or build_pipeline
    app.state.store_factory = store_factory or build_store

    if create_tables:
        @app.on_event("startup")
        async def _startup() -> None:
            # Single place where DB tables are created in dev.
            await init_db(app.state.session_maker.kw.get("bind"))

    app.include_router(health.router)
    app.include_router(sync.router)
    app.include_router(status.router)
    app.include_router(streams.router)
    app.include_router(options.router)

    return app
