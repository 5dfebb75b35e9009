# listingsync/entrypoints/api/deps.py
from __future__ import annotations

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...config import settings
from ...service_layer.progress import BroadcastRegistry


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if settings.API_KEY:
        if not x_api_key or x_api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


def session_maker_dep(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_maker


def progress_registry(request: Request) -> BroadcastRegistry:
    return request.app.state.progress


def log_registry(request: Request) -> BroadcastRegistry:
    return request.app.state.logs
