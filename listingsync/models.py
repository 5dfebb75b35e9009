# listingsync/models.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .domain.types import RunStatus


class Base(DeclarativeBase):
    pass


# Run history doubles as the "last sync" source for the status endpoint.
SyncRunStatus = RunStatus


class SyncRun(Base):
    """
    One sync run per row.
    service_layer/jobruns.py writes it, adapters/repos/sync_runs.py reads it.
    """
    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source: Mapped[str] = mapped_column(String(40), index=True)

    status: Mapped[SyncRunStatus] = mapped_column(Enum(SyncRunStatus), default=SyncRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    success_count: Mapped[int] = mapped_column(Integer, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, default=0)

    # {"successCount": ..., "failedCount": ..., "failedRecords": [...]}
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # fatal reason
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
