from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal

SourceName = Literal["domain", "realestate", "social"]
RunStatusName = Literal["running", "completed", "partially_failed", "failed"]


class FailedRecordOut(BaseModel):
    listingId: str
    error: str


class SyncSummaryOut(BaseModel):
    successCount: int = Field(..., ge=0)
    failedCount: int = Field(..., ge=0)
    failedRecords: list[FailedRecordOut] = []


class SyncResponse(BaseModel):
    source: str
    status: RunStatusName
    message: str
    summary: SyncSummaryOut | None = None
    reason: str | None = None
    ledger_path: str | None = None


class PlatformStatus(BaseModel):
    name: str
    label: str
    status: Literal["Connected", "Not Authorized"]
    last_sync: datetime | None = None
    last_run_status: RunStatusName | None = None


class StatusResponse(BaseModel):
    platforms: list[PlatformStatus]


class SyncRunOut(BaseModel):
    id: int
    source: str
    status: RunStatusName
    started_at: datetime
    finished_at: datetime | None = None
    success_count: int = 0
    failed_count: int = 0
    error: str | None = None


class RunsResponse(BaseModel):
    runs: list[SyncRunOut]


class LogsResponse(BaseModel):
    logs: list[str]


class OptionsResponse(BaseModel):
    source: str
    options: dict[str, list[str]]
