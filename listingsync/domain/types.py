# listingsync/domain/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

# Source payloads stay plain dicts; each adapter documents its own shape.
RawListing = dict[str, Any]
PerformanceMetrics = dict[str, Any]

# Flat destination record. Always carries a non-empty "ListingID".
MappedRecord = dict[str, Any]

RecordHandle = str

LISTING_ID_FIELD = "ListingID"
TOTAL_STEPS = 5


class JoinMode(str, Enum):
    require_match = "require-match"
    left_join_with_defaults = "left-join-with-defaults"


class UpsertOutcome(str, Enum):
    created = "created"
    updated = "updated"
    failed = "failed"


class RunStatus(str, Enum):
    running = "running"
    completed = "completed"
    partially_failed = "partially_failed"
    failed = "failed"


class LogLevel(str, Enum):
    info = "info"
    warn = "warn"
    error = "error"


@dataclass(frozen=True)
class ProgressEvent:
    step: int
    total: int
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {"step": self.step, "total": self.total, "message": self.message}


@dataclass(frozen=True)
class UpsertResult:
    listing_id: str
    outcome: UpsertOutcome
    error: str | None = None


@dataclass(frozen=True)
class FailedRecord:
    listing_id: str
    error: str
    fields: MappedRecord = field(default_factory=dict)


@dataclass
class SyncSummary:
    success_count: int = 0
    failed_count: int = 0
    failed_records: list[FailedRecord] = field(default_factory=list)
    outcomes: list[UpsertResult] = field(default_factory=list)
    ledger_path: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "successCount": self.success_count,
            "failedCount": self.failed_count,
            "failedRecords": [{"listingId": fr.listing_id, "error": fr.error} for fr in self.failed_records],
        }


@dataclass
class SyncRunResult:
    source: str
    status: RunStatus
    summary: SyncSummary | None = None
    reason: str | None = None
    ledger_path: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.completed


ProgressCallback = Callable[[ProgressEvent], None]
LogCallback = Callable[[LogLevel, str], None]
