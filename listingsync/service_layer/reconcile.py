# listingsync/service_layer/reconcile.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from ..adapters.stores.base import RecordStore
from ..domain.errors import RateLimited, StoreError
from ..domain.parsing import listing_key
from ..domain.types import (
    LISTING_ID_FIELD,
    FailedRecord,
    LogCallback,
    LogLevel,
    MappedRecord,
    SyncSummary,
    UpsertOutcome,
    UpsertResult,
)
from .ledger import FailedRecordsLedger
from .run_log import emit

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

MIN_RATE_LIMIT_PAUSE_S = 1.0


class Reconciler:
    """
    Find-then-create-or-update, one record at a time, in input order.

    Pass 1 tries every record. Pass 2 retries each pass-1 failure exactly once,
    in the same order. A RateLimited error pauses max(1, retry_after) seconds
    before the next record of the current pass. Records that fail both passes
    go to the failed-records ledger.

    Upserts are never concurrent: the find/create pair is only safe when no other
    write for the same ListingID can interleave.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        source: str = "sync",
        on_log: LogCallback | None = None,
        ledger: FailedRecordsLedger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.store = store
        self.source = source
        self.on_log = on_log
        self.ledger = ledger
        self.sleep = sleep

    def _log(self, level: LogLevel, message: str) -> None:
        emit(self.on_log, level, message)

    async def upsert_one(self, record: MappedRecord) -> UpsertResult:
        """Single attempt. Any error comes back as a failed result, never raised."""
        listing_id = listing_key(record.get(LISTING_ID_FIELD))
        if not listing_id:
            return UpsertResult(listing_id="", outcome=UpsertOutcome.failed, error="missing ListingID")

        try:
            handle = await self.store.find(listing_id)
            if handle:
                await self.store.update(handle, record)
                self._log(LogLevel.info, f"Updated ListingID {listing_id}")
                return UpsertResult(listing_id=listing_id, outcome=UpsertOutcome.updated)

            await self.store.create(record)
            self._log(LogLevel.info, f"Created ListingID {listing_id}")
            return UpsertResult(listing_id=listing_id, outcome=UpsertOutcome.created)

        except RateLimited as e:
            pause = max(MIN_RATE_LIMIT_PAUSE_S, float(e.retry_after_s))
            self._log(LogLevel.warn, f"Rate limited on ListingID {listing_id}, pausing {pause:g}s")
            await self.sleep(pause)
            return UpsertResult(listing_id=listing_id, outcome=UpsertOutcome.failed, error=str(e))

        except StoreError as e:
            self._log(LogLevel.error, f"Error upserting ListingID {listing_id}: {e}")
            return UpsertResult(listing_id=listing_id, outcome=UpsertOutcome.failed, error=str(e))

        except Exception as e:
            # Any store bug stays with this record; the batch goes on.
            log.exception("Unexpected error upserting ListingID %s", listing_id)
            self._log(LogLevel.error, f"Unexpected error upserting ListingID {listing_id}: {e!r}")
            return UpsertResult(listing_id=listing_id, outcome=UpsertOutcome.failed, error=repr(e))

    async def upsert_batch(self, records: Sequence[MappedRecord]) -> SyncSummary:
        results: list[UpsertResult] = []
        retry_idx: list[int] = []

        # Pass 1
        for i, record in enumerate(records):
            res = await self.upsert_one(record)
            results.append(res)
            if res.outcome != UpsertOutcome.failed:
                continue
            if not res.listing_id:
                self._log(LogLevel.error, "Skipping record without ListingID")
                continue
            retry_idx.append(i)

        # Pass 2
        if retry_idx:
            self._log(LogLevel.info, f"Retrying {len(retry_idx)} failed records")
        for i in retry_idx:
            res = await self.upsert_one(records[i])
            if res.outcome == UpsertOutcome.failed:
                self._log(LogLevel.error, f"Retry failed for ListingID {res.listing_id}: {res.error}")
            else:
                self._log(LogLevel.info, f"Retry succeeded for ListingID {res.listing_id}")
            results[i] = res

        summary = SyncSummary(outcomes=results)
        for record, res in zip(records, results):
            if res.outcome == UpsertOutcome.failed:
                summary.failed_count += 1
                summary.failed_records.append(
                    FailedRecord(listing_id=res.listing_id, error=res.error or "unknown error", fields=dict(record))
                )
            else:
                summary.success_count += 1

        if summary.failed_records and self.ledger is not None:
            try:
                summary.ledger_path = self.ledger.write(self.source, summary.failed_records)
            except OSError as e:
                self._log(LogLevel.error, f"Could not write failed-records ledger: {e}")

        return summary
