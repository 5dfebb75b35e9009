# listingsync/service_layer/use_cases/sync.py
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...config import settings
from ...domain.errors import (
    AuthExpired,
    ConfigurationError,
    SyncFailed,
    UpstreamError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from ...domain.join import join_and_map
from ...domain.types import (
    JoinMode,
    LogCallback,
    LogLevel,
    PerformanceMetrics,
    ProgressCallback,
    RawListing,
    RunStatus,
    SyncRunResult,
)
from ..jobruns import fail_run, finish_run, start_run
from ..ledger import FailedRecordsLedger
from ..progress import ProgressTracker
from ..reconcile import Reconciler, Sleep
from ..run_log import emit
from ..sources import SourcePipeline, build_pipeline

log = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    One run for one source:

      1) fetch listings        (fatal when empty or unreachable)
      2) fetch performance     (per listing, failures leave a gap)
      3) join + map            (fatal when nothing survives)
      4) push                  (Reconciler, serialized)
      5) finalize              (completed | partially_failed)

    Each stage emits exactly one progress event before its work starts.
    Fatal conditions raise SyncFailed.
    """

    def __init__(
        self,
        pipeline: SourcePipeline,
        *,
        on_log: LogCallback | None = None,
        join_mode: JoinMode | str | None = None,
        ledger: FailedRecordsLedger | None = None,
        sleep: Sleep = asyncio.sleep,
        performance_concurrency: int | None = None,
        fetch_attempts: int | None = None,
        fetch_backoff_s: float | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.on_log = on_log
        self.join_mode = JoinMode(join_mode or settings.JOIN_MODE)
        self.ledger = ledger
        self.sleep = sleep
        self.performance_concurrency = max(1, performance_concurrency or settings.PERFORMANCE_CONCURRENCY)
        self.fetch_attempts = max(1, fetch_attempts or settings.LISTINGS_FETCH_ATTEMPTS)
        self.fetch_backoff_s = settings.LISTINGS_FETCH_BACKOFF_S if fetch_backoff_s is None else fetch_backoff_s

    def _log(self, level: LogLevel, message: str) -> None:
        emit(self.on_log, level, message)

    def _fatal(self, reason: str) -> SyncFailed:
        self._log(LogLevel.error, reason)
        return SyncFailed(reason)

    # -------------------------
    # Stage 1
    # -------------------------
    async def _fetch_listings(self) -> list[RawListing]:
        """
        Retry policy for the bulk listing call:
          - AuthExpired          -> drop the cached credential, retry
          - UpstreamUnavailable  -> back off, retry
          - 5xx rejection        -> back off, retry
          - 4xx, bad payload     -> fatal now
        """
        adapter = self.pipeline.adapter
        last_err: Exception | None = None

        for attempt in range(1, self.fetch_attempts + 1):
            backoff = True
            try:
                return await adapter.fetch_listings()
            except AuthExpired as e:
                last_err = e
                backoff = False
                self._log(LogLevel.warn, f"Credential rejected by {self.pipeline.label}, refreshing")
                if adapter.credentials is not None:
                    adapter.credentials.invalidate()
            except UpstreamRejected as e:
                if e.status < 500:
                    raise self._fatal(f"Listing fetch rejected by {self.pipeline.label}: {e}") from e
                last_err = e
            except UpstreamUnavailable as e:
                last_err = e
            except (UpstreamError, ConfigurationError, ValueError) as e:
                raise self._fatal(f"Listing fetch failed for {self.pipeline.label}: {e}") from e

            self._log(
                LogLevel.warn,
                f"Listing fetch attempt {attempt}/{self.fetch_attempts} failed: {last_err}",
            )
            if backoff and attempt < self.fetch_attempts and self.fetch_backoff_s > 0:
                await self.sleep(self.fetch_backoff_s * attempt)

        raise self._fatal(
            f"Listing fetch failed after {self.fetch_attempts} attempts: {last_err}"
        ) from last_err

    # -------------------------
    # Stage 2
    # -------------------------
    async def _fetch_performance(self, listings: list[RawListing]) -> dict[str, PerformanceMetrics]:
        adapter = self.pipeline.adapter
        mapper = self.pipeline.mapper

        ids: list[str] = []
        for raw in listings:
            if not isinstance(raw, dict):
                continue
            listing_id = mapper.listing_id(raw)
            if listing_id and listing_id not in ids:
                ids.append(listing_id)

        results: dict[str, PerformanceMetrics | None] = {}

        if self.performance_concurrency <= 1:
            for listing_id in ids:
                results[listing_id] = await adapter.fetch_performance(listing_id)
        else:
            sem = asyncio.Semaphore(self.performance_concurrency)

            async def _one(listing_id: str) -> None:
                async with sem:
                    results[listing_id] = await adapter.fetch_performance(listing_id)

            await asyncio.gather(*(_one(i) for i in ids))

        out: dict[str, PerformanceMetrics] = {}
        for listing_id in ids:
            perf = results.get(listing_id)
            if perf is None:
                self._log(LogLevel.warn, f"No performance data for ListingID {listing_id}")
                continue
            out[listing_id] = perf
        return out

    async def run(self, on_progress: ProgressCallback | None = None) -> SyncRunResult:
        p = self.pipeline
        progress = ProgressTracker(on_progress)

        progress.advance(f"Fetching listings from {p.label}")
        listings = await self._fetch_listings()
        if not listings:
            raise self._fatal(f"No listings returned from {p.label}")
        self._log(LogLevel.info, f"Fetched {len(listings)} listings from {p.label}")

        progress.advance("Fetching performance data")
        performance_by_id: dict[str, PerformanceMetrics] = {}
        if p.adapter.requires_performance:
            performance_by_id = await self._fetch_performance(listings)
            self._log(LogLevel.info, f"Fetched performance data for {len(performance_by_id)} listings")

        progress.advance("Transforming records")
        joined = join_and_map(
            listings,
            performance_by_id,
            p.mapper,
            mode=self.join_mode,
            requires_performance=p.adapter.requires_performance,
            warn=lambda msg: self._log(LogLevel.warn, msg),
        )
        if joined.dropped:
            self._log(LogLevel.info, f"Dropped {joined.dropped} listings: {dict(joined.drop_reasons)}")
        if not joined.records:
            raise self._fatal("No valid records to push after transformation")

        progress.advance(f"Pushing {len(joined.records)} records")
        reconciler = Reconciler(
            p.store,
            source=p.name,
            on_log=self.on_log,
            ledger=self.ledger,
            sleep=self.sleep,
        )
        summary = await reconciler.upsert_batch(joined.records)

        progress.advance("Finalizing")
        status = RunStatus.partially_failed if summary.failed_count else RunStatus.completed
        if status == RunStatus.completed:
            self._log(LogLevel.info, f"Sync completed: {summary.success_count} records upserted")
        else:
            self._log(
                LogLevel.error,
                f"Sync partially failed: {summary.success_count} succeeded, {summary.failed_count} failed",
            )

        return SyncRunResult(source=p.name, status=status, summary=summary, ledger_path=summary.ledger_path)


async def execute_sync(
    source: str,
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    pipeline: SourcePipeline | None = None,
    build: Callable[..., SourcePipeline] = build_pipeline,
    on_progress: ProgressCallback | None = None,
    on_log: LogCallback | None = None,
    join_mode: JoinMode | str | None = None,
    dry_run: bool = False,
    ledger: FailedRecordsLedger | None = None,
    sleep: Sleep = asyncio.sleep,
) -> SyncRunResult:
    """
    Run a sync and record it in run history. Always returns a result:
    fatal conditions come back as status=failed with a reason.
    """
    if session_maker is None:
        from ...db import AsyncSessionLocal

        session_maker = AsyncSessionLocal

    async with session_maker() as session:
        run = await start_run(session, source)
        await session.commit()

        try:
            if pipeline is None:
                pipeline = build(source, dry_run=dry_run)
            orchestrator = SyncOrchestrator(
                pipeline,
                on_log=on_log,
                join_mode=join_mode,
                ledger=ledger if ledger is not None else FailedRecordsLedger.from_settings(),
                sleep=sleep,
            )
            result = await orchestrator.run(on_progress)
        except ConfigurationError as e:
            reason = f"{source} is not configured: {e}"
            emit(on_log, LogLevel.error, reason)
            await fail_run(session, run, reason)
            await session.commit()
            return SyncRunResult(source=source, status=RunStatus.failed, reason=reason)
        except SyncFailed as e:
            await fail_run(session, run, e.reason)
            await session.commit()
            return SyncRunResult(source=source, status=RunStatus.failed, reason=e.reason)
        except Exception as e:
            # The history row must never stay "running".
            log.exception("Sync for %s crashed", source)
            reason = f"Unexpected error during {source} sync: {e!r}"
            emit(on_log, LogLevel.error, reason)
            await fail_run(session, run, reason)
            await session.commit()
            return SyncRunResult(source=source, status=RunStatus.failed, reason=reason)

        assert result.summary is not None
        await finish_run(session, run, result.status, result.summary)
        await session.commit()
        return result

