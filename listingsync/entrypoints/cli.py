# listingsync/entrypoints/cli.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from ..config import settings
from ..db import AsyncSessionLocal, init_db
from ..domain.types import JoinMode, ProgressEvent, RunStatus, SyncRunResult
from ..service_layer.run_log import RunLogger
from ..service_layer.sources import SOURCES
from ..service_layer.use_cases.sync import execute_sync

EXIT_CODES = {
    RunStatus.completed: 0,
    RunStatus.partially_failed: 2,
    RunStatus.failed: 1,
}


def _quiet_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )

    # Quiet the usual offenders
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)


def _print_progress(event: ProgressEvent) -> None:
    print(f"[{event.step}/{event.total}] {event.message}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="listing-sync", description="Sync portal listings into Airtable.")
    p.add_argument("source", choices=SOURCES)
    p.add_argument("--dry-run", action="store_true", help="push into an in-memory table instead of Airtable")
    p.add_argument(
        "--join-mode",
        choices=[m.value for m in JoinMode],
        default=None,
        help=f"default: {settings.JOIN_MODE}",
    )
    return p


async def _run(args: argparse.Namespace) -> SyncRunResult:
    await init_db()
    return await execute_sync(
        args.source,
        session_maker=AsyncSessionLocal,
        on_progress=_print_progress,
        on_log=RunLogger(args.source),
        join_mode=args.join_mode,
        dry_run=args.dry_run,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _quiet_logging()

    result = asyncio.run(_run(args))

    out = {"source": result.source, "status": result.status.value}
    if result.summary is not None:
        out.update(result.summary.as_dict())
    if result.reason:
        out["reason"] = result.reason
    if result.ledger_path:
        out["ledgerPath"] = result.ledger_path
    print(json.dumps(out, indent=2))

    return EXIT_CODES[result.status]


if __name__ == "__main__":
    sys.exit(main())
