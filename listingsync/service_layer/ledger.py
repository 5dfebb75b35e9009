# listingsync/service_layer/ledger.py
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Iterable

from ..config import settings
from ..domain.types import FailedRecord

log = logging.getLogger(__name__)


class FailedRecordsLedger:
    """
    Writes records that failed both upsert attempts to
    {directory}/{source}_failed_{UTC ts}.json for manual reprocessing.
    Nothing reads these back automatically. Keep data/ gitignored.
    """

    def __init__(self, directory: str | None = None) -> None:
        self.directory = directory or settings.LEDGER_DIR

    @classmethod
    def from_settings(cls) -> "FailedRecordsLedger":
        return cls(settings.LEDGER_DIR)

    def write(self, source: str, failures: Iterable[FailedRecord]) -> str | None:
        entries = [
            {"listingId": fr.listing_id, "fields": fr.fields, "error": fr.error}
            for fr in failures
        ]
        if not entries:
            return None

        os.makedirs(self.directory, exist_ok=True)
        ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        path = os.path.join(self.directory, f"{source}_failed_{ts}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2, default=str)

        log.warning("Wrote %d failed records to %s", len(entries), path)
        return path

