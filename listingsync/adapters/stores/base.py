# listingsync/adapters/stores/base.py
from __future__ import annotations

from typing import Protocol

from ...domain.types import MappedRecord, RecordHandle


class RecordStore(Protocol):
    """
    Destination table keyed by a unique external id field.

    create/update raise RateLimited(retry_after_s) or StoreRejected(detail).
    """

    key_field: str

    async def find(self, key: str) -> RecordHandle | None: ...

    async def create(self, fields: MappedRecord) -> RecordHandle: ...

    async def update(self, handle: RecordHandle, fields: MappedRecord) -> None: ...
