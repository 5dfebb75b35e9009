# listingsync/adapters/stores/memory.py
from __future__ import annotations

from typing import Any

from ...domain.types import MappedRecord, RecordHandle


class InMemoryStore:
    """Process-local table for dry runs and tests. Reads are always consistent."""

    def __init__(self, key_field: str = "ListingID") -> None:
        self.key_field = key_field
        self.records: dict[RecordHandle, MappedRecord] = {}
        self.calls: list[tuple[str, Any]] = []
        self._seq = 0

    async def find(self, key: str) -> RecordHandle | None:
        self.calls.append(("find", key))
        for handle, fields in self.records.items():
            if str(fields.get(self.key_field)) == key:
                return handle
        return None

    async def create(self, fields: MappedRecord) -> RecordHandle:
        self.calls.append(("create", fields.get(self.key_field)))
        self._seq += 1
        handle = f"rec{self._seq:06d}"
        self.records[handle] = dict(fields)
        return handle

    async def update(self, handle: RecordHandle, fields: MappedRecord) -> None:
        self.calls.append(("update", fields.get(self.key_field)))
        self.records[handle].update(fields)

    async def distinct_values(self, fields: list[str]) -> dict[str, list[Any]]:
        out: dict[str, set[Any]] = {f: set() for f in fields}
        for rec in self.records.values():
            for f in fields:
                v = rec.get(f)
                if v and isinstance(v, (str, int, float)):
                    out[f].add(v)
        return {f: sorted(vals, key=str) for f, vals in out.items()}

    def by_key(self) -> dict[str, MappedRecord]:
        return {str(r.get(self.key_field)): r for r in self.records.values()}
