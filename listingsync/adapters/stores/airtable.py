# listingsync/adapters/stores/airtable.py
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ...config import settings
from ...domain.errors import ConfigurationError, RateLimited, StoreRejected
from ...domain.types import MappedRecord, RecordHandle
from ..clients.http_resilience import open_client, parse_retry_after

log = logging.getLogger(__name__)


def formula_string(value: str) -> str:
    """Quote a value as an Airtable formula string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def key_filter_formula(key_field: str, value: str) -> str:
    return "{" + key_field + "} = " + formula_string(value)


class AirtableStore:
    """
    One Airtable table, upserted by a unique key field.

    - find:   filterByFormula exact match, first record only
    - create: POST {"records": [{"fields": ...}]}
    - update: PATCH /{record_id} {"fields": ...}
    429 -> RateLimited(Retry-After), every other failure -> StoreRejected.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        base_id: str | None,
        table: str,
        key_field: str = "ListingID",
        base_url: str = "https://api.airtable.com/v0",
        typecast: bool = True,
        default_retry_after_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not (api_key and base_id):
            raise ConfigurationError("AIRTABLE_API_KEY and AIRTABLE_BASE_ID must be set")
        self._api_key = api_key
        self.table = table
        self.key_field = key_field
        self.typecast = typecast
        self.default_retry_after_s = default_retry_after_s
        self._url = f"{base_url.rstrip('/')}/{base_id}/{quote(table, safe='')}"
        self._transport = transport

    @classmethod
    def from_settings(cls, table: str) -> "AirtableStore":
        return cls(
            api_key=settings.AIRTABLE_API_KEY,
            base_id=settings.AIRTABLE_BASE_ID,
            table=table,
            key_field=settings.AIRTABLE_KEY_FIELD,
            base_url=settings.AIRTABLE_BASE_URL,
            typecast=settings.AIRTABLE_TYPECAST,
            default_retry_after_s=settings.STORE_RATE_LIMIT_DEFAULT_S,
        )

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Any | None = None,
        json: Any | None = None,
    ) -> dict[str, Any]:
        try:
            async with open_client(self._transport) as client:
                resp = await client.request(method, url, headers=self._headers(), params=params, json=json)
        except httpx.RequestError as e:
            raise StoreRejected(f"no usable response from Airtable ({self.table}): {e!r}") from e

        if resp.status_code == 429:
            raise RateLimited(parse_retry_after(resp.headers.get("Retry-After"), self.default_retry_after_s))
        if not (200 <= resp.status_code < 300):
            raise StoreRejected(f"Airtable {method} {self.table} failed {resp.status_code}: {resp.text[:500]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise StoreRejected(
                f"Airtable {method} {self.table} returned a non-JSON body: {resp.text[:200]!r}"
            ) from e
        return data if isinstance(data, dict) else {}

    def _first_record(self, data: dict[str, Any], op: str) -> dict[str, Any] | None:
        records = data.get("records") or []
        if not isinstance(records, list) or not records:
            return None
        first = records[0]
        if not isinstance(first, dict):
            raise StoreRejected(f"Airtable {op} in {self.table} returned a malformed record: {first!r}")
        return first

    async def find(self, key: str) -> RecordHandle | None:
        data = await self._request(
            "GET",
            self._url,
            params={"filterByFormula": key_filter_formula(self.key_field, key), "maxRecords": 1},
        )
        first = self._first_record(data, "find")
        if first is None:
            return None
        return first.get("id")

    async def create(self, fields: MappedRecord) -> RecordHandle:
        data = await self._request(
            "POST",
            self._url,
            json={"records": [{"fields": fields}], "typecast": self.typecast},
        )
        first = self._first_record(data, "create")
        if first is None or not first.get("id"):
            raise StoreRejected(f"Airtable create in {self.table} returned no record id")
        return first["id"]

    async def update(self, handle: RecordHandle, fields: MappedRecord) -> None:
        await self._request(
            "PATCH",
            f"{self._url}/{handle}",
            json={"fields": fields, "typecast": self.typecast},
        )

    async def distinct_values(self, fields: list[str]) -> dict[str, list[Any]]:
        """Unique values per field from the first page (single-select option discovery)."""
        query: list[tuple[str, Any]] = [("pageSize", 100)]
        for f in fields:
            query.append(("fields[]", f))
        data = await self._request("GET", self._url, params=query)

        seen: dict[str, set[Any]] = {f: set() for f in fields}
        for rec in data.get("records") or []:
            rec_fields = rec.get("fields") or {}
            for f in fields:
                v = rec_fields.get(f)
                if v and isinstance(v, (str, int, float)):
                    seen[f].add(v)
        return {f: sorted(vals, key=str) for f, vals in seen.items()}
