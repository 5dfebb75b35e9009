# tests/fakes.py
from __future__ import annotations

from typing import Any

from listingsync.adapters.stores.memory import InMemoryStore
from listingsync.domain.errors import StoreRejected
from listingsync.domain.mappers.domain_com import DomainListingMapper
from listingsync.service_layer.sources import SourcePipeline


class FakeCredentials:
    def __init__(self) -> None:
        self.invalidated = 0

    async def get_token(self) -> str:
        return "tok"

    def invalidate(self) -> None:
        self.invalidated += 1


class FakeAdapter:
    """Scripted listing source. `listings` may hold exceptions to raise per attempt."""

    name = "domain"
    requires_performance = True

    def __init__(self, listings: list[Any], performance: dict[str, Any] | None = None) -> None:
        self._listings = list(listings)
        self.performance = performance or {}
        self.credentials = FakeCredentials()
        self.listing_calls = 0
        self.performance_calls: list[str] = []

    async def fetch_listings(self) -> list[dict[str, Any]]:
        self.listing_calls += 1
        outcome = self._listings.pop(0) if len(self._listings) > 1 else self._listings[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def fetch_performance(self, listing_id: str) -> dict[str, Any] | None:
        self.performance_calls.append(listing_id)
        return self.performance.get(listing_id)


class FlakyStore(InMemoryStore):
    """
    InMemoryStore whose create/update fail on demand.
    failures[listing_id] is a list of exceptions consumed one per write attempt.
    """

    def __init__(self, failures: dict[str, list[Exception]] | None = None) -> None:
        super().__init__()
        self.failures = failures or {}
        self.timeline: list[str] = []

    def _maybe_fail(self, fields: dict[str, Any]) -> None:
        key = str(fields.get(self.key_field))
        self.timeline.append(key)
        pending = self.failures.get(key)
        if pending:
            raise pending.pop(0)

    async def create(self, fields):
        self._maybe_fail(fields)
        return await super().create(fields)

    async def update(self, handle, fields):
        self._maybe_fail(fields)
        await super().update(handle, fields)


def always_fail(n: int = 5) -> list[Exception]:
    return [StoreRejected("INVALID_VALUE_FOR_COLUMN") for _ in range(n)]


def domain_listing(listing_id: str, **extra: Any) -> dict[str, Any]:
    row = {
        "listingId": listing_id,
        "address": f"{listing_id} Example St",
        "price": "$450,000",
        "bedrooms": 3,
        "bathrooms": 2,
        "status": "live",
    }
    row.update(extra)
    return row


def domain_performance(listing_id: str, views: int = 10) -> dict[str, Any]:
    return {"listingId": listing_id, "metrics": {"totalListingViews": views, "totalEnquiries": 1}}


def domain_pipeline(adapter: FakeAdapter, store: InMemoryStore) -> SourcePipeline:
    return SourcePipeline(
        name="domain",
        adapter=adapter,
        mapper=DomainListingMapper(),
        store=store,
        label="Domain.com.au",
    )
