# listingsync/adapters/sources/base.py
from __future__ import annotations

from typing import Protocol

from ...domain.types import PerformanceMetrics, RawListing
from ..clients.credentials import CredentialProvider


class SourceAdapter(Protocol):
    """
    One external portal.

    fetch_listings raises UpstreamUnavailable / UpstreamRejected / AuthExpired and
    never retries; the orchestrator owns that policy. fetch_performance never
    raises: failures are logged and come back as None.
    """

    name: str
    requires_performance: bool
    credentials: CredentialProvider | None

    async def fetch_listings(self) -> list[RawListing]:
        raise NotImplementedError

    async def fetch_performance(self, listing_id: str) -> PerformanceMetrics | None:
        raise NotImplementedError
