# listingsync/adapters/sources/domain_com.py
from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import settings
from ...domain.errors import ConfigurationError, UpstreamError
from ...domain.types import PerformanceMetrics, RawListing
from ..clients.credentials import ClientCredentialsProvider, CredentialProvider, StaticTokenProvider
from ..clients.http_resilience import checked_request, open_client

log = logging.getLogger(__name__)


def parse_agencies(raw: str | None) -> list[tuple[str, int]]:
    """'LNS:2842, UNS:36084' -> [("LNS", 2842), ("UNS", 36084)]"""
    out: list[tuple[str, int]] = []
    for chunk in (raw or "").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, sep, agency_id = chunk.rpartition(":")
        if not sep or not name.strip():
            raise ConfigurationError(f"bad DOMAIN_AGENCIES entry {chunk!r}, expected Name:id")
        try:
            out.append((name.strip(), int(agency_id)))
        except ValueError as e:
            raise ConfigurationError(f"bad agency id in DOMAIN_AGENCIES entry {chunk!r}") from e
    return out


def _rows(data: Any, key: str) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get(key)
    if isinstance(data, list):
        return [x for x in data if isinstance(x, dict)]
    return []


class DomainSource:
    """
    Domain.com.au listings API (JSON).

    Default mode reads GET {base}/listings. When agencies are given, listings are
    collected per agency from GET {base}/agencies/{id}/listings and tagged with
    the agency name.
    """

    name = "domain"
    label = "Domain.com.au"
    requires_performance = True

    def __init__(
        self,
        *,
        base_url: str,
        credentials: CredentialProvider,
        agencies: list[tuple[str, int]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.agencies = agencies or []
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "DomainSource":
        if settings.DOMAIN_CLIENT_ID and settings.DOMAIN_CLIENT_SECRET:
            creds: CredentialProvider = ClientCredentialsProvider(
                token_url=settings.DOMAIN_AUTH_ENDPOINT,
                client_id=settings.DOMAIN_CLIENT_ID,
                client_secret=settings.DOMAIN_CLIENT_SECRET,
            )
        elif settings.DOMAIN_API_KEY:
            creds = StaticTokenProvider(settings.DOMAIN_API_KEY)
        else:
            raise ConfigurationError("Domain API key is missing. Set DOMAIN_API_KEY or DOMAIN_CLIENT_ID/SECRET.")
        return cls(
            base_url=settings.DOMAIN_API_BASE_URL,
            credentials=creds,
            agencies=parse_agencies(settings.DOMAIN_AGENCIES),
        )

    async def _headers(self) -> dict[str, str]:
        token = await self.credentials.get_token()
        return {"accept": "application/json", "Authorization": f"Bearer {token}"}

    async def fetch_listings(self) -> list[RawListing]:
        headers = await self._headers()
        async with open_client(self._transport) as client:
            if not self.agencies:
                resp = await checked_request(client, "GET", f"{self.base_url}/listings", headers=headers)
                return _rows(resp.json(), "listings")

            out: list[RawListing] = []
            for agency_name, agency_id in self.agencies:
                resp = await checked_request(
                    client,
                    "GET",
                    f"{self.base_url}/agencies/{agency_id}/listings",
                    headers=headers,
                    params={"pageSize": 1000},
                )
                rows = _rows(resp.json(), "listings")
                log.info("Fetched %d listings for agency %s", len(rows), agency_name)
                for row in rows:
                    row = dict(row)
                    row.setdefault("agencyName", agency_name)
                    out.append(row)
            return out

    async def fetch_performance(self, listing_id: str) -> PerformanceMetrics | None:
        url = f"{self.base_url}/listings/{listing_id}/performance"
        try:
            headers = await self._headers()
            async with open_client(self._transport) as client:
                resp = await checked_request(client, "GET", url, headers=headers)
            data = resp.json()
        except (UpstreamError, ValueError) as e:
            log.error("Error fetching performance data for listing %s: %s", listing_id, e)
            return None

        if not isinstance(data, dict):
            log.error("Unexpected performance payload for listing %s: %r", listing_id, type(data).__name__)
            return None

        # The statistics payload doesn't always echo the id back; fill it from the request
        # only when it carries none, so a mismatched echo still fails the join.
        if data.get("listingId") is None and data.get("id") is None:
            data["listingId"] = listing_id
        return data
