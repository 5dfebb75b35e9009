# listingsync/adapters/sources/social.py
from __future__ import annotations

import httpx

from ...config import settings
from ...domain.errors import ConfigurationError
from ...domain.types import PerformanceMetrics, RawListing
from ..clients.credentials import ClientCredentialsProvider, CredentialProvider, StaticTokenProvider
from ..clients.http_resilience import checked_request, open_client


class SocialInsightsSource:
    """Facebook / Instagram page insights. No per-item performance feed."""

    name = "social"
    label = "Facebook & Instagram"
    requires_performance = False

    def __init__(
        self,
        *,
        graph_url: str,
        credentials: CredentialProvider,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.graph_url = graph_url.rstrip("/")
        self.credentials = credentials
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "SocialInsightsSource":
        if settings.FB_ACCESS_TOKEN:
            creds: CredentialProvider = StaticTokenProvider(settings.FB_ACCESS_TOKEN)
        elif settings.FB_CLIENT_ID and settings.FB_CLIENT_SECRET:
            creds = ClientCredentialsProvider(
                token_url=settings.FB_AUTH_ENDPOINT,
                client_id=settings.FB_CLIENT_ID,
                client_secret=settings.FB_CLIENT_SECRET,
                basic_auth=False,
            )
        else:
            raise ConfigurationError("Set FB_ACCESS_TOKEN or FB_CLIENT_ID/FB_CLIENT_SECRET")
        return cls(graph_url=settings.FB_GRAPH_URL, credentials=creds)

    async def fetch_listings(self) -> list[RawListing]:
        token = await self.credentials.get_token()
        async with open_client(self._transport) as client:
            resp = await checked_request(
                client,
                "GET",
                f"{self.graph_url}/me/insights",
                headers={"Authorization": f"Bearer {token}", "accept": "application/json"},
            )
        data = resp.json()
        rows = data.get("data") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            return []
        return [x for x in rows if isinstance(x, dict)]

    async def fetch_performance(self, listing_id: str) -> PerformanceMetrics | None:
        return None
