# listingsync/adapters/sources/realestate.py
from __future__ import annotations

import logging
from typing import Any

import httpx
from bs4 import BeautifulSoup, Tag

from ...config import settings
from ...domain.errors import ConfigurationError, UpstreamError
from ...domain.parsing import as_list
from ...domain.types import PerformanceMetrics, RawListing
from ..clients.credentials import ClientCredentialsProvider, CredentialProvider
from ..clients.http_resilience import checked_request, open_client

log = logging.getLogger(__name__)


def xml_to_dict(tag: Tag) -> Any:
    """
    Element -> plain Python value.

      <bedrooms>3</bedrooms>                 -> "3"
      <price display="yes">450000</price>    -> {"@display": "yes", "#text": "450000"}
      <underOffer value="no"/>               -> {"@value": "no"}
      repeated children                      -> list
    """
    attrs: dict[str, Any] = {
        f"@{k}": " ".join(v) if isinstance(v, list) else v for k, v in tag.attrs.items()
    }
    children = [c for c in tag.children if isinstance(c, Tag)]

    if not children:
        text = tag.get_text().strip()
        if attrs:
            if text:
                attrs["#text"] = text
            return attrs
        return text

    node: dict[str, Any] = dict(attrs)
    for child in children:
        value = xml_to_dict(child)
        existing = node.get(child.name)
        if existing is None and child.name not in node:
            node[child.name] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            node[child.name] = [existing, value]
    return node


def parse_property_list(xml_text: str, category: str = "residential") -> list[RawListing]:
    soup = BeautifulSoup(xml_text, "xml")
    root = soup.find("propertyList")
    if root is None:
        return []
    doc = xml_to_dict(root)
    if not isinstance(doc, dict):
        return []
    return [x for x in as_list(doc.get(category)) if isinstance(x, dict)]


class RealestateSource:
    """realestate.com.au: REAXML listing export + per-listing performance JSON."""

    name = "realestate"
    label = "Realestate.com.au"
    requires_performance = True

    def __init__(
        self,
        *,
        listings_url: str,
        performance_url: str,
        credentials: CredentialProvider,
        category: str = "residential",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.listings_url = listings_url
        self.performance_url = performance_url
        self.credentials = credentials
        self.category = category
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "RealestateSource":
        if not (settings.REALESTATE_API_URL and settings.REALESTATE_PERFORMANCE_API_URL):
            raise ConfigurationError("REALESTATE_API_URL and REALESTATE_PERFORMANCE_API_URL must be set")
        creds = ClientCredentialsProvider(
            token_url=settings.REALESTATE_AUTH_ENDPOINT,
            client_id=settings.REALESTATE_CLIENT_ID,
            client_secret=settings.REALESTATE_CLIENT_SECRET,
        )
        return cls(
            listings_url=settings.REALESTATE_API_URL,
            performance_url=settings.REALESTATE_PERFORMANCE_API_URL,
            credentials=creds,
        )

    async def fetch_listings(self) -> list[RawListing]:
        token = await self.credentials.get_token()
        headers = {"Authorization": f"Bearer {token}", "accept": "application/xml"}
        async with open_client(self._transport) as client:
            resp = await checked_request(client, "GET", self.listings_url, headers=headers)
        listings = parse_property_list(resp.text, self.category)
        log.info("Parsed %d %s listings from REAXML", len(listings), self.category)
        return listings

    async def fetch_performance(self, listing_id: str) -> PerformanceMetrics | None:
        url = f"{self.performance_url}{listing_id}"
        try:
            token = await self.credentials.get_token()
            async with open_client(self._transport) as client:
                resp = await checked_request(
                    client,
                    "GET",
                    url,
                    headers={"Authorization": f"Bearer {token}", "accept": "application/json"},
                )
            data = resp.json()
        except (UpstreamError, ValueError) as e:
            log.error("Error fetching performance data for Listing ID %s: %s", listing_id, e)
            return None

        if not isinstance(data, dict):
            log.error("Unexpected performance payload for Listing ID %s", listing_id)
            return None
        return data
