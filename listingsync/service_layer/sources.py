# listingsync/service_layer/sources.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..adapters.sources.base import SourceAdapter
from ..adapters.sources.domain_com import DomainSource
from ..adapters.sources.realestate import RealestateSource
from ..adapters.sources.social import SocialInsightsSource
from ..adapters.stores.airtable import AirtableStore
from ..adapters.stores.base import RecordStore
from ..adapters.stores.memory import InMemoryStore
from ..config import settings
from ..domain.mappers.base import RecordMapper
from ..domain.mappers.domain_com import DomainListingMapper
from ..domain.mappers.realestate import RealestateListingMapper
from ..domain.mappers.social import SocialInsightMapper

SOURCES = ("domain", "realestate", "social")

LABELS = {
    "domain": "Domain.com.au",
    "realestate": "Realestate.com.au",
    "social": "Facebook & Instagram",
}

# Single-select fields offered as filter options per source.
OPTION_FIELDS: dict[str, list[str]] = {
    "domain": ["Status", "Office", "Suburb"],
    "realestate": ["Status", "Category", "Authority", "Municipality"],
    "social": ["PageName", "Metric"],
}


@dataclass
class SourcePipeline:
    name: str
    adapter: SourceAdapter
    mapper: RecordMapper
    store: RecordStore
    label: str


def _table_for(source: str) -> str:
    return {
        "domain": settings.AIRTABLE_DOMAIN_TABLE,
        "realestate": settings.AIRTABLE_REALESTATE_TABLE,
        "social": settings.AIRTABLE_SOCIAL_TABLE,
    }[source]


def _check_source(source: str) -> str:
    src = (source or "").strip().lower()
    if src not in SOURCES:
        raise ValueError(f"Unknown source={source!r}. Use one of: {', '.join(SOURCES)}.")
    return src


def build_store(source: str, *, dry_run: bool = False) -> Any:
    src = _check_source(source)
    if dry_run:
        return InMemoryStore(key_field=settings.AIRTABLE_KEY_FIELD)
    return AirtableStore.from_settings(_table_for(src))


def build_pipeline(source: str, *, dry_run: bool = False) -> SourcePipeline:
    """
    Wire adapter + mapper + store for one source from settings.

    Missing credentials raise ConfigurationError here, so a misconfigured
    source fails its own run and nothing else.
    dry_run swaps the destination for an InMemoryStore.
    """
    src = _check_source(source)

    adapter: SourceAdapter
    mapper: RecordMapper
    if src == "domain":
        adapter = DomainSource.from_settings()
        mapper = DomainListingMapper()
    elif src == "realestate":
        adapter = RealestateSource.from_settings()
        mapper = RealestateListingMapper()
    else:
        adapter = SocialInsightsSource.from_settings()
        mapper = SocialInsightMapper()

    return SourcePipeline(
        name=src,
        adapter=adapter,
        mapper=mapper,
        store=build_store(src, dry_run=dry_run),
        label=LABELS[src],
    )


def credentials_configured(source: str) -> bool:
    """Whether settings hold enough to authenticate against the source portal."""
    src = _check_source(source)
    if src == "domain":
        return bool(settings.DOMAIN_API_KEY or (settings.DOMAIN_CLIENT_ID and settings.DOMAIN_CLIENT_SECRET))
    if src == "realestate":
        return bool(
            settings.REALESTATE_API_URL
            and settings.REALESTATE_CLIENT_ID
            and settings.REALESTATE_CLIENT_SECRET
            and settings.REALESTATE_AUTH_ENDPOINT
        )
    return bool(settings.FB_ACCESS_TOKEN or (settings.FB_CLIENT_ID and settings.FB_CLIENT_SECRET))
