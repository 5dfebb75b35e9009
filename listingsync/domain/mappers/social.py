# listingsync/domain/mappers/social.py
from __future__ import annotations

import logging

from ..parsing import listing_key, to_str
from ..types import MappedRecord, PerformanceMetrics, RawListing

log = logging.getLogger(__name__)


class SocialInsightMapper:
    """
    Graph API insight data point -> one row per (insight, period end).

    Insights carry no performance payload; the key is the insight id (or
    name:period when the id is missing) suffixed with the first value's end_time.
    """

    metric_fields: dict[str, str] = {}

    def listing_id(self, raw: RawListing) -> str:
        base = listing_key(raw.get("id"))
        if not base:
            name = listing_key(raw.get("name"))
            if not name:
                return ""
            base = f"{name}:{listing_key(raw.get('period')) or 'lifetime'}"

        first = (raw.get("values") or [{}])[0]
        end_time = listing_key(first.get("end_time")) if isinstance(first, dict) else ""
        return f"{base}:{end_time}" if end_time else base

    def map(self, raw: RawListing | None, performance: PerformanceMetrics | None = None) -> MappedRecord | None:
        if not raw:
            log.warning("No analytics data point to process.")
            return None

        listing_id = self.listing_id(raw)
        if not listing_id:
            log.warning("Analytics data point has neither id nor name, skipping")
            return None

        first = (raw.get("values") or [{}])[0]
        if not isinstance(first, dict):
            first = {}

        value = first.get("value")
        return {
            "ListingID": listing_id,
            "PageName": to_str(raw.get("title"), "Unknown"),
            "Metric": to_str(raw.get("name"), "Unknown"),
            "Value": value if value is not None else 0,
            "Date": to_str(first.get("end_time")),
        }
