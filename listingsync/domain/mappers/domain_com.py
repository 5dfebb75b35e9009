# listingsync/domain/mappers/domain_com.py
from __future__ import annotations

import logging
from typing import Any

from ..parsing import get_first, get_nested, listing_key, parse_price, to_int, to_str
from ..types import MappedRecord, PerformanceMetrics, RawListing
from .base import UNKNOWN_ADDRESS, UNKNOWN_STATUS, extract_flat_metrics, metric_defaults

log = logging.getLogger(__name__)

DOMAIN_METRIC_FIELDS: dict[str, str] = {
    "totalListingViews": "Total Listing Views",
    "totalEnquiries": "Total Enquiries",
    "totalPhotoViews": "Total Photo Views",
    "totalShortlists": "Total Shortlists",
}


class DomainListingMapper:
    """
    Domain.com.au JSON listing -> flat record.

    Listing payloads come from either /listings (listingId, address, ...) or
    the agency listings endpoint (id, addressParts.*, agencyName tagged on by
    the adapter). Performance payload: {"listingId": ..., "metrics": {...}}.
    """

    metric_fields = DOMAIN_METRIC_FIELDS

    def listing_id(self, raw: RawListing) -> str:
        return listing_key(get_first(raw, "listingId", "id"))

    def _performance_listing_id(self, performance: PerformanceMetrics) -> str:
        return listing_key(get_first(performance, "listingId", "id"))

    def map(self, raw: RawListing | None, performance: PerformanceMetrics | None) -> MappedRecord | None:
        if not raw:
            log.warning("No listing data available to process.")
            return None

        listing_id = self.listing_id(raw)
        if not listing_id:
            log.warning("Invalid or missing ListingID, skipping listing")
            return None

        if performance is not None and self._performance_listing_id(performance) != listing_id:
            log.warning("No matching performance data found for ListingID: %s", listing_id)
            return None

        address = get_first(raw, "address") or get_nested(raw, "addressParts.displayAddress")

        record: MappedRecord = {
            "UniqueID": to_str(raw.get("uniqueID")),
            "ListingID": listing_id,
            "Address": to_str(address, UNKNOWN_ADDRESS),
            "Suburb": to_str(get_nested(raw, "addressParts.suburb")),
            "Office": to_str(raw.get("agencyName")),
            "Price": parse_price(get_first(raw, "price", "displayPrice")),
            "Bedrooms": to_int(raw.get("bedrooms")),
            "Bathrooms": to_int(raw.get("bathrooms")),
            "Status": to_str(raw.get("status"), UNKNOWN_STATUS),
        }

        if performance is None:
            record.update(metric_defaults(self.metric_fields))
        else:
            metrics: Any = performance.get("metrics")
            if metrics is None:
                # statistics endpoint returns the counters at top level
                metrics = performance
            record.update(extract_flat_metrics(metrics, self.metric_fields))

        log.debug("Transformed record for ListingID %s: %s", listing_id, record)
        return record
