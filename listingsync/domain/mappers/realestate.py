# listingsync/domain/mappers/realestate.py
from __future__ import annotations

import logging
from typing import Any

from ..parsing import as_list, get_nested, listing_key, parse_price, to_int, to_str
from ..types import MappedRecord, PerformanceMetrics, RawListing
from .base import UNKNOWN_ADDRESS, UNKNOWN_STATUS, extract_period_metrics, metric_defaults

log = logging.getLogger(__name__)

REALESTATE_METRIC_FIELDS: dict[str, str] = {
    "pageView": "PageViews",
    "emailEnquiry": "EmailEnquiries",
    "searchResultPhotoView": "SearchResultPhotoViews",
    "expandMap": "ExpandMap",
    "videoView": "VideoViews",
    "propertyDetailPhotoView": "PropertyDetailPhotoViews",
    "floorplanView": "FloorplanViews",
    "virtualTourView": "VirtualTourViews",
    "3dTourView": "3DTourViews",
    "revealedAgentPhoneNumber": "RevealedAgentPhoneNumber",
    "rentalAppliedOnline": "RentalAppliedOnline",
    "appliedForInspection": "AppliedForInspection",
    "savedInspectionTime": "SavedInspectionTime",
    "savedAuctionTime": "SavedAuctionTime",
    "listingSaved": "ListingSaved",
    "sendToFriend": "SendToFriend",
    "viewStatementOfInformation": "ViewStatementOfInformation",
    "searchResultsPageImpression": "SearchResultsPageImpression",
}


def _format_address(address: Any) -> str:
    if not isinstance(address, dict):
        return to_str(address)

    street = " ".join(
        p for p in (to_str(address.get("streetNumber")), to_str(address.get("street"))) if p
    )
    tail = " ".join(p for p in (to_str(address.get("state")), to_str(address.get("postcode"))) if p)
    parts = [p for p in (street, to_str(address.get("suburb")), tail) if p]
    return ", ".join(parts)


def _images(raw: RawListing) -> list[dict[str, str]]:
    out: list[dict[str, str]] = []
    for img in as_list(get_nested(raw, "objects.img")):
        url = img.get("@url") if isinstance(img, dict) else None
        if url:
            out.append({"url": url})
    return out


class RealestateListingMapper:
    """
    REAXML residential listing (parsed to dicts: "@attr" attributes, "#text"
    element text) + realestate.com.au listing performance JSON -> flat record.
    """

    metric_fields = REALESTATE_METRIC_FIELDS

    def listing_id(self, raw: RawListing) -> str:
        return listing_key(to_str(raw.get("listingId")))

    def map(self, raw: RawListing | None, performance: PerformanceMetrics | None) -> MappedRecord | None:
        if not raw:
            log.warning("No property data available to process.")
            return None

        listing_id = self.listing_id(raw)
        if not listing_id:
            log.warning("Property data is missing a valid ListingID.")
            return None

        if performance is not None and listing_key(get_nested(performance, "listing.id")) != listing_id:
            log.warning("No matching performance data found for ListingID: %s", listing_id)
            return None

        record: MappedRecord = {
            "UniqueID": to_str(raw.get("uniqueID")),
            "AgentID": to_str(raw.get("agentID")),
            "ListingID": listing_id,
            "Status": to_str(raw.get("@status"), UNKNOWN_STATUS),
            "UnderOffer": to_str(get_nested(raw, "underOffer.@value"), "no"),
            "IsHomeLandPackage": to_str(get_nested(raw, "isHomeLandPackage.@value"), "no"),
            "Authority": to_str(get_nested(raw, "authority.@value"), "none"),
            "Municipality": to_str(raw.get("municipality")),
            "Category": to_str(get_nested(raw, "category.@name")),
            "Address": _format_address(raw.get("address")) or UNKNOWN_ADDRESS,
            "Headline": to_str(raw.get("headline")),
            "Description": to_str(raw.get("description")),
            "Price": parse_price(raw.get("price")),
            "Bedrooms": to_int(get_nested(raw, "features.bedrooms")),
            "Bathrooms": to_int(get_nested(raw, "features.bathrooms")),
            "CarSpaces": to_int(get_nested(raw, "features.carports")),
            "PropertyImages": _images(raw),
        }

        if performance is None:
            record.update(metric_defaults(self.metric_fields))
        else:
            record.update(extract_period_metrics(performance.get("portalMetrics"), self.metric_fields))

        log.debug("Transformed record for ListingID %s", listing_id)
        return record
