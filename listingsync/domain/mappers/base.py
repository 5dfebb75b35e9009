# listingsync/domain/mappers/base.py
from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from ..types import MappedRecord, PerformanceMetrics, RawListing

log = logging.getLogger(__name__)

UNKNOWN_STATUS = "unknown"
UNKNOWN_ADDRESS = "Unknown Address"


class RecordMapper(Protocol):
    """
    Pure transform: one raw listing (+ its performance payload) -> one flat record.

    Returns None when the listing can't be keyed or the performance payload
    belongs to a different listing.
    """

    metric_fields: Mapping[str, str]

    def listing_id(self, raw: RawListing) -> str: ...

    def map(self, raw: RawListing | None, performance: PerformanceMetrics | None) -> MappedRecord | None: ...


def metric_defaults(table: Mapping[str, str]) -> dict[str, Any]:
    """Zero for every translated metric field (left-join rows)."""
    return {target: 0 for target in table.values()}


def extract_flat_metrics(metrics: Any, table: Mapping[str, str]) -> dict[str, Any]:
    """{"totalListingViews": 12, ...} -> {"Total Listing Views": 12}; unknown names are dropped."""
    out: dict[str, Any] = {}
    if not isinstance(metrics, dict):
        return out
    for name, value in metrics.items():
        target = table.get(name)
        if target:
            out[target] = value
    return out


def extract_period_metrics(portal_metrics: Any, table: Mapping[str, str]) -> dict[str, Any]:
    """
    Walk portalMetrics[].all[].metricPeriods[0].metricValues[] and keep the
    first period's value of every metric named in `table`.

    Later portals overwrite earlier ones for the same metric name.
    """
    out: dict[str, Any] = {}
    if not isinstance(portal_metrics, list):
        return out

    for portal in portal_metrics:
        if not isinstance(portal, dict):
            continue
        for metric in portal.get("all") or []:
            if not isinstance(metric, dict):
                continue
            periods = metric.get("metricPeriods") or []
            if not periods or not isinstance(periods[0], dict):
                continue
            for mv in periods[0].get("metricValues") or []:
                if not isinstance(mv, dict):
                    continue
                target = table.get(mv.get("name"))
                if target:
                    out[target] = mv.get("value")
    return out
