# listingsync/domain/join.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .mappers.base import RecordMapper
from .types import JoinMode, MappedRecord, PerformanceMetrics, RawListing

log = logging.getLogger(__name__)


@dataclass
class JoinResult:
    records: list[MappedRecord] = field(default_factory=list)
    dropped: int = 0
    drop_reasons: dict[str, int] = field(default_factory=dict)


def join_and_map(
    listings: Iterable[RawListing],
    performance_by_id: dict[str, PerformanceMetrics],
    mapper: RecordMapper,
    *,
    mode: JoinMode = JoinMode.require_match,
    requires_performance: bool = True,
    warn: Callable[[str], None] | None = None,
) -> JoinResult:
    """
    Key every listing, pair it with its performance payload and map it.

    require-match drops listings without a performance entry (not an error);
    left-join-with-defaults maps them with zeroed metric fields. Sources that
    carry no performance feed skip the lookup entirely. Output order follows
    listing order.
    """
    warn = warn or log.warning
    drop_reasons: dict[str, int] = defaultdict(int)
    out = JoinResult()

    for raw in listings:
        if not isinstance(raw, dict):
            out.dropped += 1
            drop_reasons["not_an_object"] += 1
            warn("Skipping listing that is not an object")
            continue

        listing_id = mapper.listing_id(raw)
        if not listing_id:
            out.dropped += 1
            drop_reasons["missing_listing_id"] += 1
            warn("Skipping listing due to missing ListingID")
            continue

        performance: PerformanceMetrics | None = None
        if requires_performance:
            performance = performance_by_id.get(listing_id)
            if performance is None and mode == JoinMode.require_match:
                out.dropped += 1
                drop_reasons["missing_performance"] += 1
                warn(f"Performance data not found for ListingID: {listing_id}")
                continue

        try:
            record = mapper.map(raw, performance)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            out.dropped += 1
            drop_reasons[f"transform_error::{type(e).__name__}"] += 1
            warn(f"Error processing ListingID {listing_id}: {e}")
            continue

        if record is None:
            out.dropped += 1
            drop_reasons["transform_rejected"] += 1
            warn(f"Skipping ListingID {listing_id} due to transformation issues.")
            continue

        out.records.append(record)

    out.drop_reasons = dict(drop_reasons)
    return out
