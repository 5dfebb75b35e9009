# listingsync/domain/parsing.py
from __future__ import annotations

import re
from typing import Any

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def _text(x: Any) -> Any:
    # XML-derived nodes carry their text under "#text" when they also have attributes.
    if isinstance(x, dict):
        return x.get("#text")
    return x


def to_int(x: Any, default: int = 0) -> int:
    x = _text(x)
    if x is None or x == "":
        return default
    try:
        return int(float(x))
    except (TypeError, ValueError):
        return default


def parse_price(x: Any, default: float = 0.0) -> float:
    """
    "$450,000 pw" -> 450000.0

    Thousands separators are removed, then the first number in the text wins,
    so ranges like "$450,000 - $500,000" resolve to their lower bound.
    """
    x = _text(x)
    if x is None:
        return default
    if isinstance(x, (int, float)) and not isinstance(x, bool):
        return float(x)
    m = _NUMBER_RE.search(str(x).replace(",", ""))
    if not m:
        return default
    return float(m.group(0))


def to_str(x: Any, default: str = "") -> str:
    x = _text(x)
    if x is None:
        return default
    s = str(x).strip()
    return s if s else default


def listing_key(x: Any) -> str:
    """Reconciliation key: trimmed string form, empty when missing."""
    if x is None:
        return ""
    return str(x).strip()


def get_first(payload: dict[str, Any], *keys: str) -> Any:
    """Return first non-empty key from payload."""
    for k in keys:
        v = payload.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None


def get_nested(payload: Any, path: str) -> Any:
    """Tiny dot-path getter: 'address.suburb' or 'underOffer.@value'."""
    cur: Any = payload
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
        if cur is None:
            return None
    return cur


def as_list(x: Any) -> list[Any]:
    """Single XML children come back as a dict, repeated ones as a list."""
    if x is None:
        return []
    if isinstance(x, list):
        return x
    return [x]
