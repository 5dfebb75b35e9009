# listingsync/adapters/clients/http_resilience.py
from __future__ import annotations

import email.utils
import time
from typing import Any

import httpx

from ...config import settings
from ...domain.errors import AuthExpired, UpstreamRejected, UpstreamUnavailable

AUTH_STATUSES = (401, 403)


def open_client(transport: httpx.AsyncBaseTransport | None = None, timeout_s: float | None = None) -> httpx.AsyncClient:
    timeout = httpx.Timeout(float(timeout_s if timeout_s is not None else settings.HTTP_TIMEOUT_S))
    return httpx.AsyncClient(timeout=timeout, transport=transport)


def parse_retry_after(value: str | None, default: float) -> float:
    """Retry-After is either delta-seconds or an HTTP date."""
    if not value:
        return default
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    return max(0.0, when.timestamp() - time.time())


async def checked_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: Any | None = None,
    json: Any | None = None,
    data: Any | None = None,
) -> httpx.Response:
    """
    One HTTP call, no retries. Failures come back typed:
      - no usable response     -> UpstreamUnavailable
                                  (transport, decoding, redirect loops)
      - 401/403                -> AuthExpired
      - any other non-2xx      -> UpstreamRejected(status, body)
    """
    try:
        resp = await client.request(method, url, headers=headers, params=params, json=json, data=data)
    except httpx.RequestError as e:
        raise UpstreamUnavailable(f"no usable response from {url}: {e!r}") from e

    if resp.status_code in AUTH_STATUSES:
        raise AuthExpired(f"credential refused by {url}: HTTP {resp.status_code}")
    if not (200 <= resp.status_code < 300):
        raise UpstreamRejected(resp.status_code, resp.text)
    return resp
