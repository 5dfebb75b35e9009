"""Typed failures raised by adapters, stores and the sync pipeline."""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for listing-sync."""


class ConfigurationError(SyncError):
    """A source or store is missing required settings."""


class UpstreamError(SyncError):
    """A source portal call failed."""


class UpstreamUnavailable(UpstreamError):
    """No usable response from the portal (network, DNS, timeout, undecodable body)."""


class UpstreamRejected(UpstreamError):
    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(f"upstream rejected request: HTTP {status}: {body[:500]}")


class AuthExpired(UpstreamError):
    """The bearer credential was refused; refreshing it may help."""


class StoreError(SyncError):
    """A destination store call failed."""


class RateLimited(StoreError):
    def __init__(self, retry_after_s: float) -> None:
        self.retry_after_s = retry_after_s
        super().__init__(f"rate limited, retry after {retry_after_s:g}s")


class StoreRejected(StoreError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class SyncFailed(SyncError):
    """Fatal, run-aborting failure."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)
