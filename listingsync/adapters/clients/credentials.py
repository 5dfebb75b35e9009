# listingsync/adapters/clients/credentials.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

import httpx

from ...domain.errors import AuthExpired, ConfigurationError, UpstreamError
from .http_resilience import checked_request, open_client

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialProvider(Protocol):
    async def get_token(self) -> str: ...

    def invalidate(self) -> None: ...


class StaticTokenProvider:
    """A pre-issued bearer token. invalidate() can't mint a new one."""

    def __init__(self, token: str | None) -> None:
        if not token:
            raise ConfigurationError("static bearer token is not set")
        self._token = token

    async def get_token(self) -> str:
        return self._token

    def invalidate(self) -> None:
        log.warning("Static bearer token was rejected; set a fresh token to recover")


@dataclass
class _Token:
    access_token: str
    expires_at: datetime


class ClientCredentialsProvider:
    """
    OAuth2 client-credentials with an in-memory cache.

    basic_auth=True sends the client id/secret as an HTTP Basic header (Domain,
    realestate.com.au); False puts them in the form body (Graph API).
    `on_refresh` is told about every newly issued token; persisting it is the
    caller's business.
    """

    def __init__(
        self,
        *,
        token_url: str | None,
        client_id: str | None,
        client_secret: str | None,
        scope: str | None = None,
        basic_auth: bool = True,
        on_refresh: Callable[[str], None] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not (token_url and client_id and client_secret):
            raise ConfigurationError("client credentials are not configured")
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.basic_auth = basic_auth
        self._on_refresh = on_refresh
        self._transport = transport
        self._token: _Token | None = None
        self._lock = asyncio.Lock()

    def invalidate(self) -> None:
        self._token = None

    async def get_token(self) -> str:
        async with self._lock:
            if self._token and self._token.expires_at > _utcnow() + timedelta(seconds=30):
                return self._token.access_token
            self._token = await self._fetch()
            if self._on_refresh:
                self._on_refresh(self._token.access_token)
            return self._token.access_token

    async def _fetch(self) -> _Token:
        data = {"grant_type": "client_credentials"}
        if self.scope:
            data["scope"] = self.scope

        auth: httpx.BasicAuth | None = None
        if self.basic_auth:
            auth = httpx.BasicAuth(self.client_id, self.client_secret)
        else:
            data["client_id"] = self.client_id
            data["client_secret"] = self.client_secret

        log.info("Requesting access token from %s", self.token_url)
        async with open_client(self._transport) as client:
            client.auth = auth
            try:
                resp = await checked_request(
                    client,
                    "POST",
                    self.token_url,
                    headers={"accept": "application/json"},
                    data=data,
                )
            except AuthExpired as e:
                # the client secret itself was refused; nothing to refresh
                raise UpstreamError(f"token request refused: {e}") from e

        payload = resp.json()
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise UpstreamError(f"token response missing access_token from {self.token_url}")

        expires_in = int(payload.get("expires_in") or 3600)
        return _Token(access_token=str(token), expires_at=_utcnow() + timedelta(seconds=expires_in))
