# tests/test_credentials.py
import httpx
import pytest

from listingsync.adapters.clients.credentials import ClientCredentialsProvider, StaticTokenProvider
from listingsync.domain.errors import ConfigurationError, UpstreamError


def _token_server(calls, expires_in=3600, status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if status != 200:
            return httpx.Response(status, text="denied")
        return httpx.Response(200, json={"access_token": f"tok{len(calls)}", "expires_in": expires_in})

    return httpx.MockTransport(handler)


async def test_token_is_cached_until_invalidated():
    calls = []
    refreshed = []
    provider = ClientCredentialsProvider(
        token_url="https://auth.example/token",
        client_id="id",
        client_secret="secret",
        on_refresh=refreshed.append,
        transport=_token_server(calls),
    )

    assert await provider.get_token() == "tok1"
    assert await provider.get_token() == "tok1"
    assert len(calls) == 1

    provider.invalidate()
    assert await provider.get_token() == "tok2"
    assert refreshed == ["tok1", "tok2"]

    req = calls[0]
    assert req.headers["Authorization"].startswith("Basic ")
    assert b"grant_type=client_credentials" in req.content


async def test_nearly_expired_token_is_refreshed():
    calls = []
    provider = ClientCredentialsProvider(
        token_url="https://auth.example/token",
        client_id="id",
        client_secret="secret",
        transport=_token_server(calls, expires_in=10),
    )
    await provider.get_token()
    await provider.get_token()
    assert len(calls) == 2


async def test_body_credentials_when_basic_auth_disabled():
    calls = []
    provider = ClientCredentialsProvider(
        token_url="https://auth.example/token",
        client_id="id",
        client_secret="secret",
        basic_auth=False,
        transport=_token_server(calls),
    )
    await provider.get_token()
    assert "Authorization" not in calls[0].headers
    assert b"client_secret=secret" in calls[0].content


async def test_refused_client_secret_is_not_retriable():
    provider = ClientCredentialsProvider(
        token_url="https://auth.example/token",
        client_id="id",
        client_secret="wrong",
        transport=_token_server([], status=401),
    )
    with pytest.raises(UpstreamError) as ei:
        await provider.get_token()
    assert type(ei.value) is UpstreamError


def test_missing_credentials_are_configuration_errors():
    with pytest.raises(ConfigurationError):
        ClientCredentialsProvider(token_url="https://auth.example/token", client_id=None, client_secret="x")
    with pytest.raises(ConfigurationError):
        StaticTokenProvider("")
