"""Provider doubles and httpx mocking helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.flattr_auth.core.errors import ProviderApiError
from src.flattr_auth.core.models import EmailKey, NormalizedIdentity, PhoneNumberKey
from src.flattr_auth.core.services.providers import IdentityProvider


@pytest.fixture
def http_response() -> Callable[..., httpx.Response]:
    """Build real ``httpx.Response`` objects for mocked client calls."""

    def _make(status_code: int = 200, json: Any = None, text: str | None = None) -> httpx.Response:
        request = httpx.Request("GET", "https://provider.test/")
        if text is not None:
            return httpx.Response(status_code, text=text, request=request)
        return httpx.Response(status_code, json=json, request=request)

    return _make


@pytest.fixture
def mock_http_client():
    """Patch ``httpx.AsyncClient``; yields the client seen inside ``async with``."""
    with patch("httpx.AsyncClient") as mock_client_class:
        client = mock_client_class.return_value.__aenter__.return_value
        client.get = AsyncMock()
        client.post = AsyncMock()
        client.client_class = mock_client_class
        yield client


class StaticIdentityProvider(IdentityProvider):
    """Returns a fixed identity, or raises a fixed error, and counts calls.

    ``delay`` keeps the call in flight for a while, like a slow upstream.
    """

    def __init__(
        self,
        name: str,
        identity: NormalizedIdentity | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        super().__init__()
        self.name = name
        self.identity = identity
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch_identity(self, raw_callback) -> NormalizedIdentity:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.identity


@pytest.fixture
def carrier_identity() -> NormalizedIdentity:
    return NormalizedIdentity(
        provider="truecaller",
        lookup_key=PhoneNumberKey(value="14155550100"),
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
    )


@pytest.fixture
def phone_link_identity() -> NormalizedIdentity:
    return NormalizedIdentity(
        provider="phone_email",
        lookup_key=PhoneNumberKey(value="447911123456"),
        first_name="Grace",
    )


@pytest.fixture
def oauth_identity() -> NormalizedIdentity:
    return NormalizedIdentity(
        provider="linkedin",
        lookup_key=EmailKey(value="ada@example.com"),
        first_name="Augusta",
        last_name="King",
        email="ada@example.com",
        profile_picture_url="https://media.example.com/ada.jpg",
        external_subject="li-sub-123",
    )


@pytest.fixture
def fake_carrier(carrier_identity: NormalizedIdentity) -> StaticIdentityProvider:
    return StaticIdentityProvider("truecaller", identity=carrier_identity)


@pytest.fixture
def fake_phone_link(phone_link_identity: NormalizedIdentity) -> StaticIdentityProvider:
    return StaticIdentityProvider("phone_email", identity=phone_link_identity)


@pytest.fixture
def fake_oauth(oauth_identity: NormalizedIdentity) -> StaticIdentityProvider:
    return StaticIdentityProvider("linkedin", identity=oauth_identity)


@pytest.fixture
def failing_provider() -> StaticIdentityProvider:
    return StaticIdentityProvider(
        "phone_email", error=ProviderApiError("phone_email", "HTTP 503", status=503)
    )
