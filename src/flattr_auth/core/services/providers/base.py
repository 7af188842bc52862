"""Shared plumbing for identity provider adapters."""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar
from urllib.parse import urlparse

import httpx
from loguru import logger
from pydantic import BaseModel

from src.flattr_auth.core.errors import ProviderApiError, ProviderPayloadInvalid
from src.flattr_auth.core.models import NormalizedIdentity

RawCallbackT = TypeVar("RawCallbackT", bound=BaseModel)

_LOGGED_BODY_CHARS = 300


class IdentityProvider(ABC, Generic[RawCallbackT]):
    """Turns a provider-specific callback into a ``NormalizedIdentity``."""

    name: str = "provider"

    def __init__(self, timeout_seconds: float = 10.0):
        self._timeout = timeout_seconds

    @abstractmethod
    async def fetch_identity(self, raw_callback: RawCallbackT) -> NormalizedIdentity:
        """Contact the provider as needed and return the asserted identity.

        Raises:
            ProviderPayloadInvalid: the callback itself is unusable
            ProviderApiError: the provider failed or could not be reached
            ProviderProfileIncomplete: the provider did not assert an identity key
        """

    def _require_url(self, url: str | None, what: str, allowed_schemes=("https",)) -> str:
        if not url:
            raise ProviderPayloadInvalid(self.name, f"missing {what}")
        parsed = urlparse(url)
        if parsed.scheme not in allowed_schemes or not parsed.hostname:
            raise ProviderPayloadInvalid(self.name, f"{what} is not an absolute URL")
        return url

    async def _get_json(self, url: str, headers: dict[str, str] | None = None) -> dict[str, Any]:
        """GET ``url`` and return its JSON object body.

        Non-2xx answers, transport failures and non-object bodies all surface as
        ``ProviderApiError``; the upstream body is logged, never propagated.
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.bind(provider=self.name, error_type=type(exc).__name__).warning(
                "Provider request failed: {}", exc
            )
            raise ProviderApiError(self.name, f"request failed: {type(exc).__name__}") from exc

        return self._json_body(response)

    def _json_body(self, response: httpx.Response) -> dict[str, Any]:
        if not 200 <= response.status_code < 300:
            logger.bind(provider=self.name, status_code=response.status_code).warning(
                "Provider returned an error: {}", response.text[:_LOGGED_BODY_CHARS]
            )
            raise ProviderApiError(
                self.name, f"HTTP {response.status_code}", status=response.status_code
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderApiError(
                self.name, "response is not JSON", status=response.status_code
            ) from exc
        if not isinstance(body, dict):
            raise ProviderApiError(
                self.name, "response is not a JSON object", status=response.status_code
            )
        return body


def clean_str(value: Any) -> str | None:
    """Trimmed string or ``None`` for missing/blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def mask_phone(phone_number: str) -> str:
    if len(phone_number) <= 4:
        return "*" * len(phone_number)
    return "*" * (len(phone_number) - 4) + phone_number[-4:]
