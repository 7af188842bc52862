"""Error taxonomy for the login pipeline.

Adapters, the reconciler and the token codec raise these; the login service
and the HTTP dependencies translate them into opaque client-facing codes. The
``error_code`` is safe to return to a client, the message is not.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every failure the login pipeline reports."""

    error_code: str = "server_error"
    http_status: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message


class ProviderError(AuthError):
    """Something went wrong while talking to, or reading from, a provider."""

    error_code = "provider_error"
    http_status = 502

    def __init__(self, provider: str, message: str = "") -> None:
        super().__init__(f"{provider}: {message}" if message else provider)
        self.provider = provider


class ProviderPayloadInvalid(ProviderError):
    """The inbound callback/request payload is missing or malformed."""

    error_code = "invalid_request"
    http_status = 400


class ProviderApiError(ProviderError):
    """The provider answered with a non-success status or could not be reached."""

    def __init__(self, provider: str, message: str = "", status: int | None = None) -> None:
        super().__init__(provider, message)
        self.status = status


class ProviderProfileIncomplete(ProviderError):
    """The provider response lacks the fields needed to identify the user."""


class ProviderTokenExchangeFailed(ProviderError):
    """The OAuth authorization code could not be exchanged for an access token."""

    error_code = "token_exchange_failed"

    def __init__(self, provider: str, message: str = "", status: int | None = None) -> None:
        super().__init__(provider, message)
        self.status = status


class ReconciliationStoreError(AuthError):
    """The profile store failed while reconciling an identity."""


class SessionTokenError(AuthError):
    error_code = "unauthorized"
    http_status = 401


class TokenInvalid(SessionTokenError):
    """Malformed credential, wrong algorithm, bad signature or missing subject."""


class TokenExpired(SessionTokenError):
    """The credential was valid but its expiry has passed."""
