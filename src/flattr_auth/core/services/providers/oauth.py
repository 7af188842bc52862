"""OAuth2/OIDC (LinkedIn) adapter: authorization code exchange plus userinfo."""

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.flattr_auth.core.errors import (
    ProviderProfileIncomplete,
    ProviderTokenExchangeFailed,
)
from src.flattr_auth.core.models import EmailKey, NormalizedIdentity
from src.flattr_auth.core.services.providers.base import IdentityProvider, clean_str
from src.flattr_auth.runtime.config.config_data import OAuthProviderConfig


class OAuthCodeExchange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1)
    code_verifier: str | None = Field(default=None, alias="codeVerifier")


class TokenResponse(BaseModel):
    """OAuth token response model."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    id_token: str | None = None
    scope: str | None = None


class OAuthProvider(IdentityProvider[OAuthCodeExchange]):
    def __init__(self, config: OAuthProviderConfig):
        super().__init__(config.timeout_seconds)
        self._config = config
        self.name = config.name

    async def exchange_code_for_tokens(self, exchange: OAuthCodeExchange) -> TokenResponse:
        """Exchange an authorization code for tokens (PKCE verifier included when given)."""
        token_data = {
            "grant_type": "authorization_code",
            "code": exchange.code,
            "redirect_uri": self._config.redirect_uri,
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
        }
        if exchange.code_verifier:
            token_data["code_verifier"] = exchange.code_verifier

        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._config.token_endpoint, data=token_data, headers=headers
                )
        except httpx.HTTPError as exc:
            logger.bind(provider=self.name, error_type=type(exc).__name__).warning(
                "Token exchange request failed: {}", exc
            )
            raise ProviderTokenExchangeFailed(self.name, "token endpoint unreachable") from exc

        if not 200 <= response.status_code < 300:
            logger.bind(provider=self.name, status_code=response.status_code).warning(
                "Token exchange rejected: {}", response.text[:300]
            )
            raise ProviderTokenExchangeFailed(
                self.name, f"HTTP {response.status_code}", status=response.status_code
            )

        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderTokenExchangeFailed(
                self.name, "token response has no access_token", status=response.status_code
            ) from exc

    async def get_user_claims(self, access_token: str) -> dict:
        """Fetch the OIDC userinfo document for ``access_token``."""
        return await self._get_json(
            self._config.userinfo_endpoint,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    async def fetch_identity(self, raw_callback: OAuthCodeExchange) -> NormalizedIdentity:
        tokens = await self.exchange_code_for_tokens(raw_callback)
        claims = await self.get_user_claims(tokens.access_token)

        subject = clean_str(claims.get("sub"))
        email = clean_str(claims.get("email"))
        if not subject or not email:
            raise ProviderProfileIncomplete(self.name, "userinfo lacks sub or email")

        logger.bind(provider=self.name).info("OAuth userinfo fetched for subject {}", subject)
        return NormalizedIdentity(
            provider=self.name,
            lookup_key=EmailKey(value=email),
            first_name=clean_str(claims.get("given_name")),
            last_name=clean_str(claims.get("family_name")),
            email=email,
            profile_picture_url=clean_str(claims.get("picture")),
            external_subject=subject,
        )
