"""Carrier identity (Truecaller) adapter.

The provider calls us twice per login: first with ``status="flow_invoked"``
and no token, then with a short-lived access token and the profile endpoint
to fetch the verified profile from.
"""

import re

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.flattr_auth.core.errors import ProviderPayloadInvalid, ProviderProfileIncomplete
from src.flattr_auth.core.models import NormalizedIdentity, PhoneNumberKey
from src.flattr_auth.core.services.providers.base import (
    IdentityProvider,
    clean_str,
    mask_phone,
)

FLOW_INVOKED_STATUS = "flow_invoked"

_NON_DIGITS = re.compile(r"\D")


class CarrierCallback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(alias="requestId", min_length=1)
    access_token: str | None = Field(default=None, alias="accessToken")
    endpoint: str | None = None
    status: str | None = None

    @property
    def is_flow_invoked(self) -> bool:
        return self.status == FLOW_INVOKED_STATUS


def normalize_phone_number(raw) -> str:
    """Digits only: ``"+1 (415) 555-0100"`` becomes ``"14155550100"``."""
    if raw is None:
        return ""
    return _NON_DIGITS.sub("", str(raw))


class CarrierIdentityProvider(IdentityProvider[CarrierCallback]):
    name = "truecaller"

    async def fetch_identity(self, raw_callback: CarrierCallback) -> NormalizedIdentity:
        if not raw_callback.access_token:
            raise ProviderPayloadInvalid(self.name, "missing accessToken")
        # The endpoint is sent the bearer token
        endpoint = self._require_url(raw_callback.endpoint, "endpoint", allowed_schemes=("https",))

        profile = await self._get_json(
            endpoint, headers={"Authorization": f"Bearer {raw_callback.access_token}"}
        )

        phone_numbers = profile.get("phoneNumbers") or []
        first = phone_numbers[0] if isinstance(phone_numbers, list) and phone_numbers else None
        phone_number = normalize_phone_number(first)
        if not phone_number:
            raise ProviderProfileIncomplete(self.name, "profile has no phone number")

        name = profile.get("name") if isinstance(profile.get("name"), dict) else {}
        online = profile.get("onlineIdentities")
        email = clean_str(online.get("email")) if isinstance(online, dict) else None

        logger.bind(provider=self.name, request_id=raw_callback.request_id).info(
            "Carrier profile fetched for {}", mask_phone(phone_number)
        )
        return NormalizedIdentity(
            provider=self.name,
            lookup_key=PhoneNumberKey(value=phone_number),
            first_name=clean_str(name.get("first")),
            last_name=clean_str(name.get("last")),
            email=email,
        )
