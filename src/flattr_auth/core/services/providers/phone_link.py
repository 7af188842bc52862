"""Phone link verification (Phone.email) adapter.

The browser widget hands us a ``user_json_url``; the JSON document behind it
is the verified assertion. Only allow-listed https hosts are fetched.
"""

from urllib.parse import urlparse

from loguru import logger
from pydantic import BaseModel

from src.flattr_auth.core.errors import ProviderPayloadInvalid, ProviderProfileIncomplete
from src.flattr_auth.core.models import NormalizedIdentity, PhoneNumberKey
from src.flattr_auth.core.services.providers.base import (
    IdentityProvider,
    clean_str,
    mask_phone,
)
from src.flattr_auth.core.services.providers.carrier import normalize_phone_number


class PhoneLinkVerification(BaseModel):
    user_json_url: str


def join_phone_number(country_code, phone_number) -> str:
    """``"+44"`` and ``"7911123456"`` become ``"447911123456"``."""
    joined = f"{country_code}{phone_number}"
    if joined.startswith("+"):
        joined = joined[1:]
    return normalize_phone_number(joined)


class PhoneLinkProvider(IdentityProvider[PhoneLinkVerification]):
    name = "phone_email"

    def __init__(self, allowed_hosts: list[str], timeout_seconds: float = 10.0):
        super().__init__(timeout_seconds)
        self._allowed_hosts = {host.lower() for host in allowed_hosts}

    def _check_url(self, url: str) -> str:
        self._require_url(url, "user_json_url")
        host = (urlparse(url).hostname or "").lower()
        if host not in self._allowed_hosts:
            logger.bind(provider=self.name).warning(
                "Rejected user_json_url on host {}", host
            )
            raise ProviderPayloadInvalid(self.name, "user_json_url host is not allowed")
        return url

    async def fetch_identity(self, raw_callback: PhoneLinkVerification) -> NormalizedIdentity:
        url = self._check_url(raw_callback.user_json_url)
        payload = await self._get_json(url)

        country_code = clean_str(payload.get("user_country_code") or payload.get("country_code"))
        local_number = clean_str(payload.get("user_phone_number") or payload.get("phone_number"))
        if not country_code or not local_number:
            raise ProviderProfileIncomplete(self.name, "country code or phone number missing")

        phone_number = join_phone_number(country_code, local_number)
        if not phone_number:
            raise ProviderProfileIncomplete(self.name, "phone number has no digits")

        logger.bind(provider=self.name).info(
            "Phone link verified for {}", mask_phone(phone_number)
        )
        return NormalizedIdentity(
            provider=self.name,
            lookup_key=PhoneNumberKey(value=phone_number),
            first_name=clean_str(payload.get("user_first_name")),
            last_name=clean_str(payload.get("user_last_name")),
            email=clean_str(payload.get("user_email_id")),
        )
