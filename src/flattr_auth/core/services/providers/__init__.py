"""Identity provider adapters."""

from .base import IdentityProvider
from .carrier import CarrierCallback, CarrierIdentityProvider
from .oauth import OAuthCodeExchange, OAuthProvider, TokenResponse
from .phone_link import PhoneLinkProvider, PhoneLinkVerification

__all__ = [
    "CarrierCallback",
    "CarrierIdentityProvider",
    "IdentityProvider",
    "OAuthCodeExchange",
    "OAuthProvider",
    "PhoneLinkProvider",
    "PhoneLinkVerification",
    "TokenResponse",
]
