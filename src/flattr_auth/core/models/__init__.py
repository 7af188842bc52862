"""Identity and login outcome models."""

from .identity import (
    EmailKey,
    LoginOutcome,
    LoginStatus,
    LookupKey,
    NormalizedIdentity,
    PhoneNumberKey,
    ReconcileResult,
)

__all__ = [
    "EmailKey",
    "LoginOutcome",
    "LoginStatus",
    "LookupKey",
    "NormalizedIdentity",
    "PhoneNumberKey",
    "ReconcileResult",
]
