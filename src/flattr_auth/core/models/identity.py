"""Provider-independent identity models shared by the login pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class PhoneNumberKey(BaseModel):
    """Canonical digits-only phone number, country code first, no ``+``."""

    kind: Literal["phone_number"] = "phone_number"
    value: str = Field(min_length=1, pattern=r"^\d+$")


class EmailKey(BaseModel):
    kind: Literal["email"] = "email"
    value: str = Field(min_length=1)


LookupKey = Annotated[PhoneNumberKey | EmailKey, Field(discriminator="kind")]


class NormalizedIdentity(BaseModel):
    """What every provider adapter hands to the reconciler.

    ``lookup_key`` decides which stored profile this identity belongs to; the
    remaining fields are only merged into that profile where it has no value.
    """

    provider: str
    lookup_key: LookupKey
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    profile_picture_url: str | None = None
    external_subject: str | None = None


class ReconcileResult(BaseModel):
    user_id: str
    created: bool


class LoginStatus(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    DUPLICATE_IGNORED = "duplicate_ignored"
    FAILED = "failed"


class LoginOutcome(BaseModel):
    """Result of one provider login attempt, as seen by the HTTP layer."""

    status: LoginStatus
    provider: str
    user_id: str | None = None
    created: bool = False
    credential: str | None = None
    error_code: str | None = None
    http_status: int = 200

    @property
    def succeeded(self) -> bool:
        return self.status == LoginStatus.SUCCESS
