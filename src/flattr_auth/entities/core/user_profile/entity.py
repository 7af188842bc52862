"""User profile domain entity."""

from pydantic import Field

from src.flattr_auth.entities._base import Entity

# Fields a provider login may fill in, but never overwrite once set.
MERGEABLE_FIELDS = ("first_name", "last_name", "email", "profile_picture_url", "oauth_subject")


class UserProfile(Entity):
    """A person who has logged in through at least one identity provider.

    ``phone_number`` is the digits-only canonical form, or ``""`` when the
    profile was created through a provider that does not assert a phone.
    """

    phone_number: str = Field(default="", description="Canonical phone number")
    email: str | None = Field(default=None, description="Email address")
    first_name: str | None = Field(default=None)
    last_name: str | None = Field(default=None)
    profile_picture_url: str | None = Field(default=None)
    oauth_subject: str | None = Field(
        default=None, description="Provider-scoped subject from the OAuth provider"
    )

    def missing_fields(self) -> list[str]:
        return [name for name in MERGEABLE_FIELDS if getattr(self, name) in (None, "")]
