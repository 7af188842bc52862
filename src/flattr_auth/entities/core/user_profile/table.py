"""User profile database table model."""

from sqlalchemy import Column, Index, String, UniqueConstraint, text
from sqlmodel import Field

from src.flattr_auth.entities._base import EntityTable


class UserProfileTable(EntityTable, table=True):
    """Persistence model for ``user_profiles``.

    Identity uniqueness is enforced here and nowhere else: at most one row per
    non-empty phone number (partial index) and one row per non-null email.
    """

    __tablename__ = "user_profiles"
    __table_args__ = (
        UniqueConstraint("email", name="uq_user_profiles_email"),
        Index(
            "uq_user_profiles_phone_number",
            "phone_number",
            unique=True,
            sqlite_where=text("phone_number <> ''"),
            postgresql_where=text("phone_number <> ''"),
        ),
    )

    phone_number: str = Field(
        default="",
        sa_column=Column(String(32), nullable=False, server_default=""),
    )
    email: str | None = Field(default=None, sa_column=Column(String(320), nullable=True))
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    profile_picture_url: str | None = Field(default=None, max_length=2048)
    oauth_subject: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True, index=True)
    )
