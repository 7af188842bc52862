"""User profile repository for data access operations."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from src.flattr_auth.entities._base import utc_now

from .entity import UserProfile
from .table import UserProfileTable

_UNIQUE_VIOLATION_SQLSTATE = "23505"


class ProfileStoreError(Exception):
    """The profile store could not complete an operation."""


class ProfileConflictError(ProfileStoreError):
    """A write collided with a uniqueness constraint (phone number or email)."""


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell a uniqueness collision apart from other integrity failures."""
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate:
        return sqlstate == _UNIQUE_VIOLATION_SQLSTATE
    return "unique" in str(orig).lower()


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as e:
        if is_unique_violation(e):
            raise ProfileConflictError(f"{operation}: {e.orig}") from e
        raise ProfileStoreError(f"{operation}: {e.orig}") from e
    except SQLAlchemyError as e:
        raise ProfileStoreError(f"{operation}: {e}") from e


class UserProfileRepository:
    """Data-access layer for user profiles.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def _to_entity(self, row: UserProfileTable) -> UserProfile:
        return UserProfile.model_validate(row, from_attributes=True)

    def get(self, profile_id: str) -> UserProfile | None:
        with translate_store_errors("get"):
            row = self._session.get(UserProfileTable, profile_id)
        if row is None:
            return None
        return self._to_entity(row)

    def get_by_phone_number(self, phone_number: str) -> UserProfile | None:
        if not phone_number:
            return None
        statement = select(UserProfileTable).where(
            UserProfileTable.phone_number == phone_number
        )
        with translate_store_errors("get_by_phone_number"):
            row = self._session.exec(statement).first()
        if row is None:
            return None
        return self._to_entity(row)

    def get_by_email(self, email: str) -> UserProfile | None:
        if not email:
            return None
        statement = select(UserProfileTable).where(UserProfileTable.email == email)
        with translate_store_errors("get_by_email"):
            row = self._session.exec(statement).first()
        if row is None:
            return None
        return self._to_entity(row)

    def create(self, profile: UserProfile) -> UserProfile:
        row = UserProfileTable.model_validate(profile.model_dump())
        with translate_store_errors("create"):
            self._session.add(row)
            self._session.flush()
            self._session.refresh(row)
        return self._to_entity(row)

    def update_fields(self, profile_id: str, **fields) -> UserProfile:
        """Set the given columns on an existing profile and advance ``updated_at``."""
        with translate_store_errors("update"):
            row = self._session.get(UserProfileTable, profile_id)
            if row is None:
                raise ProfileStoreError(f"update: profile {profile_id} not found")
            for name, value in fields.items():
                setattr(row, name, value)
            row.updated_at = utc_now()
            self._session.add(row)
            self._session.flush()
            self._session.refresh(row)
        return self._to_entity(row)

    def count(self) -> int:
        with translate_store_errors("count"):
            return len(self._session.exec(select(UserProfileTable.id)).all())
