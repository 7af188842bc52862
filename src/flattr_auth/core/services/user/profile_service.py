from collections.abc import Callable

from loguru import logger
from sqlmodel import Session

from src.flattr_auth.core.errors import ReconciliationStoreError
from src.flattr_auth.entities.core.user_profile import (
    ProfileStoreError,
    UserProfile,
    UserProfileRepository,
    translate_store_errors,
)


class ProfileNotFound(Exception):
    pass


class UserProfileService:
    """Read and user-driven edits of a profile, for authenticated requests.

    Unlike provider logins, edits made by the user themselves replace the
    stored values.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get_profile(self, user_id: str) -> UserProfile:
        try:
            with self._session_factory() as session:
                profile = UserProfileRepository(session).get(user_id)
        except ProfileStoreError as exc:
            raise ReconciliationStoreError(str(exc)) from exc
        if profile is None:
            raise ProfileNotFound(user_id)
        return profile

    def complete_profile(
        self,
        user_id: str,
        first_name: str,
        last_name: str | None = None,
        profile_picture_url: str | None = None,
    ) -> UserProfile:
        first_name = first_name.strip()
        if not first_name:
            raise ValueError("First name is required")

        try:
            with self._session_factory() as session:
                repo = UserProfileRepository(session)
                if repo.get(user_id) is None:
                    raise ProfileNotFound(user_id)
                updated = repo.update_fields(
                    user_id,
                    first_name=first_name,
                    last_name=(last_name or "").strip() or None,
                    profile_picture_url=profile_picture_url or None,
                )
                with translate_store_errors("commit"):
                    session.commit()
        except ProfileStoreError as exc:
            logger.error("Failed to complete profile {}: {}", user_id, exc)
            raise ReconciliationStoreError(str(exc)) from exc

        logger.info("Profile {} completed by its owner", user_id)
        return updated
