"""Map a provider-asserted identity onto exactly one stored profile."""

from collections.abc import Callable

from loguru import logger
from sqlmodel import Session

from src.flattr_auth.core.errors import ReconciliationStoreError
from src.flattr_auth.core.models import (
    EmailKey,
    NormalizedIdentity,
    PhoneNumberKey,
    ReconcileResult,
)
from src.flattr_auth.entities.core.user_profile import (
    ProfileConflictError,
    ProfileStoreError,
    UserProfile,
    UserProfileRepository,
    translate_store_errors,
)


def _is_empty(value) -> bool:
    return value is None or value == ""


class IdentityReconciler:
    """Find-or-create a profile for a ``NormalizedIdentity``.

    Existing profiles are only ever filled in, never overwritten. Concurrent
    signups for the same key are settled by the store's unique indexes: the
    loser of the race re-reads the winner's row and continues as a login.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def reconcile(self, identity: NormalizedIdentity) -> ReconcileResult:
        log = logger.bind(provider=identity.provider, key_kind=identity.lookup_key.kind)
        try:
            return self._reconcile_once(identity)
        except ProfileConflictError as conflict:
            log.info("Uniqueness conflict while reconciling, retrying as login: {}", conflict)
            return self._retry_after_conflict(identity)
        except ProfileStoreError as exc:
            log.error("Profile store failed while reconciling: {}", exc)
            raise ReconciliationStoreError(str(exc)) from exc

    def _reconcile_once(self, identity: NormalizedIdentity) -> ReconcileResult:
        with self._session_factory() as session:
            repo = UserProfileRepository(session)
            existing = self._lookup(repo, identity)
            if existing is not None:
                self._merge(repo, existing, identity)
                self._commit(session)
                return ReconcileResult(user_id=existing.id, created=False)

            created = repo.create(self._new_profile(repo, identity))
            self._commit(session)
            logger.bind(provider=identity.provider).info("Created profile {}", created.id)
            return ReconcileResult(user_id=created.id, created=True)

    def _retry_after_conflict(self, identity: NormalizedIdentity) -> ReconcileResult:
        try:
            with self._session_factory() as session:
                repo = UserProfileRepository(session)
                existing = self._lookup(repo, identity)
                if existing is None:
                    raise ReconciliationStoreError(
                        "Uniqueness conflict but no profile matches the lookup key"
                    )
                self._merge(repo, existing, identity)
                self._commit(session)
                return ReconcileResult(user_id=existing.id, created=False)
        except ProfileStoreError as exc:
            logger.bind(provider=identity.provider).error(
                "Profile store failed after conflict retry: {}", exc
            )
            raise ReconciliationStoreError(str(exc)) from exc

    @staticmethod
    def _lookup(repo: UserProfileRepository, identity: NormalizedIdentity) -> UserProfile | None:
        key = identity.lookup_key
        if isinstance(key, PhoneNumberKey):
            return repo.get_by_phone_number(key.value)
        if isinstance(key, EmailKey):
            return repo.get_by_email(key.value)
        raise ValueError(f"Unsupported lookup key: {key!r}")

    @staticmethod
    def _candidates(identity: NormalizedIdentity) -> dict[str, str | None]:
        return {
            "first_name": identity.first_name,
            "last_name": identity.last_name,
            "email": identity.email,
            "profile_picture_url": identity.profile_picture_url,
            "oauth_subject": identity.external_subject,
        }

    @staticmethod
    def _email_taken_by_other(repo: UserProfileRepository, email: str, profile_id: str | None) -> bool:
        owner = repo.get_by_email(email)
        return owner is not None and owner.id != profile_id

    def _new_profile(self, repo: UserProfileRepository, identity: NormalizedIdentity) -> UserProfile:
        fields = {k: v for k, v in self._candidates(identity).items() if not _is_empty(v)}
        if isinstance(identity.lookup_key, PhoneNumberKey):
            fields["phone_number"] = identity.lookup_key.value
            # The email is only an attribute here; it must not steal another profile's
            if fields.get("email") and self._email_taken_by_other(repo, fields["email"], None):
                logger.bind(provider=identity.provider).warning(
                    "Email already belongs to another profile, not copying it"
                )
                fields.pop("email")
        else:
            fields["email"] = identity.lookup_key.value
        return UserProfile(**fields)

    def _merge(self, repo: UserProfileRepository, existing: UserProfile, identity: NormalizedIdentity) -> None:
        """Fill empty fields of ``existing`` from ``identity``; write only on change."""
        candidates = self._candidates(identity)
        changes = {}
        for name in existing.missing_fields():
            value = candidates[name]
            if _is_empty(value):
                continue
            if name == "email" and self._email_taken_by_other(repo, value, existing.id):
                logger.bind(provider=identity.provider).warning(
                    "Email already belongs to another profile, leaving {} without one",
                    existing.id,
                )
                continue
            changes[name] = value

        if not changes:
            return
        repo.update_fields(existing.id, **changes)
        logger.bind(provider=identity.provider).info(
            "Filled {} on profile {}", sorted(changes), existing.id
        )

    @staticmethod
    def _commit(session: Session) -> None:
        with translate_store_errors("commit"):
            session.commit()
