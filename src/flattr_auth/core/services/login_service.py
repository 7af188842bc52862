"""Provider login orchestration.

Every flow runs the same pipeline: adapter -> reconciler -> session
credential. This is also where pipeline errors stop: detail goes to the
server log, callers only get an opaque ``error_code``.
"""

from loguru import logger
from starlette.concurrency import run_in_threadpool

from src.flattr_auth.core.errors import AuthError
from src.flattr_auth.core.models import LoginOutcome, LoginStatus
from src.flattr_auth.core.services.jwt.session_token import SessionTokenService
from src.flattr_auth.core.services.providers import (
    CarrierCallback,
    CarrierIdentityProvider,
    IdentityProvider,
    OAuthCodeExchange,
    OAuthProvider,
    PhoneLinkProvider,
    PhoneLinkVerification,
)
from src.flattr_auth.core.services.user.reconciler import IdentityReconciler
from src.flattr_auth.core.storage.callback_guard import CallbackGuard


class LoginService:
    def __init__(
        self,
        carrier: CarrierIdentityProvider,
        phone_link: PhoneLinkProvider,
        oauth: OAuthProvider,
        reconciler: IdentityReconciler,
        token_service: SessionTokenService,
        callback_guard: CallbackGuard,
        duplicate_ttl_seconds: int = 60,
    ):
        self._carrier = carrier
        self._phone_link = phone_link
        self._oauth = oauth
        self._reconciler = reconciler
        self._token_service = token_service
        self._guard = callback_guard
        self._duplicate_ttl_seconds = duplicate_ttl_seconds

    async def handle_carrier_callback(self, callback: CarrierCallback) -> LoginOutcome:
        """Handle one of the carrier provider's callbacks.

        A request id that is in flight or was handled within the guard window
        is acknowledged without doing anything. The initial ``flow_invoked``
        callback carries no token and is only acknowledged as pending.
        """
        provider = self._carrier.name
        with logger.contextualize(provider=provider, callback_request_id=callback.request_id):
            if await self._guard.already_processed(callback.request_id):
                logger.warning("Duplicate carrier callback ignored")
                return LoginOutcome(status=LoginStatus.DUPLICATE_IGNORED, provider=provider)

            if callback.is_flow_invoked:
                logger.info("Carrier flow invoked, waiting for the token callback")
                return LoginOutcome(status=LoginStatus.PENDING, provider=provider)

            if not await self._guard.try_begin(callback.request_id, self._duplicate_ttl_seconds):
                logger.warning("Carrier callback already in flight, ignored")
                return LoginOutcome(status=LoginStatus.DUPLICATE_IGNORED, provider=provider)

            try:
                outcome = await self._login(
                    self._carrier, callback, on_reconciled=self._remember_callback(callback)
                )
            except BaseException:
                await self._guard.release(callback.request_id)
                raise
            if not outcome.succeeded:
                await self._guard.release(callback.request_id)
            return outcome

    async def handle_phone_link(self, verification: PhoneLinkVerification) -> LoginOutcome:
        with logger.contextualize(provider=self._phone_link.name):
            return await self._login(self._phone_link, verification)

    async def handle_oauth(self, exchange: OAuthCodeExchange) -> LoginOutcome:
        with logger.contextualize(provider=self._oauth.name):
            return await self._login(self._oauth, exchange)

    def _remember_callback(self, callback: CarrierCallback):
        async def remember() -> None:
            await self._guard.mark_processed(callback.request_id, self._duplicate_ttl_seconds)

        return remember

    async def _login(self, provider: IdentityProvider, raw_callback, on_reconciled=None) -> LoginOutcome:
        try:
            identity = await provider.fetch_identity(raw_callback)
            result = await run_in_threadpool(self._reconciler.reconcile, identity)
        except AuthError as exc:
            logger.bind(
                error_type=type(exc).__name__,
                upstream_status=getattr(exc, "status", None),
            ).warning("Login failed: {}", exc)
            return LoginOutcome(
                status=LoginStatus.FAILED,
                provider=provider.name,
                error_code=exc.error_code,
                http_status=exc.http_status,
            )

        if on_reconciled is not None:
            await on_reconciled()

        credential = self._token_service.issue(result.user_id, email=identity.email)
        logger.info(
            "Login succeeded for {} ({})",
            result.user_id,
            "new profile" if result.created else "existing profile",
        )
        return LoginOutcome(
            status=LoginStatus.SUCCESS,
            provider=provider.name,
            user_id=result.user_id,
            created=result.created,
            credential=credential,
        )
