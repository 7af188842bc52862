from dataclasses import dataclass

from src.flattr_auth.core.services import (
    CarrierIdentityProvider,
    DbSessionService,
    IdentityReconciler,
    LoginService,
    OAuthProvider,
    PhoneLinkProvider,
    RedisService,
    SessionDeliveryService,
    SessionTokenService,
    UserProfileService,
)
from src.flattr_auth.core.storage import CallbackGuard
from src.flattr_auth.runtime.config.config_data import ConfigData


@dataclass
class ApplicationDependencies:
    database_service: DbSessionService
    redis_service: RedisService | None
    callback_guard: CallbackGuard
    token_service: SessionTokenService
    session_delivery: SessionDeliveryService
    login_service: LoginService
    profile_service: UserProfileService


def create_dependencies(
    config: ConfigData,
    database_service: DbSessionService,
    callback_guard: CallbackGuard,
    redis_service: RedisService | None = None,
) -> ApplicationDependencies:
    """Wire every long-lived service from configuration.

    Raises:
        RuntimeError: required settings (signing secret, OAuth client) are missing
    """
    missing = config.missing_required_settings()
    if missing:
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")

    providers = config.providers
    token_service = SessionTokenService.from_config(config.session)
    reconciler = IdentityReconciler(database_service.get_session)

    login_service = LoginService(
        carrier=CarrierIdentityProvider(providers.carrier.timeout_seconds),
        phone_link=PhoneLinkProvider(
            allowed_hosts=providers.phone_link.allowed_hosts,
            timeout_seconds=providers.phone_link.timeout_seconds,
        ),
        oauth=OAuthProvider(providers.oauth),
        reconciler=reconciler,
        token_service=token_service,
        callback_guard=callback_guard,
        duplicate_ttl_seconds=providers.carrier.duplicate_ttl_seconds,
    )

    return ApplicationDependencies(
        database_service=database_service,
        redis_service=redis_service,
        callback_guard=callback_guard,
        token_service=token_service,
        session_delivery=SessionDeliveryService(config.cookies),
        login_service=login_service,
        profile_service=UserProfileService(database_service.get_session),
    )
