"""Core services exports."""

# Database Service
from .database.db_session import DbSessionService

# Session credential
from .jwt.session_token import SessionTokenService

# Login orchestration
from .login_service import LoginService

# Identity providers
from .providers import CarrierIdentityProvider, OAuthProvider, PhoneLinkProvider
from .redis_service import RedisService

# Session delivery
from .session.delivery import SessionDeliveryService

# User Services
from .user.profile_service import UserProfileService
from .user.reconciler import IdentityReconciler

__all__ = [
    "DbSessionService",
    "SessionTokenService",
    "LoginService",
    "CarrierIdentityProvider",
    "OAuthProvider",
    "PhoneLinkProvider",
    "RedisService",
    "SessionDeliveryService",
    "UserProfileService",
    "IdentityReconciler",
]
