"""Session credential (JWT) package."""

from .jwt_utils import JwtPreview, preview_jwt
from .session_token import SessionTokenService

__all__ = ["JwtPreview", "SessionTokenService", "preview_jwt"]
