"""FastAPI dependency implementations."""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import urlparse

from fastapi import Depends, HTTPException, Request

from src.flattr_auth.api.http.app_data import ApplicationDependencies
from src.flattr_auth.core.errors import SessionTokenError
from src.flattr_auth.core.services import (
    LoginService,
    SessionDeliveryService,
    SessionTokenService,
    UserProfileService,
)
from src.flattr_auth.runtime.context import get_config


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


def get_login_service(request: Request) -> LoginService:
    """Get the login orchestration service."""
    return get_app_dependencies(request).login_service


def get_token_service(request: Request) -> SessionTokenService:
    """Get the session credential codec."""
    return get_app_dependencies(request).token_service


def get_session_delivery(request: Request) -> SessionDeliveryService:
    """Get the session cookie delivery service."""
    return get_app_dependencies(request).session_delivery


def get_profile_service(request: Request) -> UserProfileService:
    """Get the profile read/edit service."""
    return get_app_dependencies(request).profile_service


def get_request_host(request: Request) -> str:
    return request.headers.get("host") or request.url.hostname or ""


def get_credential(request: Request) -> str | None:
    """Session credential from the session cookie, else from a Bearer header."""
    cookie_name = get_config().cookies.name
    credential = request.cookies.get(cookie_name)
    if credential:
        return credential
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


async def get_current_user_id(
    request: Request,
    token_service: SessionTokenService = Depends(get_token_service),
) -> str:
    """Authenticate the request with its session credential."""
    credential = get_credential(request)
    if not credential:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        user_id = token_service.verify(credential)
    except SessionTokenError as exc:
        # Expired and invalid both force a fresh login
        raise HTTPException(status_code=401, detail="Invalid or expired session") from exc
    request.state.user_id = user_id
    return user_id


@lru_cache(maxsize=50)
def normalize_origin(origin: str) -> tuple[str, str, int]:
    """Normalize an origin string into a tuple for comparison."""
    parsed = urlparse(origin)
    return (
        parsed.scheme.lower(),
        (parsed.hostname or "").lower(),
        parsed.port or (443 if parsed.scheme == "https" else 80),
    )


def is_origin_allowed(origin: str) -> bool:
    """Compare candidate origin against the configured CORS origins."""
    allowed = {normalize_origin(a) for a in get_config().app.cors.origins}
    try:
        return normalize_origin(origin) in allowed
    except ValueError:
        return False


def _origin_of(url: str) -> str | None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def resolve_frontend_url(request: Request) -> str:
    """Frontend base URL to send the browser back to after a carrier login.

    Candidates in order: forwarded host, Origin, Referer. A candidate is only
    used when it is an allowed origin, otherwise the configured frontend URL
    is returned.
    """
    candidates = []
    forwarded_host = request.headers.get("x-forwarded-host")
    if forwarded_host:
        proto = "http" if request.headers.get("x-forwarded-proto") == "http" else "https"
        candidates.append(f"{proto}://{forwarded_host.split(',')[0].strip()}")
    for header in ("origin", "referer"):
        value = request.headers.get(header)
        if value:
            candidates.append(value)

    for candidate in candidates:
        origin = _origin_of(candidate)
        if origin and is_origin_allowed(origin):
            return origin

    return get_config().app.frontend_url.rstrip("/")
