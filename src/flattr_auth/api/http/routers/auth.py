"""Provider login endpoints and session-authenticated profile endpoints."""

from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from src.flattr_auth.api.http.deps import (
    get_current_user_id,
    get_login_service,
    get_profile_service,
    get_request_host,
    get_session_delivery,
    get_token_service,
    resolve_frontend_url,
)
from src.flattr_auth.core.errors import AuthError, TokenInvalid
from src.flattr_auth.core.models import LoginOutcome, LoginStatus
from src.flattr_auth.core.services import (
    LoginService,
    SessionDeliveryService,
    SessionTokenService,
    UserProfileService,
)
from src.flattr_auth.core.services.providers import (
    CarrierCallback,
    OAuthCodeExchange,
    PhoneLinkVerification,
)
from src.flattr_auth.core.services.user.profile_service import ProfileNotFound
from src.flattr_auth.entities.core.user_profile import UserProfile
from src.flattr_auth.runtime.context import get_config

router_auth = APIRouter(prefix="/auth", tags=["auth"])

_ACK_MESSAGES = {
    LoginStatus.PENDING: "Flow invoked callback received",
    LoginStatus.DUPLICATE_IGNORED: "Duplicate request ignored",
}


class ProfileResponse(BaseModel):
    id: str
    phone_number: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_picture_url: str | None = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ProfileResponse":
        return cls.model_validate(profile.model_dump())


class CompleteProfileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    profile_picture_url: str | None = Field(default=None, alias="profilePictureUrl")


def _require_enabled(enabled: bool) -> None:
    if not enabled:
        raise HTTPException(status_code=404, detail="Not Found")


def _session_response(
    outcome: LoginOutcome,
    request: Request,
    delivery: SessionDeliveryService,
) -> JSONResponse:
    """JSON result of a fetch()-driven login, with the session cookie on success."""
    if not outcome.succeeded:
        raise HTTPException(status_code=outcome.http_status, detail=outcome.error_code)

    response = JSONResponse({"success": True, "userId": outcome.user_id})
    delivery.attach(response, outcome.credential, get_request_host(request))
    return response


@router_auth.post("/true-sdk")
async def carrier_callback(
    callback: CarrierCallback,
    request: Request,
    login_service: LoginService = Depends(get_login_service),
    delivery: SessionDeliveryService = Depends(get_session_delivery),
):
    """Carrier identity callback; the browser is redirected back to the frontend."""
    _require_enabled(get_config().providers.carrier.enabled)
    frontend_url = resolve_frontend_url(request)

    try:
        outcome = await login_service.handle_carrier_callback(callback)
    except Exception:
        logger.exception("Unexpected error handling carrier callback")
        outcome = LoginOutcome(
            status=LoginStatus.FAILED, provider="truecaller", error_code="server_error"
        )

    if outcome.status in _ACK_MESSAGES:
        return JSONResponse({"status": "ok", "message": _ACK_MESSAGES[outcome.status]})

    if not outcome.succeeded:
        return RedirectResponse(
            f"{frontend_url}?{urlencode({'error': outcome.error_code})}", status_code=302
        )

    query = urlencode({"user_id": outcome.user_id, "auth_success": "true"})
    response = RedirectResponse(f"{frontend_url}/dashboard?{query}", status_code=302)
    delivery.attach(response, outcome.credential, get_request_host(request))
    return response


@router_auth.post("/phone-email/verify")
async def verify_phone_email(
    verification: PhoneLinkVerification,
    request: Request,
    login_service: LoginService = Depends(get_login_service),
    delivery: SessionDeliveryService = Depends(get_session_delivery),
):
    _require_enabled(get_config().providers.phone_link.enabled)
    outcome = await login_service.handle_phone_link(verification)
    return _session_response(outcome, request, delivery)


@router_auth.post("/linkedin/callback")
async def oauth_callback(
    exchange: OAuthCodeExchange,
    request: Request,
    login_service: LoginService = Depends(get_login_service),
    delivery: SessionDeliveryService = Depends(get_session_delivery),
):
    """Exchange the OAuth authorization code forwarded by the frontend."""
    _require_enabled(get_config().providers.oauth.enabled)
    outcome = await login_service.handle_oauth(exchange)
    return _session_response(outcome, request, delivery)


@router_auth.get("/profile", response_model=ProfileResponse)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    profile_service: UserProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    try:
        profile = await run_in_threadpool(profile_service.get_profile, user_id)
    except ProfileNotFound as exc:
        raise HTTPException(status_code=404, detail="Profile not found") from exc
    except AuthError as exc:
        raise HTTPException(status_code=exc.http_status, detail=exc.error_code) from exc
    return ProfileResponse.from_profile(profile)


@router_auth.post("/complete-profile", response_model=ProfileResponse)
async def complete_profile(
    body: CompleteProfileRequest,
    user_id: str = Depends(get_current_user_id),
    profile_service: UserProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    """Let the signed-in user set their own name and picture."""
    if not body.first_name.strip():
        raise HTTPException(status_code=400, detail="First name is required")
    try:
        profile = await run_in_threadpool(
            profile_service.complete_profile,
            user_id,
            body.first_name,
            body.last_name,
            body.profile_picture_url,
        )
    except ProfileNotFound as exc:
        raise HTTPException(status_code=404, detail="Profile not found") from exc
    except AuthError as exc:
        raise HTTPException(status_code=exc.http_status, detail=exc.error_code) from exc
    return ProfileResponse.from_profile(profile)


@router_auth.post("/logout")
async def logout(
    request: Request,
    delivery: SessionDeliveryService = Depends(get_session_delivery),
) -> JSONResponse:
    response = JSONResponse({"message": "Logged out successfully"})
    delivery.clear(response, get_request_host(request))
    return response


@router_auth.get("/ping", response_class=PlainTextResponse)
async def ping() -> str:
    return "pong"


@router_auth.get("/debug-request")
async def debug_request(
    request: Request,
    token_service: SessionTokenService = Depends(get_token_service),
    delivery: SessionDeliveryService = Depends(get_session_delivery),
) -> dict[str, Any]:
    """Echo what the backend sees of the request. Never enabled in production."""
    if get_config().app.environment == "production":
        raise HTTPException(status_code=404, detail="Not Found")

    headers = {
        name: request.headers.get(name)
        for name in ("host", "x-forwarded-host", "x-forwarded-proto", "user-agent", "origin", "referer")
    }
    headers["cookie"] = "cookie" in request.headers

    token_info: str | dict[str, Any] = "Not present"
    credential = request.cookies.get(delivery.cookie_name)
    if credential:
        try:
            claims = token_service.decode(credential)
            token_info = {
                "decodable": True,
                "has_subject": bool(claims.get("sub")),
                "has_email": bool(claims.get("email")),
                "exp": claims.get("exp"),
            }
        except TokenInvalid:
            token_info = {"decodable": False}

    return {
        "headers": headers,
        "cookie_names": sorted(request.cookies.keys()),
        "cookie_domain": delivery.cookie_domain_for(get_request_host(request)),
        "auth_token": token_info,
    }
