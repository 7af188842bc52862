"""Session credential codec.

Credentials are compact HS256 JWTs whose ``sub`` is the profile id. Nothing
about a session is stored server side, so expiry and signature are the only
things that end one.
"""

import time
from typing import Any

from authlib.jose import JoseError, JsonWebToken
from authlib.jose.errors import ExpiredTokenError
from loguru import logger

from src.flattr_auth.core.errors import TokenExpired, TokenInvalid
from src.flattr_auth.core.services.jwt.jwt_utils import preview_jwt, token_fingerprint
from src.flattr_auth.runtime.config.config_data import SessionConfig

SESSION_ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 7 * 24 * 3600


class SessionTokenService:
    """Issue and verify signed, expiring session credentials."""

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        issuer: str | None = None,
        leeway: int = 0,
    ):
        if not secret:
            raise ValueError("Session signing secret must not be empty")
        self._secret = secret
        self._ttl_seconds = ttl_seconds
        self._issuer = issuer
        self._leeway = leeway
        # Only HS256 is accepted on decode, which also rules out "none"
        self._jwt = JsonWebToken([SESSION_ALGORITHM])

    @classmethod
    def from_config(cls, config: SessionConfig) -> "SessionTokenService":
        return cls(
            secret=config.signing_secret or "",
            ttl_seconds=config.ttl_seconds,
            issuer=config.issuer,
            leeway=config.clock_skew,
        )

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, user_id: str, email: str | None = None, now: int | None = None) -> str:
        """Sign a credential for ``user_id`` valid for the configured lifetime."""
        if not user_id:
            raise ValueError("user_id is required to issue a session credential")

        issued_at = int(time.time()) if now is None else now
        payload: dict[str, Any] = {
            "sub": user_id,
            "iat": issued_at,
            "exp": issued_at + self._ttl_seconds,
        }
        if email:
            payload["email"] = email
        if self._issuer:
            payload["iss"] = self._issuer

        header = {"alg": SESSION_ALGORITHM, "typ": "JWT"}
        token = self._jwt.encode(header, payload, self._secret)
        return token.decode() if isinstance(token, bytes) else token

    def verify(self, credential: str, now: int | None = None) -> str:
        """Return the user id carried by a valid credential.

        Raises:
            TokenExpired: signature is fine but ``exp`` has passed
            TokenInvalid: anything else wrong with the credential
        """
        if not credential:
            raise TokenInvalid("Empty credential")

        claims_options: dict[str, Any] = {
            "sub": {"essential": True},
            "exp": {"essential": True},
        }
        if self._issuer:
            claims_options["iss"] = {"essential": True, "value": self._issuer}

        try:
            claims = self._jwt.decode(credential, self._secret, claims_options=claims_options)
            claims.validate(now=now, leeway=self._leeway)
        except ExpiredTokenError as exc:
            logger.debug("Expired session credential {}", token_fingerprint(credential))
            raise TokenExpired("Session credential expired") from exc
        except (JoseError, ValueError) as exc:
            logger.debug(
                "Rejected session credential {}: {}", token_fingerprint(credential), exc
            )
            raise TokenInvalid(f"Invalid session credential: {exc}") from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenInvalid("Session credential has no subject")
        return subject

    def decode(self, credential: str) -> dict[str, Any]:
        """Claims without signature verification. Diagnostics only."""
        return preview_jwt(credential).claims
