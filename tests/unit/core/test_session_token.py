"""Unit tests for the session credential codec."""

import base64
import json
import time

import pytest
from authlib.jose import JsonWebToken

from src.flattr_auth.core.errors import SessionTokenError, TokenExpired, TokenInvalid
from src.flattr_auth.core.services import SessionTokenService
from src.flattr_auth.runtime.config.config_data import SessionConfig

_NOW = 1_700_000_000


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


def _encode(payload: dict, secret: str, alg: str = "HS256") -> str:
    token = JsonWebToken([alg]).encode({"alg": alg, "typ": "JWT"}, payload, secret)
    return token.decode() if isinstance(token, bytes) else token


class TestSessionTokenService:
    def test_issue_then_verify_returns_user_id(self, token_service):
        credential = token_service.issue("user-123", email="ada@example.com")

        assert token_service.verify(credential) == "user-123"

    def test_issued_claims(self, token_service):
        credential = token_service.issue("user-123", email="ada@example.com", now=_NOW)

        claims = token_service.decode(credential)
        assert claims["sub"] == "user-123"
        assert claims["email"] == "ada@example.com"
        assert claims["iat"] == _NOW
        assert claims["exp"] == _NOW + 3600
        assert claims["iss"] == "flattr-auth"

    def test_email_claim_omitted_when_unknown(self, token_service):
        claims = token_service.decode(token_service.issue("user-123", now=_NOW))

        assert "email" not in claims

    def test_expired_credential(self, token_service):
        credential = token_service.issue("user-123", now=_NOW)

        with pytest.raises(TokenExpired):
            token_service.verify(credential, now=_NOW + 3601)

    def test_credential_valid_until_expiry(self, token_service):
        credential = token_service.issue("user-123", now=_NOW)

        assert token_service.verify(credential, now=_NOW + 3599) == "user-123"

    def test_wrong_secret_rejected(self, token_service):
        other = SessionTokenService("a-different-secret", ttl_seconds=3600, issuer="flattr-auth")
        credential = other.issue("user-123")

        with pytest.raises(TokenInvalid):
            token_service.verify(credential)

    def test_tampered_payload_rejected(self, token_service):
        header, _, signature = token_service.issue("user-123").split(".")
        forged_payload = _b64(
            {"sub": "someone-else", "iat": int(time.time()), "exp": int(time.time()) + 60, "iss": "flattr-auth"}
        )

        with pytest.raises(TokenInvalid):
            token_service.verify(f"{header}.{forged_payload}.{signature}")

    def test_other_algorithm_rejected(self, token_service, signing_secret):
        payload = {"sub": "user-123", "iat": int(time.time()), "exp": int(time.time()) + 60, "iss": "flattr-auth"}
        credential = _encode(payload, signing_secret, alg="HS512")

        with pytest.raises(TokenInvalid):
            token_service.verify(credential)

    def test_unsigned_credential_rejected(self, token_service):
        header = _b64({"alg": "none", "typ": "JWT"})
        payload = _b64({"sub": "user-123", "exp": int(time.time()) + 60, "iss": "flattr-auth"})

        with pytest.raises(TokenInvalid):
            token_service.verify(f"{header}.{payload}.")

    def test_missing_subject_rejected(self, token_service, signing_secret):
        credential = _encode(
            {"iat": int(time.time()), "exp": int(time.time()) + 60, "iss": "flattr-auth"},
            signing_secret,
        )

        with pytest.raises(TokenInvalid):
            token_service.verify(credential)

    def test_wrong_issuer_rejected(self, token_service, signing_secret):
        credential = _encode(
            {"sub": "user-123", "iat": int(time.time()), "exp": int(time.time()) + 60, "iss": "elsewhere"},
            signing_secret,
        )

        with pytest.raises(TokenInvalid):
            token_service.verify(credential)

    @pytest.mark.parametrize("credential", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_credentials_rejected(self, token_service, credential):
        with pytest.raises(TokenInvalid):
            token_service.verify(credential)

    def test_errors_share_unauthorized_code(self):
        assert TokenExpired.error_code == TokenInvalid.error_code == "unauthorized"
        assert issubclass(TokenExpired, SessionTokenError)
        assert TokenInvalid.http_status == 401

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            SessionTokenService("")

    def test_issue_requires_user_id(self, token_service):
        with pytest.raises(ValueError):
            token_service.issue("")

    def test_from_config(self):
        service = SessionTokenService.from_config(
            SessionConfig(signing_secret="from-config", ttl_seconds=120, issuer="flattr-auth")
        )

        assert service.ttl_seconds == 120
        assert service.verify(service.issue("user-9")) == "user-9"

    def test_from_config_without_secret_fails(self):
        with pytest.raises(ValueError):
            SessionTokenService.from_config(SessionConfig())

    def test_decode_rejects_garbage(self, token_service):
        with pytest.raises(TokenInvalid):
            token_service.decode("definitely not a token")
