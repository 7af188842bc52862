import base64
import json
from dataclasses import dataclass
from typing import Any, Final

from src.flattr_auth.core.errors import TokenInvalid

# ---------------- tunables ----------------
MAX_JWT_CHARS: Final = 4096
MAX_SEGMENT_CHARS: Final = 4096
MAX_HEADER_BYTES: Final = 8 * 1024
MAX_PAYLOAD_BYTES: Final = 64 * 1024
_ALLOWED: Final = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_."
)  # no '='


def _prefilter_compact_jwt(token: str) -> tuple[str, str, str]:
    if not token or len(token) > MAX_JWT_CHARS:
        raise TokenInvalid("Invalid JWT size")
    if any(ch not in _ALLOWED for ch in token):
        raise TokenInvalid("Invalid JWT characters")
    parts = token.split(".")
    if len(parts) != 3 or not all(parts):
        raise TokenInvalid("Invalid JWT format")
    if any(len(part) > MAX_SEGMENT_CHARS for part in parts):
        raise TokenInvalid("Invalid JWT segment size")
    h, p, s = parts
    return h, p, s


def _b64url_decode_unpadded(seg: str, what: str, max_bytes: int) -> bytes:
    pad = (-len(seg)) % 4
    try:
        raw = base64.urlsafe_b64decode((seg + "=" * pad).encode("ascii"))
    except ValueError as e:
        raise TokenInvalid(f"Invalid base64url in {what}") from e
    if len(raw) > max_bytes:
        raise TokenInvalid(f"{what} too large")
    return raw


def _decode_json_object(raw: bytes, what: str) -> dict[str, Any]:
    try:
        obj = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise TokenInvalid(f"Non-UTF8 {what}") from e
    except json.JSONDecodeError as e:
        raise TokenInvalid(f"Invalid JSON in {what}") from e
    if not isinstance(obj, dict):
        raise TokenInvalid(f"{what} must be a JSON object")
    return obj


@dataclass(frozen=True)
class JwtPreview:
    header: dict[str, Any]
    claims: dict[str, Any]
    alg: str | None
    sub: str | None
    exp: int | None


def preview_jwt(token: str) -> JwtPreview:
    """Split and decode header+payload exactly once, without checking the signature."""
    h_seg, p_seg, _ = _prefilter_compact_jwt(token)
    header = _decode_json_object(
        _b64url_decode_unpadded(h_seg, "JWT header", MAX_HEADER_BYTES), "JWT header"
    )
    claims = _decode_json_object(
        _b64url_decode_unpadded(p_seg, "JWT payload", MAX_PAYLOAD_BYTES), "JWT payload"
    )
    sub = claims.get("sub")
    exp = claims.get("exp")
    return JwtPreview(
        header=header,
        claims=claims,
        alg=header.get("alg"),
        sub=sub if isinstance(sub, str) else None,
        exp=exp if isinstance(exp, int) else None,
    )


def token_fingerprint(token: str | None) -> str:
    """Truncated form of a credential for log lines."""
    if not token:
        return "<none>"
    return f"{token[:10]}...({len(token)} chars)"
