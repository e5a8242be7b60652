"""Passwords (bcrypt) and signed bearer tokens.

Tokens are compact HS256 JWTs signed with ``SECRET_KEY``. Claims:
``sub`` is the user id as a string, ``type`` is ``access`` or ``refresh``,
``iat``/``exp`` are epoch seconds.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from typing import Any

import bcrypt

from .config import Settings
from .exceptions import UnauthorizedError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_HEADER = {"alg": "HS256", "typ": "JWT"}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """False for a wrong password, a missing hash or a hash bcrypt cannot parse."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _unb64(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _json_segment(obj: dict[str, Any]) -> str:
    return _b64(json.dumps(obj, separators=(",", ":"), sort_keys=True).encode())


def _signature(header_and_payload: str, secret: str) -> str:
    return _b64(hmac.new(secret.encode(), header_and_payload.encode("ascii"), hashlib.sha256).digest())


def _invalid(message: str, code: str = "INVALID_TOKEN") -> UnauthorizedError:
    return UnauthorizedError(message=message, error_code=code)


def _token_lifetime(token_type: str, settings: Settings) -> int:
    minutes = {
        ACCESS_TOKEN_TYPE: settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        REFRESH_TOKEN_TYPE: settings.REFRESH_TOKEN_EXPIRE_MINUTES,
    }.get(token_type)
    if minutes is None:
        raise ValueError(f"Unknown token type: {token_type}")
    return minutes * 60


def create_token(
    *,
    user_id: int,
    token_type: str,
    settings: Settings,
    extra_claims: dict[str, Any] | None = None,
) -> tuple[str, int]:
    """Sign a token for ``user_id``; returns ``(token, expires_in_seconds)``."""
    if settings.ALGORITHM != "HS256":
        raise ValueError(f"Unsupported token algorithm: {settings.ALGORITHM}")
    lifetime = _token_lifetime(token_type, settings)
    issued = int(time.time())
    claims = {"sub": str(user_id), "type": token_type, "iat": issued, "exp": issued + lifetime}
    claims.update(extra_claims or {})

    body = f"{_json_segment(_HEADER)}.{_json_segment(claims)}"
    return f"{body}.{_signature(body, settings.SECRET_KEY)}", lifetime


def _verified_claims(token: str, secret: str) -> dict[str, Any]:
    body, _, signature = token.rpartition(".")
    if not token.isascii() or body.count(".") != 1:
        raise _invalid("Invalid token format")
    if not hmac.compare_digest(signature, _signature(body, secret)):
        raise _invalid("Invalid token signature")
    try:
        claims = json.loads(_unb64(body.split(".")[1]))
    except ValueError as exc:  # binascii.Error and JSONDecodeError included
        raise _invalid("Invalid token payload") from exc
    if not isinstance(claims, dict):
        raise _invalid("Invalid token payload")
    return claims


def decode_token(token: str, *, expected_type: str, settings: Settings) -> int:
    """Verify ``token`` and return the user id in its ``sub`` claim.

    Raises ``UnauthorizedError`` with ``TOKEN_EXPIRED`` for an expired token
    and ``INVALID_TOKEN`` for everything else.
    """
    claims = _verified_claims(token, settings.SECRET_KEY)

    exp = claims.get("exp")
    if not isinstance(exp, int):
        raise _invalid("Invalid token expiration")
    if time.time() >= exp:
        raise _invalid("Token has expired", "TOKEN_EXPIRED")
    if claims.get("type") != expected_type:
        raise _invalid("Invalid token type")

    sub = claims.get("sub")
    if not (isinstance(sub, str) and sub.isdigit()):
        raise _invalid("Invalid token subject")
    return int(sub)
