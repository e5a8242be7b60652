"""Tests for password hashing and JWT tokens."""

import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone

import pytest

from src.backoffice.core.config import Settings
from src.backoffice.core.exceptions import UnauthorizedError
from src.backoffice.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    create_token,
    decode_token,
    hash_password,
    verify_password,
)

SECRET = "test-secret-key-that-is-at-least-32-characters"


@pytest.fixture
def mock_settings():
    return Settings(SECRET_KEY=SECRET, APP_ENV="development", ACCESS_TOKEN_EXPIRE_MINUTES=15)


def create_raw_token(payload: dict, secret: str = SECRET) -> str:
    header = {"alg": "HS256", "typ": "JWT"}

    def b64_encode(data: dict) -> str:
        js = json.dumps(data, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(js).rstrip(b"=").decode("ascii")

    signing_input = f"{b64_encode(header)}.{b64_encode(payload)}".encode("ascii")
    signature = hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()
    encoded_signature = base64.urlsafe_b64encode(signature).rstrip(b"=").decode("ascii")
    return f"{signing_input.decode('ascii')}.{encoded_signature}"


def _now() -> int:
    return int(datetime.now(timezone.utc).timestamp())


# --- passwords ---

def test_hash_and_verify_password():
    hashed = hash_password("S3cret!pass")
    assert hashed != "S3cret!pass"
    assert verify_password("S3cret!pass", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_without_hash():
    assert verify_password("anything", None) is False
    assert verify_password("anything", "") is False


def test_verify_password_malformed_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


# --- tokens ---

def test_access_token_round_trip(mock_settings):
    token, expires_in = create_token(user_id=42, token_type=ACCESS_TOKEN_TYPE, settings=mock_settings)
    assert expires_in == 15 * 60
    assert decode_token(token, expected_type=ACCESS_TOKEN_TYPE, settings=mock_settings) == 42


def test_refresh_token_rejected_as_access(mock_settings):
    token, _ = create_token(user_id=1, token_type=REFRESH_TOKEN_TYPE, settings=mock_settings)
    with pytest.raises(UnauthorizedError) as exc:
        decode_token(token, expected_type=ACCESS_TOKEN_TYPE, settings=mock_settings)
    assert exc.value.error_code == "INVALID_TOKEN"


def test_unknown_token_type(mock_settings):
    with pytest.raises(ValueError):
        create_token(user_id=1, token_type="magic", settings=mock_settings)


def test_expired_token(mock_settings):
    token = create_raw_token({"sub": "1", "type": "access", "exp": _now() - 60})
    with pytest.raises(UnauthorizedError) as exc:
        decode_token(token, expected_type=ACCESS_TOKEN_TYPE, settings=mock_settings)
    assert exc.value.error_code == "TOKEN_EXPIRED"


def test_invalid_signature(mock_settings):
    token = create_raw_token({"sub": "1", "type": "access", "exp": _now() + 3600}, secret="wrong-secret")
    with pytest.raises(UnauthorizedError) as exc:
        decode_token(token, expected_type=ACCESS_TOKEN_TYPE, settings=mock_settings)
    assert "signature" in exc.value.message.lower()


def test_invalid_format(mock_settings):
    with pytest.raises(UnauthorizedError) as exc:
        decode_token("not.a-token", expected_type=ACCESS_TOKEN_TYPE, settings=mock_settings)
    assert exc.value.error_code == "INVALID_TOKEN"


@pytest.mark.parametrize("sub", ["+971501234567", None, "abc"])
def test_non_numeric_subject(mock_settings, sub):
    token = create_raw_token({"sub": sub, "type": "access", "exp": _now() + 3600})
    with pytest.raises(UnauthorizedError):
        decode_token(token, expected_type=ACCESS_TOKEN_TYPE, settings=mock_settings)


def test_missing_exp(mock_settings):
    token = create_raw_token({"sub": "1", "type": "access"})
    with pytest.raises(UnauthorizedError) as exc:
        decode_token(token, expected_type=ACCESS_TOKEN_TYPE, settings=mock_settings)
    assert "expiration" in exc.value.message.lower()
