import pytest
from fastapi import HTTPException

from app.modules.auth.service import CreateAccessToken, DecodeAccessToken


def test_access_token_carries_family_scope():
    token, expires_in = CreateAccessToken("user-1", "sam", "family-1", "Editor")

    claims = DecodeAccessToken(token)

    assert claims["sub"] == "user-1"
    assert claims["familyId"] == "family-1"
    assert claims["role"] == "Editor"
    assert expires_in == 30 * 60


def test_expired_token_is_rejected(monkeypatch):
    monkeypatch.setenv("JWT_ACCESS_TTL_MINUTES", "-1")
    token, _ = CreateAccessToken("user-1", "sam", "family-1", "Editor")

    with pytest.raises(HTTPException) as exc_info:
        DecodeAccessToken(token)
    assert exc_info.value.detail == "Token expired"


def test_token_signed_with_other_secret_is_rejected(monkeypatch):
    token, _ = CreateAccessToken("user-1", "sam", "family-1", "Editor")
    monkeypatch.setenv("JWT_SECRET_KEY", "a-different-secret-key-of-reasonable-length")

    with pytest.raises(HTTPException) as exc_info:
        DecodeAccessToken(token)
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid token"
