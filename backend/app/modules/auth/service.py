"""Credentials and tokens for family members.

Access tokens are HS256 JWTs scoped to one family; refresh tokens are opaque
random strings stored only as argon2 hashes.
"""

import secrets
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext

from app.core.config import Settings

ACCESS_TOKEN_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def NowUtc() -> datetime:
    return datetime.now(tz=timezone.utc)


def AsUtc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes for timezone-aware columns.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def HashPassword(password: str) -> str:
    return pwd_context.hash(password)


def VerifyPassword(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def CreateAccessToken(user_id: str, username: str, family_id: str, role: str) -> tuple[str, int]:
    ttl_minutes = Settings.AccessTtlMinutes
    issued_at = NowUtc()
    claims = {
        "sub": str(user_id),
        "username": username,
        "familyId": family_id,
        "role": role,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(claims, Settings.JwtSecretKey, algorithm=ACCESS_TOKEN_ALGORITHM), ttl_minutes * 60


def DecodeAccessToken(token: str) -> dict:
    try:
        claims = jwt.decode(token, Settings.JwtSecretKey, algorithms=[ACCESS_TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    if not isinstance(claims.get("sub"), str) or not claims["sub"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return claims


def CreateRefreshToken() -> str:
    return secrets.token_urlsafe(48)


def HashRefreshToken(token: str) -> str:
    return pwd_context.hash(token)


def VerifyRefreshToken(token: str, token_hash: str) -> bool:
    return pwd_context.verify(token, token_hash)
