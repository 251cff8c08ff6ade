from datetime import timedelta
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.db import GetDb
from app.modules.auth.deps import RequireAuthenticated, UserContext
from app.modules.auth.models import Family, RefreshToken, User
from app.modules.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MemberOut,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from app.modules.auth.service import (
    AsUtc,
    CreateAccessToken,
    CreateRefreshToken,
    HashPassword,
    HashRefreshToken,
    NowUtc,
    VerifyPassword,
    VerifyRefreshToken,
)
from app.modules.budget.services.template_service import SeedDefaultTemplates

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("app.auth")


def _CheckPasswordLength(password: str) -> None:
    min_length = Settings.PasswordMinLength
    if len(password) < min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {min_length} characters",
        )


def _IssueTokens(db: Session, user: User) -> TokenResponse:
    access_token, expires_in = CreateAccessToken(user.Id, user.Username, user.FamilyId, user.Role)
    refresh_token = CreateRefreshToken()
    expires_at = NowUtc() + timedelta(days=Settings.RefreshTtlDays)
    db.add(
        RefreshToken(
            UserId=user.Id,
            TokenHash=HashRefreshToken(refresh_token),
            ExpiresAt=expires_at,
        )
    )
    db.commit()

    return TokenResponse(
        AccessToken=access_token,
        RefreshToken=refresh_token,
        ExpiresIn=expires_in,
        UserId=user.Id,
        Username=user.Username,
        FamilyId=user.FamilyId,
        Role=user.Role,
        FirstName=user.FirstName,
        LastName=user.LastName,
    )


@router.post("/login", response_model=TokenResponse)
def Login(payload: LoginRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    user = db.query(User).filter(User.Username == payload.Username.strip()).first()
    now = NowUtc()
    if user and user.LockedUntil and AsUtc(user.LockedUntil) > now:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account locked. Try again later.")

    if not user or not VerifyPassword(payload.Password, user.PasswordHash):
        if user:
            user.FailedLoginCount += 1
            if user.FailedLoginCount >= Settings.LoginMaxAttempts:
                user.LockedUntil = now + timedelta(minutes=Settings.LoginLockoutMinutes)
                user.FailedLoginCount = 0
                logger.warning("member locked out after failed logins", extra={"user_id": user.Id})
            db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user.FailedLoginCount = 0
    user.LockedUntil = None
    return _IssueTokens(db, user)


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def Register(payload: RegisterRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    username = payload.Username.strip()
    if not username:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username required")
    family_name = payload.FamilyName.strip()
    if not family_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Family name required")

    existing = db.query(User).filter(User.Username == username).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")

    _CheckPasswordLength(payload.Password)

    family = Family(Name=family_name)
    db.add(family)
    db.flush()
    record = User(
        FamilyId=family.Id,
        Username=username,
        PasswordHash=HashPassword(payload.Password),
        FirstName=payload.FirstName.strip() if payload.FirstName else None,
        LastName=payload.LastName.strip() if payload.LastName else None,
        Email=payload.Email.strip().lower() if payload.Email else None,
        Role="Admin",
    )
    db.add(record)
    SeedDefaultTemplates(db, family.Id)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    db.refresh(record)

    logger.info("family registered", extra={"family_id": family.Id, "user_id": record.Id})
    return _IssueTokens(db, record)


@router.post("/refresh", response_model=TokenResponse)
def Refresh(payload: RefreshRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    now = NowUtc()
    tokens = (
        db.query(RefreshToken)
        .filter(RefreshToken.RevokedAt.is_(None), RefreshToken.ExpiresAt > now)
        .all()
    )
    matched = None
    for token in tokens:
        if VerifyRefreshToken(payload.RefreshToken, token.TokenHash):
            matched = token
            break

    if not matched:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = db.query(User).filter(User.Id == matched.UserId).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    matched.RevokedAt = now
    return _IssueTokens(db, user)


@router.post("/logout")
def Logout(
    payload: RefreshRequest,
    user: UserContext = Depends(RequireAuthenticated),
    db: Session = Depends(GetDb),
) -> dict:
    tokens = db.query(RefreshToken).filter(RefreshToken.UserId == user.Id, RefreshToken.RevokedAt.is_(None)).all()
    for token in tokens:
        if VerifyRefreshToken(payload.RefreshToken, token.TokenHash):
            token.RevokedAt = NowUtc()
            db.add(token)
            db.commit()
            return {"status": "ok"}
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Refresh token not found")


@router.get("/me", response_model=MemberOut)
def Me(user: UserContext = Depends(RequireAuthenticated), db: Session = Depends(GetDb)) -> MemberOut:
    record = db.query(User).filter(User.Id == user.Id).first()
    return MemberOut(
        Id=record.Id,
        FamilyId=record.FamilyId,
        Username=record.Username,
        FirstName=record.FirstName,
        LastName=record.LastName,
        Email=record.Email,
        Role=record.Role,
        CreatedAt=record.CreatedAt,
    )


@router.post("/change-password")
def ChangePassword(
    payload: ChangePasswordRequest,
    user: UserContext = Depends(RequireAuthenticated),
    db: Session = Depends(GetDb),
) -> dict:
    _CheckPasswordLength(payload.NewPassword)

    record = db.query(User).filter(User.Id == user.Id).first()
    if not record or not VerifyPassword(payload.CurrentPassword, record.PasswordHash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    record.PasswordHash = HashPassword(payload.NewPassword)
    record.FailedLoginCount = 0
    record.LockedUntil = None

    tokens = db.query(RefreshToken).filter(RefreshToken.UserId == record.Id, RefreshToken.RevokedAt.is_(None)).all()
    for token in tokens:
        token.RevokedAt = NowUtc()
        db.add(token)

    db.add(record)
    db.commit()
    return {"status": "ok"}
