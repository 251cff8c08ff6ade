from datetime import datetime

from pydantic import Field

from app.core.schemas import ApiModel


class TokenResponse(ApiModel):
    AccessToken: str
    RefreshToken: str
    TokenType: str = "bearer"
    ExpiresIn: int
    UserId: str
    Username: str
    FamilyId: str
    Role: str
    FirstName: str | None = None
    LastName: str | None = None


class LoginRequest(ApiModel):
    Username: str = Field(..., max_length=120)
    Password: str = Field(..., max_length=200)


class RegisterRequest(ApiModel):
    FamilyName: str = Field(..., min_length=1, max_length=200)
    Username: str = Field(..., min_length=1, max_length=120)
    Password: str = Field(..., max_length=200)
    FirstName: str | None = Field(default=None, max_length=120)
    LastName: str | None = Field(default=None, max_length=120)
    Email: str | None = Field(default=None, max_length=254)


class RefreshRequest(ApiModel):
    RefreshToken: str = Field(..., max_length=400)


class ChangePasswordRequest(ApiModel):
    CurrentPassword: str = Field(..., max_length=200)
    NewPassword: str = Field(..., max_length=200)


class MemberOut(ApiModel):
    Id: str
    FamilyId: str
    Username: str
    FirstName: str | None = None
    LastName: str | None = None
    Email: str | None = None
    Role: str
    CreatedAt: datetime
