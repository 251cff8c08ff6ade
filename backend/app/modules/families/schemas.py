from datetime import datetime

from pydantic import Field

from app.core.schemas import ApiModel
from app.modules.auth.schemas import MemberOut


class FamilyOut(ApiModel):
    Id: str
    Name: str
    CreatedAt: datetime
    Members: list[MemberOut]


class CreateMemberRequest(ApiModel):
    Username: str = Field(..., min_length=1, max_length=120)
    Password: str = Field(..., max_length=200)
    FirstName: str | None = Field(default=None, max_length=120)
    LastName: str | None = Field(default=None, max_length=120)
    Email: str | None = Field(default=None, max_length=254)
    Role: str = Field(default="Editor", max_length=20)


class UpdateMemberRequest(ApiModel):
    FirstName: str | None = Field(default=None, max_length=120)
    LastName: str | None = Field(default=None, max_length=120)
    Email: str | None = Field(default=None, max_length=254)
    Role: str | None = Field(default=None, max_length=20)
