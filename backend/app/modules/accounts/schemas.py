from datetime import datetime
from decimal import Decimal

from pydantic import Field

from app.core.schemas import ApiModel


class BankAccountCreate(ApiModel):
    Name: str = Field(..., min_length=1, max_length=200)
    Institution: str | None = Field(default=None, max_length=200)
    AccountType: str = Field(..., max_length=20)
    CurrentBalance: Decimal = Decimal("0")
    IsActive: bool = True


class BankAccountUpdate(ApiModel):
    Name: str | None = Field(default=None, min_length=1, max_length=200)
    Institution: str | None = Field(default=None, max_length=200)
    AccountType: str | None = Field(default=None, max_length=20)
    CurrentBalance: Decimal | None = None
    IsActive: bool | None = None


class BankAccountOut(ApiModel):
    Id: str
    FamilyId: str
    Name: str
    Institution: str | None = None
    AccountType: str
    CurrentBalance: float
    IsActive: bool
    CreatedAt: datetime
    UpdatedAt: datetime
