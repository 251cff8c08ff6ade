from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from app.core.schemas import ApiModel


class BudgetCategoryCreate(ApiModel):
    Name: str = Field(..., min_length=1, max_length=100)
    TargetPercentage: Decimal
    Color: str | None = Field(default=None, max_length=7)
    SortOrder: int | None = Field(default=None, ge=0)
    IsActive: bool = True


class BudgetCategoryUpdate(ApiModel):
    Name: str | None = Field(default=None, min_length=1, max_length=100)
    TargetPercentage: Decimal | None = None
    Color: str | None = Field(default=None, max_length=7)
    SortOrder: int | None = Field(default=None, ge=0)
    IsActive: bool | None = None


class BudgetCategoryOut(ApiModel):
    Id: str
    FamilyId: str
    Name: str
    TargetPercentage: float
    Color: str
    SortOrder: int
    IsActive: bool
    CreatedAt: datetime
    UpdatedAt: datetime


class CategoryOverviewOut(ApiModel):
    Categories: list[BudgetCategoryOut]
    TotalPercentage: float
    IsComplete: bool


class PercentageEntry(ApiModel):
    Id: str | None = None
    TargetPercentage: Decimal


class ValidatePercentagesRequest(ApiModel):
    Categories: list[PercentageEntry] | None = None


class PercentageSuggestionOut(ApiModel):
    CategoryId: str | None = None
    CurrentPercentage: float
    SuggestedPercentage: float


class PercentageValidationOut(ApiModel):
    IsValid: bool
    TotalPercentage: float
    RemainingPercentage: float
    Difference: float
    Errors: list[str]
    Suggestions: list[PercentageSuggestionOut]


class TemplateEntryIn(ApiModel):
    CategoryName: str = Field(..., min_length=1, max_length=100)
    Percentage: Decimal


class BudgetTemplateCreate(ApiModel):
    Name: str = Field(..., min_length=1, max_length=100)
    Description: str | None = Field(default=None, max_length=1000)
    Entries: list[TemplateEntryIn] = Field(..., min_length=1)


class TemplateEntryOut(ApiModel):
    CategoryName: str
    Percentage: float
    SortOrder: int


class BudgetTemplateOut(ApiModel):
    Id: str
    FamilyId: str
    Name: str
    Description: str | None = None
    Entries: list[TemplateEntryOut]
    CreatedAt: datetime


class CustomAllocationIn(ApiModel):
    BudgetCategoryId: str
    Percentage: Decimal


class GenerateAllocationsRequest(ApiModel):
    TemplateId: str | None = None
    CustomAllocations: list[CustomAllocationIn] | None = None


class AllocationUpdateRequest(ApiModel):
    Amount: Decimal | None = None
    Percentage: Decimal | None = None


class BudgetAllocationOut(ApiModel):
    Id: str
    IncomeEventId: str
    BudgetCategoryId: str
    CategoryName: str
    CategoryColor: str
    Amount: float
    Percentage: float
    CreatedAt: datetime
    UpdatedAt: datetime


class AllocationIncomeEventOut(ApiModel):
    Id: str
    Name: str
    Amount: float
    ScheduledDate: date
    Status: str


class AllocationSetOut(ApiModel):
    IncomeEvent: AllocationIncomeEventOut
    Allocations: list[BudgetAllocationOut]
    TotalAmount: float
    TotalPercentage: float
