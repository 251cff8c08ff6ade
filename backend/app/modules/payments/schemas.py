from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from app.core.schemas import ApiModel
from app.modules.income.schemas import IncomeEventOut


class SpendingCategoryCreate(ApiModel):
    Name: str = Field(..., min_length=1, max_length=100)
    BudgetCategoryId: str | None = None
    Color: str | None = Field(default=None, max_length=7)
    Icon: str | None = Field(default=None, max_length=50)
    IsActive: bool = True


class SpendingCategoryUpdate(ApiModel):
    Name: str | None = Field(default=None, min_length=1, max_length=100)
    BudgetCategoryId: str | None = None
    Color: str | None = Field(default=None, max_length=7)
    Icon: str | None = Field(default=None, max_length=50)
    IsActive: bool | None = None


class SpendingCategoryOut(ApiModel):
    Id: str
    FamilyId: str
    Name: str
    BudgetCategoryId: str | None = None
    Color: str
    Icon: str | None = None
    IsActive: bool
    CreatedAt: datetime


class PaymentCreate(ApiModel):
    Payee: str = Field(..., min_length=1, max_length=200)
    Amount: Decimal = Field(..., gt=0)
    DueDate: date
    PaymentType: str = Field(default="once", max_length=20)
    Frequency: str | None = Field(default=None, max_length=20)
    SpendingCategoryId: str | None = None
    AutoPayEnabled: bool = False
    Notes: str | None = Field(default=None, max_length=1000)


class PaymentBulkCreate(ApiModel):
    Payments: list[PaymentCreate] = Field(..., min_length=1, max_length=100)


class PaymentUpdate(ApiModel):
    Payee: str | None = Field(default=None, min_length=1, max_length=200)
    Amount: Decimal | None = Field(default=None, gt=0)
    DueDate: date | None = None
    PaymentType: str | None = Field(default=None, max_length=20)
    Frequency: str | None = Field(default=None, max_length=20)
    SpendingCategoryId: str | None = None
    AutoPayEnabled: bool | None = None
    Notes: str | None = Field(default=None, max_length=1000)


class PaymentOut(ApiModel):
    Id: str
    FamilyId: str
    Payee: str
    Amount: float
    DueDate: date
    PaidDate: date | None = None
    PaidAmount: float | None = None
    PaymentType: str
    Frequency: str
    Status: str
    SpendingCategoryId: str | None = None
    SpendingCategoryName: str | None = None
    AutoPayEnabled: bool
    Notes: str | None = None
    TotalAttributed: float
    CreatedAt: datetime
    UpdatedAt: datetime


class BulkCreateSummaryOut(ApiModel):
    TotalCreated: int
    TotalAmount: float


class PaymentBulkCreateResponse(ApiModel):
    Message: str
    Payments: list[PaymentOut]
    Summary: BulkCreateSummaryOut


class MarkPaidRequest(ApiModel):
    PaidDate: date
    PaidAmount: Decimal = Field(..., gt=0)


class MarkPaidResponse(ApiModel):
    Payment: PaymentOut
    NextPayment: PaymentOut | None = None


class PaymentTotalsOut(ApiModel):
    FromDate: date
    ToDate: date
    TotalScheduled: float
    TotalPaid: float
    Count: int
    PaidCount: int
    PartialCount: int
    OverdueCount: int


class PaymentSummaryOut(ApiModel):
    PaymentAmount: float
    TotalAttributed: float
    RemainingAmount: float
    FullyAttributed: bool
    State: str


class AttributionCreate(ApiModel):
    IncomeEventId: str
    Amount: Decimal
    AttributionType: str = "manual"


class AttributionUpdate(ApiModel):
    Amount: Decimal


class AttributionOut(ApiModel):
    Id: str
    PaymentId: str
    IncomeEventId: str
    Amount: float
    AttributionType: str
    CreatedBy: str
    CreatedAt: datetime


class AttributionCreateResponse(ApiModel):
    Message: str
    Attribution: AttributionOut
    UpdatedIncomeEvent: IncomeEventOut
    PaymentSummary: PaymentSummaryOut


class PaymentAttributionsResponse(ApiModel):
    PaymentId: str
    Attributions: list[AttributionOut]
    PaymentSummary: PaymentSummaryOut


class AutoAttributeRequest(ApiModel):
    Strategy: str | None = "default"
    PreferredIncomeEventIds: list[str] | None = None


class AutoAttributeResponse(ApiModel):
    Attributions: list[AttributionOut]
    TotalAttributed: float
    RemainingAmount: float
    PaymentSummary: PaymentSummaryOut
