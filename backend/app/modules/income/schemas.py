from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from app.core.schemas import ApiModel


class IncomeEventBase(ApiModel):
    Name: str = Field(..., min_length=1, max_length=200)
    Amount: Decimal = Field(..., gt=0)
    ScheduledDate: date
    Frequency: str = Field(default="once", max_length=20)
    Source: str | None = Field(default=None, max_length=200)
    Notes: str | None = Field(default=None, max_length=1000)


class IncomeEventCreate(IncomeEventBase):
    pass


class IncomeEventBulkCreate(ApiModel):
    IncomeEvents: list[IncomeEventCreate] = Field(..., min_length=1, max_length=100)


class IncomeEventUpdate(ApiModel):
    Name: str | None = Field(default=None, min_length=1, max_length=200)
    Amount: Decimal | None = Field(default=None, gt=0)
    ScheduledDate: date | None = None
    Frequency: str | None = Field(default=None, max_length=20)
    Source: str | None = Field(default=None, max_length=200)
    Notes: str | None = Field(default=None, max_length=1000)


class MarkReceivedRequest(ApiModel):
    ActualDate: date
    ActualAmount: Decimal | None = Field(default=None, gt=0)


class IncomeEventOut(ApiModel):
    Id: str
    FamilyId: str
    Name: str
    Amount: float
    ScheduledDate: date
    ActualDate: date | None = None
    ActualAmount: float | None = None
    Frequency: str
    Status: str
    AllocatedAmount: float
    RemainingAmount: float
    Source: str | None = None
    Notes: str | None = None
    CreatedAt: datetime
    UpdatedAt: datetime


class MarkReceivedResponse(ApiModel):
    IncomeEvent: IncomeEventOut
    NextIncomeEvent: IncomeEventOut | None = None


class IncomeSummaryOut(ApiModel):
    FromDate: date
    ToDate: date
    TotalScheduled: float
    TotalReceived: float
    TotalAllocated: float
    TotalRemaining: float
    Count: int
    ReceivedCount: int
    ScheduledCount: int
    CancelledCount: int


class IncomeAttributionOut(ApiModel):
    Id: str
    PaymentId: str
    Payee: str
    PaymentAmount: float
    DueDate: date
    PaymentStatus: str
    Amount: float
    AttributionType: str
    CreatedBy: str
    CreatedAt: datetime


class IncomeAttributionsResponse(ApiModel):
    IncomeEventId: str
    Attributions: list[IncomeAttributionOut]
    TotalAttributed: float
    RemainingAmount: float
