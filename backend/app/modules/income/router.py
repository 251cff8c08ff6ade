from datetime import date
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.income.models import IncomeEvent
from app.modules.income.schemas import (
    IncomeAttributionOut,
    IncomeAttributionsResponse,
    IncomeEventBulkCreate,
    IncomeEventCreate,
    IncomeEventOut,
    IncomeEventUpdate,
    IncomeSummaryOut,
    MarkReceivedRequest,
    MarkReceivedResponse,
)
from app.modules.income.services.income_service import (
    BulkCreateIncomeEvents,
    CancelIncomeEvent,
    CreateIncomeEvent,
    DeleteIncomeEvent,
    GetIncomeEvent,
    ListIncomeAttributions,
    ListIncomeEvents,
    ListUpcomingIncomeEvents,
    MarkIncomeReceived,
    RevertIncomeReceived,
    SummarizeIncome,
    UpdateIncomeEvent,
)
from app.services.money import SumAmounts

router = APIRouter(prefix="/api/income-events", tags=["income"])
logger = logging.getLogger("income")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("income events database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Income storage not initialized. Run alembic upgrade head.",
    ) from exc


def BuildIncomeEventOut(record: IncomeEvent) -> IncomeEventOut:
    return IncomeEventOut(
        Id=record.Id,
        FamilyId=record.FamilyId,
        Name=record.Name,
        Amount=float(record.Amount),
        ScheduledDate=record.ScheduledDate,
        ActualDate=record.ActualDate,
        ActualAmount=float(record.ActualAmount) if record.ActualAmount is not None else None,
        Frequency=record.Frequency,
        Status=record.Status,
        AllocatedAmount=float(record.AllocatedAmount),
        RemainingAmount=float(record.RemainingAmount),
        Source=record.Source,
        Notes=record.Notes,
        CreatedAt=record.CreatedAt,
        UpdatedAt=record.UpdatedAt,
    )


@router.get("", response_model=list[IncomeEventOut])
def ListIncome(
    status_filter: str | None = Query(default=None, alias="status"),
    from_date: date | None = Query(default=None, alias="fromDate"),
    to_date: date | None = Query(default=None, alias="toDate"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> list[IncomeEventOut]:
    try:
        records = ListIncomeEvents(db, user.FamilyId, status_filter, from_date, to_date)
        return [BuildIncomeEventOut(record) for record in records]
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/summary", response_model=IncomeSummaryOut)
def GetIncomeSummary(
    from_date: date = Query(..., alias="fromDate"),
    to_date: date = Query(..., alias="toDate"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> IncomeSummaryOut:
    try:
        summary = SummarizeIncome(db, user.FamilyId, from_date, to_date)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return IncomeSummaryOut(
        FromDate=summary.FromDate,
        ToDate=summary.ToDate,
        TotalScheduled=float(summary.TotalScheduled),
        TotalReceived=float(summary.TotalReceived),
        TotalAllocated=float(summary.TotalAllocated),
        TotalRemaining=float(summary.TotalRemaining),
        Count=summary.Count,
        ReceivedCount=summary.ReceivedCount,
        ScheduledCount=summary.ScheduledCount,
        CancelledCount=summary.CancelledCount,
    )


@router.get("/upcoming", response_model=list[IncomeEventOut])
def GetUpcomingIncome(
    days: int = Query(default=30),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> list[IncomeEventOut]:
    try:
        return [BuildIncomeEventOut(record) for record in ListUpcomingIncomeEvents(db, user.FamilyId, days)]
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=IncomeEventOut, status_code=status.HTTP_201_CREATED)
def CreateIncome(
    payload: IncomeEventCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> IncomeEventOut:
    try:
        return BuildIncomeEventOut(CreateIncomeEvent(db, user.FamilyId, payload.model_dump()))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/bulk", response_model=list[IncomeEventOut], status_code=status.HTTP_201_CREATED)
def CreateIncomeBulk(
    payload: IncomeEventBulkCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> list[IncomeEventOut]:
    try:
        records = BulkCreateIncomeEvents(db, user.FamilyId, [entry.model_dump() for entry in payload.IncomeEvents])
        return [BuildIncomeEventOut(record) for record in records]
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{income_event_id}", response_model=IncomeEventOut)
def GetIncome(
    income_event_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> IncomeEventOut:
    try:
        return BuildIncomeEventOut(GetIncomeEvent(db, user.FamilyId, income_event_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/{income_event_id}", response_model=IncomeEventOut)
def UpdateIncome(
    income_event_id: str,
    payload: IncomeEventUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> IncomeEventOut:
    try:
        record = UpdateIncomeEvent(db, user.FamilyId, income_event_id, payload.model_dump(exclude_unset=True))
        return BuildIncomeEventOut(record)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{income_event_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteIncome(
    income_event_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> None:
    try:
        DeleteIncomeEvent(db, user.FamilyId, income_event_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{income_event_id}/mark-received", response_model=MarkReceivedResponse)
def MarkReceived(
    income_event_id: str,
    payload: MarkReceivedRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> MarkReceivedResponse:
    try:
        result = MarkIncomeReceived(db, user.FamilyId, income_event_id, payload.ActualDate, payload.ActualAmount)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return MarkReceivedResponse(
        IncomeEvent=BuildIncomeEventOut(result.IncomeEvent),
        NextIncomeEvent=BuildIncomeEventOut(result.NextIncomeEvent) if result.NextIncomeEvent else None,
    )


@router.post("/{income_event_id}/revert-received", response_model=IncomeEventOut)
def RevertReceived(
    income_event_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> IncomeEventOut:
    try:
        return BuildIncomeEventOut(RevertIncomeReceived(db, user.FamilyId, income_event_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{income_event_id}/cancel", response_model=IncomeEventOut)
def CancelIncome(
    income_event_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> IncomeEventOut:
    try:
        return BuildIncomeEventOut(CancelIncomeEvent(db, user.FamilyId, income_event_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{income_event_id}/attributions", response_model=IncomeAttributionsResponse)
def GetIncomeAttributions(
    income_event_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> IncomeAttributionsResponse:
    try:
        record, rows = ListIncomeAttributions(db, user.FamilyId, income_event_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return IncomeAttributionsResponse(
        IncomeEventId=record.Id,
        Attributions=[
            IncomeAttributionOut(
                Id=attribution.Id,
                PaymentId=payment.Id,
                Payee=payment.Payee,
                PaymentAmount=float(payment.Amount),
                DueDate=payment.DueDate,
                PaymentStatus=payment.Status,
                Amount=float(attribution.Amount),
                AttributionType=attribution.AttributionType,
                CreatedBy=attribution.CreatedBy,
                CreatedAt=attribution.CreatedAt,
            )
            for attribution, payment in rows
        ],
        TotalAttributed=float(SumAmounts(attribution.Amount for attribution, _ in rows)),
        RemainingAmount=float(record.RemainingAmount),
    )
