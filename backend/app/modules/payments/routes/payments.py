from datetime import date
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.payments.models import Payment
from app.modules.payments.schemas import (
    BulkCreateSummaryOut,
    MarkPaidRequest,
    MarkPaidResponse,
    PaymentBulkCreate,
    PaymentBulkCreateResponse,
    PaymentCreate,
    PaymentOut,
    PaymentTotalsOut,
    PaymentUpdate,
)
from app.modules.payments.services.attribution_service import AttributedTotal, AttributedTotals, GetPayment
from app.modules.payments.services.payment_service import (
    BulkCreatePayments,
    CreatePayment,
    DeletePayment,
    ListOverduePayments,
    ListPayments,
    MarkPaymentPaid,
    RevertPaymentPaid,
    SummarizePayments,
    UpdatePayment,
)
from app.services.money import ZERO, SumAmounts

router = APIRouter()
logger = logging.getLogger("payments")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("payments database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Payments storage not initialized. Run alembic upgrade head.",
    ) from exc


def _BuildPaymentOut(record: Payment, total_attributed) -> PaymentOut:
    return PaymentOut(
        Id=record.Id,
        FamilyId=record.FamilyId,
        Payee=record.Payee,
        Amount=float(record.Amount),
        DueDate=record.DueDate,
        PaidDate=record.PaidDate,
        PaidAmount=float(record.PaidAmount) if record.PaidAmount is not None else None,
        PaymentType=record.PaymentType,
        Frequency=record.Frequency,
        Status=record.Status,
        SpendingCategoryId=record.SpendingCategoryId,
        SpendingCategoryName=record.SpendingCategory.Name if record.SpendingCategory else None,
        AutoPayEnabled=record.AutoPayEnabled,
        Notes=record.Notes,
        TotalAttributed=float(total_attributed),
        CreatedAt=record.CreatedAt,
        UpdatedAt=record.UpdatedAt,
    )


def _BuildPaymentList(db: Session, records: list[Payment]) -> list[PaymentOut]:
    totals = AttributedTotals(db, [record.Id for record in records])
    return [_BuildPaymentOut(record, totals.get(record.Id, ZERO)) for record in records]


@router.get("", response_model=list[PaymentOut])
def ListAllPayments(
    status_filter: str | None = Query(default=None, alias="status"),
    from_date: date | None = Query(default=None, alias="fromDate"),
    to_date: date | None = Query(default=None, alias="toDate"),
    spending_category_id: str | None = Query(default=None, alias="spendingCategoryId"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> list[PaymentOut]:
    try:
        records = ListPayments(db, user.FamilyId, status_filter, from_date, to_date, spending_category_id)
        return _BuildPaymentList(db, records)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/summary", response_model=PaymentTotalsOut)
def GetPaymentSummary(
    from_date: date = Query(..., alias="fromDate"),
    to_date: date = Query(..., alias="toDate"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> PaymentTotalsOut:
    try:
        totals = SummarizePayments(db, user.FamilyId, from_date, to_date)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return PaymentTotalsOut(
        FromDate=totals.FromDate,
        ToDate=totals.ToDate,
        TotalScheduled=float(totals.TotalScheduled),
        TotalPaid=float(totals.TotalPaid),
        Count=totals.Count,
        PaidCount=totals.PaidCount,
        PartialCount=totals.PartialCount,
        OverdueCount=totals.OverdueCount,
    )


@router.get("/overdue", response_model=list[PaymentOut])
def GetOverduePayments(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> list[PaymentOut]:
    try:
        return _BuildPaymentList(db, ListOverduePayments(db, user.FamilyId))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def CreateNewPayment(
    payload: PaymentCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> PaymentOut:
    try:
        return _BuildPaymentOut(CreatePayment(db, user.FamilyId, payload.model_dump()), ZERO)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/bulk", response_model=PaymentBulkCreateResponse, status_code=status.HTTP_201_CREATED)
def CreatePaymentsBulk(
    payload: PaymentBulkCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> PaymentBulkCreateResponse:
    try:
        records = BulkCreatePayments(db, user.FamilyId, [entry.model_dump() for entry in payload.Payments])
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return PaymentBulkCreateResponse(
        Message="Payments created successfully.",
        Payments=[_BuildPaymentOut(record, ZERO) for record in records],
        Summary=BulkCreateSummaryOut(
            TotalCreated=len(records),
            TotalAmount=float(SumAmounts(record.Amount for record in records)),
        ),
    )


@router.get("/{payment_id}", response_model=PaymentOut)
def GetSinglePayment(
    payment_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> PaymentOut:
    try:
        record = GetPayment(db, user.FamilyId, payment_id)
        return _BuildPaymentOut(record, AttributedTotal(db, record.Id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/{payment_id}", response_model=PaymentOut)
def UpdateExistingPayment(
    payment_id: str,
    payload: PaymentUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> PaymentOut:
    try:
        record = UpdatePayment(db, user.FamilyId, payment_id, payload.model_dump(exclude_unset=True))
        return _BuildPaymentOut(record, AttributedTotal(db, record.Id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteExistingPayment(
    payment_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> None:
    try:
        DeletePayment(db, user.FamilyId, payment_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{payment_id}/mark-paid", response_model=MarkPaidResponse)
def MarkPaid(
    payment_id: str,
    payload: MarkPaidRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> MarkPaidResponse:
    try:
        result = MarkPaymentPaid(db, user.FamilyId, payment_id, payload.PaidDate, payload.PaidAmount)
        return MarkPaidResponse(
            Payment=_BuildPaymentOut(result.Payment, AttributedTotal(db, result.Payment.Id)),
            NextPayment=_BuildPaymentOut(result.NextPayment, ZERO) if result.NextPayment else None,
        )
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{payment_id}/revert-paid", response_model=PaymentOut)
def RevertPaid(
    payment_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> PaymentOut:
    try:
        record = RevertPaymentPaid(db, user.FamilyId, payment_id)
        return _BuildPaymentOut(record, AttributedTotal(db, record.Id))
    except ProgrammingError as exc:
        _handle_db_error(exc)
