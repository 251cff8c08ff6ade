import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.income.router import BuildIncomeEventOut
from app.modules.payments.models import PaymentAttribution
from app.modules.payments.schemas import (
    AttributionCreate,
    AttributionCreateResponse,
    AttributionOut,
    AttributionUpdate,
    AutoAttributeRequest,
    AutoAttributeResponse,
    PaymentAttributionsResponse,
    PaymentSummaryOut,
)
from app.modules.payments.services.attribution_service import (
    AutoAttribute,
    CreateAttribution,
    DeleteAttribution,
    ListAttributions,
    PaymentSummary,
    UpdateAttribution,
)

router = APIRouter()
logger = logging.getLogger("payments.attributions")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("payment attributions database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Payments storage not initialized. Run alembic upgrade head.",
    ) from exc


def _BuildAttributionOut(record: PaymentAttribution) -> AttributionOut:
    return AttributionOut(
        Id=record.Id,
        PaymentId=record.PaymentId,
        IncomeEventId=record.IncomeEventId,
        Amount=float(record.Amount),
        AttributionType=record.AttributionType,
        CreatedBy=record.CreatedBy,
        CreatedAt=record.CreatedAt,
    )


def _BuildSummaryOut(summary: PaymentSummary) -> PaymentSummaryOut:
    return PaymentSummaryOut(
        PaymentAmount=float(summary.PaymentAmount),
        TotalAttributed=float(summary.TotalAttributed),
        RemainingAmount=float(summary.RemainingAmount),
        FullyAttributed=summary.FullyAttributed,
        State=summary.State,
    )


@router.get("/{payment_id}/attributions", response_model=PaymentAttributionsResponse)
def GetPaymentAttributions(
    payment_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> PaymentAttributionsResponse:
    try:
        payment, records, summary = ListAttributions(db, user.FamilyId, payment_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return PaymentAttributionsResponse(
        PaymentId=payment.Id,
        Attributions=[_BuildAttributionOut(record) for record in records],
        PaymentSummary=_BuildSummaryOut(summary),
    )


@router.post(
    "/{payment_id}/attributions",
    response_model=AttributionCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
def CreatePaymentAttribution(
    payment_id: str,
    payload: AttributionCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> AttributionCreateResponse:
    try:
        result = CreateAttribution(
            db,
            user.FamilyId,
            payment_id,
            payload.IncomeEventId,
            payload.Amount,
            created_by=user.Id,
            attribution_type=payload.AttributionType,
        )
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return AttributionCreateResponse(
        Message="Payment attribution created successfully",
        Attribution=_BuildAttributionOut(result.Attribution),
        UpdatedIncomeEvent=BuildIncomeEventOut(result.IncomeEvent),
        PaymentSummary=_BuildSummaryOut(result.Summary),
    )


@router.put("/{payment_id}/attributions/{attribution_id}", response_model=AttributionCreateResponse)
def UpdatePaymentAttribution(
    payment_id: str,
    attribution_id: str,
    payload: AttributionUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> AttributionCreateResponse:
    try:
        result = UpdateAttribution(db, user.FamilyId, payment_id, attribution_id, payload.Amount)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return AttributionCreateResponse(
        Message="Payment attribution updated successfully",
        Attribution=_BuildAttributionOut(result.Attribution),
        UpdatedIncomeEvent=BuildIncomeEventOut(result.IncomeEvent),
        PaymentSummary=_BuildSummaryOut(result.Summary),
    )


@router.delete("/{payment_id}/attributions/{attribution_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeletePaymentAttribution(
    payment_id: str,
    attribution_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> None:
    try:
        DeleteAttribution(db, user.FamilyId, payment_id, attribution_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{payment_id}/auto-attribute", response_model=AutoAttributeResponse)
def AutoAttributePayment(
    payment_id: str,
    payload: AutoAttributeRequest | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> AutoAttributeResponse:
    payload = payload or AutoAttributeRequest()
    try:
        result = AutoAttribute(
            db,
            user.FamilyId,
            payment_id,
            strategy=payload.Strategy,
            preferred_income_event_ids=payload.PreferredIncomeEventIds,
        )
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return AutoAttributeResponse(
        Attributions=[_BuildAttributionOut(record) for record in result.Attributions],
        TotalAttributed=float(result.TotalAttributed),
        RemainingAmount=float(result.RemainingAmount),
        PaymentSummary=_BuildSummaryOut(result.Summary),
    )
