"""Attribution engine: which income events pay for which payments.

Every write here runs in a single transaction that locks the payment and the
income events it touches before validating, and moves money on the income
event only through ``app.modules.income.ledger``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    AttributionAlreadyExistsError,
    AttributionExceedsPaymentError,
    ForbiddenError,
    InsufficientAvailableIncomeError,
    InsufficientIncomeRemainingError,
    InvalidRequestError,
    NotFoundError,
    ParseId,
)
from app.db import IsUniqueViolation
from app.modules.income.ledger import ApplyAttributionDelta
from app.modules.income.models import IncomeEvent
from app.modules.payments.models import Payment, PaymentAttribution
from app.services.money import ZERO, DistributeWithRemainder, Round2, SumAmounts

logger = logging.getLogger("payments.attributions")

STRATEGIES = ("default", "earliest_income", "latest_income", "proportional")
SYSTEM_CREATOR = "system"
ATTRIBUTION_UNIQUE_CONSTRAINT = "uq_payment_attributions_payment_income"
ATTRIBUTION_UNIQUE_COLUMNS = ("payment_attributions.PaymentId", "payment_attributions.IncomeEventId")

UNATTRIBUTED = "unattributed"
PARTIALLY_ATTRIBUTED = "partially_attributed"
FULLY_ATTRIBUTED = "fully_attributed"


@dataclass
class PaymentSummary:
    PaymentAmount: Decimal
    TotalAttributed: Decimal
    RemainingAmount: Decimal
    FullyAttributed: bool
    State: str


@dataclass
class AttributionResult:
    Attribution: PaymentAttribution
    IncomeEvent: IncomeEvent
    Summary: PaymentSummary


@dataclass
class AutoAttributionResult:
    Attributions: list[PaymentAttribution]
    TotalAttributed: Decimal
    RemainingAmount: Decimal
    Summary: PaymentSummary


def BuildPaymentSummary(payment_amount, attributed_total) -> PaymentSummary:
    payment_amount = Round2(payment_amount)
    attributed_total = Round2(attributed_total)
    remaining = Round2(payment_amount - attributed_total)
    if attributed_total <= ZERO:
        state = UNATTRIBUTED
    elif remaining <= ZERO:
        state = FULLY_ATTRIBUTED
    else:
        state = PARTIALLY_ATTRIBUTED
    return PaymentSummary(
        PaymentAmount=payment_amount,
        TotalAttributed=attributed_total,
        RemainingAmount=remaining,
        FullyAttributed=state == FULLY_ATTRIBUTED,
        State=state,
    )


def PlanGreedyShares(target, capacities: Sequence) -> list[Decimal]:
    """Fill ``target`` from each capacity in order until it is covered."""
    left = Round2(target)
    shares = []
    for capacity in capacities:
        take = min(Round2(capacity), left) if left > ZERO else ZERO
        shares.append(take)
        left = Round2(left - take)
    return shares


def PlanProportionalShares(target, capacities: Sequence) -> list[Decimal]:
    """Split ``target`` in proportion to ``capacities`` without exceeding any of them.

    Shares come from ``DistributeWithRemainder``; any share that would overdraw
    its capacity is clamped and the excess is handed, in order, to candidates
    that still have room.
    """
    capacities = [Round2(capacity) for capacity in capacities]
    available = SumAmounts(capacities)
    target = min(Round2(target), available)
    if target <= ZERO or not capacities:
        return [ZERO for _ in capacities]

    shares = DistributeWithRemainder(target, capacities)
    residual = ZERO
    for index, capacity in enumerate(capacities):
        if shares[index] > capacity:
            residual += shares[index] - capacity
            shares[index] = capacity
        elif shares[index] < ZERO:
            residual += shares[index]
            shares[index] = ZERO
    for index, capacity in enumerate(capacities):
        if residual > ZERO:
            take = min(capacity - shares[index], residual)
        elif residual < ZERO:
            take = -min(shares[index], -residual)
        else:
            break
        shares[index] = Round2(shares[index] + take)
        residual = Round2(residual - take)
    return shares


def GetPayment(db: Session, family_id: str, payment_id: str, lock: bool = False) -> Payment:
    payment_id = ParseId(payment_id, "Payment")
    query = db.query(Payment).filter(Payment.Id == payment_id, Payment.FamilyId == family_id)
    if lock:
        query = query.with_for_update()
    record = query.first()
    if not record:
        raise NotFoundError("The specified payment was not found.", error="Payment not found")
    return record


def AttributedTotal(db: Session, payment_id: str) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(PaymentAttribution.Amount), 0))
        .filter(PaymentAttribution.PaymentId == payment_id)
        .scalar()
    )
    return Round2(total or 0)


def AttributedTotals(db: Session, payment_ids: list[str]) -> dict[str, Decimal]:
    if not payment_ids:
        return {}
    rows = (
        db.query(PaymentAttribution.PaymentId, func.sum(PaymentAttribution.Amount))
        .filter(PaymentAttribution.PaymentId.in_(payment_ids))
        .group_by(PaymentAttribution.PaymentId)
        .all()
    )
    return {payment_id: Round2(total or 0) for payment_id, total in rows}


def SummarizePayment(db: Session, payment: Payment) -> PaymentSummary:
    return BuildPaymentSummary(payment.Amount, AttributedTotal(db, payment.Id))


def _LockIncomeEvent(db: Session, income_event_id: str) -> IncomeEvent | None:
    return db.query(IncomeEvent).filter(IncomeEvent.Id == income_event_id).with_for_update().first()


def _ParseAmount(value) -> Decimal:
    try:
        amount = Round2(value)
    except ValueError as exc:
        raise InvalidRequestError("Amount must be a number.", error="Invalid amount") from exc
    if amount <= ZERO:
        raise InvalidRequestError("Amount must be greater than zero.", error="Invalid amount")
    return amount


def _InsertAttribution(
    db: Session,
    payment: Payment,
    income_event: IncomeEvent,
    amount: Decimal,
    attribution_type: str,
    created_by: str,
) -> PaymentAttribution:
    record = PaymentAttribution(
        PaymentId=payment.Id,
        IncomeEventId=income_event.Id,
        Amount=amount,
        AttributionType=attribution_type,
        CreatedBy=created_by,
    )
    db.add(record)
    ApplyAttributionDelta(income_event, amount)
    db.add(income_event)
    return record


def _FindDuplicateAttribution(db: Session, payment_id: str, income_event_id: str) -> PaymentAttribution | None:
    return (
        db.query(PaymentAttribution)
        .filter(PaymentAttribution.PaymentId == payment_id, PaymentAttribution.IncomeEventId == income_event_id)
        .first()
    )


def _CommitOrConflict(db: Session, payment_id: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if IsUniqueViolation(exc, ATTRIBUTION_UNIQUE_CONSTRAINT, ATTRIBUTION_UNIQUE_COLUMNS):
            raise AttributionAlreadyExistsError(
                "An attribution between this payment and income event already exists.",
                details={"paymentId": payment_id},
            ) from exc
        logger.warning("attribution write rejected", extra={"payment_id": payment_id, "error": str(exc.orig)})
        raise InvalidRequestError(
            "The attribution could not be saved.", error="Invalid attribution", details={"paymentId": payment_id}
        ) from exc


def CreateAttribution(
    db: Session,
    family_id: str,
    payment_id: str,
    income_event_id: str,
    amount,
    created_by: str,
    attribution_type: str = "manual",
) -> AttributionResult:
    payment = GetPayment(db, family_id, payment_id, lock=True)

    income_event_id = ParseId(income_event_id, "Income event")
    income_event = _LockIncomeEvent(db, income_event_id)
    if income_event is None:
        raise NotFoundError("The specified income event was not found.", error="Income event not found")
    if income_event.FamilyId != payment.FamilyId:
        logger.warning(
            "cross-family attribution rejected",
            extra={"payment_id": payment.Id, "income_event_id": income_event.Id},
        )
        raise ForbiddenError(
            "Income event belongs to a different family.",
            error="Cross-family attribution",
            code="CROSS_FAMILY_ATTRIBUTION",
        )

    amount = _ParseAmount(amount)
    if attribution_type not in ("manual", "automatic"):
        raise InvalidRequestError(
            "attributionType must be manual or automatic.", error="Invalid attribution type"
        )
    if income_event.Status == "cancelled":
        raise InvalidRequestError(
            "Cannot attribute a payment to a cancelled income event.", error="Income event cancelled"
        )

    if _FindDuplicateAttribution(db, payment.Id, income_event.Id):
        raise AttributionAlreadyExistsError(
            "An attribution between this payment and income event already exists.",
            details={"paymentId": payment.Id, "incomeEventId": income_event.Id},
        )

    available = Round2(income_event.RemainingAmount)
    if amount > available:
        logger.warning(
            "attribution exceeds income remaining",
            extra={"income_event_id": income_event.Id, "available": str(available), "requested": str(amount)},
        )
        raise InsufficientIncomeRemainingError(
            "Income event does not have enough remaining amount.",
            details={"availableAmount": available, "requestedAmount": amount},
        )

    payment_amount = Round2(payment.Amount)
    attributed = AttributedTotal(db, payment.Id)
    if attributed + amount > payment_amount:
        logger.warning(
            "attribution exceeds payment amount",
            extra={"payment_id": payment.Id, "attributed": str(attributed), "requested": str(amount)},
        )
        raise AttributionExceedsPaymentError(
            "Total attributions would exceed the payment amount.",
            details={
                "paymentAmount": payment_amount,
                "currentlyAttributed": attributed,
                "availableAmount": Round2(payment_amount - attributed),
                "requestedAmount": amount,
            },
        )

    record = _InsertAttribution(db, payment, income_event, amount, attribution_type, created_by)
    _CommitOrConflict(db, payment.Id)
    db.refresh(record)
    db.refresh(income_event)
    logger.info(
        "attribution created",
        extra={
            "payment_id": payment.Id,
            "income_event_id": income_event.Id,
            "amount": str(amount),
            "type": attribution_type,
        },
    )
    return AttributionResult(
        Attribution=record,
        IncomeEvent=income_event,
        Summary=BuildPaymentSummary(payment_amount, attributed + amount),
    )


def _ParseStrategy(strategy: str | None) -> str:
    value = (strategy or "default").strip().lower()
    if value not in STRATEGIES:
        raise InvalidRequestError(
            f"Strategy must be one of: {', '.join(STRATEGIES)}.",
            error="Invalid strategy",
            code="INVALID_STRATEGY",
        )
    return value


def AutoAttribute(
    db: Session,
    family_id: str,
    payment_id: str,
    strategy: str | None = "default",
    preferred_income_event_ids: list[str] | None = None,
) -> AutoAttributionResult:
    """Cover a payment's unattributed amount from the family's open income events.

    ``default`` and ``earliest_income`` draw from the earliest scheduled income
    first, ``latest_income`` from the latest, and ``proportional`` splits the
    amount across candidates by their remaining amounts. Partial coverage is a
    success; the result reports what is still unattributed.
    """
    strategy = _ParseStrategy(strategy)
    preferred_ids = None
    if preferred_income_event_ids is not None:
        preferred_ids = [ParseId(value, "Income event") for value in preferred_income_event_ids]

    payment = GetPayment(db, family_id, payment_id, lock=True)
    payment_amount = Round2(payment.Amount)
    attributed = AttributedTotal(db, payment.Id)
    unattributed = Round2(payment_amount - attributed)
    if unattributed <= ZERO:
        raise InvalidRequestError(
            "Payment is already fully attributed.",
            error="Payment fully attributed",
            code="PAYMENT_FULLY_ATTRIBUTED",
        )

    already_linked = [
        row[0]
        for row in db.query(PaymentAttribution.IncomeEventId)
        .filter(PaymentAttribution.PaymentId == payment.Id)
        .all()
    ]
    query = db.query(IncomeEvent).filter(
        IncomeEvent.FamilyId == payment.FamilyId,
        IncomeEvent.Status != "cancelled",
        IncomeEvent.RemainingAmount > 0,
    )
    if already_linked:
        query = query.filter(IncomeEvent.Id.notin_(already_linked))
    if preferred_ids is not None:
        query = query.filter(IncomeEvent.Id.in_(preferred_ids))
    if strategy == "latest_income":
        query = query.order_by(IncomeEvent.ScheduledDate.desc(), IncomeEvent.CreatedAt.desc())
    else:
        query = query.order_by(IncomeEvent.ScheduledDate.asc(), IncomeEvent.CreatedAt.asc())
    candidates = query.with_for_update().all()

    capacities = [Round2(candidate.RemainingAmount) for candidate in candidates]
    total_available = SumAmounts(capacities)
    if total_available <= ZERO:
        raise InsufficientAvailableIncomeError(
            "No income with remaining amount is available for this payment.",
            details={"availableAmount": ZERO, "requestedAmount": unattributed},
        )

    if strategy == "proportional":
        shares = PlanProportionalShares(unattributed, capacities)
    else:
        shares = PlanGreedyShares(unattributed, capacities)

    created = []
    for candidate, share in zip(candidates, shares):
        if share <= ZERO:
            continue
        created.append(_InsertAttribution(db, payment, candidate, share, "automatic", SYSTEM_CREATOR))
    _CommitOrConflict(db, payment.Id)
    for record in created:
        db.refresh(record)

    total = SumAmounts(record.Amount for record in created)
    summary = BuildPaymentSummary(payment_amount, attributed + total)
    logger.info(
        "auto-attribution complete",
        extra={
            "payment_id": payment.Id,
            "strategy": strategy,
            "count": len(created),
            "total": str(total),
            "remaining": str(summary.RemainingAmount),
        },
    )
    return AutoAttributionResult(
        Attributions=created,
        TotalAttributed=total,
        RemainingAmount=summary.RemainingAmount,
        Summary=summary,
    )


def _GetAttribution(db: Session, payment: Payment, attribution_id: str) -> PaymentAttribution:
    attribution_id = ParseId(attribution_id, "Attribution")
    record = (
        db.query(PaymentAttribution)
        .filter(PaymentAttribution.Id == attribution_id, PaymentAttribution.PaymentId == payment.Id)
        .with_for_update()
        .first()
    )
    if not record:
        raise NotFoundError("The specified attribution was not found.", error="Attribution not found")
    return record


def ListAttributions(db: Session, family_id: str, payment_id: str) -> tuple[Payment, list[PaymentAttribution], PaymentSummary]:
    payment = GetPayment(db, family_id, payment_id)
    records = (
        db.query(PaymentAttribution)
        .filter(PaymentAttribution.PaymentId == payment.Id)
        .order_by(PaymentAttribution.CreatedAt.asc())
        .all()
    )
    summary = BuildPaymentSummary(payment.Amount, SumAmounts(record.Amount for record in records))
    return payment, records, summary


def UpdateAttribution(
    db: Session,
    family_id: str,
    payment_id: str,
    attribution_id: str,
    amount,
) -> AttributionResult:
    payment = GetPayment(db, family_id, payment_id, lock=True)
    record = _GetAttribution(db, payment, attribution_id)
    income_event = _LockIncomeEvent(db, record.IncomeEventId)
    new_amount = _ParseAmount(amount)
    old_amount = Round2(record.Amount)

    available = Round2(Round2(income_event.RemainingAmount) + old_amount)
    if new_amount > available:
        raise InsufficientIncomeRemainingError(
            "Income event does not have enough remaining amount.",
            details={"availableAmount": available, "requestedAmount": new_amount},
        )

    payment_amount = Round2(payment.Amount)
    others = Round2(AttributedTotal(db, payment.Id) - old_amount)
    if others + new_amount > payment_amount:
        raise AttributionExceedsPaymentError(
            "Total attributions would exceed the payment amount.",
            details={
                "paymentAmount": payment_amount,
                "currentlyAttributed": others,
                "availableAmount": Round2(payment_amount - others),
                "requestedAmount": new_amount,
            },
        )

    ApplyAttributionDelta(income_event, new_amount - old_amount)
    record.Amount = new_amount
    db.add(record)
    db.add(income_event)
    db.commit()
    db.refresh(record)
    db.refresh(income_event)
    logger.info(
        "attribution updated",
        extra={"attribution_id": record.Id, "old_amount": str(old_amount), "new_amount": str(new_amount)},
    )
    return AttributionResult(
        Attribution=record,
        IncomeEvent=income_event,
        Summary=BuildPaymentSummary(payment_amount, others + new_amount),
    )


def _ReleaseAttribution(db: Session, record: PaymentAttribution) -> IncomeEvent | None:
    income_event = _LockIncomeEvent(db, record.IncomeEventId)
    if income_event is not None:
        ApplyAttributionDelta(income_event, -Round2(record.Amount))
        db.add(income_event)
    db.delete(record)
    return income_event


def DeleteAttribution(db: Session, family_id: str, payment_id: str, attribution_id: str) -> None:
    payment = GetPayment(db, family_id, payment_id, lock=True)
    record = _GetAttribution(db, payment, attribution_id)
    amount = Round2(record.Amount)
    _ReleaseAttribution(db, record)
    db.commit()
    logger.info(
        "attribution deleted",
        extra={"payment_id": payment.Id, "attribution_id": attribution_id, "amount": str(amount)},
    )


def ReleasePaymentAttributions(db: Session, payment: Payment) -> int:
    """Remove every attribution of ``payment``, restoring the income events; the caller commits."""
    records = (
        db.query(PaymentAttribution)
        .filter(PaymentAttribution.PaymentId == payment.Id)
        .with_for_update()
        .all()
    )
    for record in records:
        _ReleaseAttribution(db, record)
    return len(records)
