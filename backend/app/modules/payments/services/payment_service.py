from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from app.core.errors import BudgetError, InvalidRequestError
from app.modules.payments.models import PAYMENT_STATUSES, PAYMENT_TYPES, Payment
from app.modules.payments.services.attribution_service import (
    AttributedTotal,
    GetPayment,
    ReleasePaymentAttributions,
)
from app.modules.payments.services.spending_category_service import GetSpendingCategory
from app.services.money import ZERO, Round2, SumAmounts
from app.services.schedules import FREQUENCIES, NextOccurrenceDate

logger = logging.getLogger("payments")

OPEN_STATUSES = ("scheduled", "partial", "overdue")
MAX_BULK_PAYMENTS = 100


@dataclass
class MarkPaidResult:
    Payment: Payment
    NextPayment: Payment | None = None


@dataclass
class PaymentTotals:
    FromDate: date
    ToDate: date
    TotalScheduled: Decimal
    TotalPaid: Decimal
    Count: int
    PaidCount: int
    PartialCount: int
    OverdueCount: int


def _NormalizePayee(value: str | None) -> str:
    payee = (value or "").strip()
    if not payee or len(payee) > 200:
        raise InvalidRequestError("Payee must be between 1 and 200 characters.", error="Invalid payee")
    return payee


def _NormalizeAmount(value) -> Decimal:
    amount = Round2(value)
    if amount <= ZERO:
        raise InvalidRequestError("Amount must be greater than zero.", error="Invalid amount")
    return amount


def _NormalizeSchedule(payment_type: str | None, frequency: str | None) -> tuple[str, str]:
    payment_type = (payment_type or "once").strip().lower()
    if payment_type not in PAYMENT_TYPES:
        raise InvalidRequestError(
            f"Payment type must be one of: {', '.join(PAYMENT_TYPES)}.", error="Invalid payment type"
        )
    if payment_type == "once":
        return payment_type, "once"
    frequency = (frequency or "").strip().lower()
    if frequency not in FREQUENCIES or frequency == "once":
        raise InvalidRequestError(
            "Recurring payments need a frequency of weekly, biweekly, monthly, quarterly or annual.",
            error="Invalid frequency",
        )
    return payment_type, frequency


def _IsOverdue(payment: Payment, today: date) -> bool:
    return payment.Status in OPEN_STATUSES and payment.DueDate < today


def ListPayments(
    db: Session,
    family_id: str,
    status: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    spending_category_id: str | None = None,
) -> list[Payment]:
    if from_date and to_date and from_date > to_date:
        raise InvalidRequestError("fromDate must be on or before toDate.", error="Invalid date range")
    query = db.query(Payment).filter(Payment.FamilyId == family_id)
    if status:
        if status not in PAYMENT_STATUSES:
            raise InvalidRequestError(
                f"Status must be one of: {', '.join(PAYMENT_STATUSES)}.", error="Invalid status"
            )
        query = query.filter(Payment.Status == status)
    if from_date:
        query = query.filter(Payment.DueDate >= from_date)
    if to_date:
        query = query.filter(Payment.DueDate <= to_date)
    if spending_category_id:
        query = query.filter(Payment.SpendingCategoryId == GetSpendingCategory(db, family_id, spending_category_id).Id)
    return query.order_by(Payment.DueDate.asc(), Payment.CreatedAt.asc()).all()


def _BuildPayment(db: Session, family_id: str, payload: dict) -> Payment:
    payment_type, frequency = _NormalizeSchedule(payload.get("PaymentType"), payload.get("Frequency"))
    spending_category_id = payload.get("SpendingCategoryId")
    return Payment(
        FamilyId=family_id,
        Payee=_NormalizePayee(payload.get("Payee")),
        Amount=_NormalizeAmount(payload.get("Amount")),
        DueDate=payload["DueDate"],
        PaymentType=payment_type,
        Frequency=frequency,
        Status="scheduled",
        SpendingCategoryId=GetSpendingCategory(db, family_id, spending_category_id).Id if spending_category_id else None,
        AutoPayEnabled=bool(payload.get("AutoPayEnabled", False)),
        Notes=payload.get("Notes"),
    )


def CreatePayment(db: Session, family_id: str, payload: dict) -> Payment:
    record = _BuildPayment(db, family_id, payload)
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        "payment created",
        extra={"family_id": family_id, "payment_id": record.Id, "amount": str(record.Amount)},
    )
    return record


def BulkCreatePayments(db: Session, family_id: str, payloads: list[dict]) -> list[Payment]:
    """Create every payment in one transaction, or none of them.

    A rejected entry reports its 1-based ``position`` in the request.
    """
    if not payloads:
        raise InvalidRequestError("Payments must be a non-empty list.", error="Invalid payments list")
    if len(payloads) > MAX_BULK_PAYMENTS:
        raise InvalidRequestError(
            f"Cannot create more than {MAX_BULK_PAYMENTS} payments at once.", error="Too many payments"
        )
    records = []
    for position, payload in enumerate(payloads, start=1):
        try:
            records.append(_BuildPayment(db, family_id, payload))
        except BudgetError as exc:
            exc.Details = {**exc.Details, "position": position}
            raise
    db.add_all(records)
    db.commit()
    for record in records:
        db.refresh(record)
    logger.info(
        "payments bulk created",
        extra={
            "family_id": family_id,
            "count": len(records),
            "total_amount": str(SumAmounts(record.Amount for record in records)),
        },
    )
    return records


def UpdatePayment(db: Session, family_id: str, payment_id: str, changes: dict) -> Payment:
    record = GetPayment(db, family_id, payment_id, lock=True)
    if record.Status == "paid":
        raise InvalidRequestError("Cannot update a paid payment.", error="Payment already paid")

    if changes.get("Payee") is not None:
        record.Payee = _NormalizePayee(changes["Payee"])
    if changes.get("DueDate") is not None:
        record.DueDate = changes["DueDate"]
    if changes.get("PaymentType") is not None or changes.get("Frequency") is not None:
        record.PaymentType, record.Frequency = _NormalizeSchedule(
            changes.get("PaymentType") or record.PaymentType,
            changes.get("Frequency") or record.Frequency,
        )
    if "SpendingCategoryId" in changes:
        spending_category_id = changes["SpendingCategoryId"]
        record.SpendingCategoryId = (
            GetSpendingCategory(db, family_id, spending_category_id).Id if spending_category_id else None
        )
    if changes.get("AutoPayEnabled") is not None:
        record.AutoPayEnabled = bool(changes["AutoPayEnabled"])
    if "Notes" in changes:
        record.Notes = changes["Notes"]
    if changes.get("Amount") is not None:
        amount = _NormalizeAmount(changes["Amount"])
        attributed = AttributedTotal(db, record.Id)
        if amount < attributed:
            raise InvalidRequestError(
                "Amount cannot be less than the amount already attributed to income.",
                error="Amount below attributed total",
                code="AMOUNT_BELOW_ATTRIBUTED",
                details={"currentlyAttributed": attributed, "requestedAmount": amount},
            )
        record.Amount = amount

    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def DeletePayment(db: Session, family_id: str, payment_id: str) -> None:
    record = GetPayment(db, family_id, payment_id, lock=True)
    released = ReleasePaymentAttributions(db, record)
    db.delete(record)
    db.commit()
    logger.info(
        "payment deleted",
        extra={"family_id": family_id, "payment_id": record.Id, "attributions_released": released},
    )


def MarkPaymentPaid(db: Session, family_id: str, payment_id: str, paid_date: date, paid_amount) -> MarkPaidResult:
    record = GetPayment(db, family_id, payment_id, lock=True)
    if record.Status == "paid":
        raise InvalidRequestError("Payment already marked as paid.", error="Invalid status")
    if record.Status == "cancelled":
        raise InvalidRequestError("Cannot mark a cancelled payment as paid.", error="Invalid status")

    paid_amount = _NormalizeAmount(paid_amount)
    record.PaidDate = paid_date
    record.PaidAmount = paid_amount
    record.Status = "paid" if paid_amount >= Round2(record.Amount) else "partial"
    db.add(record)

    next_record = None
    next_date = NextOccurrenceDate(record.DueDate, record.Frequency) if record.PaymentType == "recurring" else None
    if next_date is not None:
        next_record = Payment(
            FamilyId=record.FamilyId,
            Payee=record.Payee,
            Amount=record.Amount,
            DueDate=next_date,
            PaymentType=record.PaymentType,
            Frequency=record.Frequency,
            Status="scheduled",
            SpendingCategoryId=record.SpendingCategoryId,
            AutoPayEnabled=record.AutoPayEnabled,
            Notes=record.Notes,
        )
        db.add(next_record)

    db.commit()
    db.refresh(record)
    if next_record is not None:
        db.refresh(next_record)
    logger.info(
        "payment marked paid",
        extra={"payment_id": record.Id, "status": record.Status, "paid_amount": str(paid_amount)},
    )
    return MarkPaidResult(Payment=record, NextPayment=next_record)


def RevertPaymentPaid(db: Session, family_id: str, payment_id: str, today: date | None = None) -> Payment:
    record = GetPayment(db, family_id, payment_id, lock=True)
    if record.Status not in ("paid", "partial"):
        raise InvalidRequestError("Payment is not marked as paid.", error="Invalid status")
    today = today or date.today()
    record.PaidDate = None
    record.PaidAmount = None
    record.Status = "overdue" if record.DueDate < today else "scheduled"
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def ListOverduePayments(db: Session, family_id: str, today: date | None = None) -> list[Payment]:
    today = today or date.today()
    return (
        db.query(Payment)
        .filter(
            Payment.FamilyId == family_id,
            Payment.Status.in_(OPEN_STATUSES),
            Payment.DueDate < today,
        )
        .order_by(Payment.DueDate.asc())
        .all()
    )


def SummarizePayments(
    db: Session, family_id: str, from_date: date, to_date: date, today: date | None = None
) -> PaymentTotals:
    today = today or date.today()
    payments = [
        payment
        for payment in ListPayments(db, family_id, from_date=from_date, to_date=to_date)
        if payment.Status != "cancelled"
    ]
    paid = [payment for payment in payments if payment.Status in ("paid", "partial")]
    return PaymentTotals(
        FromDate=from_date,
        ToDate=to_date,
        TotalScheduled=SumAmounts(payment.Amount for payment in payments),
        TotalPaid=SumAmounts(payment.PaidAmount for payment in paid),
        Count=len(payments),
        PaidCount=sum(1 for payment in payments if payment.Status == "paid"),
        PartialCount=sum(1 for payment in payments if payment.Status == "partial"),
        OverdueCount=sum(1 for payment in payments if _IsOverdue(payment, today)),
    )
