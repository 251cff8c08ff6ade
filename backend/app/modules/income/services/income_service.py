from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
import logging

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, InvalidRequestError, NotFoundError, ParseId
from app.modules.budget.models import BudgetAllocation
from app.modules.income.ledger import OpenLedger, RebaseIncomeAmount
from app.modules.income.models import INCOME_STATUSES, IncomeEvent
from app.modules.payments.models import Payment, PaymentAttribution
from app.services.money import ZERO, Round2, SumAmounts
from app.services.schedules import FREQUENCIES, NextOccurrenceDate

logger = logging.getLogger("income.events")

MAX_BULK_INCOME_EVENTS = 100
_LOCKED_STATUS_FIELDS = {"Name", "Notes"}


@dataclass
class MarkReceivedResult:
    IncomeEvent: IncomeEvent
    NextIncomeEvent: IncomeEvent | None = None


@dataclass
class IncomeSummary:
    FromDate: date
    ToDate: date
    TotalScheduled: object
    TotalReceived: object
    TotalAllocated: object
    TotalRemaining: object
    Count: int
    ReceivedCount: int
    ScheduledCount: int
    CancelledCount: int


def _NormalizeFrequency(value: str | None) -> str:
    frequency = (value or "once").strip().lower()
    if frequency not in FREQUENCIES:
        raise InvalidRequestError(
            f"Frequency must be one of: {', '.join(FREQUENCIES)}.",
            error="Invalid frequency",
        )
    return frequency


def _NormalizeName(value: str) -> str:
    name = (value or "").strip()
    if not name:
        raise InvalidRequestError("Name is required.", error="Invalid name")
    return name


def _CheckDateRange(from_date: date | None, to_date: date | None) -> None:
    if from_date and to_date and from_date > to_date:
        raise InvalidRequestError("fromDate must be on or before toDate.", error="Invalid date range")


def GetIncomeEvent(db: Session, family_id: str, income_event_id: str, lock: bool = False) -> IncomeEvent:
    income_event_id = ParseId(income_event_id, "Income event")
    query = db.query(IncomeEvent).filter(IncomeEvent.Id == income_event_id, IncomeEvent.FamilyId == family_id)
    if lock:
        query = query.with_for_update()
    record = query.first()
    if not record:
        raise NotFoundError("The specified income event was not found.", error="Income event not found")
    return record


def ListIncomeEvents(
    db: Session,
    family_id: str,
    status: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[IncomeEvent]:
    _CheckDateRange(from_date, to_date)
    query = db.query(IncomeEvent).filter(IncomeEvent.FamilyId == family_id)
    if status:
        if status not in INCOME_STATUSES:
            raise InvalidRequestError(
                f"Status must be one of: {', '.join(INCOME_STATUSES)}.",
                error="Invalid status",
            )
        query = query.filter(IncomeEvent.Status == status)
    if from_date:
        query = query.filter(IncomeEvent.ScheduledDate >= from_date)
    if to_date:
        query = query.filter(IncomeEvent.ScheduledDate <= to_date)
    return query.order_by(IncomeEvent.ScheduledDate.asc(), IncomeEvent.CreatedAt.asc()).all()


def _BuildIncomeEvent(family_id: str, payload: dict) -> IncomeEvent:
    record = IncomeEvent(
        FamilyId=family_id,
        Name=_NormalizeName(payload["Name"]),
        ScheduledDate=payload["ScheduledDate"],
        Frequency=_NormalizeFrequency(payload.get("Frequency")),
        Status="scheduled",
        Source=(payload.get("Source") or "").strip() or None,
        Notes=payload.get("Notes"),
    )
    amount = Round2(payload["Amount"])
    if amount <= ZERO:
        raise InvalidRequestError("Amount must be greater than zero.", error="Invalid amount")
    OpenLedger(record, amount)
    return record


def CreateIncomeEvent(db: Session, family_id: str, payload: dict) -> IncomeEvent:
    record = _BuildIncomeEvent(family_id, payload)
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("income event created", extra={"family_id": family_id, "income_event_id": record.Id})
    return record


def BulkCreateIncomeEvents(db: Session, family_id: str, payloads: list[dict]) -> list[IncomeEvent]:
    if not payloads:
        raise InvalidRequestError("At least one income event is required.", error="Invalid request")
    if len(payloads) > MAX_BULK_INCOME_EVENTS:
        raise InvalidRequestError(
            f"Cannot create more than {MAX_BULK_INCOME_EVENTS} income events at once.",
            error="Too many income events",
        )
    records = [_BuildIncomeEvent(family_id, payload) for payload in payloads]
    db.add_all(records)
    db.commit()
    for record in records:
        db.refresh(record)
    logger.info("income events bulk created", extra={"family_id": family_id, "count": len(records)})
    return records


def UpdateIncomeEvent(db: Session, family_id: str, income_event_id: str, changes: dict) -> IncomeEvent:
    record = GetIncomeEvent(db, family_id, income_event_id, lock=True)
    changes = {key: value for key, value in changes.items() if value is not None or key == "Notes"}

    if record.Status != "scheduled" and set(changes) - _LOCKED_STATUS_FIELDS:
        raise InvalidRequestError(
            f"Only name and notes can be changed on a {record.Status} income event.",
            error="Income event is not editable",
        )

    if "Name" in changes:
        record.Name = _NormalizeName(changes["Name"])
    if "Notes" in changes:
        record.Notes = changes["Notes"]
    if "Source" in changes:
        record.Source = changes["Source"].strip() or None
    if "ScheduledDate" in changes:
        record.ScheduledDate = changes["ScheduledDate"]
    if "Frequency" in changes:
        record.Frequency = _NormalizeFrequency(changes["Frequency"])
    if "Amount" in changes:
        new_amount = Round2(changes["Amount"])
        allocation_total = SumAmounts(
            row.Amount
            for row in db.query(BudgetAllocation).filter(BudgetAllocation.IncomeEventId == record.Id).all()
        )
        if new_amount < allocation_total:
            raise InvalidRequestError(
                "Amount cannot be less than the total of its budget allocations.",
                error="Amount below budget allocations",
                details={"allocationTotal": allocation_total, "requestedAmount": new_amount},
            )
        RebaseIncomeAmount(record, new_amount)

    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def _CountAttributions(db: Session, income_event_id: str) -> int:
    return db.query(PaymentAttribution).filter(PaymentAttribution.IncomeEventId == income_event_id).count()


def DeleteIncomeEvent(db: Session, family_id: str, income_event_id: str) -> None:
    record = GetIncomeEvent(db, family_id, income_event_id, lock=True)
    if _CountAttributions(db, record.Id):
        raise ConflictError(
            "Cannot delete an income event that has payment attributions.",
            error="Income event has attributions",
            code="INCOME_EVENT_HAS_ATTRIBUTIONS",
        )
    db.query(BudgetAllocation).filter(BudgetAllocation.IncomeEventId == record.Id).delete(synchronize_session=False)
    db.delete(record)
    db.commit()
    logger.info("income event deleted", extra={"family_id": family_id, "income_event_id": record.Id})


def MarkIncomeReceived(
    db: Session,
    family_id: str,
    income_event_id: str,
    actual_date: date,
    actual_amount=None,
) -> MarkReceivedResult:
    record = GetIncomeEvent(db, family_id, income_event_id, lock=True)
    if record.Status == "received":
        raise InvalidRequestError("Income event already marked as received.", error="Invalid status")
    if record.Status == "cancelled":
        raise InvalidRequestError("Cannot mark a cancelled income event as received.", error="Invalid status")

    record.Status = "received"
    record.ActualDate = actual_date
    record.ActualAmount = Round2(actual_amount) if actual_amount is not None else Round2(record.Amount)
    db.add(record)

    next_record = None
    next_date = NextOccurrenceDate(record.ScheduledDate, record.Frequency)
    if next_date is not None:
        next_record = IncomeEvent(
            FamilyId=record.FamilyId,
            Name=record.Name,
            ScheduledDate=next_date,
            Frequency=record.Frequency,
            Status="scheduled",
            Source=record.Source,
            Notes=record.Notes,
        )
        OpenLedger(next_record, record.Amount)
        db.add(next_record)

    db.commit()
    db.refresh(record)
    if next_record is not None:
        db.refresh(next_record)
    logger.info(
        "income event received",
        extra={"family_id": family_id, "income_event_id": record.Id, "next_id": next_record.Id if next_record else None},
    )
    return MarkReceivedResult(IncomeEvent=record, NextIncomeEvent=next_record)


def RevertIncomeReceived(db: Session, family_id: str, income_event_id: str) -> IncomeEvent:
    record = GetIncomeEvent(db, family_id, income_event_id, lock=True)
    if record.Status != "received":
        raise InvalidRequestError("Income event is not marked as received.", error="Invalid status")
    record.Status = "scheduled"
    record.ActualDate = None
    record.ActualAmount = None
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def CancelIncomeEvent(db: Session, family_id: str, income_event_id: str) -> IncomeEvent:
    record = GetIncomeEvent(db, family_id, income_event_id, lock=True)
    if record.Status != "scheduled":
        raise InvalidRequestError("Only scheduled income events can be cancelled.", error="Invalid status")
    if _CountAttributions(db, record.Id):
        raise ConflictError(
            "Cannot cancel an income event that has payment attributions.",
            error="Income event has attributions",
            code="INCOME_EVENT_HAS_ATTRIBUTIONS",
        )
    record.Status = "cancelled"
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def SummarizeIncome(db: Session, family_id: str, from_date: date, to_date: date) -> IncomeSummary:
    _CheckDateRange(from_date, to_date)
    events = ListIncomeEvents(db, family_id, from_date=from_date, to_date=to_date)
    active = [event for event in events if event.Status != "cancelled"]
    received = [event for event in events if event.Status == "received"]
    return IncomeSummary(
        FromDate=from_date,
        ToDate=to_date,
        TotalScheduled=SumAmounts(event.Amount for event in active),
        TotalReceived=SumAmounts(event.ActualAmount or event.Amount for event in received),
        TotalAllocated=SumAmounts(event.AllocatedAmount for event in active),
        TotalRemaining=SumAmounts(event.RemainingAmount for event in active),
        Count=len(events),
        ReceivedCount=len(received),
        ScheduledCount=sum(1 for event in events if event.Status == "scheduled"),
        CancelledCount=sum(1 for event in events if event.Status == "cancelled"),
    )


def ListUpcomingIncomeEvents(db: Session, family_id: str, days: int = 30, today: date | None = None) -> list[IncomeEvent]:
    if days < 1 or days > 365:
        raise InvalidRequestError("days must be between 1 and 365.", error="Invalid days")
    start = today or date.today()
    return (
        db.query(IncomeEvent)
        .filter(
            IncomeEvent.FamilyId == family_id,
            IncomeEvent.Status == "scheduled",
            IncomeEvent.ScheduledDate >= start,
            IncomeEvent.ScheduledDate <= start + timedelta(days=days),
        )
        .order_by(IncomeEvent.ScheduledDate.asc())
        .all()
    )


def ListIncomeAttributions(
    db: Session, family_id: str, income_event_id: str
) -> tuple[IncomeEvent, list[tuple[PaymentAttribution, Payment]]]:
    record = GetIncomeEvent(db, family_id, income_event_id)
    rows = (
        db.query(PaymentAttribution, Payment)
        .join(Payment, Payment.Id == PaymentAttribution.PaymentId)
        .filter(PaymentAttribution.IncomeEventId == record.Id)
        .order_by(PaymentAttribution.CreatedAt.asc())
        .all()
    )
    return record, rows
