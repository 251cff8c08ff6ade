from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    AllocationsAlreadyExistError,
    InvalidRequestError,
    NotFoundError,
    ParseId,
)
from app.db import IsUniqueViolation
from app.modules.budget.models import BudgetAllocation, BudgetCategory
from app.modules.budget.services.template_service import GetTemplate, ResolveTemplateCategories
from app.modules.income.models import IncomeEvent
from app.modules.income.services.income_service import GetIncomeEvent
from app.services.money import (
    HUNDRED,
    ZERO,
    DistributeWithRemainder,
    PercentagesComplete,
    Round2,
    SumAmounts,
)

logger = logging.getLogger("budget.allocations")

ALLOCATION_UNIQUE_CONSTRAINT = "uq_budget_allocations_income_category"
ALLOCATION_UNIQUE_COLUMNS = ("budget_allocations.IncomeEventId", "budget_allocations.BudgetCategoryId")


@dataclass
class AmountChange:
    Amount: Decimal


@dataclass
class PercentageChange:
    Percentage: Decimal


AllocationChange = AmountChange | PercentageChange


@dataclass
class AllocationSet:
    IncomeEvent: IncomeEvent
    Allocations: list[BudgetAllocation]
    TotalAmount: Decimal
    TotalPercentage: Decimal


def _BuildAllocationSet(income_event: IncomeEvent, allocations: list[BudgetAllocation]) -> AllocationSet:
    return AllocationSet(
        IncomeEvent=income_event,
        Allocations=allocations,
        TotalAmount=SumAmounts(row.Amount for row in allocations),
        TotalPercentage=SumAmounts(row.Percentage for row in allocations),
    )


def _HasAllocations(db: Session, income_event_id: str) -> bool:
    return db.query(BudgetAllocation.Id).filter(BudgetAllocation.IncomeEventId == income_event_id).first() is not None


def _LoadAllocations(db: Session, income_event_id: str) -> list[BudgetAllocation]:
    return (
        db.query(BudgetAllocation)
        .join(BudgetCategory, BudgetCategory.Id == BudgetAllocation.BudgetCategoryId)
        .filter(BudgetAllocation.IncomeEventId == income_event_id)
        .order_by(BudgetCategory.SortOrder.asc(), BudgetCategory.Name.asc())
        .all()
    )


def _ResolveCustomAllocations(
    db: Session, family_id: str, custom_allocations: list[dict]
) -> list[tuple[BudgetCategory, Decimal]]:
    if not custom_allocations:
        raise InvalidRequestError(
            "customAllocations must contain at least one entry.", error="Invalid custom allocations"
        )

    requested: list[tuple[str, Decimal]] = []
    seen: set[str] = set()
    for item in custom_allocations:
        category_id = ParseId(item.get("BudgetCategoryId"), "Budget category")
        if category_id in seen:
            raise InvalidRequestError(
                "Each budget category can only appear once.", error="Duplicate budget category"
            )
        seen.add(category_id)
        try:
            percentage = Round2(item.get("Percentage"))
        except ValueError as exc:
            raise InvalidRequestError("Percentage must be a number.", error="Invalid percentage") from exc
        if percentage < ZERO or percentage > HUNDRED:
            raise InvalidRequestError(
                "Each percentage must be between 0 and 100.",
                error="Invalid percentage",
                code="INVALID_PERCENTAGE",
            )
        requested.append((category_id, percentage))

    categories = {
        row.Id: row
        for row in db.query(BudgetCategory)
        .filter(
            BudgetCategory.Id.in_([category_id for category_id, _ in requested]),
            BudgetCategory.FamilyId == family_id,
            BudgetCategory.IsActive.is_(True),
        )
        .all()
    }
    resolved = []
    for category_id, percentage in requested:
        category = categories.get(category_id)
        if category is None:
            raise NotFoundError(
                "Budget category not found, inactive, or not in your family.",
                error="Budget category not found",
                details={"budgetCategoryId": category_id},
            )
        resolved.append((category, percentage))
    return resolved


def _ResolveFamilyDefaults(db: Session, family_id: str) -> list[tuple[BudgetCategory, Decimal]]:
    categories = (
        db.query(BudgetCategory)
        .filter(BudgetCategory.FamilyId == family_id, BudgetCategory.IsActive.is_(True))
        .order_by(BudgetCategory.SortOrder.asc(), BudgetCategory.Name.asc())
        .all()
    )
    if not categories:
        raise InvalidRequestError(
            "No active budget categories found. Create categories or pass customAllocations.",
            error="No active budget categories",
            code="NO_ACTIVE_CATEGORIES",
        )
    return [(category, Round2(category.TargetPercentage)) for category in categories]


def GenerateAllocations(
    db: Session,
    family_id: str,
    income_event_id: str,
    template_id: str | None = None,
    custom_allocations: list[dict] | None = None,
) -> AllocationSet:
    """Split an income event across budget categories as one new allocation set.

    The source is a stored template, an explicit list of category percentages, or
    (when neither is given) the family's active category targets. The last
    category absorbs rounding so the amounts add up to the income amount exactly.
    Attribution bookkeeping on the income event is left untouched.
    """
    if template_id is not None and custom_allocations is not None:
        raise InvalidRequestError(
            "Provide either templateId or customAllocations, not both.", error="Invalid allocation source"
        )

    income_event = GetIncomeEvent(db, family_id, income_event_id, lock=True)
    income_event_id = income_event.Id
    if _HasAllocations(db, income_event_id):
        raise AllocationsAlreadyExistError(
            "Budget allocations already exist for this income event. Delete them before regenerating.",
            details={"incomeEventId": income_event_id},
        )

    if template_id is not None:
        template = GetTemplate(db, family_id, template_id)
        pairs = ResolveTemplateCategories(db, family_id, template)
    elif custom_allocations is not None:
        pairs = _ResolveCustomAllocations(db, family_id, custom_allocations)
    else:
        pairs = _ResolveFamilyDefaults(db, family_id)

    total_percentage = Round2(sum((percentage for _, percentage in pairs), ZERO))
    if not PercentagesComplete(total_percentage):
        logger.debug(
            "allocation percentages rejected",
            extra={"income_event_id": income_event.Id, "total_percentage": str(total_percentage)},
        )
        raise InvalidRequestError(
            "Allocation percentages must sum to 100%.",
            error="Invalid percentage total",
            code="PERCENTAGES_NOT_100",
            details={"totalPercentage": total_percentage},
        )

    amounts = DistributeWithRemainder(
        income_event.Amount,
        [percentage for _, percentage in pairs],
        weight_total=HUNDRED,
    )
    allocations = [
        BudgetAllocation(
            IncomeEventId=income_event.Id,
            BudgetCategoryId=category.Id,
            Amount=amount,
            Percentage=percentage,
        )
        for (category, percentage), amount in zip(pairs, amounts)
    ]
    db.add_all(allocations)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if IsUniqueViolation(exc, ALLOCATION_UNIQUE_CONSTRAINT, ALLOCATION_UNIQUE_COLUMNS):
            raise AllocationsAlreadyExistError(
                "Budget allocations already exist for this income event. Delete them before regenerating.",
                details={"incomeEventId": income_event_id},
            ) from exc
        logger.warning("allocation insert rejected", extra={"income_event_id": income_event_id, "error": str(exc.orig)})
        raise InvalidRequestError(
            "Budget allocations could not be saved.",
            error="Invalid allocations",
            details={"incomeEventId": income_event_id},
        ) from exc

    db.refresh(income_event)
    allocation_set = _BuildAllocationSet(income_event, _LoadAllocations(db, income_event.Id))
    logger.info(
        "budget allocations generated",
        extra={
            "family_id": family_id,
            "income_event_id": income_event.Id,
            "count": len(allocations),
            "total_amount": str(allocation_set.TotalAmount),
        },
    )
    return allocation_set


def GetAllocation(db: Session, family_id: str, allocation_id: str, lock: bool = False) -> BudgetAllocation:
    allocation_id = ParseId(allocation_id, "Allocation")
    query = (
        db.query(BudgetAllocation)
        .join(IncomeEvent, IncomeEvent.Id == BudgetAllocation.IncomeEventId)
        .filter(BudgetAllocation.Id == allocation_id, IncomeEvent.FamilyId == family_id)
    )
    if lock:
        query = query.with_for_update()
    record = query.first()
    if not record:
        raise NotFoundError("The specified budget allocation was not found.", error="Budget allocation not found")
    return record


def ParseAllocationChange(amount=None, percentage=None) -> AllocationChange:
    if (amount is None) == (percentage is None):
        raise InvalidRequestError(
            "Provide exactly one of amount or percentage.", error="Invalid allocation update"
        )
    try:
        if amount is not None:
            return AmountChange(Amount=Round2(amount))
        return PercentageChange(Percentage=Round2(percentage))
    except ValueError as exc:
        raise InvalidRequestError("Amount and percentage must be numbers.", error="Invalid allocation update") from exc


def UpdateAllocation(db: Session, family_id: str, allocation_id: str, change: AllocationChange) -> BudgetAllocation:
    allocation = GetAllocation(db, family_id, allocation_id, lock=True)
    income_event = GetIncomeEvent(db, family_id, allocation.IncomeEventId, lock=True)
    income_amount = Round2(income_event.Amount)

    if isinstance(change, AmountChange):
        amount = Round2(change.Amount)
        if amount < ZERO:
            raise InvalidRequestError("Amount cannot be negative.", error="Invalid amount")
        percentage = Round2(amount * HUNDRED / income_amount) if income_amount > ZERO else ZERO
    elif isinstance(change, PercentageChange):
        percentage = Round2(change.Percentage)
        if percentage < ZERO or percentage > HUNDRED:
            raise InvalidRequestError(
                "Percentage must be between 0 and 100.", error="Invalid percentage", code="INVALID_PERCENTAGE"
            )
        amount = Round2(income_amount * percentage / HUNDRED)
    else:
        raise InvalidRequestError("Unsupported allocation update.", error="Invalid allocation update")

    other_total = SumAmounts(
        row.Amount
        for row in db.query(BudgetAllocation)
        .filter(BudgetAllocation.IncomeEventId == income_event.Id, BudgetAllocation.Id != allocation.Id)
        .all()
    )
    if other_total + amount > income_amount:
        logger.warning(
            "allocation update rejected",
            extra={"allocation_id": allocation.Id, "requested": str(amount), "other_total": str(other_total)},
        )
        raise InvalidRequestError(
            "Allocation total exceeds income amount.",
            error="Allocation exceeds income amount",
            code="ALLOCATION_EXCEEDS_INCOME",
            details={
                "incomeAmount": income_amount,
                "otherAllocations": other_total,
                "availableAmount": Round2(income_amount - other_total),
                "requestedAmount": amount,
            },
        )

    allocation.Amount = amount
    allocation.Percentage = percentage
    db.add(allocation)
    db.commit()
    db.refresh(allocation)
    logger.info(
        "budget allocation updated",
        extra={"allocation_id": allocation.Id, "amount": str(amount), "percentage": str(percentage)},
    )
    return allocation


def ListAllocations(db: Session, family_id: str, income_event_id: str) -> AllocationSet:
    income_event = GetIncomeEvent(db, family_id, income_event_id)
    return _BuildAllocationSet(income_event, _LoadAllocations(db, income_event.Id))


def DeleteAllocations(db: Session, family_id: str, income_event_id: str) -> int:
    income_event = GetIncomeEvent(db, family_id, income_event_id, lock=True)
    deleted = (
        db.query(BudgetAllocation)
        .filter(BudgetAllocation.IncomeEventId == income_event.Id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("budget allocations deleted", extra={"income_event_id": income_event.Id, "count": deleted})
    return deleted
