from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
import logging
import re

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, InvalidRequestError, NotFoundError, ParseId
from app.modules.budget.models import BudgetAllocation, BudgetCategory
from app.modules.payments.models import SpendingCategory
from app.services.money import HUNDRED, PERCENT_TOLERANCE, ZERO, PercentagesComplete, Round2, ToDecimal

logger = logging.getLogger("budget.categories")

DEFAULT_COLORS = ("#3B82F6", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6", "#EC4899", "#14B8A6", "#6B7280")
_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


@dataclass
class PercentageSuggestion:
    CategoryId: str | None
    CurrentPercentage: Decimal
    SuggestedPercentage: Decimal


@dataclass
class PercentageValidation:
    IsValid: bool
    TotalPercentage: Decimal
    RemainingPercentage: Decimal
    Difference: Decimal
    Errors: list[str] = field(default_factory=list)
    Suggestions: list[PercentageSuggestion] = field(default_factory=list)


@dataclass
class CategoryOverview:
    Categories: list[BudgetCategory]
    TotalPercentage: Decimal
    IsComplete: bool


def DefaultColor(index: int) -> str:
    return DEFAULT_COLORS[index % len(DEFAULT_COLORS)]


def NormalizeCategoryName(value: str | None) -> str:
    name = re.sub(r"\s+", " ", (value or "").strip())
    if not name or len(name) > 100:
        raise InvalidRequestError("Name must be between 1 and 100 characters.", error="Invalid name")
    return name


def NormalizeColor(value: str | None) -> str:
    color = (value or "").strip()
    if not _COLOR_PATTERN.match(color):
        raise InvalidRequestError("Color must be a hex value like #1A2B3C.", error="Invalid color")
    return color.upper()


def ValidateTargetPercentage(value) -> Decimal:
    try:
        percentage = Round2(value)
    except ValueError as exc:
        raise InvalidRequestError(
            "Target percentage must be a number.", error="Invalid target percentage"
        ) from exc
    if percentage <= ZERO or percentage > HUNDRED:
        raise InvalidRequestError(
            "Target percentage must be greater than 0 and at most 100.",
            error="Invalid target percentage",
            code="INVALID_PERCENTAGE",
        )
    return percentage


def GetCategory(db: Session, family_id: str, category_id: str) -> BudgetCategory:
    category_id = ParseId(category_id, "Budget category")
    record = (
        db.query(BudgetCategory)
        .filter(BudgetCategory.Id == category_id, BudgetCategory.FamilyId == family_id)
        .first()
    )
    if not record:
        raise NotFoundError("The specified budget category was not found.", error="Budget category not found")
    return record


def ListCategories(db: Session, family_id: str, include_inactive: bool = False) -> list[BudgetCategory]:
    query = db.query(BudgetCategory).filter(BudgetCategory.FamilyId == family_id)
    if not include_inactive:
        query = query.filter(BudgetCategory.IsActive.is_(True))
    return query.order_by(BudgetCategory.SortOrder.asc(), BudgetCategory.Name.asc()).all()


def _EnsureUniqueName(db: Session, family_id: str, name: str, exclude_id: str | None = None) -> None:
    query = db.query(BudgetCategory).filter(
        BudgetCategory.FamilyId == family_id,
        func.lower(BudgetCategory.Name) == name.lower(),
    )
    if exclude_id:
        query = query.filter(BudgetCategory.Id != exclude_id)
    if query.first():
        raise ConflictError(
            "A budget category with this name already exists.",
            error="Duplicate category name",
            code="CATEGORY_NAME_EXISTS",
        )


def ActivePercentageTotal(db: Session, family_id: str, exclude_id: str | None = None) -> Decimal:
    query = db.query(BudgetCategory.TargetPercentage).filter(
        BudgetCategory.FamilyId == family_id,
        BudgetCategory.IsActive.is_(True),
    )
    if exclude_id:
        query = query.filter(BudgetCategory.Id != exclude_id)
    return Round2(sum((ToDecimal(row[0]) for row in query.all()), ZERO))


def _EnsureActiveTotal(db: Session, family_id: str, percentage: Decimal, exclude_id: str | None = None) -> None:
    current_total = ActivePercentageTotal(db, family_id, exclude_id)
    if current_total + percentage > HUNDRED:
        raise InvalidRequestError(
            "Total target percentage of active categories cannot exceed 100%.",
            error="Percentage total exceeded",
            code="PERCENTAGE_TOTAL_EXCEEDED",
            details={
                "currentTotal": current_total,
                "requestedPercentage": percentage,
                "availablePercentage": Round2(HUNDRED - current_total),
            },
        )


def CreateCategory(db: Session, family_id: str, payload: dict) -> BudgetCategory:
    name = NormalizeCategoryName(payload.get("Name"))
    percentage = ValidateTargetPercentage(payload.get("TargetPercentage"))
    is_active = payload.get("IsActive", True)
    _EnsureUniqueName(db, family_id, name)
    if is_active:
        _EnsureActiveTotal(db, family_id, percentage)

    sort_order = payload.get("SortOrder")
    if sort_order is None:
        sort_order = db.query(BudgetCategory).filter(BudgetCategory.FamilyId == family_id).count()
    color = payload.get("Color")
    record = BudgetCategory(
        FamilyId=family_id,
        Name=name,
        TargetPercentage=percentage,
        Color=NormalizeColor(color) if color else DefaultColor(sort_order),
        SortOrder=sort_order,
        IsActive=is_active,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        "budget category created",
        extra={"family_id": family_id, "category_id": record.Id, "percentage": str(percentage)},
    )
    return record


def UpdateCategory(db: Session, family_id: str, category_id: str, changes: dict) -> BudgetCategory:
    record = GetCategory(db, family_id, category_id)

    if changes.get("Name") is not None:
        name = NormalizeCategoryName(changes["Name"])
        _EnsureUniqueName(db, family_id, name, exclude_id=record.Id)
        record.Name = name
    if changes.get("Color") is not None:
        record.Color = NormalizeColor(changes["Color"])
    if changes.get("SortOrder") is not None:
        record.SortOrder = changes["SortOrder"]

    percentage = ToDecimal(record.TargetPercentage)
    if changes.get("TargetPercentage") is not None:
        percentage = ValidateTargetPercentage(changes["TargetPercentage"])
    is_active = record.IsActive if changes.get("IsActive") is None else bool(changes["IsActive"])
    if is_active:
        _EnsureActiveTotal(db, family_id, percentage, exclude_id=record.Id)
    record.TargetPercentage = percentage
    record.IsActive = is_active

    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def DeleteCategory(db: Session, family_id: str, category_id: str) -> None:
    record = GetCategory(db, family_id, category_id)
    linked = (
        db.query(SpendingCategory)
        .filter(SpendingCategory.BudgetCategoryId == record.Id, SpendingCategory.IsActive.is_(True))
        .count()
    )
    if linked:
        raise ConflictError(
            "Cannot delete a budget category that has active spending categories.",
            error="Budget category in use",
            code="CATEGORY_IN_USE",
            details={"spendingCategoryCount": linked},
        )
    db.query(SpendingCategory).filter(SpendingCategory.BudgetCategoryId == record.Id).update(
        {SpendingCategory.BudgetCategoryId: None}, synchronize_session=False
    )
    db.query(BudgetAllocation).filter(BudgetAllocation.BudgetCategoryId == record.Id).delete(
        synchronize_session=False
    )
    db.delete(record)
    db.commit()
    logger.info("budget category deleted", extra={"family_id": family_id, "category_id": record.Id})


def _SuggestPercentages(entries: list[tuple[str | None, Decimal]], total: Decimal) -> list[PercentageSuggestion]:
    if not entries or total <= ZERO:
        return []
    if total > HUNDRED:
        return [
            PercentageSuggestion(
                CategoryId=entry_id,
                CurrentPercentage=percentage,
                SuggestedPercentage=Round2(percentage * HUNDRED / total),
            )
            for entry_id, percentage in entries
        ]
    largest_index = max(range(len(entries)), key=lambda index: entries[index][1])
    missing = HUNDRED - total
    return [
        PercentageSuggestion(
            CategoryId=entry_id,
            CurrentPercentage=percentage,
            SuggestedPercentage=Round2(percentage + missing) if index == largest_index else percentage,
        )
        for index, (entry_id, percentage) in enumerate(entries)
    ]


def ValidatePercentages(db: Session, family_id: str, categories: list[dict] | None = None) -> PercentageValidation:
    """Check a proposed (or the stored active) set of target percentages against 100%."""
    errors: list[str] = []
    entries: list[tuple[str | None, Decimal]] = []
    if categories:
        known_ids = {row.Id for row in ListCategories(db, family_id, include_inactive=True)}
        for item in categories:
            entry_id = item.get("Id")
            if entry_id is not None:
                entry_id = ParseId(entry_id, "Budget category")
                if entry_id not in known_ids:
                    raise InvalidRequestError(
                        f"Budget category with ID {entry_id} not found or does not belong to your family.",
                        error="Category not found",
                    )
            percentage = Round2(item.get("TargetPercentage"))
            if percentage <= ZERO or percentage > HUNDRED:
                errors.append(f"Target percentage {percentage} must be greater than 0 and at most 100.")
            entries.append((entry_id, percentage))
    else:
        entries = [(row.Id, Round2(row.TargetPercentage)) for row in ListCategories(db, family_id)]
        if not entries:
            errors.append("No active budget categories.")

    total = Round2(sum((percentage for _, percentage in entries), ZERO))
    difference = Round2(total - HUNDRED)
    if total > HUNDRED + PERCENT_TOLERANCE:
        errors.append(f"Total percentage {total} exceeds 100.")
    elif total < HUNDRED - PERCENT_TOLERANCE:
        errors.append(f"Total percentage {total} is below 100.")

    is_valid = not errors and PercentagesComplete(total)
    return PercentageValidation(
        IsValid=is_valid,
        TotalPercentage=total,
        RemainingPercentage=Round2(HUNDRED - total),
        Difference=difference,
        Errors=errors,
        Suggestions=[] if is_valid else _SuggestPercentages(entries, total),
    )


def GetCategoryOverview(db: Session, family_id: str) -> CategoryOverview:
    categories = ListCategories(db, family_id)
    total = Round2(sum((ToDecimal(row.TargetPercentage) for row in categories), ZERO))
    return CategoryOverview(Categories=categories, TotalPercentage=total, IsComplete=PercentagesComplete(total))
