from __future__ import annotations

from decimal import Decimal
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, InvalidRequestError, NotFoundError, ParseId
from app.modules.budget.models import BudgetCategory, BudgetTemplate, BudgetTemplateEntry
from app.modules.budget.services.category_service import DefaultColor, NormalizeCategoryName
from app.services.money import HUNDRED, ZERO, PercentagesComplete, Round2

logger = logging.getLogger("budget.templates")

DEFAULT_TEMPLATES = (
    (
        "50/30/20",
        "Needs 50%, wants 30%, savings 20%.",
        (("Needs", Decimal("50")), ("Wants", Decimal("30")), ("Savings", Decimal("20"))),
    ),
)


def _BuildTemplate(family_id: str, name: str, description: str | None, entries) -> BudgetTemplate:
    template = BudgetTemplate(FamilyId=family_id, Name=name, Description=description)
    template.Entries = [
        BudgetTemplateEntry(CategoryName=category_name, Percentage=Round2(percentage), SortOrder=index)
        for index, (category_name, percentage) in enumerate(entries)
    ]
    return template


def SeedDefaultTemplates(db: Session, family_id: str) -> list[BudgetTemplate]:
    """Add the built-in templates to a new family; the caller commits."""
    templates = [
        _BuildTemplate(family_id, name, description, entries)
        for name, description, entries in DEFAULT_TEMPLATES
    ]
    db.add_all(templates)
    return templates


def ListTemplates(db: Session, family_id: str) -> list[BudgetTemplate]:
    return (
        db.query(BudgetTemplate)
        .filter(BudgetTemplate.FamilyId == family_id)
        .order_by(BudgetTemplate.Name.asc())
        .all()
    )


def GetTemplate(db: Session, family_id: str, template_id: str) -> BudgetTemplate:
    template_id = ParseId(template_id, "Template")
    record = (
        db.query(BudgetTemplate)
        .filter(BudgetTemplate.Id == template_id, BudgetTemplate.FamilyId == family_id)
        .first()
    )
    if not record:
        raise NotFoundError("The specified budget template was not found.", error="Template not found")
    return record


def CreateTemplate(db: Session, family_id: str, name: str, description: str | None, entries: list[dict]) -> BudgetTemplate:
    name = (name or "").strip()
    if not name or len(name) > 100:
        raise InvalidRequestError("Template name must be between 1 and 100 characters.", error="Invalid name")
    if not entries:
        raise InvalidRequestError("A template needs at least one category.", error="Invalid template")

    normalized: list[tuple[str, Decimal]] = []
    seen: set[str] = set()
    for entry in entries:
        category_name = NormalizeCategoryName(entry.get("CategoryName"))
        if category_name.lower() in seen:
            raise InvalidRequestError(
                f"Category {category_name} appears more than once.", error="Duplicate category name"
            )
        seen.add(category_name.lower())
        percentage = Round2(entry.get("Percentage"))
        if percentage <= ZERO or percentage > HUNDRED:
            raise InvalidRequestError(
                "Template percentages must be greater than 0 and at most 100.",
                error="Invalid percentage",
                code="INVALID_PERCENTAGE",
            )
        normalized.append((category_name, percentage))

    total = Round2(sum((percentage for _, percentage in normalized), ZERO))
    if not PercentagesComplete(total):
        raise InvalidRequestError(
            "Template percentages must sum to 100%.",
            error="Invalid percentage total",
            code="PERCENTAGES_NOT_100",
            details={"totalPercentage": total},
        )

    existing = (
        db.query(BudgetTemplate)
        .filter(BudgetTemplate.FamilyId == family_id, func.lower(BudgetTemplate.Name) == name.lower())
        .first()
    )
    if existing:
        raise ConflictError("A template with this name already exists.", error="Duplicate template name")

    record = _BuildTemplate(family_id, name, (description or "").strip() or None, normalized)
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("budget template created", extra={"family_id": family_id, "template_id": record.Id})
    return record


def DeleteTemplate(db: Session, family_id: str, template_id: str) -> None:
    record = GetTemplate(db, family_id, template_id)
    db.delete(record)
    db.commit()


def ResolveTemplateCategories(db: Session, family_id: str, template: BudgetTemplate) -> list[tuple[BudgetCategory, Decimal]]:
    """Match template entries to the family's active categories by name, ignoring case."""
    active = {
        row.Name.lower(): row
        for row in db.query(BudgetCategory)
        .filter(BudgetCategory.FamilyId == family_id, BudgetCategory.IsActive.is_(True))
        .all()
    }
    resolved = []
    for entry in template.Entries:
        category = active.get(entry.CategoryName.lower())
        if category is None:
            raise NotFoundError(
                f"No active budget category named {entry.CategoryName}.",
                error="Budget category not found",
                details={"categoryName": entry.CategoryName},
            )
        resolved.append((category, Round2(entry.Percentage)))
    return resolved


def ApplyTemplateToCategories(db: Session, family_id: str, template_id: str) -> list[BudgetCategory]:
    """Make the template's categories the family's active set, creating any that are missing."""
    template = GetTemplate(db, family_id, template_id)
    categories = db.query(BudgetCategory).filter(BudgetCategory.FamilyId == family_id).all()
    by_name = {row.Name.lower(): row for row in categories}
    for row in categories:
        row.IsActive = False

    applied = []
    for index, entry in enumerate(template.Entries):
        record = by_name.get(entry.CategoryName.lower())
        if record is None:
            record = BudgetCategory(
                FamilyId=family_id,
                Name=entry.CategoryName,
                Color=DefaultColor(index),
            )
            db.add(record)
        record.TargetPercentage = Round2(entry.Percentage)
        record.SortOrder = index
        record.IsActive = True
        applied.append(record)

    db.commit()
    for record in applied:
        db.refresh(record)
    logger.info(
        "budget template applied",
        extra={"family_id": family_id, "template_id": template.Id, "categories": len(applied)},
    )
    return applied
