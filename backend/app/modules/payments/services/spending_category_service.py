from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ParseId
from app.modules.budget.services.category_service import GetCategory, NormalizeCategoryName, NormalizeColor
from app.modules.payments.models import Payment, SpendingCategory

logger = logging.getLogger("payments.spending-categories")


def GetSpendingCategory(db: Session, family_id: str, spending_category_id: str) -> SpendingCategory:
    spending_category_id = ParseId(spending_category_id, "Spending category")
    record = (
        db.query(SpendingCategory)
        .filter(SpendingCategory.Id == spending_category_id, SpendingCategory.FamilyId == family_id)
        .first()
    )
    if not record:
        raise NotFoundError("The specified spending category was not found.", error="Spending category not found")
    return record


def ListSpendingCategories(db: Session, family_id: str, include_inactive: bool = False) -> list[SpendingCategory]:
    query = db.query(SpendingCategory).filter(SpendingCategory.FamilyId == family_id)
    if not include_inactive:
        query = query.filter(SpendingCategory.IsActive.is_(True))
    return query.order_by(SpendingCategory.Name.asc()).all()


def _EnsureUniqueName(db: Session, family_id: str, name: str, exclude_id: str | None = None) -> None:
    query = db.query(SpendingCategory).filter(
        SpendingCategory.FamilyId == family_id,
        func.lower(SpendingCategory.Name) == name.lower(),
    )
    if exclude_id:
        query = query.filter(SpendingCategory.Id != exclude_id)
    if query.first():
        raise ConflictError(
            "A spending category with this name already exists.",
            error="Duplicate category name",
            code="CATEGORY_NAME_EXISTS",
        )


def _ResolveBudgetCategoryId(db: Session, family_id: str, budget_category_id: str | None) -> str | None:
    if not budget_category_id:
        return None
    return GetCategory(db, family_id, budget_category_id).Id


def CreateSpendingCategory(db: Session, family_id: str, payload: dict) -> SpendingCategory:
    name = NormalizeCategoryName(payload.get("Name"))
    _EnsureUniqueName(db, family_id, name)
    record = SpendingCategory(
        FamilyId=family_id,
        Name=name,
        BudgetCategoryId=_ResolveBudgetCategoryId(db, family_id, payload.get("BudgetCategoryId")),
        Color=NormalizeColor(payload["Color"]) if payload.get("Color") else "#6B7280",
        Icon=(payload.get("Icon") or "").strip() or None,
        IsActive=payload.get("IsActive", True),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("spending category created", extra={"family_id": family_id, "spending_category_id": record.Id})
    return record


def UpdateSpendingCategory(db: Session, family_id: str, spending_category_id: str, changes: dict) -> SpendingCategory:
    record = GetSpendingCategory(db, family_id, spending_category_id)
    if changes.get("Name") is not None:
        name = NormalizeCategoryName(changes["Name"])
        _EnsureUniqueName(db, family_id, name, exclude_id=record.Id)
        record.Name = name
    if "BudgetCategoryId" in changes:
        record.BudgetCategoryId = _ResolveBudgetCategoryId(db, family_id, changes["BudgetCategoryId"])
    if changes.get("Color") is not None:
        record.Color = NormalizeColor(changes["Color"])
    if "Icon" in changes:
        record.Icon = (changes["Icon"] or "").strip() or None
    if changes.get("IsActive") is not None:
        record.IsActive = bool(changes["IsActive"])
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def DeleteSpendingCategory(db: Session, family_id: str, spending_category_id: str) -> None:
    record = GetSpendingCategory(db, family_id, spending_category_id)
    in_use = db.query(Payment).filter(Payment.SpendingCategoryId == record.Id).count()
    if in_use:
        raise ConflictError(
            "Cannot delete a spending category that is used by payments. Deactivate it instead.",
            error="Spending category in use",
            code="CATEGORY_IN_USE",
            details={"paymentCount": in_use},
        )
    db.delete(record)
    db.commit()
