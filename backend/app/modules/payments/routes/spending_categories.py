import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.payments.models import SpendingCategory
from app.modules.payments.schemas import SpendingCategoryCreate, SpendingCategoryOut, SpendingCategoryUpdate
from app.modules.payments.services.spending_category_service import (
    CreateSpendingCategory,
    DeleteSpendingCategory,
    GetSpendingCategory,
    ListSpendingCategories,
    UpdateSpendingCategory,
)

router = APIRouter()
logger = logging.getLogger("payments.spending-categories")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("spending categories database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Payments storage not initialized. Run alembic upgrade head.",
    ) from exc


def _BuildSpendingCategoryOut(record: SpendingCategory) -> SpendingCategoryOut:
    return SpendingCategoryOut(
        Id=record.Id,
        FamilyId=record.FamilyId,
        Name=record.Name,
        BudgetCategoryId=record.BudgetCategoryId,
        Color=record.Color,
        Icon=record.Icon,
        IsActive=record.IsActive,
        CreatedAt=record.CreatedAt,
    )


@router.get("", response_model=list[SpendingCategoryOut])
def ListCategories(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> list[SpendingCategoryOut]:
    try:
        return [_BuildSpendingCategoryOut(row) for row in ListSpendingCategories(db, user.FamilyId, include_inactive)]
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{spending_category_id}", response_model=SpendingCategoryOut)
def GetCategory(
    spending_category_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> SpendingCategoryOut:
    try:
        return _BuildSpendingCategoryOut(GetSpendingCategory(db, user.FamilyId, spending_category_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=SpendingCategoryOut, status_code=status.HTTP_201_CREATED)
def CreateCategory(
    payload: SpendingCategoryCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> SpendingCategoryOut:
    try:
        return _BuildSpendingCategoryOut(CreateSpendingCategory(db, user.FamilyId, payload.model_dump()))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/{spending_category_id}", response_model=SpendingCategoryOut)
def UpdateCategory(
    spending_category_id: str,
    payload: SpendingCategoryUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> SpendingCategoryOut:
    try:
        record = UpdateSpendingCategory(
            db, user.FamilyId, spending_category_id, payload.model_dump(exclude_unset=True)
        )
        return _BuildSpendingCategoryOut(record)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{spending_category_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteCategory(
    spending_category_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> None:
    try:
        DeleteSpendingCategory(db, user.FamilyId, spending_category_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
