import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.budget.models import BudgetCategory
from app.modules.budget.schemas import (
    BudgetCategoryCreate,
    BudgetCategoryOut,
    BudgetCategoryUpdate,
    CategoryOverviewOut,
    PercentageSuggestionOut,
    PercentageValidationOut,
    ValidatePercentagesRequest,
)
from app.modules.budget.services.category_service import (
    CreateCategory,
    DeleteCategory,
    GetCategory,
    GetCategoryOverview,
    ListCategories,
    UpdateCategory,
    ValidatePercentages,
)

router = APIRouter()
logger = logging.getLogger("budget.categories")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("budget categories database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Budget storage not initialized. Run alembic upgrade head.",
    ) from exc


def BuildCategoryOut(record: BudgetCategory) -> BudgetCategoryOut:
    return BudgetCategoryOut(
        Id=record.Id,
        FamilyId=record.FamilyId,
        Name=record.Name,
        TargetPercentage=float(record.TargetPercentage),
        Color=record.Color,
        SortOrder=record.SortOrder,
        IsActive=record.IsActive,
        CreatedAt=record.CreatedAt,
        UpdatedAt=record.UpdatedAt,
    )


@router.get("", response_model=list[BudgetCategoryOut])
def ListBudgetCategories(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> list[BudgetCategoryOut]:
    try:
        return [BuildCategoryOut(row) for row in ListCategories(db, user.FamilyId, include_inactive)]
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/overview", response_model=CategoryOverviewOut)
def GetBudgetCategoryOverview(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> CategoryOverviewOut:
    try:
        overview = GetCategoryOverview(db, user.FamilyId)
        return CategoryOverviewOut(
            Categories=[BuildCategoryOut(row) for row in overview.Categories],
            TotalPercentage=float(overview.TotalPercentage),
            IsComplete=overview.IsComplete,
        )
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/validate-percentages", response_model=PercentageValidationOut)
def ValidateBudgetPercentages(
    payload: ValidatePercentagesRequest | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> PercentageValidationOut:
    categories = None
    if payload is not None and payload.Categories:
        categories = [entry.model_dump() for entry in payload.Categories]
    try:
        result = ValidatePercentages(db, user.FamilyId, categories)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return PercentageValidationOut(
        IsValid=result.IsValid,
        TotalPercentage=float(result.TotalPercentage),
        RemainingPercentage=float(result.RemainingPercentage),
        Difference=float(result.Difference),
        Errors=result.Errors,
        Suggestions=[
            PercentageSuggestionOut(
                CategoryId=entry.CategoryId,
                CurrentPercentage=float(entry.CurrentPercentage),
                SuggestedPercentage=float(entry.SuggestedPercentage),
            )
            for entry in result.Suggestions
        ],
    )


@router.get("/{category_id}", response_model=BudgetCategoryOut)
def GetBudgetCategory(
    category_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> BudgetCategoryOut:
    try:
        return BuildCategoryOut(GetCategory(db, user.FamilyId, category_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=BudgetCategoryOut, status_code=status.HTTP_201_CREATED)
def CreateBudgetCategory(
    payload: BudgetCategoryCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> BudgetCategoryOut:
    try:
        return BuildCategoryOut(CreateCategory(db, user.FamilyId, payload.model_dump()))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/{category_id}", response_model=BudgetCategoryOut)
def UpdateBudgetCategory(
    category_id: str,
    payload: BudgetCategoryUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> BudgetCategoryOut:
    try:
        record = UpdateCategory(db, user.FamilyId, category_id, payload.model_dump(exclude_unset=True))
        return BuildCategoryOut(record)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteBudgetCategory(
    category_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> None:
    try:
        DeleteCategory(db, user.FamilyId, category_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
