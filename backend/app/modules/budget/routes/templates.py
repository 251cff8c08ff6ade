import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.budget.models import BudgetTemplate
from app.modules.budget.routes.categories import BuildCategoryOut
from app.modules.budget.schemas import BudgetCategoryOut, BudgetTemplateCreate, BudgetTemplateOut, TemplateEntryOut
from app.modules.budget.services.template_service import (
    ApplyTemplateToCategories,
    CreateTemplate,
    DeleteTemplate,
    GetTemplate,
    ListTemplates,
)

router = APIRouter()
logger = logging.getLogger("budget.templates")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("budget templates database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Budget storage not initialized. Run alembic upgrade head.",
    ) from exc


def _BuildTemplateOut(record: BudgetTemplate) -> BudgetTemplateOut:
    return BudgetTemplateOut(
        Id=record.Id,
        FamilyId=record.FamilyId,
        Name=record.Name,
        Description=record.Description,
        Entries=[
            TemplateEntryOut(
                CategoryName=entry.CategoryName,
                Percentage=float(entry.Percentage),
                SortOrder=entry.SortOrder,
            )
            for entry in record.Entries
        ],
        CreatedAt=record.CreatedAt,
    )


@router.get("", response_model=list[BudgetTemplateOut])
def ListBudgetTemplates(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> list[BudgetTemplateOut]:
    try:
        return [_BuildTemplateOut(row) for row in ListTemplates(db, user.FamilyId)]
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{template_id}", response_model=BudgetTemplateOut)
def GetBudgetTemplate(
    template_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> BudgetTemplateOut:
    try:
        return _BuildTemplateOut(GetTemplate(db, user.FamilyId, template_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=BudgetTemplateOut, status_code=status.HTTP_201_CREATED)
def CreateBudgetTemplate(
    payload: BudgetTemplateCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> BudgetTemplateOut:
    try:
        record = CreateTemplate(
            db,
            user.FamilyId,
            payload.Name,
            payload.Description,
            [entry.model_dump() for entry in payload.Entries],
        )
        return _BuildTemplateOut(record)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{template_id}/apply", response_model=list[BudgetCategoryOut])
def ApplyBudgetTemplate(
    template_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> list[BudgetCategoryOut]:
    try:
        return [BuildCategoryOut(row) for row in ApplyTemplateToCategories(db, user.FamilyId, template_id)]
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteBudgetTemplate(
    template_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> None:
    try:
        DeleteTemplate(db, user.FamilyId, template_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
