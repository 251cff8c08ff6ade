import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.budget.models import BudgetAllocation
from app.modules.budget.schemas import (
    AllocationIncomeEventOut,
    AllocationSetOut,
    AllocationUpdateRequest,
    BudgetAllocationOut,
    GenerateAllocationsRequest,
)
from app.modules.budget.services.allocation_service import (
    AllocationSet,
    DeleteAllocations,
    GenerateAllocations,
    GetAllocation,
    ListAllocations,
    ParseAllocationChange,
    UpdateAllocation,
)

router = APIRouter()
logger = logging.getLogger("budget.allocations")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("budget allocations database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Budget storage not initialized. Run alembic upgrade head.",
    ) from exc


def _BuildAllocationOut(record: BudgetAllocation) -> BudgetAllocationOut:
    return BudgetAllocationOut(
        Id=record.Id,
        IncomeEventId=record.IncomeEventId,
        BudgetCategoryId=record.BudgetCategoryId,
        CategoryName=record.Category.Name,
        CategoryColor=record.Category.Color,
        Amount=float(record.Amount),
        Percentage=float(record.Percentage),
        CreatedAt=record.CreatedAt,
        UpdatedAt=record.UpdatedAt,
    )


def _BuildAllocationSetOut(result: AllocationSet) -> AllocationSetOut:
    income_event = result.IncomeEvent
    return AllocationSetOut(
        IncomeEvent=AllocationIncomeEventOut(
            Id=income_event.Id,
            Name=income_event.Name,
            Amount=float(income_event.Amount),
            ScheduledDate=income_event.ScheduledDate,
            Status=income_event.Status,
        ),
        Allocations=[_BuildAllocationOut(row) for row in result.Allocations],
        TotalAmount=float(result.TotalAmount),
        TotalPercentage=float(result.TotalPercentage),
    )


@router.post("/{income_event_id}/generate", response_model=AllocationSetOut, status_code=status.HTTP_201_CREATED)
def GenerateBudgetAllocations(
    income_event_id: str,
    payload: GenerateAllocationsRequest | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> AllocationSetOut:
    payload = payload or GenerateAllocationsRequest()
    custom_allocations = None
    if payload.CustomAllocations is not None:
        custom_allocations = [entry.model_dump() for entry in payload.CustomAllocations]
    try:
        result = GenerateAllocations(
            db,
            user.FamilyId,
            income_event_id,
            template_id=payload.TemplateId,
            custom_allocations=custom_allocations,
        )
        return _BuildAllocationSetOut(result)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("", response_model=AllocationSetOut)
def ListBudgetAllocations(
    income_event_id: str = Query(..., alias="incomeEventId"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> AllocationSetOut:
    try:
        return _BuildAllocationSetOut(ListAllocations(db, user.FamilyId, income_event_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{allocation_id}", response_model=BudgetAllocationOut)
def GetBudgetAllocation(
    allocation_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> BudgetAllocationOut:
    try:
        return _BuildAllocationOut(GetAllocation(db, user.FamilyId, allocation_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/{allocation_id}", response_model=BudgetAllocationOut)
def UpdateBudgetAllocation(
    allocation_id: str,
    payload: AllocationUpdateRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> BudgetAllocationOut:
    change = ParseAllocationChange(amount=payload.Amount, percentage=payload.Percentage)
    try:
        return _BuildAllocationOut(UpdateAllocation(db, user.FamilyId, allocation_id, change))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/income-events/{income_event_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteBudgetAllocations(
    income_event_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> None:
    try:
        DeleteAllocations(db, user.FamilyId, income_event_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
