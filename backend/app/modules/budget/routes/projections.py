import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.reports.schemas import BudgetProjectionOut
from app.modules.reports.services.report_service import BudgetProjectionFor

router = APIRouter()
logger = logging.getLogger("budget.projections")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("budget projections database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Budget storage not initialized. Run alembic upgrade head.",
    ) from exc


@router.get("", response_model=BudgetProjectionOut)
def GetBudgetProjection(
    months: int = Query(default=6),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> BudgetProjectionOut:
    try:
        return BudgetProjectionOut.model_validate(BudgetProjectionFor(db, user.FamilyId, months))
    except ProgrammingError as exc:
        _handle_db_error(exc)
