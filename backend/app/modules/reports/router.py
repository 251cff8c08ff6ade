from datetime import date
from decimal import Decimal
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireFamilyRole, UserContext
from app.modules.reports.schemas import (
    AnnualSummaryOut,
    BudgetPerformanceReportOut,
    CashFlowReportOut,
    MonthlySummaryOut,
    NetWorthReportOut,
    SavingsRateReportOut,
    SpendingReportOut,
)
from app.modules.reports.services.report_service import (
    AnnualSummaryFor,
    BudgetPerformanceReportFor,
    CashFlowReportFor,
    MonthlySummaryFor,
    NetWorthReportFor,
    SavingsRateReportFor,
    SpendingReportFor,
)

router = APIRouter(prefix="/api/reports", tags=["reports"])
logger = logging.getLogger("reports")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("reports database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Report storage not initialized. Run alembic upgrade head.",
    ) from exc


@router.get("/cash-flow", response_model=CashFlowReportOut)
def GetCashFlowReport(
    from_date: date = Query(..., alias="fromDate"),
    to_date: date = Query(..., alias="toDate"),
    group_by: str = Query(default="month", alias="groupBy"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> CashFlowReportOut:
    try:
        report = CashFlowReportFor(db, user.FamilyId, from_date, to_date, group_by)
        return CashFlowReportOut.model_validate(report)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/spending", response_model=SpendingReportOut)
def GetSpendingReport(
    from_date: date = Query(..., alias="fromDate"),
    to_date: date = Query(..., alias="toDate"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> SpendingReportOut:
    try:
        return SpendingReportOut.model_validate(SpendingReportFor(db, user.FamilyId, from_date, to_date))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/savings-rate", response_model=SavingsRateReportOut)
def GetSavingsRateReport(
    from_date: date = Query(..., alias="fromDate"),
    to_date: date = Query(..., alias="toDate"),
    target_rate: Decimal = Query(default=Decimal("20"), alias="targetRate"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> SavingsRateReportOut:
    try:
        report = SavingsRateReportFor(db, user.FamilyId, from_date, to_date, target_rate)
        return SavingsRateReportOut.model_validate(report)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/budget-performance", response_model=BudgetPerformanceReportOut)
def GetBudgetPerformanceReport(
    from_date: date = Query(..., alias="fromDate"),
    to_date: date = Query(..., alias="toDate"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> BudgetPerformanceReportOut:
    try:
        report = BudgetPerformanceReportFor(db, user.FamilyId, from_date, to_date)
        return BudgetPerformanceReportOut.model_validate(report)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/net-worth", response_model=NetWorthReportOut)
def GetNetWorthReport(
    as_of: date | None = Query(default=None, alias="asOf"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> NetWorthReportOut:
    try:
        return NetWorthReportOut.model_validate(NetWorthReportFor(db, user.FamilyId, as_of))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/monthly-summary", response_model=MonthlySummaryOut)
def GetMonthlySummary(
    month: str | None = Query(default=None),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> MonthlySummaryOut:
    try:
        return MonthlySummaryOut.model_validate(MonthlySummaryFor(db, user.FamilyId, month))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/annual-summary", response_model=AnnualSummaryOut)
def GetAnnualSummary(
    year: int | None = Query(default=None),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> AnnualSummaryOut:
    try:
        return AnnualSummaryOut.model_validate(AnnualSummaryFor(db, user.FamilyId, year))
    except ProgrammingError as exc:
        _handle_db_error(exc)
