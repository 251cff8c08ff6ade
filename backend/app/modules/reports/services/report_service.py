from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from app.core.errors import InvalidRequestError
from app.modules.accounts.models import ASSET_ACCOUNT_TYPES, LIABILITY_ACCOUNT_TYPES, BankAccount
from app.modules.budget.models import BudgetAllocation, BudgetCategory
from app.modules.income.models import IncomeEvent
from app.modules.payments.models import Payment, SpendingCategory
from app.services.money import HUNDRED, ZERO, Round2, SumAmounts
from app.services.schedules import AddMonths, NextOccurrenceDate

GROUP_BY_OPTIONS = ("week", "month", "quarter", "year")
MAX_REPORT_DAYS = 366 * 5
TREND_THRESHOLD = Decimal("2")
ON_TRACK_LOWER = Decimal("90")
MAX_PROJECTION_MONTHS = 24
OPEN_PAYMENT_STATUSES = ("scheduled", "partial", "overdue")
MIN_REPORT_YEAR = 2000
MAX_REPORT_YEAR = 2100
DEFAULT_SAVINGS_TARGET = Decimal("20")
TOP_BREAKDOWN_COUNT = 5
TOP_EXPENSE_COUNT = 10


@dataclass
class Period:
    Label: str
    StartDate: date
    EndDate: date


@dataclass
class CashFlowPeriod:
    Period: str
    StartDate: date
    EndDate: date
    TotalIncome: Decimal
    TotalExpenses: Decimal
    NetCashFlow: Decimal


@dataclass
class CashFlowReport:
    FromDate: date
    ToDate: date
    GroupBy: str
    Periods: list[CashFlowPeriod]
    TotalIncome: Decimal
    TotalExpenses: Decimal
    NetCashFlow: Decimal


@dataclass
class SpendingLine:
    SpendingCategoryId: str | None
    CategoryName: str
    Color: str | None
    TotalAmount: Decimal
    Percentage: Decimal
    Count: int
    AverageAmount: Decimal


@dataclass
class SpendingReport:
    FromDate: date
    ToDate: date
    TotalSpending: Decimal
    Categories: list[SpendingLine] = field(default_factory=list)


@dataclass
class SavingsMonth:
    Month: str
    Income: Decimal
    Expenses: Decimal
    Savings: Decimal
    SavingsRate: Decimal


@dataclass
class SavingsRateReport:
    FromDate: date
    ToDate: date
    TargetSavingsRate: Decimal
    CurrentSavingsRate: Decimal
    AverageSavingsRate: Decimal
    SavingsTrend: str
    MonthlyData: list[SavingsMonth]


@dataclass
class BudgetPerformanceLine:
    BudgetCategoryId: str
    CategoryName: str
    Color: str
    BudgetedAmount: Decimal
    SpentAmount: Decimal
    Variance: Decimal
    PercentUsed: Decimal
    Status: str


@dataclass
class BudgetPerformanceReport:
    FromDate: date
    ToDate: date
    Categories: list[BudgetPerformanceLine]
    TotalBudgeted: Decimal
    TotalSpent: Decimal


@dataclass
class NetWorthLine:
    AccountType: str
    Balance: Decimal
    AccountCount: int


@dataclass
class NetWorthReport:
    AsOf: date
    TotalAssets: Decimal
    TotalLiabilities: Decimal
    NetWorth: Decimal
    ByAccountType: list[NetWorthLine]


@dataclass
class ProjectedCategory:
    BudgetCategoryId: str
    CategoryName: str
    Color: str
    TargetPercentage: Decimal
    ProjectedAmount: Decimal


@dataclass
class ProjectionMonth:
    Month: str
    StartDate: date
    EndDate: date
    ProjectedIncome: Decimal
    ProjectedExpenses: Decimal
    ProjectedSavings: Decimal
    ProjectedBalance: Decimal
    CategoryBreakdown: list[ProjectedCategory]


@dataclass
class BudgetProjection:
    ProjectionMonths: int
    StartDate: date
    EndDate: date
    StartingBalance: Decimal
    ProjectedIncome: Decimal
    ProjectedExpenses: Decimal
    ProjectedSavings: Decimal
    ProjectedBalance: Decimal
    SavingsRate: Decimal
    MonthlyProjections: list[ProjectionMonth]


@dataclass
class SummaryLine:
    Name: str
    Amount: Decimal
    Percentage: Decimal


@dataclass
class ExpenseItem:
    PaymentId: str
    Payee: str
    Amount: Decimal
    PaidDate: date


@dataclass
class ChangeLine:
    Amount: Decimal
    Percentage: Decimal


@dataclass
class Insight:
    Type: str
    Message: str


@dataclass
class FinancialHealth:
    CashFlowStatus: str
    SavingsStatus: str
    BudgetStatus: str
    OverallScore: int


@dataclass
class MonthTotals:
    Month: str
    StartDate: date
    EndDate: date
    TotalIncome: Decimal
    TotalExpenses: Decimal
    NetCashFlow: Decimal
    SavingsRate: Decimal
    BudgetScore: Decimal
    IncomeSources: list[SummaryLine] = field(default_factory=list)
    ExpenseCategories: list[SummaryLine] = field(default_factory=list)
    TopExpenses: list[ExpenseItem] = field(default_factory=list)


@dataclass
class MonthlySummaryReport:
    Month: str
    StartDate: date
    EndDate: date
    TotalIncome: Decimal
    TotalExpenses: Decimal
    NetCashFlow: Decimal
    CashFlowStatus: str
    SavingsAmount: Decimal
    SavingsRate: Decimal
    SavingsTarget: Decimal
    BudgetScore: Decimal
    IncomeSources: list[SummaryLine]
    ExpenseCategories: list[SummaryLine]
    TopExpenses: list[ExpenseItem]
    IncomeChange: ChangeLine
    ExpenseChange: ChangeLine
    NetCashFlowChange: ChangeLine
    SavingsRateChange: Decimal
    FinancialHealth: FinancialHealth
    Insights: list[Insight]


@dataclass
class QuarterSummary:
    Quarter: str
    Income: Decimal
    Expenses: Decimal
    NetCashFlow: Decimal
    SavingsRate: Decimal


@dataclass
class MonthHighlight:
    Month: str
    NetCashFlow: Decimal
    SavingsRate: Decimal


@dataclass
class YearComparison:
    PreviousYear: Decimal
    CurrentYear: Decimal
    Change: Decimal
    ChangePercentage: Decimal


@dataclass
class AnnualSummaryReport:
    Year: int
    StartDate: date
    EndDate: date
    TotalIncome: Decimal
    TotalExpenses: Decimal
    NetCashFlow: Decimal
    SavingsRate: Decimal
    AverageMonthlyIncome: Decimal
    AverageMonthlyExpenses: Decimal
    IncomeBreakdown: list[SummaryLine]
    ExpenseBreakdown: list[SummaryLine]
    QuarterlyPerformance: list[QuarterSummary]
    MonthlyTrends: list[SavingsMonth]
    BestMonth: MonthHighlight | None
    WorstMonth: MonthHighlight | None
    ProfitableMonths: int
    UnprofitableMonths: int
    IncomeYearOverYear: YearComparison
    ExpensesYearOverYear: YearComparison


def CheckReportRange(from_date: date, to_date: date) -> None:
    if from_date > to_date:
        raise InvalidRequestError("fromDate must be on or before toDate.", error="Invalid date range")
    if (to_date - from_date).days > MAX_REPORT_DAYS:
        raise InvalidRequestError("Report range cannot exceed five years.", error="Invalid date range")


def _PeriodStart(value: date, group_by: str) -> date:
    if group_by == "week":
        return value - timedelta(days=value.weekday())
    if group_by == "month":
        return value.replace(day=1)
    if group_by == "quarter":
        return date(value.year, 3 * ((value.month - 1) // 3) + 1, 1)
    return date(value.year, 1, 1)


def _NextPeriodStart(start: date, group_by: str) -> date:
    if group_by == "week":
        return start + timedelta(days=7)
    if group_by == "month":
        return AddMonths(start, 1)
    if group_by == "quarter":
        return AddMonths(start, 3)
    return date(start.year + 1, 1, 1)


def _PeriodLabel(start: date, group_by: str) -> str:
    if group_by == "week":
        iso = start.isocalendar()
        return f"{iso[0]}-W{iso[1]:02d}"
    if group_by == "month":
        return start.strftime("%Y-%m")
    if group_by == "quarter":
        return f"{start.year}-Q{(start.month - 1) // 3 + 1}"
    return str(start.year)


def BuildPeriods(from_date: date, to_date: date, group_by: str) -> list[Period]:
    if group_by not in GROUP_BY_OPTIONS:
        raise InvalidRequestError(
            f"groupBy must be one of: {', '.join(GROUP_BY_OPTIONS)}.", error="Invalid groupBy"
        )
    periods = []
    start = _PeriodStart(from_date, group_by)
    while start <= to_date:
        following = _NextPeriodStart(start, group_by)
        periods.append(
            Period(
                Label=_PeriodLabel(start, group_by),
                StartDate=max(start, from_date),
                EndDate=min(following - timedelta(days=1), to_date),
            )
        )
        start = following
    return periods


def _SumInPeriod(entries: Iterable[tuple[date, Decimal]], period: Period) -> Decimal:
    return SumAmounts(amount for when, amount in entries if period.StartDate <= when <= period.EndDate)


def LoadReceivedIncome(db: Session, family_id: str, from_date: date, to_date: date) -> list[IncomeEvent]:
    return (
        db.query(IncomeEvent)
        .filter(
            IncomeEvent.FamilyId == family_id,
            IncomeEvent.Status == "received",
            IncomeEvent.ActualDate >= from_date,
            IncomeEvent.ActualDate <= to_date,
        )
        .all()
    )


def ReceivedAmount(row: IncomeEvent) -> Decimal:
    return Round2(row.ActualAmount if row.ActualAmount is not None else row.Amount)


def LoadIncomeEntries(db: Session, family_id: str, from_date: date, to_date: date) -> list[tuple[date, Decimal]]:
    return [(row.ActualDate, ReceivedAmount(row)) for row in LoadReceivedIncome(db, family_id, from_date, to_date)]


def LoadPaidPayments(db: Session, family_id: str, from_date: date, to_date: date) -> list[Payment]:
    return (
        db.query(Payment)
        .filter(
            Payment.FamilyId == family_id,
            Payment.Status.in_(("paid", "partial")),
            Payment.PaidDate >= from_date,
            Payment.PaidDate <= to_date,
        )
        .all()
    )


def BuildCashFlow(
    income: list[tuple[date, Decimal]],
    expenses: list[tuple[date, Decimal]],
    from_date: date,
    to_date: date,
    group_by: str = "month",
) -> CashFlowReport:
    periods = []
    for period in BuildPeriods(from_date, to_date, group_by):
        period_income = _SumInPeriod(income, period)
        period_expenses = _SumInPeriod(expenses, period)
        periods.append(
            CashFlowPeriod(
                Period=period.Label,
                StartDate=period.StartDate,
                EndDate=period.EndDate,
                TotalIncome=period_income,
                TotalExpenses=period_expenses,
                NetCashFlow=Round2(period_income - period_expenses),
            )
        )
    total_income = SumAmounts(row.TotalIncome for row in periods)
    total_expenses = SumAmounts(row.TotalExpenses for row in periods)
    return CashFlowReport(
        FromDate=from_date,
        ToDate=to_date,
        GroupBy=group_by,
        Periods=periods,
        TotalIncome=total_income,
        TotalExpenses=total_expenses,
        NetCashFlow=Round2(total_income - total_expenses),
    )


def CashFlowReportFor(db: Session, family_id: str, from_date: date, to_date: date, group_by: str) -> CashFlowReport:
    CheckReportRange(from_date, to_date)
    income = LoadIncomeEntries(db, family_id, from_date, to_date)
    expenses = [
        (payment.PaidDate, Round2(payment.PaidAmount or 0))
        for payment in LoadPaidPayments(db, family_id, from_date, to_date)
    ]
    return BuildCashFlow(income, expenses, from_date, to_date, group_by)


def SpendingReportFor(db: Session, family_id: str, from_date: date, to_date: date) -> SpendingReport:
    CheckReportRange(from_date, to_date)
    payments = LoadPaidPayments(db, family_id, from_date, to_date)
    categories = {
        row.Id: row for row in db.query(SpendingCategory).filter(SpendingCategory.FamilyId == family_id).all()
    }

    grouped: dict[str | None, list[Decimal]] = {}
    for payment in payments:
        grouped.setdefault(payment.SpendingCategoryId, []).append(Round2(payment.PaidAmount or 0))

    total = SumAmounts(amount for amounts in grouped.values() for amount in amounts)
    lines = []
    for category_id, amounts in grouped.items():
        category = categories.get(category_id)
        category_total = SumAmounts(amounts)
        lines.append(
            SpendingLine(
                SpendingCategoryId=category_id,
                CategoryName=category.Name if category else "Uncategorized",
                Color=category.Color if category else None,
                TotalAmount=category_total,
                Percentage=Round2(category_total * HUNDRED / total) if total > ZERO else ZERO,
                Count=len(amounts),
                AverageAmount=Round2(category_total / len(amounts)),
            )
        )
    lines.sort(key=lambda line: (-line.TotalAmount, line.CategoryName))
    return SpendingReport(FromDate=from_date, ToDate=to_date, TotalSpending=total, Categories=lines)


def SavingsTrend(rates: list[Decimal]) -> str:
    """Compare the last three months with the three before them."""
    recent = rates[-3:]
    earlier = rates[-6:-3]
    if not recent or not earlier:
        return "stable"
    recent_avg = sum(recent, ZERO) / len(recent)
    earlier_avg = sum(earlier, ZERO) / len(earlier)
    if recent_avg > earlier_avg + TREND_THRESHOLD:
        return "increasing"
    if recent_avg < earlier_avg - TREND_THRESHOLD:
        return "decreasing"
    return "stable"


def BuildSavingsRate(
    income: list[tuple[date, Decimal]],
    expenses: list[tuple[date, Decimal]],
    from_date: date,
    to_date: date,
    target_rate=Decimal("20"),
) -> SavingsRateReport:
    months = []
    for period in BuildPeriods(from_date, to_date, "month"):
        month_income = _SumInPeriod(income, period)
        month_expenses = _SumInPeriod(expenses, period)
        savings = Round2(month_income - month_expenses)
        rate = Round2(savings * HUNDRED / month_income) if month_income > ZERO else ZERO
        months.append(
            SavingsMonth(
                Month=period.Label,
                Income=month_income,
                Expenses=month_expenses,
                Savings=savings,
                SavingsRate=rate,
            )
        )
    rates = [month.SavingsRate for month in months]
    return SavingsRateReport(
        FromDate=from_date,
        ToDate=to_date,
        TargetSavingsRate=Round2(target_rate),
        CurrentSavingsRate=rates[-1] if rates else ZERO,
        AverageSavingsRate=Round2(sum(rates, ZERO) / len(rates)) if rates else ZERO,
        SavingsTrend=SavingsTrend(rates),
        MonthlyData=months,
    )


def SavingsRateReportFor(
    db: Session, family_id: str, from_date: date, to_date: date, target_rate=Decimal("20")
) -> SavingsRateReport:
    CheckReportRange(from_date, to_date)
    target_rate = Round2(target_rate)
    if target_rate < ZERO or target_rate > HUNDRED:
        raise InvalidRequestError("targetRate must be between 0 and 100.", error="Invalid target rate")
    income = LoadIncomeEntries(db, family_id, from_date, to_date)
    expenses = [
        (payment.PaidDate, Round2(payment.PaidAmount or 0))
        for payment in LoadPaidPayments(db, family_id, from_date, to_date)
    ]
    return BuildSavingsRate(income, expenses, from_date, to_date, target_rate)


def PerformanceStatus(budgeted: Decimal, spent: Decimal) -> str:
    if spent > budgeted:
        return "over_budget"
    if budgeted > ZERO and spent * HUNDRED / budgeted >= ON_TRACK_LOWER:
        return "on_track"
    return "under_budget"


def BudgetPerformanceReportFor(db: Session, family_id: str, from_date: date, to_date: date) -> BudgetPerformanceReport:
    CheckReportRange(from_date, to_date)
    categories = (
        db.query(BudgetCategory)
        .filter(BudgetCategory.FamilyId == family_id, BudgetCategory.IsActive.is_(True))
        .order_by(BudgetCategory.SortOrder.asc(), BudgetCategory.Name.asc())
        .all()
    )
    allocation_rows = (
        db.query(BudgetAllocation.BudgetCategoryId, BudgetAllocation.Amount)
        .join(IncomeEvent, IncomeEvent.Id == BudgetAllocation.IncomeEventId)
        .filter(
            IncomeEvent.FamilyId == family_id,
            IncomeEvent.Status != "cancelled",
            IncomeEvent.ScheduledDate >= from_date,
            IncomeEvent.ScheduledDate <= to_date,
        )
        .all()
    )
    budgeted: dict[str, list] = {}
    for category_id, amount in allocation_rows:
        budgeted.setdefault(category_id, []).append(amount)

    links = {
        row.Id: row.BudgetCategoryId
        for row in db.query(SpendingCategory)
        .filter(SpendingCategory.FamilyId == family_id, SpendingCategory.BudgetCategoryId.isnot(None))
        .all()
    }
    spent: dict[str, list] = {}
    for payment in LoadPaidPayments(db, family_id, from_date, to_date):
        budget_category_id = links.get(payment.SpendingCategoryId)
        if budget_category_id:
            spent.setdefault(budget_category_id, []).append(payment.PaidAmount or 0)

    lines = []
    for category in categories:
        budgeted_amount = SumAmounts(budgeted.get(category.Id, []))
        spent_amount = SumAmounts(spent.get(category.Id, []))
        lines.append(
            BudgetPerformanceLine(
                BudgetCategoryId=category.Id,
                CategoryName=category.Name,
                Color=category.Color,
                BudgetedAmount=budgeted_amount,
                SpentAmount=spent_amount,
                Variance=Round2(budgeted_amount - spent_amount),
                PercentUsed=Round2(spent_amount * HUNDRED / budgeted_amount) if budgeted_amount > ZERO else ZERO,
                Status=PerformanceStatus(budgeted_amount, spent_amount),
            )
        )
    return BudgetPerformanceReport(
        FromDate=from_date,
        ToDate=to_date,
        Categories=lines,
        TotalBudgeted=SumAmounts(line.BudgetedAmount for line in lines),
        TotalSpent=SumAmounts(line.SpentAmount for line in lines),
    )


def BuildNetWorth(accounts: list[BankAccount], as_of: date) -> NetWorthReport:
    by_type: dict[str, list[Decimal]] = {}
    for account in accounts:
        by_type.setdefault(account.AccountType, []).append(Round2(account.CurrentBalance or 0))

    assets = SumAmounts(
        balance for account_type in ASSET_ACCOUNT_TYPES for balance in by_type.get(account_type, [])
    )
    # Liability balances count by magnitude whichever sign they were entered with.
    liabilities = SumAmounts(
        abs(balance) for account_type in LIABILITY_ACCOUNT_TYPES for balance in by_type.get(account_type, [])
    )
    lines = [
        NetWorthLine(AccountType=account_type, Balance=SumAmounts(balances), AccountCount=len(balances))
        for account_type, balances in sorted(by_type.items())
    ]
    return NetWorthReport(
        AsOf=as_of,
        TotalAssets=assets,
        TotalLiabilities=liabilities,
        NetWorth=Round2(assets - liabilities),
        ByAccountType=lines,
    )


def NetWorthReportFor(db: Session, family_id: str, as_of: date | None = None) -> NetWorthReport:
    accounts = (
        db.query(BankAccount)
        .filter(BankAccount.FamilyId == family_id, BankAccount.IsActive.is_(True))
        .all()
    )
    return BuildNetWorth(accounts, as_of or date.today())


def ExpandOccurrences(
    first_date: date,
    frequency: str,
    amount: Decimal,
    window_start: date,
    window_end: date,
    first_amount: Decimal | None = None,
) -> list[tuple[date, Decimal]]:
    """Dated amounts for one pending schedule inside a projection window.

    The pending instance itself is counted even when it is already late, on
    ``window_start``. Later occurrences follow ``frequency`` and only those
    that land inside the window are kept.
    """
    entries = []
    if first_date <= window_end:
        entries.append((max(first_date, window_start), Round2(first_amount if first_amount is not None else amount)))
    when = NextOccurrenceDate(first_date, frequency)
    while when is not None and when <= window_end:
        if when >= window_start:
            entries.append((when, Round2(amount)))
        when = NextOccurrenceDate(when, frequency)
    return entries


def _ProjectCategories(categories: list[BudgetCategory], income: Decimal) -> list[ProjectedCategory]:
    return [
        ProjectedCategory(
            BudgetCategoryId=category.Id,
            CategoryName=category.Name,
            Color=category.Color,
            TargetPercentage=Round2(category.TargetPercentage),
            ProjectedAmount=Round2(income * Round2(category.TargetPercentage) / HUNDRED),
        )
        for category in categories
    ]


def BuildBudgetProjection(
    income: list[tuple[date, Decimal]],
    expenses: list[tuple[date, Decimal]],
    categories: list[BudgetCategory],
    starting_balance,
    window_start: date,
    months: int,
) -> BudgetProjection:
    window_end = AddMonths(window_start, months) - timedelta(days=1)
    starting_balance = Round2(starting_balance)
    balance = starting_balance
    rows = []
    for period in BuildPeriods(window_start, window_end, "month"):
        month_income = _SumInPeriod(income, period)
        month_expenses = _SumInPeriod(expenses, period)
        savings = Round2(month_income - month_expenses)
        balance = Round2(balance + savings)
        rows.append(
            ProjectionMonth(
                Month=period.Label,
                StartDate=period.StartDate,
                EndDate=period.EndDate,
                ProjectedIncome=month_income,
                ProjectedExpenses=month_expenses,
                ProjectedSavings=savings,
                ProjectedBalance=balance,
                CategoryBreakdown=_ProjectCategories(categories, month_income),
            )
        )
    total_income = SumAmounts(row.ProjectedIncome for row in rows)
    total_expenses = SumAmounts(row.ProjectedExpenses for row in rows)
    total_savings = Round2(total_income - total_expenses)
    return BudgetProjection(
        ProjectionMonths=months,
        StartDate=window_start,
        EndDate=window_end,
        StartingBalance=starting_balance,
        ProjectedIncome=total_income,
        ProjectedExpenses=total_expenses,
        ProjectedSavings=total_savings,
        ProjectedBalance=balance,
        SavingsRate=Round2(total_savings * HUNDRED / total_income) if total_income > ZERO else ZERO,
        MonthlyProjections=rows,
    )


def BudgetProjectionFor(db: Session, family_id: str, months: int = 6, today: date | None = None) -> BudgetProjection:
    if months < 1 or months > MAX_PROJECTION_MONTHS:
        raise InvalidRequestError(
            f"months must be between 1 and {MAX_PROJECTION_MONTHS}.", error="Invalid projection period"
        )
    today = today or date.today()
    window_start = today.replace(day=1)
    window_end = AddMonths(window_start, months) - timedelta(days=1)

    income = []
    pending_income = (
        db.query(IncomeEvent)
        .filter(
            IncomeEvent.FamilyId == family_id,
            IncomeEvent.Status == "scheduled",
            IncomeEvent.ScheduledDate <= window_end,
        )
        .all()
    )
    for event in pending_income:
        income.extend(ExpandOccurrences(event.ScheduledDate, event.Frequency, event.Amount, window_start, window_end))

    expenses = []
    open_payments = (
        db.query(Payment)
        .filter(
            Payment.FamilyId == family_id,
            Payment.Status.in_(OPEN_PAYMENT_STATUSES),
            Payment.DueDate <= window_end,
        )
        .all()
    )
    for payment in open_payments:
        outstanding = Round2(payment.Amount - (payment.PaidAmount or 0))
        expenses.extend(
            ExpandOccurrences(
                payment.DueDate,
                payment.Frequency,
                payment.Amount,
                window_start,
                window_end,
                first_amount=max(outstanding, ZERO),
            )
        )

    categories = (
        db.query(BudgetCategory)
        .filter(BudgetCategory.FamilyId == family_id, BudgetCategory.IsActive.is_(True))
        .order_by(BudgetCategory.SortOrder.asc(), BudgetCategory.Name.asc())
        .all()
    )
    starting_balance = NetWorthReportFor(db, family_id, today).NetWorth
    return BuildBudgetProjection(income, expenses, categories, starting_balance, window_start, months)


def ParseReportMonth(value: str | None, today: date | None = None) -> date:
    if not value:
        return (today or date.today()).replace(day=1)
    try:
        return datetime.strptime(value.strip(), "%Y-%m").date()
    except ValueError as exc:
        raise InvalidRequestError("Month must be in YYYY-MM format.", error="Invalid month format") from exc


def PercentChange(current: Decimal, previous: Decimal) -> Decimal:
    if previous == ZERO:
        return ZERO
    return Round2((current - previous) * HUNDRED / abs(previous))


def SavingsStatus(rate: Decimal) -> str:
    if rate >= Decimal("20"):
        return "excellent"
    if rate >= Decimal("10"):
        return "good"
    if rate >= Decimal("5"):
        return "fair"
    return "poor"


def BudgetStatus(score: Decimal) -> str:
    if score >= Decimal("90"):
        return "excellent"
    if score >= Decimal("75"):
        return "good"
    if score >= Decimal("60"):
        return "fair"
    return "poor"


def OverallHealthScore(budget_score: Decimal, savings_rate: Decimal, net_cash_flow: Decimal) -> int:
    """Weighted 0-100 score: budget 40%, savings 30% (rate tripled, capped), cash flow 30%."""
    savings_component = min(HUNDRED, max(ZERO, savings_rate * 3))
    cash_flow_component = HUNDRED if net_cash_flow >= ZERO else Decimal("50")
    score = budget_score * Decimal("0.4") + savings_component * Decimal("0.3") + cash_flow_component * Decimal("0.3")
    return int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def BudgetScore(report: BudgetPerformanceReport) -> Decimal:
    """Share of budgeted categories that stayed within budget, as a percentage."""
    budgeted = [line for line in report.Categories if line.BudgetedAmount > ZERO]
    if not budgeted:
        return HUNDRED
    within = sum(1 for line in budgeted if line.Status != "over_budget")
    return Round2(Decimal(within) * HUNDRED / len(budgeted))


def _BreakdownLines(groups: dict[str, list[Decimal]], total: Decimal) -> list[SummaryLine]:
    lines = []
    for name, amounts in groups.items():
        amount = SumAmounts(amounts)
        lines.append(
            SummaryLine(
                Name=name,
                Amount=amount,
                Percentage=Round2(amount * HUNDRED / total) if total > ZERO else ZERO,
            )
        )
    lines.sort(key=lambda line: (-line.Amount, line.Name))
    return lines


def _IncomeBySource(rows: list[IncomeEvent]) -> list[SummaryLine]:
    groups: dict[str, list[Decimal]] = {}
    for row in rows:
        groups.setdefault(row.Source or row.Name or "Other", []).append(ReceivedAmount(row))
    return _BreakdownLines(groups, SumAmounts(amount for amounts in groups.values() for amount in amounts))


def _SpendingLines(report: SpendingReport) -> list[SummaryLine]:
    return [
        SummaryLine(Name=line.CategoryName, Amount=line.TotalAmount, Percentage=line.Percentage)
        for line in report.Categories
    ]


def MonthTotalsFor(db: Session, family_id: str, month_start: date) -> MonthTotals:
    month_end = AddMonths(month_start, 1) - timedelta(days=1)
    income_rows = LoadReceivedIncome(db, family_id, month_start, month_end)
    payments = LoadPaidPayments(db, family_id, month_start, month_end)
    total_income = SumAmounts(ReceivedAmount(row) for row in income_rows)
    total_expenses = SumAmounts(payment.PaidAmount for payment in payments)
    net = Round2(total_income - total_expenses)
    top = sorted(payments, key=lambda payment: (-Round2(payment.PaidAmount or 0), payment.PaidDate, payment.Payee))
    return MonthTotals(
        Month=month_start.strftime("%Y-%m"),
        StartDate=month_start,
        EndDate=month_end,
        TotalIncome=total_income,
        TotalExpenses=total_expenses,
        NetCashFlow=net,
        SavingsRate=Round2(net * HUNDRED / total_income) if total_income > ZERO else ZERO,
        BudgetScore=BudgetScore(BudgetPerformanceReportFor(db, family_id, month_start, month_end)),
        IncomeSources=_IncomeBySource(income_rows),
        ExpenseCategories=_SpendingLines(SpendingReportFor(db, family_id, month_start, month_end)),
        TopExpenses=[
            ExpenseItem(
                PaymentId=payment.Id,
                Payee=payment.Payee,
                Amount=Round2(payment.PaidAmount or 0),
                PaidDate=payment.PaidDate,
            )
            for payment in top[:TOP_EXPENSE_COUNT]
        ],
    )


def BuildInsights(current: MonthTotals, expense_change: ChangeLine) -> list[Insight]:
    insights = []
    if current.NetCashFlow < ZERO:
        insights.append(Insight(Type="warning", Message="Expenses exceeded income this month."))
    if expense_change.Percentage > Decimal("10"):
        insights.append(
            Insight(Type="alert", Message=f"Expenses increased {expense_change.Percentage}% from last month.")
        )
    if current.TotalIncome > ZERO and current.SavingsRate < Decimal("10"):
        insights.append(
            Insight(Type="info", Message="Low savings rate this month. Consider reviewing budget allocations.")
        )
    if current.BudgetScore < Decimal("70"):
        insights.append(Insight(Type="warning", Message="Budget performance below target."))
    return insights


def BuildMonthlySummary(current: MonthTotals, previous: MonthTotals) -> MonthlySummaryReport:
    income_change = ChangeLine(
        Amount=Round2(current.TotalIncome - previous.TotalIncome),
        Percentage=PercentChange(current.TotalIncome, previous.TotalIncome),
    )
    expense_change = ChangeLine(
        Amount=Round2(current.TotalExpenses - previous.TotalExpenses),
        Percentage=PercentChange(current.TotalExpenses, previous.TotalExpenses),
    )
    net_change = ChangeLine(
        Amount=Round2(current.NetCashFlow - previous.NetCashFlow),
        Percentage=PercentChange(current.NetCashFlow, previous.NetCashFlow),
    )
    return MonthlySummaryReport(
        Month=current.Month,
        StartDate=current.StartDate,
        EndDate=current.EndDate,
        TotalIncome=current.TotalIncome,
        TotalExpenses=current.TotalExpenses,
        NetCashFlow=current.NetCashFlow,
        CashFlowStatus="surplus" if current.NetCashFlow >= ZERO else "deficit",
        SavingsAmount=max(current.NetCashFlow, ZERO),
        SavingsRate=current.SavingsRate,
        SavingsTarget=Round2(current.TotalIncome * DEFAULT_SAVINGS_TARGET / HUNDRED),
        BudgetScore=current.BudgetScore,
        IncomeSources=current.IncomeSources[:TOP_BREAKDOWN_COUNT],
        ExpenseCategories=current.ExpenseCategories[:TOP_BREAKDOWN_COUNT],
        TopExpenses=current.TopExpenses,
        IncomeChange=income_change,
        ExpenseChange=expense_change,
        NetCashFlowChange=net_change,
        SavingsRateChange=Round2(current.SavingsRate - previous.SavingsRate),
        FinancialHealth=FinancialHealth(
            CashFlowStatus="positive" if current.NetCashFlow >= ZERO else "negative",
            SavingsStatus=SavingsStatus(current.SavingsRate),
            BudgetStatus=BudgetStatus(current.BudgetScore),
            OverallScore=OverallHealthScore(current.BudgetScore, current.SavingsRate, current.NetCashFlow),
        ),
        Insights=BuildInsights(current, expense_change),
    )


def MonthlySummaryFor(
    db: Session, family_id: str, month: str | None = None, today: date | None = None
) -> MonthlySummaryReport:
    month_start = ParseReportMonth(month, today)
    current = MonthTotalsFor(db, family_id, month_start)
    previous = MonthTotalsFor(db, family_id, AddMonths(month_start, -1))
    return BuildMonthlySummary(current, previous)


def BuildQuarters(months: list[SavingsMonth]) -> list[QuarterSummary]:
    grouped: dict[int, list[SavingsMonth]] = {}
    for month in months:
        grouped.setdefault((int(month.Month[5:7]) - 1) // 3 + 1, []).append(month)
    quarters = []
    for quarter, rows in sorted(grouped.items()):
        income = SumAmounts(row.Income for row in rows)
        expenses = SumAmounts(row.Expenses for row in rows)
        net = Round2(income - expenses)
        quarters.append(
            QuarterSummary(
                Quarter=f"Q{quarter}",
                Income=income,
                Expenses=expenses,
                NetCashFlow=net,
                SavingsRate=Round2(net * HUNDRED / income) if income > ZERO else ZERO,
            )
        )
    return quarters


def _Highlight(month: SavingsMonth | None) -> MonthHighlight | None:
    if month is None:
        return None
    return MonthHighlight(Month=month.Month, NetCashFlow=month.Savings, SavingsRate=month.SavingsRate)


def _Compare(previous: Decimal, current: Decimal) -> YearComparison:
    return YearComparison(
        PreviousYear=previous,
        CurrentYear=current,
        Change=Round2(current - previous),
        ChangePercentage=PercentChange(current, previous),
    )


def AnnualSummaryFor(
    db: Session, family_id: str, year: int | None = None, today: date | None = None
) -> AnnualSummaryReport:
    """Year-to-date totals for ``year``; months after ``today`` are left out."""
    today = today or date.today()
    year = year if year is not None else today.year
    if year < MIN_REPORT_YEAR or year > MAX_REPORT_YEAR:
        raise InvalidRequestError(
            f"Year must be between {MIN_REPORT_YEAR} and {MAX_REPORT_YEAR}.", error="Invalid year"
        )
    start = date(year, 1, 1)
    end = min(date(year, 12, 31), today)

    if end >= start:
        income_rows = LoadReceivedIncome(db, family_id, start, end)
        payments = LoadPaidPayments(db, family_id, start, end)
        expense_lines = _SpendingLines(SpendingReportFor(db, family_id, start, end))
    else:
        income_rows, payments, expense_lines = [], [], []
    trends = BuildSavingsRate(
        [(row.ActualDate, ReceivedAmount(row)) for row in income_rows],
        [(payment.PaidDate, Round2(payment.PaidAmount or 0)) for payment in payments],
        start,
        end,
    ).MonthlyData

    total_income = SumAmounts(row.Income for row in trends)
    total_expenses = SumAmounts(row.Expenses for row in trends)
    net = Round2(total_income - total_expenses)
    profitable = sum(1 for row in trends if row.Savings > ZERO)

    previous_start, previous_end = date(year - 1, 1, 1), date(year - 1, 12, 31)
    previous_income = SumAmounts(amount for _, amount in LoadIncomeEntries(db, family_id, previous_start, previous_end))
    previous_expenses = SumAmounts(
        payment.PaidAmount for payment in LoadPaidPayments(db, family_id, previous_start, previous_end)
    )

    return AnnualSummaryReport(
        Year=year,
        StartDate=start,
        EndDate=end,
        TotalIncome=total_income,
        TotalExpenses=total_expenses,
        NetCashFlow=net,
        SavingsRate=Round2(net * HUNDRED / total_income) if total_income > ZERO else ZERO,
        AverageMonthlyIncome=Round2(total_income / len(trends)) if trends else ZERO,
        AverageMonthlyExpenses=Round2(total_expenses / len(trends)) if trends else ZERO,
        IncomeBreakdown=_IncomeBySource(income_rows),
        ExpenseBreakdown=expense_lines,
        QuarterlyPerformance=BuildQuarters(trends),
        MonthlyTrends=trends,
        BestMonth=_Highlight(max(trends, key=lambda row: row.Savings, default=None)),
        WorstMonth=_Highlight(min(trends, key=lambda row: row.Savings, default=None)),
        ProfitableMonths=profitable,
        UnprofitableMonths=len(trends) - profitable,
        IncomeYearOverYear=_Compare(previous_income, total_income),
        ExpensesYearOverYear=_Compare(previous_expenses, total_expenses),
    )
