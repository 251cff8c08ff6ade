from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.errors import InvalidRequestError
from app.modules.accounts.models import BankAccount
from app.modules.budget.services.allocation_service import GenerateAllocations
from app.modules.payments.models import SpendingCategory
from app.modules.reports.services.report_service import (
    AnnualSummaryFor,
    BudgetPerformanceReportFor,
    BudgetProjectionFor,
    BuildCashFlow,
    BuildNetWorth,
    BuildPeriods,
    BuildSavingsRate,
    CashFlowReportFor,
    CheckReportRange,
    ExpandOccurrences,
    MonthlySummaryFor,
    OverallHealthScore,
    PercentChange,
    PerformanceStatus,
    SavingsRateReportFor,
    SavingsTrend,
    SpendingReportFor,
)
from conftest import make_category, make_family, make_income, make_payment


def test_week_periods_use_iso_labels_and_clamp_to_range():
    periods = BuildPeriods(date(2026, 1, 1), date(2026, 1, 14), "week")

    assert [period.Label for period in periods] == ["2026-W01", "2026-W02", "2026-W03"]
    assert periods[0].StartDate == date(2026, 1, 1)
    assert periods[0].EndDate == date(2026, 1, 4)
    assert periods[-1].StartDate == date(2026, 1, 12)
    assert periods[-1].EndDate == date(2026, 1, 14)


def test_month_quarter_and_year_labels():
    months = BuildPeriods(date(2026, 1, 15), date(2026, 3, 10), "month")
    assert [period.Label for period in months] == ["2026-01", "2026-02", "2026-03"]
    assert months[1].EndDate == date(2026, 2, 28)

    quarters = BuildPeriods(date(2026, 2, 1), date(2026, 8, 1), "quarter")
    assert [period.Label for period in quarters] == ["2026-Q1", "2026-Q2", "2026-Q3"]

    years = BuildPeriods(date(2025, 12, 1), date(2026, 1, 31), "year")
    assert [period.Label for period in years] == ["2025", "2026"]


def test_invalid_group_by_and_range():
    with pytest.raises(InvalidRequestError):
        BuildPeriods(date(2026, 1, 1), date(2026, 2, 1), "day")
    with pytest.raises(InvalidRequestError):
        CheckReportRange(date(2026, 2, 1), date(2026, 1, 1))
    with pytest.raises(InvalidRequestError):
        CheckReportRange(date(2020, 1, 1), date(2026, 1, 1))


def test_cash_flow_groups_by_month():
    income = [(date(2026, 1, 10), Decimal("1000")), (date(2026, 2, 10), Decimal("1000"))]
    expenses = [(date(2026, 1, 12), Decimal("400")), (date(2026, 2, 20), Decimal("1200"))]

    report = BuildCashFlow(income, expenses, date(2026, 1, 1), date(2026, 2, 28))

    assert [(row.Period, row.NetCashFlow) for row in report.Periods] == [
        ("2026-01", Decimal("600.00")),
        ("2026-02", Decimal("-200.00")),
    ]
    assert report.TotalIncome == Decimal("2000.00")
    assert report.TotalExpenses == Decimal("1600.00")
    assert report.NetCashFlow == Decimal("400.00")


@pytest.mark.parametrize(
    ("rates", "expected"),
    [
        (["10", "10", "10", "20", "20", "20"], "increasing"),
        (["20", "20", "20", "10", "10", "10"], "decreasing"),
        (["10", "11", "10", "11", "10", "11"], "stable"),
        (["50", "10", "5"], "stable"),
        ([], "stable"),
    ],
)
def test_savings_trend(rates, expected):
    assert SavingsTrend([Decimal(rate) for rate in rates]) == expected


def test_savings_rate_by_month():
    income = [(date(2026, 1, 5), Decimal("1000"))]
    expenses = [(date(2026, 1, 20), Decimal("800")), (date(2026, 2, 3), Decimal("100"))]

    report = BuildSavingsRate(income, expenses, date(2026, 1, 1), date(2026, 2, 28))

    assert [month.SavingsRate for month in report.MonthlyData] == [Decimal("20.00"), Decimal("0.00")]
    assert report.MonthlyData[1].Savings == Decimal("-100.00")
    assert report.CurrentSavingsRate == Decimal("0.00")
    assert report.AverageSavingsRate == Decimal("10.00")
    assert report.TargetSavingsRate == Decimal("20.00")
    assert report.SavingsTrend == "stable"


def test_savings_rate_target_must_be_a_percentage(db):
    family, _ = make_family(db)
    with pytest.raises(InvalidRequestError):
        SavingsRateReportFor(db, family.Id, date(2026, 1, 1), date(2026, 1, 31), Decimal("120"))


@pytest.mark.parametrize(
    ("budgeted", "spent", "expected"),
    [
        ("100", "101", "over_budget"),
        ("100", "100", "on_track"),
        ("100", "90", "on_track"),
        ("100", "89.99", "under_budget"),
        ("0", "0", "under_budget"),
        ("0", "5", "over_budget"),
    ],
)
def test_performance_status(budgeted, spent, expected):
    assert PerformanceStatus(Decimal(budgeted), Decimal(spent)) == expected


def test_net_worth_counts_liabilities_by_magnitude():
    accounts = [
        SimpleNamespace(AccountType="checking", CurrentBalance=Decimal("1000")),
        SimpleNamespace(AccountType="savings", CurrentBalance=Decimal("500")),
        SimpleNamespace(AccountType="credit", CurrentBalance=Decimal("-300")),
        SimpleNamespace(AccountType="loan", CurrentBalance=Decimal("2000")),
    ]

    report = BuildNetWorth(accounts, date(2026, 3, 31))

    assert report.TotalAssets == Decimal("1500.00")
    assert report.TotalLiabilities == Decimal("2300.00")
    assert report.NetWorth == Decimal("-800.00")
    assert [line.AccountType for line in report.ByAccountType] == ["checking", "credit", "loan", "savings"]


def _paid(db, family_id, amount, payee, paid_on, **extra):
    return make_payment(
        db,
        family_id,
        amount,
        payee=payee,
        due=paid_on,
        Status="paid",
        PaidDate=paid_on,
        PaidAmount=Decimal(amount),
        **extra,
    )


def test_spending_and_performance_reports(db):
    family, _ = make_family(db)
    needs = make_category(db, family.Id, "Needs", "100")
    groceries = SpendingCategory(FamilyId=family.Id, Name="Groceries", BudgetCategoryId=needs.Id)
    db.add(groceries)
    db.commit()
    income = make_income(db, family.Id, "1000", scheduled=date(2026, 1, 15))
    GenerateAllocations(db, family.Id, income.Id)
    _paid(db, family.Id, "950", "Market", date(2026, 1, 20), SpendingCategoryId=groceries.Id)
    _paid(db, family.Id, "50", "Parking", date(2026, 1, 21))

    spending = SpendingReportFor(db, family.Id, date(2026, 1, 1), date(2026, 1, 31))
    assert spending.TotalSpending == Decimal("1000.00")
    assert [(line.CategoryName, line.Percentage) for line in spending.Categories] == [
        ("Groceries", Decimal("95.00")),
        ("Uncategorized", Decimal("5.00")),
    ]

    performance = BudgetPerformanceReportFor(db, family.Id, date(2026, 1, 1), date(2026, 1, 31))
    line = performance.Categories[0]
    assert line.BudgetedAmount == Decimal("1000.00")
    assert line.SpentAmount == Decimal("950.00")
    assert line.Variance == Decimal("50.00")
    assert line.PercentUsed == Decimal("95.00")
    assert line.Status == "on_track"


def test_cash_flow_uses_received_income_and_paid_payments(db):
    family, _ = make_family(db)
    received = make_income(db, family.Id, "2000", scheduled=date(2026, 1, 15))
    received.Status = "received"
    received.ActualDate = date(2026, 1, 14)
    received.ActualAmount = Decimal("1950")
    db.commit()
    make_income(db, family.Id, "2000", name="Not yet", scheduled=date(2026, 1, 30))
    _paid(db, family.Id, "700", "Rent", date(2026, 1, 3))
    make_payment(db, family.Id, "300", payee="Unpaid", due=date(2026, 1, 25))

    report = CashFlowReportFor(db, family.Id, date(2026, 1, 1), date(2026, 1, 31), "month")

    assert report.TotalIncome == Decimal("1950.00")
    assert report.TotalExpenses == Decimal("700.00")
    assert report.NetCashFlow == Decimal("1250.00")


def _received(db, family_id, amount, received_on, name="Salary", source=None):
    record = make_income(db, family_id, amount, name=name, scheduled=received_on)
    record.Status = "received"
    record.ActualDate = received_on
    record.ActualAmount = Decimal(amount)
    record.Source = source
    db.commit()
    return record


def _seed_two_months(db, family_id):
    _received(db, family_id, "1000", date(2025, 12, 12))
    _paid(db, family_id, "400", "Rent", date(2025, 12, 3))
    _received(db, family_id, "2000", date(2026, 1, 14), source="Employer")
    _paid(db, family_id, "700", "Rent", date(2026, 1, 3))
    _received(db, family_id, "2000", date(2026, 2, 14), source="Employer")
    _received(db, family_id, "500", date(2026, 2, 20), name="Side gig")
    _paid(db, family_id, "700", "Rent", date(2026, 2, 3))
    _paid(db, family_id, "1900", "Car repair", date(2026, 2, 10))


def test_expand_occurrences_counts_late_instance_once():
    entries = ExpandOccurrences(
        date(2026, 1, 1), "weekly", Decimal("50"), date(2026, 3, 1), date(2026, 3, 14), first_amount=Decimal("20")
    )

    assert entries == [
        (date(2026, 3, 1), Decimal("20.00")),
        (date(2026, 3, 5), Decimal("50.00")),
        (date(2026, 3, 12), Decimal("50.00")),
    ]
    assert ExpandOccurrences(date(2026, 4, 1), "once", Decimal("50"), date(2026, 3, 1), date(2026, 3, 31)) == []


def test_budget_projection_rolls_schedules_forward(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Needs", "50")
    make_income(db, family.Id, "3000", scheduled=date(2026, 3, 15), frequency="monthly")
    make_income(db, family.Id, "500", name="Bonus", scheduled=date(2026, 2, 20))
    cancelled = make_income(db, family.Id, "900", name="Cancelled", scheduled=date(2026, 3, 20))
    cancelled.Status = "cancelled"
    make_payment(
        db, family.Id, "1000", payee="Rent", due=date(2026, 3, 1), PaymentType="recurring", Frequency="monthly"
    )
    make_payment(
        db, family.Id, "600", payee="Insurance", due=date(2026, 2, 25), Status="partial", PaidAmount=Decimal("200")
    )
    _paid(db, family.Id, "250", "Already paid", date(2026, 3, 2))
    db.add(BankAccount(FamilyId=family.Id, Name="Everyday", AccountType="checking", CurrentBalance=Decimal("1000")))
    db.commit()

    projection = BudgetProjectionFor(db, family.Id, months=3, today=date(2026, 3, 10))

    assert projection.StartDate == date(2026, 3, 1)
    assert projection.EndDate == date(2026, 5, 31)
    assert projection.StartingBalance == Decimal("1000.00")
    assert [row.Month for row in projection.MonthlyProjections] == ["2026-03", "2026-04", "2026-05"]
    assert [row.ProjectedIncome for row in projection.MonthlyProjections] == [
        Decimal("3500.00"),
        Decimal("3000.00"),
        Decimal("3000.00"),
    ]
    assert [row.ProjectedExpenses for row in projection.MonthlyProjections] == [
        Decimal("1400.00"),
        Decimal("1000.00"),
        Decimal("1000.00"),
    ]
    assert [row.ProjectedBalance for row in projection.MonthlyProjections] == [
        Decimal("3100.00"),
        Decimal("5100.00"),
        Decimal("7100.00"),
    ]
    assert projection.MonthlyProjections[0].CategoryBreakdown[0].ProjectedAmount == Decimal("1750.00")
    assert projection.ProjectedIncome == Decimal("9500.00")
    assert projection.ProjectedExpenses == Decimal("3400.00")
    assert projection.ProjectedSavings == Decimal("6100.00")
    assert projection.SavingsRate == Decimal("64.21")


@pytest.mark.parametrize("months", [0, 25])
def test_budget_projection_period_is_bounded(db, months):
    family, _ = make_family(db)
    with pytest.raises(InvalidRequestError) as exc_info:
        BudgetProjectionFor(db, family.Id, months=months)
    assert exc_info.value.ToBody()["error"] == "Invalid projection period"


def test_percent_change_and_health_score():
    assert PercentChange(Decimal("2500"), Decimal("2000")) == Decimal("25.00")
    assert PercentChange(Decimal("-100"), Decimal("1300")) == Decimal("-107.69")
    assert PercentChange(Decimal("10"), Decimal("0")) == Decimal("0")
    assert OverallHealthScore(Decimal("80"), Decimal("15"), Decimal("100")) == 76
    assert OverallHealthScore(Decimal("100"), Decimal("-4"), Decimal("-100")) == 55


def test_monthly_summary_compares_with_previous_month(db):
    family, _ = make_family(db)
    _seed_two_months(db, family.Id)

    summary = MonthlySummaryFor(db, family.Id, "2026-02")

    assert summary.Month == "2026-02"
    assert summary.EndDate == date(2026, 2, 28)
    assert summary.TotalIncome == Decimal("2500.00")
    assert summary.TotalExpenses == Decimal("2600.00")
    assert summary.NetCashFlow == Decimal("-100.00")
    assert summary.CashFlowStatus == "deficit"
    assert summary.SavingsAmount == Decimal("0.00")
    assert summary.SavingsRate == Decimal("-4.00")
    assert summary.SavingsTarget == Decimal("500.00")
    assert [(line.Name, line.Percentage) for line in summary.IncomeSources] == [
        ("Employer", Decimal("80.00")),
        ("Side gig", Decimal("20.00")),
    ]
    assert [line.Name for line in summary.ExpenseCategories] == ["Uncategorized"]
    assert [item.Payee for item in summary.TopExpenses] == ["Car repair", "Rent"]
    assert summary.IncomeChange.Amount == Decimal("500.00")
    assert summary.IncomeChange.Percentage == Decimal("25.00")
    assert summary.ExpenseChange.Percentage == Decimal("271.43")
    assert summary.SavingsRateChange == Decimal("-69.00")
    assert summary.FinancialHealth.SavingsStatus == "poor"
    assert summary.FinancialHealth.BudgetStatus == "excellent"
    assert summary.FinancialHealth.OverallScore == 55
    assert [insight.Type for insight in summary.Insights] == ["warning", "alert", "info"]


def test_monthly_summary_rejects_bad_month(db):
    family, _ = make_family(db)
    with pytest.raises(InvalidRequestError) as exc_info:
        MonthlySummaryFor(db, family.Id, "2026-13")
    assert exc_info.value.ToBody()["error"] == "Invalid month format"


def test_annual_summary_is_year_to_date(db):
    family, _ = make_family(db)
    _seed_two_months(db, family.Id)

    summary = AnnualSummaryFor(db, family.Id, 2026, today=date(2026, 3, 15))

    assert summary.EndDate == date(2026, 3, 15)
    assert [row.Month for row in summary.MonthlyTrends] == ["2026-01", "2026-02", "2026-03"]
    assert summary.TotalIncome == Decimal("4500.00")
    assert summary.TotalExpenses == Decimal("3300.00")
    assert summary.SavingsRate == Decimal("26.67")
    assert summary.AverageMonthlyIncome == Decimal("1500.00")
    assert summary.AverageMonthlyExpenses == Decimal("1100.00")
    assert [(quarter.Quarter, quarter.NetCashFlow) for quarter in summary.QuarterlyPerformance] == [
        ("Q1", Decimal("1200.00"))
    ]
    assert summary.BestMonth.Month == "2026-01"
    assert summary.WorstMonth.Month == "2026-02"
    assert (summary.ProfitableMonths, summary.UnprofitableMonths) == (1, 2)
    assert summary.IncomeYearOverYear.Change == Decimal("3500.00")
    assert summary.IncomeYearOverYear.ChangePercentage == Decimal("350.00")
    assert summary.ExpensesYearOverYear.PreviousYear == Decimal("400.00")
    assert summary.ExpensesYearOverYear.ChangePercentage == Decimal("725.00")


def test_annual_summary_for_future_year_is_empty(db):
    family, _ = make_family(db)

    summary = AnnualSummaryFor(db, family.Id, 2027, today=date(2026, 3, 15))

    assert summary.MonthlyTrends == []
    assert summary.BestMonth is None
    assert summary.AverageMonthlyIncome == Decimal("0.00")


def test_annual_summary_year_is_bounded(db):
    family, _ = make_family(db)
    with pytest.raises(InvalidRequestError):
        AnnualSummaryFor(db, family.Id, 1999)
