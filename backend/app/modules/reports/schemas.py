from datetime import date

from pydantic import ConfigDict

from app.core.schemas import ApiModel


class ReportModel(ApiModel):
    model_config = ConfigDict(from_attributes=True)


class CashFlowPeriodOut(ReportModel):
    Period: str
    StartDate: date
    EndDate: date
    TotalIncome: float
    TotalExpenses: float
    NetCashFlow: float


class CashFlowReportOut(ReportModel):
    FromDate: date
    ToDate: date
    GroupBy: str
    Periods: list[CashFlowPeriodOut]
    TotalIncome: float
    TotalExpenses: float
    NetCashFlow: float


class SpendingLineOut(ReportModel):
    SpendingCategoryId: str | None = None
    CategoryName: str
    Color: str | None = None
    TotalAmount: float
    Percentage: float
    Count: int
    AverageAmount: float


class SpendingReportOut(ReportModel):
    FromDate: date
    ToDate: date
    TotalSpending: float
    Categories: list[SpendingLineOut]


class SavingsMonthOut(ReportModel):
    Month: str
    Income: float
    Expenses: float
    Savings: float
    SavingsRate: float


class SavingsRateReportOut(ReportModel):
    FromDate: date
    ToDate: date
    TargetSavingsRate: float
    CurrentSavingsRate: float
    AverageSavingsRate: float
    SavingsTrend: str
    MonthlyData: list[SavingsMonthOut]


class BudgetPerformanceLineOut(ReportModel):
    BudgetCategoryId: str
    CategoryName: str
    Color: str
    BudgetedAmount: float
    SpentAmount: float
    Variance: float
    PercentUsed: float
    Status: str


class BudgetPerformanceReportOut(ReportModel):
    FromDate: date
    ToDate: date
    Categories: list[BudgetPerformanceLineOut]
    TotalBudgeted: float
    TotalSpent: float


class NetWorthLineOut(ReportModel):
    AccountType: str
    Balance: float
    AccountCount: int


class NetWorthReportOut(ReportModel):
    AsOf: date
    TotalAssets: float
    TotalLiabilities: float
    NetWorth: float
    ByAccountType: list[NetWorthLineOut]


class ProjectedCategoryOut(ReportModel):
    BudgetCategoryId: str
    CategoryName: str
    Color: str
    TargetPercentage: float
    ProjectedAmount: float


class ProjectionMonthOut(ReportModel):
    Month: str
    StartDate: date
    EndDate: date
    ProjectedIncome: float
    ProjectedExpenses: float
    ProjectedSavings: float
    ProjectedBalance: float
    CategoryBreakdown: list[ProjectedCategoryOut]


class BudgetProjectionOut(ReportModel):
    ProjectionMonths: int
    StartDate: date
    EndDate: date
    StartingBalance: float
    ProjectedIncome: float
    ProjectedExpenses: float
    ProjectedSavings: float
    ProjectedBalance: float
    SavingsRate: float
    MonthlyProjections: list[ProjectionMonthOut]


class SummaryLineOut(ReportModel):
    Name: str
    Amount: float
    Percentage: float


class ExpenseItemOut(ReportModel):
    PaymentId: str
    Payee: str
    Amount: float
    PaidDate: date


class ChangeLineOut(ReportModel):
    Amount: float
    Percentage: float


class InsightOut(ReportModel):
    Type: str
    Message: str


class FinancialHealthOut(ReportModel):
    CashFlowStatus: str
    SavingsStatus: str
    BudgetStatus: str
    OverallScore: int


class MonthlySummaryOut(ReportModel):
    Month: str
    StartDate: date
    EndDate: date
    TotalIncome: float
    TotalExpenses: float
    NetCashFlow: float
    CashFlowStatus: str
    SavingsAmount: float
    SavingsRate: float
    SavingsTarget: float
    BudgetScore: float
    IncomeSources: list[SummaryLineOut]
    ExpenseCategories: list[SummaryLineOut]
    TopExpenses: list[ExpenseItemOut]
    IncomeChange: ChangeLineOut
    ExpenseChange: ChangeLineOut
    NetCashFlowChange: ChangeLineOut
    SavingsRateChange: float
    FinancialHealth: FinancialHealthOut
    Insights: list[InsightOut]


class QuarterSummaryOut(ReportModel):
    Quarter: str
    Income: float
    Expenses: float
    NetCashFlow: float
    SavingsRate: float


class MonthHighlightOut(ReportModel):
    Month: str
    NetCashFlow: float
    SavingsRate: float


class YearComparisonOut(ReportModel):
    PreviousYear: float
    CurrentYear: float
    Change: float
    ChangePercentage: float


class AnnualSummaryOut(ReportModel):
    Year: int
    StartDate: date
    EndDate: date
    TotalIncome: float
    TotalExpenses: float
    NetCashFlow: float
    SavingsRate: float
    AverageMonthlyIncome: float
    AverageMonthlyExpenses: float
    IncomeBreakdown: list[SummaryLineOut]
    ExpenseBreakdown: list[SummaryLineOut]
    QuarterlyPerformance: list[QuarterSummaryOut]
    MonthlyTrends: list[SavingsMonthOut]
    BestMonth: MonthHighlightOut | None = None
    WorstMonth: MonthHighlightOut | None = None
    ProfitableMonths: int
    UnprofitableMonths: int
    IncomeYearOverYear: YearComparisonOut
    ExpensesYearOverYear: YearComparisonOut
