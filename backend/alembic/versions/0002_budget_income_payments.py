"""create budget, income, payment and bank account tables

Revision ID: 0002_budget_income_payments
Revises: 0001_families_auth
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_budget_income_payments"
down_revision = "0001_families_auth"
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
    ]


def upgrade() -> None:
    op.create_table(
        "budget_categories",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("FamilyId", sa.String(length=36), nullable=False),
        sa.Column("Name", sa.String(length=100), nullable=False),
        sa.Column("TargetPercentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("Color", sa.String(length=7), nullable=False, server_default="#6B7280"),
        sa.Column("SortOrder", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["FamilyId"], ["families.Id"], name="fk_budget_categories_family"),
    )
    op.create_index("ix_budget_categories_FamilyId", "budget_categories", ["FamilyId"])

    op.create_table(
        "budget_templates",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("FamilyId", sa.String(length=36), nullable=False),
        sa.Column("Name", sa.String(length=100), nullable=False),
        sa.Column("Description", sa.Text(), nullable=True),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["FamilyId"], ["families.Id"], name="fk_budget_templates_family"),
        sa.UniqueConstraint("FamilyId", "Name", name="uq_budget_templates_family_name"),
    )
    op.create_index("ix_budget_templates_FamilyId", "budget_templates", ["FamilyId"])

    op.create_table(
        "budget_template_entries",
        sa.Column("Id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("TemplateId", sa.String(length=36), nullable=False),
        sa.Column("CategoryName", sa.String(length=100), nullable=False),
        sa.Column("Percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("SortOrder", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["TemplateId"], ["budget_templates.Id"], name="fk_budget_template_entries_template"),
    )
    op.create_index("ix_budget_template_entries_TemplateId", "budget_template_entries", ["TemplateId"])

    op.create_table(
        "income_events",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("FamilyId", sa.String(length=36), nullable=False),
        sa.Column("Name", sa.String(length=200), nullable=False),
        sa.Column("Amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("ScheduledDate", sa.Date(), nullable=False),
        sa.Column("ActualDate", sa.Date(), nullable=True),
        sa.Column("ActualAmount", sa.Numeric(12, 2), nullable=True),
        sa.Column("Frequency", sa.String(length=20), nullable=False, server_default="once"),
        sa.Column("Status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("AllocatedAmount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("RemainingAmount", sa.Numeric(12, 2), nullable=False),
        sa.Column("Source", sa.String(length=200), nullable=True),
        sa.Column("Notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["FamilyId"], ["families.Id"], name="fk_income_events_family"),
        sa.CheckConstraint('"AllocatedAmount" >= 0', name="ck_income_events_allocated_nonnegative"),
        sa.CheckConstraint('"RemainingAmount" >= 0', name="ck_income_events_remaining_nonnegative"),
    )
    op.create_index("ix_income_events_FamilyId", "income_events", ["FamilyId"])
    op.create_index("ix_income_events_ScheduledDate", "income_events", ["ScheduledDate"])
    op.create_index("ix_income_events_Status", "income_events", ["Status"])

    op.create_table(
        "budget_allocations",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("IncomeEventId", sa.String(length=36), nullable=False),
        sa.Column("BudgetCategoryId", sa.String(length=36), nullable=False),
        sa.Column("Amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("Percentage", sa.Numeric(5, 2), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["IncomeEventId"], ["income_events.Id"], name="fk_budget_allocations_income_event"),
        sa.ForeignKeyConstraint(["BudgetCategoryId"], ["budget_categories.Id"], name="fk_budget_allocations_category"),
        sa.UniqueConstraint("IncomeEventId", "BudgetCategoryId", name="uq_budget_allocations_income_category"),
        sa.CheckConstraint('"Amount" >= 0', name="ck_budget_allocations_amount_nonnegative"),
    )
    op.create_index("ix_budget_allocations_IncomeEventId", "budget_allocations", ["IncomeEventId"])
    op.create_index("ix_budget_allocations_BudgetCategoryId", "budget_allocations", ["BudgetCategoryId"])

    op.create_table(
        "spending_categories",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("FamilyId", sa.String(length=36), nullable=False),
        sa.Column("Name", sa.String(length=100), nullable=False),
        sa.Column("BudgetCategoryId", sa.String(length=36), nullable=True),
        sa.Column("Color", sa.String(length=7), nullable=False, server_default="#6B7280"),
        sa.Column("Icon", sa.String(length=50), nullable=True),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["FamilyId"], ["families.Id"], name="fk_spending_categories_family"),
        sa.ForeignKeyConstraint(["BudgetCategoryId"], ["budget_categories.Id"], name="fk_spending_categories_budget"),
    )
    op.create_index("ix_spending_categories_FamilyId", "spending_categories", ["FamilyId"])
    op.create_index("ix_spending_categories_BudgetCategoryId", "spending_categories", ["BudgetCategoryId"])

    op.create_table(
        "payments",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("FamilyId", sa.String(length=36), nullable=False),
        sa.Column("Payee", sa.String(length=200), nullable=False),
        sa.Column("Amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("DueDate", sa.Date(), nullable=False),
        sa.Column("PaidDate", sa.Date(), nullable=True),
        sa.Column("PaidAmount", sa.Numeric(12, 2), nullable=True),
        sa.Column("PaymentType", sa.String(length=20), nullable=False, server_default="once"),
        sa.Column("Frequency", sa.String(length=20), nullable=False, server_default="once"),
        sa.Column("Status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("SpendingCategoryId", sa.String(length=36), nullable=True),
        sa.Column("AutoPayEnabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("Notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["FamilyId"], ["families.Id"], name="fk_payments_family"),
        sa.ForeignKeyConstraint(["SpendingCategoryId"], ["spending_categories.Id"], name="fk_payments_spending_category"),
    )
    op.create_index("ix_payments_FamilyId", "payments", ["FamilyId"])
    op.create_index("ix_payments_DueDate", "payments", ["DueDate"])
    op.create_index("ix_payments_Status", "payments", ["Status"])
    op.create_index("ix_payments_SpendingCategoryId", "payments", ["SpendingCategoryId"])

    op.create_table(
        "payment_attributions",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("PaymentId", sa.String(length=36), nullable=False),
        sa.Column("IncomeEventId", sa.String(length=36), nullable=False),
        sa.Column("Amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("AttributionType", sa.String(length=20), nullable=False, server_default="manual"),
        sa.Column("CreatedBy", sa.String(length=36), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["PaymentId"], ["payments.Id"], name="fk_payment_attributions_payment"),
        sa.ForeignKeyConstraint(["IncomeEventId"], ["income_events.Id"], name="fk_payment_attributions_income_event"),
        sa.UniqueConstraint("PaymentId", "IncomeEventId", name="uq_payment_attributions_payment_income"),
        sa.CheckConstraint('"Amount" > 0', name="ck_payment_attributions_amount_positive"),
    )
    op.create_index("ix_payment_attributions_PaymentId", "payment_attributions", ["PaymentId"])
    op.create_index("ix_payment_attributions_IncomeEventId", "payment_attributions", ["IncomeEventId"])

    op.create_table(
        "bank_accounts",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("FamilyId", sa.String(length=36), nullable=False),
        sa.Column("Name", sa.String(length=200), nullable=False),
        sa.Column("Institution", sa.String(length=200), nullable=True),
        sa.Column("AccountType", sa.String(length=20), nullable=False),
        sa.Column("CurrentBalance", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["FamilyId"], ["families.Id"], name="fk_bank_accounts_family"),
    )
    op.create_index("ix_bank_accounts_FamilyId", "bank_accounts", ["FamilyId"])


def downgrade() -> None:
    op.drop_index("ix_bank_accounts_FamilyId", table_name="bank_accounts")
    op.drop_table("bank_accounts")
    op.drop_index("ix_payment_attributions_IncomeEventId", table_name="payment_attributions")
    op.drop_index("ix_payment_attributions_PaymentId", table_name="payment_attributions")
    op.drop_table("payment_attributions")
    op.drop_index("ix_payments_SpendingCategoryId", table_name="payments")
    op.drop_index("ix_payments_Status", table_name="payments")
    op.drop_index("ix_payments_DueDate", table_name="payments")
    op.drop_index("ix_payments_FamilyId", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_spending_categories_BudgetCategoryId", table_name="spending_categories")
    op.drop_index("ix_spending_categories_FamilyId", table_name="spending_categories")
    op.drop_table("spending_categories")
    op.drop_index("ix_budget_allocations_BudgetCategoryId", table_name="budget_allocations")
    op.drop_index("ix_budget_allocations_IncomeEventId", table_name="budget_allocations")
    op.drop_table("budget_allocations")
    op.drop_index("ix_income_events_Status", table_name="income_events")
    op.drop_index("ix_income_events_ScheduledDate", table_name="income_events")
    op.drop_index("ix_income_events_FamilyId", table_name="income_events")
    op.drop_table("income_events")
    op.drop_index("ix_budget_template_entries_TemplateId", table_name="budget_template_entries")
    op.drop_table("budget_template_entries")
    op.drop_index("ix_budget_templates_FamilyId", table_name="budget_templates")
    op.drop_table("budget_templates")
    op.drop_index("ix_budget_categories_FamilyId", table_name="budget_categories")
    op.drop_table("budget_categories")
