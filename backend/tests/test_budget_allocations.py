from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.errors import AllocationsAlreadyExistError, InvalidRequestError, NotFoundError
from app.db import IsUniqueViolation
from app.modules.budget.models import BudgetAllocation
from app.modules.budget.services import allocation_service
from app.modules.budget.services.allocation_service import (
    AmountChange,
    DeleteAllocations,
    GenerateAllocations,
    ListAllocations,
    ParseAllocationChange,
    PercentageChange,
    UpdateAllocation,
)
from app.modules.budget.services.template_service import CreateTemplate
from conftest import make_category, make_family, make_income


def test_generate_from_family_targets_sums_to_income_amount(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Needs", "33.33", sort_order=0)
    make_category(db, family.Id, "Wants", "33.33", sort_order=1)
    make_category(db, family.Id, "Savings", "33.34", sort_order=2)
    income = make_income(db, family.Id, "1000.01")

    result = GenerateAllocations(db, family.Id, income.Id)

    amounts = [row.Amount for row in result.Allocations]
    assert amounts == [Decimal("333.30"), Decimal("333.30"), Decimal("333.41")]
    assert result.TotalAmount == Decimal("1000.01")
    assert result.TotalPercentage == Decimal("100.00")


def test_generate_does_not_touch_attribution_totals(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Everything", "100")
    income = make_income(db, family.Id, "2500")

    GenerateAllocations(db, family.Id, income.Id)
    db.refresh(income)

    assert income.AllocatedAmount == Decimal("0.00")
    assert income.RemainingAmount == Decimal("2500.00")


def test_generate_twice_reports_existing_allocations(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Everything", "100")
    income = make_income(db, family.Id, "500")
    GenerateAllocations(db, family.Id, income.Id)

    with pytest.raises(AllocationsAlreadyExistError) as exc_info:
        GenerateAllocations(db, family.Id, income.Id)

    assert exc_info.value.StatusCode == 400
    assert exc_info.value.ToBody()["error"] == "Allocations already exist"


def test_regenerate_after_delete(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Everything", "100")
    income = make_income(db, family.Id, "500")
    GenerateAllocations(db, family.Id, income.Id)

    assert DeleteAllocations(db, family.Id, income.Id) == 1
    assert DeleteAllocations(db, family.Id, income.Id) == 0
    result = GenerateAllocations(db, family.Id, income.Id)
    assert len(result.Allocations) == 1


def test_custom_allocations_must_sum_to_one_hundred(db):
    family, _ = make_family(db)
    needs = make_category(db, family.Id, "Needs", "50")
    wants = make_category(db, family.Id, "Wants", "30")
    income = make_income(db, family.Id, "1000")

    with pytest.raises(InvalidRequestError) as exc_info:
        GenerateAllocations(
            db,
            family.Id,
            income.Id,
            custom_allocations=[
                {"BudgetCategoryId": needs.Id, "Percentage": Decimal("60")},
                {"BudgetCategoryId": wants.Id, "Percentage": Decimal("41")},
            ],
        )

    assert exc_info.value.Code == "PERCENTAGES_NOT_100"
    assert ListAllocations(db, family.Id, income.Id).Allocations == []


def test_custom_allocations_reject_other_family_category(db):
    family, _ = make_family(db)
    other, _ = make_family(db, name="Neighbours", username="neighbour")
    foreign = make_category(db, other.Id, "Needs", "100")
    income = make_income(db, family.Id, "1000")

    with pytest.raises(NotFoundError):
        GenerateAllocations(
            db,
            family.Id,
            income.Id,
            custom_allocations=[{"BudgetCategoryId": foreign.Id, "Percentage": Decimal("100")}],
        )


def test_generate_from_template_matches_names_case_insensitively(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "needs", "50")
    make_category(db, family.Id, "WANTS", "30")
    make_category(db, family.Id, "Savings", "20")
    template = CreateTemplate(
        db,
        family.Id,
        "Split",
        None,
        [
            {"CategoryName": "Needs", "Percentage": Decimal("60")},
            {"CategoryName": "Wants", "Percentage": Decimal("20")},
            {"CategoryName": "Savings", "Percentage": Decimal("20")},
        ],
    )
    income = make_income(db, family.Id, "3000")

    result = GenerateAllocations(db, family.Id, income.Id, template_id=template.Id)

    by_name = {row.Category.Name: row.Amount for row in result.Allocations}
    assert by_name == {"needs": Decimal("1800.00"), "WANTS": Decimal("600.00"), "Savings": Decimal("600.00")}


def test_generate_rejects_both_sources(db):
    family, _ = make_family(db)
    income = make_income(db, family.Id, "1000")
    with pytest.raises(InvalidRequestError):
        GenerateAllocations(db, family.Id, income.Id, template_id=income.Id, custom_allocations=[])


def test_generate_without_active_categories(db):
    family, _ = make_family(db)
    income = make_income(db, family.Id, "1000")
    with pytest.raises(InvalidRequestError) as exc_info:
        GenerateAllocations(db, family.Id, income.Id)
    assert exc_info.value.Code == "NO_ACTIVE_CATEGORIES"


def test_parse_allocation_change_requires_exactly_one_field():
    assert ParseAllocationChange(amount="12.345") == AmountChange(Amount=Decimal("12.35"))
    assert ParseAllocationChange(percentage=25) == PercentageChange(Percentage=Decimal("25.00"))
    with pytest.raises(InvalidRequestError):
        ParseAllocationChange()
    with pytest.raises(InvalidRequestError):
        ParseAllocationChange(amount=1, percentage=1)
    with pytest.raises(InvalidRequestError):
        ParseAllocationChange(amount="NaN")


def test_update_allocation_by_amount_derives_percentage(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Needs", "50", sort_order=0)
    make_category(db, family.Id, "Wants", "50", sort_order=1)
    income = make_income(db, family.Id, "2000")
    allocation = GenerateAllocations(db, family.Id, income.Id).Allocations[0]

    updated = UpdateAllocation(db, family.Id, allocation.Id, AmountChange(Amount=Decimal("500")))

    assert updated.Amount == Decimal("500.00")
    assert updated.Percentage == Decimal("25.00")


def test_update_allocation_rejects_total_above_income(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Needs", "50", sort_order=0)
    make_category(db, family.Id, "Wants", "50", sort_order=1)
    income = make_income(db, family.Id, "2000")
    allocation = GenerateAllocations(db, family.Id, income.Id).Allocations[0]

    with pytest.raises(InvalidRequestError) as exc_info:
        UpdateAllocation(db, family.Id, allocation.Id, PercentageChange(Percentage=Decimal("60")))

    body = exc_info.value.ToBody()
    assert body["code"] == "ALLOCATION_EXCEEDS_INCOME"
    assert body["availableAmount"] == 1000.0
    assert body["requestedAmount"] == 1200.0


def test_custom_allocations_within_tolerance_never_go_negative(db):
    family, _ = make_family(db)
    needs = make_category(db, family.Id, "Needs", "60", sort_order=0)
    wants = make_category(db, family.Id, "Wants", "40", sort_order=1)
    spare = make_category(db, family.Id, "Spare", "0", sort_order=2)
    income = make_income(db, family.Id, "100")

    result = GenerateAllocations(
        db,
        family.Id,
        income.Id,
        custom_allocations=[
            {"BudgetCategoryId": needs.Id, "Percentage": "60"},
            {"BudgetCategoryId": wants.Id, "Percentage": "40.01"},
            {"BudgetCategoryId": spare.Id, "Percentage": "0"},
        ],
    )

    amounts = [row.Amount for row in result.Allocations]
    assert amounts == [Decimal("60.00"), Decimal("40.00"), Decimal("0.00")]
    assert all(amount >= 0 for amount in amounts)
    assert result.TotalAmount == Decimal("100.00")


def test_rejected_insert_that_is_not_a_duplicate_is_an_invalid_request(db, monkeypatch):
    family, _ = make_family(db)
    make_category(db, family.Id, "Needs", "50", sort_order=0)
    make_category(db, family.Id, "Wants", "50", sort_order=1)
    income = make_income(db, family.Id, "100")
    income_id = income.Id
    monkeypatch.setattr(
        allocation_service,
        "DistributeWithRemainder",
        lambda total, weights, weight_total=None: [Decimal("100.01"), Decimal("-0.01")],
    )

    with pytest.raises(InvalidRequestError) as exc_info:
        GenerateAllocations(db, family.Id, income_id)

    assert not isinstance(exc_info.value, AllocationsAlreadyExistError)
    assert exc_info.value.ToBody()["error"] == "Invalid allocations"
    assert db.query(BudgetAllocation).filter(BudgetAllocation.IncomeEventId == income_id).count() == 0


def test_unique_violation_is_matched_by_name_or_sqlite_columns():
    named = IntegrityError(
        "INSERT", {}, Exception('duplicate key value violates unique constraint "uq_budget_allocations_income_category"')
    )
    sqlite = IntegrityError(
        "INSERT",
        {},
        Exception("UNIQUE constraint failed: budget_allocations.IncomeEventId, budget_allocations.BudgetCategoryId"),
    )
    check = IntegrityError("INSERT", {}, Exception("CHECK constraint failed: ck_budget_allocations_amount_nonnegative"))

    name = allocation_service.ALLOCATION_UNIQUE_CONSTRAINT
    columns = allocation_service.ALLOCATION_UNIQUE_COLUMNS

    assert IsUniqueViolation(named, name)
    assert IsUniqueViolation(sqlite, name, columns)
    assert not IsUniqueViolation(sqlite, name)
    assert not IsUniqueViolation(check, name, columns)
