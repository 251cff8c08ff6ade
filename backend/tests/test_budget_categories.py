from decimal import Decimal

import pytest

from app.core.errors import ConflictError, InvalidRequestError
from app.modules.budget.services.category_service import (
    CreateCategory,
    DeleteCategory,
    GetCategoryOverview,
    UpdateCategory,
    ValidatePercentages,
    ValidateTargetPercentage,
)
from app.modules.payments.models import SpendingCategory
from conftest import make_category, make_family


@pytest.mark.parametrize("value", [Decimal("0"), Decimal("-1"), Decimal("100.01"), Decimal("101")])
def test_target_percentage_bounds(value):
    with pytest.raises(InvalidRequestError) as exc_info:
        ValidateTargetPercentage(value)
    assert exc_info.value.Code == "INVALID_PERCENTAGE"


def test_target_percentage_accepts_full_range():
    assert ValidateTargetPercentage("0.01") == Decimal("0.01")
    assert ValidateTargetPercentage(100) == Decimal("100.00")


def test_create_assigns_sort_order_and_default_color(db):
    family, _ = make_family(db)
    first = CreateCategory(db, family.Id, {"Name": "  Needs  ", "TargetPercentage": Decimal("50")})
    second = CreateCategory(db, family.Id, {"Name": "Wants", "TargetPercentage": Decimal("30"), "Color": "#aabbcc"})

    assert first.Name == "Needs"
    assert first.SortOrder == 0
    assert first.Color == "#3B82F6"
    assert second.SortOrder == 1
    assert second.Color == "#AABBCC"


def test_active_total_cannot_exceed_hundred(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Needs", "70")

    with pytest.raises(InvalidRequestError) as exc_info:
        CreateCategory(db, family.Id, {"Name": "Wants", "TargetPercentage": Decimal("40")})

    body = exc_info.value.ToBody()
    assert body["code"] == "PERCENTAGE_TOTAL_EXCEEDED"
    assert body["currentTotal"] == 70.0
    assert body["availablePercentage"] == 30.0


def test_inactive_category_does_not_count_toward_total(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Needs", "70")

    record = CreateCategory(
        db, family.Id, {"Name": "Someday", "TargetPercentage": Decimal("40"), "IsActive": False}
    )
    assert record.IsActive is False

    with pytest.raises(InvalidRequestError):
        UpdateCategory(db, family.Id, record.Id, {"IsActive": True})


def test_duplicate_name_is_case_insensitive(db):
    family, _ = make_family(db)
    make_category(db, family.Id, "Needs", "50")

    with pytest.raises(ConflictError) as exc_info:
        CreateCategory(db, family.Id, {"Name": "NEEDS", "TargetPercentage": Decimal("10")})
    assert exc_info.value.StatusCode == 409


def test_update_excludes_own_percentage_from_total(db):
    family, _ = make_family(db)
    needs = make_category(db, family.Id, "Needs", "50")
    make_category(db, family.Id, "Wants", "30")

    updated = UpdateCategory(db, family.Id, needs.Id, {"TargetPercentage": Decimal("70")})

    assert updated.TargetPercentage == Decimal("70.00")
    overview = GetCategoryOverview(db, family.Id)
    assert overview.TotalPercentage == Decimal("100.00")
    assert overview.IsComplete is True


def test_validate_stored_percentages_suggests_fix(db):
    family, _ = make_family(db)
    needs = make_category(db, family.Id, "Needs", "50")
    make_category(db, family.Id, "Wants", "30", sort_order=1)

    result = ValidatePercentages(db, family.Id)

    assert result.IsValid is False
    assert result.TotalPercentage == Decimal("80.00")
    assert result.RemainingPercentage == Decimal("20.00")
    assert result.Difference == Decimal("-20.00")
    suggested = {item.CategoryId: item.SuggestedPercentage for item in result.Suggestions}
    assert suggested[needs.Id] == Decimal("70.00")


def test_validate_proposed_percentages_scales_down_overage(db):
    family, _ = make_family(db)

    result = ValidatePercentages(
        db,
        family.Id,
        [{"TargetPercentage": Decimal("60")}, {"TargetPercentage": Decimal("60")}],
    )

    assert result.IsValid is False
    assert result.TotalPercentage == Decimal("120.00")
    assert [item.SuggestedPercentage for item in result.Suggestions] == [Decimal("50.00"), Decimal("50.00")]


def test_validate_accepts_complete_set(db):
    family, _ = make_family(db)
    result = ValidatePercentages(
        db,
        family.Id,
        [{"TargetPercentage": Decimal("33.33")}, {"TargetPercentage": Decimal("33.33")}, {"TargetPercentage": Decimal("33.34")}],
    )
    assert result.IsValid is True
    assert result.Errors == []
    assert result.Suggestions == []


def test_delete_rejects_category_with_active_spending_categories(db):
    family, _ = make_family(db)
    needs = make_category(db, family.Id, "Needs", "50")
    db.add(SpendingCategory(FamilyId=family.Id, Name="Groceries", BudgetCategoryId=needs.Id, IsActive=True))
    db.commit()

    with pytest.raises(ConflictError) as exc_info:
        DeleteCategory(db, family.Id, needs.Id)
    assert exc_info.value.Code == "CATEGORY_IN_USE"


def test_delete_unlinks_inactive_spending_categories(db):
    family, _ = make_family(db)
    needs = make_category(db, family.Id, "Needs", "50")
    spending = SpendingCategory(FamilyId=family.Id, Name="Old", BudgetCategoryId=needs.Id, IsActive=False)
    db.add(spending)
    db.commit()

    DeleteCategory(db, family.Id, needs.Id)

    db.refresh(spending)
    assert spending.BudgetCategoryId is None
