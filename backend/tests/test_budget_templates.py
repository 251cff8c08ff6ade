from decimal import Decimal

import pytest

from app.core.errors import ConflictError, InvalidRequestError
from app.modules.budget.services.category_service import ListCategories
from app.modules.budget.services.template_service import (
    ApplyTemplateToCategories,
    CreateTemplate,
    ListTemplates,
    SeedDefaultTemplates,
)
from conftest import make_category, make_family


def test_seeded_template_is_fifty_thirty_twenty(db):
    family, _ = make_family(db)
    SeedDefaultTemplates(db, family.Id)
    db.commit()

    templates = ListTemplates(db, family.Id)

    assert [template.Name for template in templates] == ["50/30/20"]
    entries = [(entry.CategoryName, entry.Percentage) for entry in templates[0].Entries]
    assert entries == [("Needs", Decimal("50.00")), ("Wants", Decimal("30.00")), ("Savings", Decimal("20.00"))]


def test_template_percentages_must_total_hundred(db):
    family, _ = make_family(db)
    entries = [
        {"CategoryName": "Needs", "Percentage": Decimal("60")},
        {"CategoryName": "Wants", "Percentage": Decimal("30")},
    ]
    with pytest.raises(InvalidRequestError) as exc_info:
        CreateTemplate(db, family.Id, "Lean", None, entries)
    assert exc_info.value.Code == "PERCENTAGES_NOT_100"


def test_template_rejects_repeated_category(db):
    family, _ = make_family(db)
    entries = [
        {"CategoryName": "Needs", "Percentage": Decimal("50")},
        {"CategoryName": "needs", "Percentage": Decimal("50")},
    ]
    with pytest.raises(InvalidRequestError):
        CreateTemplate(db, family.Id, "Twice", None, entries)


def test_template_name_is_unique_per_family(db):
    family, _ = make_family(db)
    entries = [{"CategoryName": "Everything", "Percentage": Decimal("100")}]
    CreateTemplate(db, family.Id, "Simple", "", entries)

    with pytest.raises(ConflictError):
        CreateTemplate(db, family.Id, "SIMPLE", None, entries)


def test_apply_template_replaces_active_set(db):
    family, _ = make_family(db)
    existing = make_category(db, family.Id, "needs", "70")
    make_category(db, family.Id, "Travel", "30", sort_order=1)
    template = CreateTemplate(
        db,
        family.Id,
        "Saver",
        None,
        [
            {"CategoryName": "Needs", "Percentage": Decimal("60")},
            {"CategoryName": "Savings", "Percentage": Decimal("40")},
        ],
    )

    applied = ApplyTemplateToCategories(db, family.Id, template.Id)

    assert [row.Id for row in applied][0] == existing.Id
    active = ListCategories(db, family.Id)
    assert [(row.Name, row.TargetPercentage) for row in active] == [
        ("needs", Decimal("60.00")),
        ("Savings", Decimal("40.00")),
    ]
    inactive = [row.Name for row in ListCategories(db, family.Id, include_inactive=True) if not row.IsActive]
    assert inactive == ["Travel"]
