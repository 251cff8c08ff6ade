from datetime import date
from decimal import Decimal

import pytest

from app.core.errors import InsufficientAvailableIncomeError, InvalidRequestError
from app.modules.payments.services.attribution_service import (
    AutoAttribute,
    CreateAttribution,
    PlanGreedyShares,
    PlanProportionalShares,
)
from conftest import make_family, make_income, make_payment


def test_proportional_split_follows_remaining_amounts(db):
    family, _ = make_family(db)
    first = make_income(db, family.Id, "3000", name="Pay 1", scheduled=date(2026, 1, 1))
    second = make_income(db, family.Id, "2000", name="Pay 2", scheduled=date(2026, 1, 15))
    payment = make_payment(db, family.Id, "125.50")

    result = AutoAttribute(db, family.Id, payment.Id, strategy="proportional")

    by_income = {record.IncomeEventId: record.Amount for record in result.Attributions}
    assert by_income == {first.Id: Decimal("75.30"), second.Id: Decimal("50.20")}
    assert result.TotalAttributed == Decimal("125.50")
    assert result.RemainingAmount == Decimal("0.00")
    assert all(record.AttributionType == "automatic" for record in result.Attributions)
    assert all(record.CreatedBy == "system" for record in result.Attributions)


def test_default_strategy_uses_earliest_income_first(db):
    family, _ = make_family(db)
    late = make_income(db, family.Id, "500", name="Late", scheduled=date(2026, 2, 1))
    early = make_income(db, family.Id, "300", name="Early", scheduled=date(2026, 1, 1))
    payment = make_payment(db, family.Id, "400")

    result = AutoAttribute(db, family.Id, payment.Id)

    amounts = [(record.IncomeEventId, record.Amount) for record in result.Attributions]
    assert amounts == [(early.Id, Decimal("300.00")), (late.Id, Decimal("100.00"))]


def test_latest_income_strategy(db):
    family, _ = make_family(db)
    make_income(db, family.Id, "500", name="Early", scheduled=date(2026, 1, 1))
    late = make_income(db, family.Id, "500", name="Late", scheduled=date(2026, 2, 1))
    payment = make_payment(db, family.Id, "200")

    result = AutoAttribute(db, family.Id, payment.Id, strategy="latest_income")

    assert [record.IncomeEventId for record in result.Attributions] == [late.Id]


def test_partial_coverage_is_reported_not_raised(db):
    family, _ = make_family(db)
    income = make_income(db, family.Id, "150")
    payment = make_payment(db, family.Id, "400")

    result = AutoAttribute(db, family.Id, payment.Id)

    assert result.TotalAttributed == Decimal("150.00")
    assert result.RemainingAmount == Decimal("250.00")
    assert result.Summary.State == "partially_attributed"
    db.refresh(income)
    assert income.RemainingAmount == Decimal("0.00")


def test_preferred_income_events_limit_candidates(db):
    family, _ = make_family(db)
    make_income(db, family.Id, "1000", name="Early", scheduled=date(2026, 1, 1))
    chosen = make_income(db, family.Id, "1000", name="Chosen", scheduled=date(2026, 2, 1))
    payment = make_payment(db, family.Id, "100")

    result = AutoAttribute(db, family.Id, payment.Id, preferred_income_event_ids=[chosen.Id])

    assert [record.IncomeEventId for record in result.Attributions] == [chosen.Id]


def test_auto_attribute_skips_income_already_linked(db):
    family, user = make_family(db)
    linked = make_income(db, family.Id, "1000", name="Linked", scheduled=date(2026, 1, 1))
    other = make_income(db, family.Id, "1000", name="Other", scheduled=date(2026, 2, 1))
    payment = make_payment(db, family.Id, "300")
    CreateAttribution(db, family.Id, payment.Id, linked.Id, Decimal("100"), created_by=user.Id)

    result = AutoAttribute(db, family.Id, payment.Id)

    assert [(record.IncomeEventId, record.Amount) for record in result.Attributions] == [
        (other.Id, Decimal("200.00"))
    ]
    assert result.Summary.FullyAttributed is True


def test_no_available_income_raises(db):
    family, _ = make_family(db)
    payment = make_payment(db, family.Id, "100")

    with pytest.raises(InsufficientAvailableIncomeError) as exc_info:
        AutoAttribute(db, family.Id, payment.Id)

    assert exc_info.value.ToBody()["requestedAmount"] == 100.0


def test_fully_attributed_payment_is_rejected(db):
    family, user = make_family(db)
    income = make_income(db, family.Id, "1000")
    payment = make_payment(db, family.Id, "100")
    CreateAttribution(db, family.Id, payment.Id, income.Id, Decimal("100"), created_by=user.Id)

    with pytest.raises(InvalidRequestError) as exc_info:
        AutoAttribute(db, family.Id, payment.Id)
    assert exc_info.value.Code == "PAYMENT_FULLY_ATTRIBUTED"


def test_unknown_strategy_is_rejected(db):
    family, _ = make_family(db)
    payment = make_payment(db, family.Id, "100")
    with pytest.raises(InvalidRequestError) as exc_info:
        AutoAttribute(db, family.Id, payment.Id, strategy="random")
    assert exc_info.value.Code == "INVALID_STRATEGY"


def test_greedy_plan_stops_once_target_is_met():
    shares = PlanGreedyShares(Decimal("250"), [Decimal("100"), Decimal("100"), Decimal("100")])
    assert shares == [Decimal("100.00"), Decimal("100.00"), Decimal("50.00")]


def test_proportional_plan_never_exceeds_capacity():
    capacities = [Decimal("0.01"), Decimal("0.01"), Decimal("1000")]
    shares = PlanProportionalShares(Decimal("1000.02"), capacities)
    assert sum(shares) == Decimal("1000.02")
    assert all(share <= capacity for share, capacity in zip(shares, capacities))


def test_proportional_plan_caps_target_at_available():
    shares = PlanProportionalShares(Decimal("500"), [Decimal("100"), Decimal("50")])
    assert shares == [Decimal("100.00"), Decimal("50.00")]
