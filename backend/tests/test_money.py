from decimal import Decimal

import pytest

from app.services.money import (
    DistributeWithRemainder,
    PercentagesComplete,
    Round2,
    SumAmounts,
    ToDecimal,
)


def test_round2_rounds_half_up():
    assert Round2("2.345") == Decimal("2.35")
    assert Round2("2.344") == Decimal("2.34")
    assert Round2(0.1 + 0.2) == Decimal("0.30")


def test_to_decimal_rejects_non_numeric_values():
    for value in ("abc", "NaN", "Infinity", None):
        with pytest.raises(ValueError):
            ToDecimal(value)


def test_sum_amounts_treats_missing_values_as_zero():
    assert SumAmounts([Decimal("10.10"), None, "5.05"]) == Decimal("15.15")


def test_percentages_complete_allows_one_cent_of_tolerance():
    assert PercentagesComplete(Decimal("100.00"))
    assert PercentagesComplete(Decimal("99.99"))
    assert PercentagesComplete(Decimal("100.01"))
    assert not PercentagesComplete(Decimal("99.98"))
    assert not PercentagesComplete(Decimal("101"))


def test_distribute_gives_rounding_residue_to_last_share():
    shares = DistributeWithRemainder(Decimal("100.00"), [1, 1, 1])
    assert shares == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert sum(shares) == Decimal("100.00")


def test_distribute_by_percentages_matches_total_exactly():
    total = Decimal("1234.57")
    shares = DistributeWithRemainder(total, [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")], weight_total=100)
    assert shares[:2] == [Decimal("411.48"), Decimal("411.48")]
    assert sum(shares) == total


def test_distribute_by_capacity_weights():
    shares = DistributeWithRemainder(Decimal("125.50"), [Decimal("3000"), Decimal("2000")])
    assert shares == [Decimal("75.30"), Decimal("50.20")]


def test_distribute_takes_overshoot_back_from_earlier_shares():
    shares = DistributeWithRemainder(
        Decimal("100"), [Decimal("60"), Decimal("40.01"), Decimal("0")], weight_total=100
    )
    assert shares == [Decimal("60.00"), Decimal("40.00"), Decimal("0.00")]
    assert sum(shares) == Decimal("100.00")


def test_distribute_overshoot_skips_empty_shares():
    shares = DistributeWithRemainder(
        Decimal("0.03"), [Decimal("50"), Decimal("50"), Decimal("0"), Decimal("0.01")], weight_total=100
    )
    assert shares == [Decimal("0.02"), Decimal("0.01"), Decimal("0.00"), Decimal("0.00")]
    assert sum(shares) == Decimal("0.03")


def test_distribute_handles_empty_and_invalid_weights():
    assert DistributeWithRemainder(Decimal("10"), []) == []
    with pytest.raises(ValueError):
        DistributeWithRemainder(Decimal("10"), [0, 0])
