from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Sequence

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
PERCENT_TOLERANCE = Decimal("0.01")


def ToDecimal(value) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def Round2(value) -> Decimal:
    return ToDecimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def SumAmounts(values) -> Decimal:
    total = ZERO
    for value in values:
        total += ToDecimal(value or 0)
    return Round2(total)


def PercentagesComplete(total) -> bool:
    return abs(ToDecimal(total) - HUNDRED) <= PERCENT_TOLERANCE


def DistributeWithRemainder(
    total,
    weights: Sequence,
    weight_total=None,
) -> list[Decimal]:
    """Split ``total`` in proportion to ``weights``, rounding each share to the cent.

    Every share except the last is ``round2(total * weight / weight_total)``; the
    last share absorbs whatever is left so the shares add up to ``total`` exactly.
    ``weight_total`` defaults to the sum of the weights (pass 100 for percentages).
    When the earlier shares already overshoot ``total`` the last share is zero
    and the overshoot is taken back from the earlier shares, latest first, so no
    share of a non-negative total is ever negative.
    """
    total = Round2(total)
    if not weights:
        return []
    weight_values = [ToDecimal(weight) for weight in weights]
    denominator = ToDecimal(weight_total) if weight_total is not None else sum(weight_values, Decimal(0))
    if denominator <= 0:
        raise ValueError("Weights must add up to a positive value")

    shares: list[Decimal] = []
    running = ZERO
    for weight in weight_values[:-1]:
        share = Round2(total * weight / denominator)
        shares.append(share)
        running += share
    remainder = Round2(total - running)
    if remainder < ZERO <= total:
        overshoot = -remainder
        remainder = ZERO
        for index in range(len(shares) - 1, -1, -1):
            if overshoot <= ZERO:
                break
            taken = min(shares[index], overshoot)
            shares[index] = Round2(shares[index] - taken)
            overshoot = Round2(overshoot - taken)
    shares.append(remainder)
    return shares
