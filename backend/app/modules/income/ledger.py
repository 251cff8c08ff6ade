"""Running totals on income events.

``AllocatedAmount`` and ``RemainingAmount`` change only through the functions in
this module, which keep ``AllocatedAmount + RemainingAmount == Amount``.
Callers lock the income event row before calling in.
"""

from __future__ import annotations

from decimal import Decimal

from app.core.errors import InsufficientIncomeRemainingError, InvalidRequestError
from app.modules.income.models import IncomeEvent
from app.services.money import ZERO, Round2


def OpenLedger(income_event: IncomeEvent, amount) -> None:
    amount = Round2(amount)
    income_event.Amount = amount
    income_event.AllocatedAmount = ZERO
    income_event.RemainingAmount = amount


def ApplyAttributionDelta(income_event: IncomeEvent, delta) -> None:
    """Move ``delta`` from remaining to allocated (negative values move it back)."""
    delta = Round2(delta)
    amount = Round2(income_event.Amount)
    allocated = Round2(Decimal(income_event.AllocatedAmount or 0) + delta)
    if allocated > amount:
        raise InsufficientIncomeRemainingError(
            "Income event does not have enough remaining amount.",
            details={
                "availableAmount": Round2(income_event.RemainingAmount),
                "requestedAmount": delta,
            },
        )
    if allocated < ZERO:
        raise InvalidRequestError("Income event allocated amount cannot go below zero.")
    income_event.AllocatedAmount = allocated
    income_event.RemainingAmount = Round2(amount - allocated)


def RebaseIncomeAmount(income_event: IncomeEvent, new_amount) -> None:
    new_amount = Round2(new_amount)
    allocated = Round2(income_event.AllocatedAmount or 0)
    if new_amount < allocated:
        raise InvalidRequestError(
            "Amount cannot be less than the amount already attributed to payments.",
            error="Amount below attributed total",
            code="AMOUNT_BELOW_ATTRIBUTED",
            details={"allocatedAmount": allocated, "requestedAmount": new_amount},
        )
    income_event.Amount = new_amount
    income_event.RemainingAmount = Round2(new_amount - allocated)


def IsBalanced(income_event: IncomeEvent) -> bool:
    return Round2(income_event.AllocatedAmount) + Round2(income_event.RemainingAmount) == Round2(income_event.Amount)
