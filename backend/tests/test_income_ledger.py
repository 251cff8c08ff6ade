from decimal import Decimal

import pytest

from app.core.errors import InsufficientIncomeRemainingError, InvalidRequestError
from app.modules.income.ledger import ApplyAttributionDelta, IsBalanced, OpenLedger, RebaseIncomeAmount
from app.modules.income.models import IncomeEvent


def _open(amount):
    record = IncomeEvent(Name="Salary")
    OpenLedger(record, Decimal(amount))
    return record


def test_open_ledger_starts_fully_remaining():
    record = _open("4000")
    assert record.AllocatedAmount == Decimal("0.00")
    assert record.RemainingAmount == Decimal("4000.00")
    assert IsBalanced(record)


def test_apply_delta_moves_amount_between_columns():
    record = _open("4000")
    ApplyAttributionDelta(record, Decimal("800"))
    assert record.AllocatedAmount == Decimal("800.00")
    assert record.RemainingAmount == Decimal("3200.00")

    ApplyAttributionDelta(record, Decimal("-800"))
    assert record.AllocatedAmount == Decimal("0.00")
    assert record.RemainingAmount == Decimal("4000.00")
    assert IsBalanced(record)


def test_apply_delta_refuses_to_overdraw():
    record = _open("100")
    ApplyAttributionDelta(record, Decimal("60"))
    with pytest.raises(InsufficientIncomeRemainingError) as exc_info:
        ApplyAttributionDelta(record, Decimal("40.01"))

    body = exc_info.value.ToBody()
    assert body["code"] == "INSUFFICIENT_INCOME_REMAINING"
    assert body["availableAmount"] == 40.0
    assert body["requestedAmount"] == 40.01
    assert record.AllocatedAmount == Decimal("60.00")


def test_apply_delta_refuses_negative_allocation():
    record = _open("100")
    with pytest.raises(InvalidRequestError):
        ApplyAttributionDelta(record, Decimal("-0.01"))


def test_rebase_keeps_allocated_and_moves_remaining():
    record = _open("1000")
    ApplyAttributionDelta(record, Decimal("250"))
    RebaseIncomeAmount(record, Decimal("1200"))
    assert record.Amount == Decimal("1200.00")
    assert record.RemainingAmount == Decimal("950.00")
    assert IsBalanced(record)

    with pytest.raises(InvalidRequestError) as exc_info:
        RebaseIncomeAmount(record, Decimal("249.99"))
    assert exc_info.value.Code == "AMOUNT_BELOW_ATTRIBUTED"
