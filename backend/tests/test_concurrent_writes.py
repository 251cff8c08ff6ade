from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.errors import AllocationsAlreadyExistError, AttributionAlreadyExistsError
from app.db import Base
from app.modules.budget.models import BudgetAllocation
from app.modules.budget.services import allocation_service
from app.modules.income.ledger import IsBalanced
from app.modules.income.models import IncomeEvent
from app.modules.payments.models import PaymentAttribution
from app.modules.payments.services import attribution_service
from conftest import make_category, make_family, make_income, make_payment


@pytest.fixture
def shared_file_sessions(tmp_path):
    # Each session gets its own connection to the same database file.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrent.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.drop_all(engine)
    engine.dispose()


def test_second_allocation_generation_loses_after_passing_precheck(shared_file_sessions, monkeypatch):
    with shared_file_sessions() as setup:
        family, _ = make_family(setup)
        make_category(setup, family.Id, "Needs", "50", sort_order=0)
        make_category(setup, family.Id, "Savings", "50", sort_order=1)
        income = make_income(setup, family.Id, "1000")
        family_id, income_id = family.Id, income.Id

    winner = shared_file_sessions()
    loser = shared_file_sessions()
    existing_check = allocation_service._HasAllocations
    interleaved = []

    def check_then_let_other_request_commit(db, income_event_id):
        found = existing_check(db, income_event_id)
        if db is loser and not interleaved:
            interleaved.append(found)
            allocation_service.GenerateAllocations(winner, family_id, income_event_id)
        return found

    monkeypatch.setattr(allocation_service, "_HasAllocations", check_then_let_other_request_commit)
    try:
        with pytest.raises(AllocationsAlreadyExistError) as exc_info:
            allocation_service.GenerateAllocations(loser, family_id, income_id)
    finally:
        winner.close()
        loser.close()

    assert interleaved == [False]
    assert exc_info.value.ToBody()["incomeEventId"] == income_id
    with shared_file_sessions() as check:
        amounts = sorted(
            row.Amount
            for row in check.query(BudgetAllocation).filter(BudgetAllocation.IncomeEventId == income_id).all()
        )
        assert amounts == [Decimal("500.00"), Decimal("500.00")]
        record = check.get(IncomeEvent, income_id)
        assert record.AllocatedAmount == Decimal("0.00")
        assert IsBalanced(record)


def test_second_attribution_loses_after_passing_precheck(shared_file_sessions, monkeypatch):
    with shared_file_sessions() as setup:
        family, owner = make_family(setup)
        income = make_income(setup, family.Id, "4000")
        payment = make_payment(setup, family.Id, "800")
        family_id, owner_id = family.Id, owner.Id
        income_id, payment_id = income.Id, payment.Id

    winner = shared_file_sessions()
    loser = shared_file_sessions()
    duplicate_check = attribution_service._FindDuplicateAttribution
    interleaved = []

    def check_then_let_other_request_commit(db, checked_payment_id, income_event_id):
        found = duplicate_check(db, checked_payment_id, income_event_id)
        if db is loser and not interleaved:
            interleaved.append(found)
            attribution_service.CreateAttribution(winner, family_id, payment_id, income_id, "300", owner_id)
        return found

    monkeypatch.setattr(attribution_service, "_FindDuplicateAttribution", check_then_let_other_request_commit)
    try:
        with pytest.raises(AttributionAlreadyExistsError) as exc_info:
            attribution_service.CreateAttribution(loser, family_id, payment_id, income_id, "200", owner_id)
    finally:
        winner.close()
        loser.close()

    assert interleaved == [None]
    assert exc_info.value.StatusCode == 409
    with shared_file_sessions() as check:
        rows = check.query(PaymentAttribution).filter(PaymentAttribution.PaymentId == payment_id).all()
        assert [row.Amount for row in rows] == [Decimal("300.00")]
        record = check.get(IncomeEvent, income_id)
        assert record.AllocatedAmount == Decimal("300.00")
        assert record.RemainingAmount == Decimal("3700.00")
        assert IsBalanced(record)
