import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["LOG_FILE_PATH"] = ""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base, GetDb
from app.modules.accounts import models as accounts_models  # noqa: F401
from app.modules.auth.models import Family, User
from app.modules.auth.service import CreateAccessToken
from app.modules.budget.models import BudgetCategory
from app.modules.income.ledger import OpenLedger
from app.modules.income.models import IncomeEvent
from app.modules.payments.models import Payment


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    from app.main import app

    def _override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[GetDb] = _override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_family(db, name="Household", username="owner", role="Admin"):
    family = Family(Name=name)
    db.add(family)
    db.flush()
    user = User(FamilyId=family.Id, Username=username, PasswordHash="not-a-real-hash", Role=role)
    db.add(user)
    db.commit()
    db.refresh(family)
    db.refresh(user)
    return family, user


def make_member(db, family_id, username, role="Editor"):
    user = User(FamilyId=family_id, Username=username, PasswordHash="not-a-real-hash", Role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_income(db, family_id, amount, name="Salary", scheduled=date(2026, 1, 15), frequency="once"):
    record = IncomeEvent(
        FamilyId=family_id,
        Name=name,
        ScheduledDate=scheduled,
        Frequency=frequency,
        Status="scheduled",
    )
    OpenLedger(record, Decimal(str(amount)))
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def make_payment(db, family_id, amount, payee="Rent", due=date(2026, 1, 20), **extra):
    record = Payment(
        FamilyId=family_id,
        Payee=payee,
        Amount=Decimal(str(amount)),
        DueDate=due,
        PaymentType=extra.pop("PaymentType", "once"),
        Frequency=extra.pop("Frequency", "once"),
        Status=extra.pop("Status", "scheduled"),
        **extra,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def make_category(db, family_id, name, percentage, sort_order=0, is_active=True):
    record = BudgetCategory(
        FamilyId=family_id,
        Name=name,
        TargetPercentage=Decimal(str(percentage)),
        Color="#3B82F6",
        SortOrder=sort_order,
        IsActive=is_active,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def auth_headers(user):
    token, _ = CreateAccessToken(user.Id, user.Username, user.FamilyId, user.Role)
    return {"Authorization": f"Bearer {token}"}
