from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db import Base
from app.modules.auth.models import NewId

PAYMENT_TYPES = ("once", "recurring")
PAYMENT_STATUSES = ("scheduled", "paid", "overdue", "cancelled", "partial")
ATTRIBUTION_TYPES = ("manual", "automatic")


class SpendingCategory(Base):
    __tablename__ = "spending_categories"

    Id = Column(String(36), primary_key=True, default=NewId)
    FamilyId = Column(String(36), ForeignKey("families.Id"), nullable=False, index=True)
    Name = Column(String(100), nullable=False)
    BudgetCategoryId = Column(String(36), ForeignKey("budget_categories.Id"), index=True)
    Color = Column(String(7), nullable=False, default="#6B7280")
    Icon = Column(String(50))
    IsActive = Column(Boolean, nullable=False, default=True)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class Payment(Base):
    __tablename__ = "payments"

    Id = Column(String(36), primary_key=True, default=NewId)
    FamilyId = Column(String(36), ForeignKey("families.Id"), nullable=False, index=True)
    Payee = Column(String(200), nullable=False)
    Amount = Column(Numeric(12, 2), nullable=False)
    DueDate = Column(Date, nullable=False, index=True)
    PaidDate = Column(Date)
    PaidAmount = Column(Numeric(12, 2))
    PaymentType = Column(String(20), nullable=False, default="once")
    Frequency = Column(String(20), nullable=False, default="once")
    Status = Column(String(20), nullable=False, default="scheduled", index=True)
    SpendingCategoryId = Column(String(36), ForeignKey("spending_categories.Id"), index=True)
    AutoPayEnabled = Column(Boolean, nullable=False, default=False)
    Notes = Column(Text)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    SpendingCategory = relationship("SpendingCategory")


class PaymentAttribution(Base):
    __tablename__ = "payment_attributions"
    __table_args__ = (
        UniqueConstraint("PaymentId", "IncomeEventId", name="uq_payment_attributions_payment_income"),
        CheckConstraint('"Amount" > 0', name="ck_payment_attributions_amount_positive"),
    )

    Id = Column(String(36), primary_key=True, default=NewId)
    PaymentId = Column(String(36), ForeignKey("payments.Id"), nullable=False, index=True)
    IncomeEventId = Column(String(36), ForeignKey("income_events.Id"), nullable=False, index=True)
    Amount = Column(Numeric(12, 2), nullable=False)
    AttributionType = Column(String(20), nullable=False, default="manual")
    CreatedBy = Column(String(36), nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
