from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String, Text

from app.db import Base
from app.modules.auth.models import NewId

INCOME_STATUSES = ("scheduled", "received", "cancelled")


class IncomeEvent(Base):
    __tablename__ = "income_events"
    __table_args__ = (
        CheckConstraint('"AllocatedAmount" >= 0', name="ck_income_events_allocated_nonnegative"),
        CheckConstraint('"RemainingAmount" >= 0', name="ck_income_events_remaining_nonnegative"),
    )

    Id = Column(String(36), primary_key=True, default=NewId)
    FamilyId = Column(String(36), ForeignKey("families.Id"), nullable=False, index=True)
    Name = Column(String(200), nullable=False)
    Amount = Column(Numeric(12, 2), nullable=False)
    ScheduledDate = Column(Date, nullable=False, index=True)
    ActualDate = Column(Date)
    ActualAmount = Column(Numeric(12, 2))
    Frequency = Column(String(20), nullable=False, default="once")
    Status = Column(String(20), nullable=False, default="scheduled", index=True)
    # Only app.modules.income.ledger writes these two columns.
    AllocatedAmount = Column(Numeric(12, 2), nullable=False, default=0)
    RemainingAmount = Column(Numeric(12, 2), nullable=False)
    Source = Column(String(200))
    Notes = Column(Text)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
