from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String

from app.db import Base
from app.modules.auth.models import NewId

ACCOUNT_TYPES = ("checking", "savings", "credit", "loan", "investment")
ASSET_ACCOUNT_TYPES = ("checking", "savings", "investment")
LIABILITY_ACCOUNT_TYPES = ("credit", "loan")


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    Id = Column(String(36), primary_key=True, default=NewId)
    FamilyId = Column(String(36), ForeignKey("families.Id"), nullable=False, index=True)
    Name = Column(String(200), nullable=False)
    Institution = Column(String(200))
    AccountType = Column(String(20), nullable=False)
    CurrentBalance = Column(Numeric(14, 2), nullable=False, default=0)
    IsActive = Column(Boolean, nullable=False, default=True)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
