from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db import Base
from app.modules.auth.models import NewId


class BudgetCategory(Base):
    __tablename__ = "budget_categories"

    Id = Column(String(36), primary_key=True, default=NewId)
    FamilyId = Column(String(36), ForeignKey("families.Id"), nullable=False, index=True)
    Name = Column(String(100), nullable=False)
    TargetPercentage = Column(Numeric(5, 2), nullable=False)
    Color = Column(String(7), nullable=False, default="#6B7280")
    SortOrder = Column(Integer, nullable=False, default=0)
    IsActive = Column(Boolean, nullable=False, default=True)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class BudgetTemplate(Base):
    __tablename__ = "budget_templates"
    __table_args__ = (UniqueConstraint("FamilyId", "Name", name="uq_budget_templates_family_name"),)

    Id = Column(String(36), primary_key=True, default=NewId)
    FamilyId = Column(String(36), ForeignKey("families.Id"), nullable=False, index=True)
    Name = Column(String(100), nullable=False)
    Description = Column(Text)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    Entries = relationship(
        "BudgetTemplateEntry",
        back_populates="Template",
        cascade="all, delete-orphan",
        order_by="BudgetTemplateEntry.SortOrder",
    )


class BudgetTemplateEntry(Base):
    __tablename__ = "budget_template_entries"

    Id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    TemplateId = Column(String(36), ForeignKey("budget_templates.Id"), nullable=False, index=True)
    CategoryName = Column(String(100), nullable=False)
    Percentage = Column(Numeric(5, 2), nullable=False)
    SortOrder = Column(Integer, nullable=False, default=0)

    Template = relationship("BudgetTemplate", back_populates="Entries")


class BudgetAllocation(Base):
    __tablename__ = "budget_allocations"
    __table_args__ = (
        UniqueConstraint("IncomeEventId", "BudgetCategoryId", name="uq_budget_allocations_income_category"),
        CheckConstraint('"Amount" >= 0', name="ck_budget_allocations_amount_nonnegative"),
    )

    Id = Column(String(36), primary_key=True, default=NewId)
    IncomeEventId = Column(String(36), ForeignKey("income_events.Id"), nullable=False, index=True)
    BudgetCategoryId = Column(String(36), ForeignKey("budget_categories.Id"), nullable=False, index=True)
    Amount = Column(Numeric(12, 2), nullable=False)
    Percentage = Column(Numeric(5, 2), nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    Category = relationship("BudgetCategory")
