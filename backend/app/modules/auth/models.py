from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db import Base


def NewId() -> str:
    return str(uuid4())


class Family(Base):
    __tablename__ = "families"

    Id = Column(String(36), primary_key=True, default=NewId)
    Name = Column(String(200), nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    Members = relationship("User", back_populates="Family")


class User(Base):
    __tablename__ = "users"

    Id = Column(String(36), primary_key=True, default=NewId)
    FamilyId = Column(String(36), ForeignKey("families.Id"), nullable=False, index=True)
    Username = Column(String(120), nullable=False, unique=True, index=True)
    PasswordHash = Column(String(255), nullable=False)
    FirstName = Column(String(120))
    LastName = Column(String(120))
    Email = Column(String(254))
    Role = Column(String(20), nullable=False, default="Editor")
    FailedLoginCount = Column(Integer, default=0, nullable=False)
    LockedUntil = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    Family = relationship("Family", back_populates="Members")
    RefreshTokens = relationship("RefreshToken", back_populates="User", cascade="all, delete-orphan")


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    Id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    UserId = Column(String(36), ForeignKey("users.Id"), nullable=False, index=True)
    TokenHash = Column(String(255), nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    ExpiresAt = Column(DateTime(timezone=True), nullable=False)
    RevokedAt = Column(DateTime(timezone=True))

    User = relationship("User", back_populates="RefreshTokens")
