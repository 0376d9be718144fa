"""Users and subscription plan."""
from sqlalchemy import Column, Integer, String, Enum as SQLEnum, DateTime
from sqlalchemy.sql import func
from app.database import Base
import enum


class Plan(str, enum.Enum):
    free = "free"
    paid = "paid"


class UserRole(str, enum.Enum):
    landlord = "landlord"
    admin = "admin"  # operators: may broadcast by-law updates


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)

    # Flipped by Stripe webhooks (checkout completed / subscription deleted)
    plan = Column(SQLEnum(Plan), nullable=False, default=Plan.free)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.landlord)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
