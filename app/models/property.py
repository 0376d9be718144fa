"""Rental properties and the facts the municipal rules read."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Enum as SQLEnum, DateTime, Date
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum


class UsageType(str, enum.Enum):
    short_term = "short_term"
    long_term = "long_term"
    mixed = "mixed"


class Property(Base):
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    address_line1 = Column(String(255), nullable=False)
    address_line2 = Column(String(255), nullable=True)
    postal_code = Column(String(20), nullable=True)
    municipality = Column(String(50), nullable=False, index=True)  # toronto, mississauga, ...

    usage_type = Column(SQLEnum(UsageType), nullable=False, default=UsageType.short_term)
    # None = owner did not say
    is_principal_residence = Column(Boolean, nullable=True)

    license_number = Column(String(100), nullable=True)
    license_expiry = Column(Date, nullable=True)
    mat_number = Column(String(100), nullable=True)
    annual_nights = Column(Integer, nullable=True)

    # Disclosure / operating facts; which ones matter depends on the municipality
    emergency_contact = Column(String(255), nullable=True)
    local_contact = Column(String(255), nullable=True)
    provides_911_info = Column(Boolean, nullable=False, default=False)
    exit_diagram_posted = Column(Boolean, nullable=False, default=False)
    keeps_records = Column(Boolean, nullable=False, default=False)
    evacuation_info = Column(Boolean, nullable=False, default=False)
    guest_info_package = Column(Boolean, nullable=False, default=False)
    mat_registered = Column(Boolean, nullable=False, default=False)
    collects_mat = Column(Boolean, nullable=False, default=False)
    mat_separate_line = Column(Boolean, nullable=False, default=False)
    quarterly_remittance = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", backref="properties")
    deadlines = relationship("DeadlineRecord", back_populates="property", cascade="all, delete-orphan")
