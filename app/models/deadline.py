"""Municipal deadline rules and the per-property deadlines derived from them."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Enum as SQLEnum, DateTime, Date, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum


class DeadlineStatus(str, enum.Enum):
    ok = "ok"
    due_soon = "due_soon"
    overdue = "overdue"


class DeadlineRule(Base):
    __tablename__ = "deadline_rules"
    __table_args__ = (UniqueConstraint("municipality", "key", name="uq_deadline_rules_municipality_key"),)

    id = Column(Integer, primary_key=True, index=True)
    municipality = Column(String(50), nullable=False, index=True)
    key = Column(String(50), nullable=False)  # str_license, insurance, fire_inspection, mat_filing
    name = Column(String(255), nullable=False)
    frequency_iso = Column(String(10), nullable=True)  # P1Y, P6M, P3M
    notes = Column(String(1000), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class DeadlineRecord(Base):
    __tablename__ = "property_deadlines"
    __table_args__ = (UniqueConstraint("property_id", "rule_key", name="uq_property_deadlines_property_rule"),)

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    rule_key = Column(String(50), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(SQLEnum(DeadlineStatus), nullable=False, default=DeadlineStatus.ok)
    last_notified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    property = relationship("Property", back_populates="deadlines")
