"""Stored notifications. Ids are deterministic so re-running the generators is idempotent."""
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, Enum as SQLEnum, DateTime
from sqlalchemy.sql import func
from app.database import Base
import enum


class NotificationType(str, enum.Enum):
    bylaw_update = "bylaw_update"
    mat_due = "mat_due"
    license_expiry = "license_expiry"
    compliance_alert = "compliance_alert"


class NotificationPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class NotificationRecord(Base):
    __tablename__ = "notifications"

    # e.g. mat_30_12_1767225600000
    id = Column(String(255), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(SQLEnum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    municipality = Column(String(50), nullable=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    priority = Column(SQLEnum(NotificationPriority), nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    emailed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    scheduled_for = Column(DateTime(timezone=True), nullable=True)
