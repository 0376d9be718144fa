"""Notification schemas."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from app.models.notification import NotificationPriority, NotificationType


class NotificationResponse(BaseModel):
    id: str
    user_id: int
    type: NotificationType
    title: str
    message: str
    municipality: str | None = None
    property_id: int | None = None
    due_date: datetime | None = None
    priority: NotificationPriority
    read: bool = False
    emailed_at: datetime | None = None
    created_at: datetime | None = None
    scheduled_for: datetime | None = None

    class Config:
        from_attributes = True


class NotificationUpdate(BaseModel):
    read: bool = True


class GenerateNotificationsRequest(BaseModel):
    kind: Literal["mat", "license"]


class BylawUpdateRequest(BaseModel):
    municipality: str
    title: str
    description: str
    # Defaults to every user with a property in the municipality
    affected_user_ids: list[int] | None = None


class NotificationJobResult(BaseModel):
    generated: int
    stored: int
    emailed: int = 0
    properties: int = 0


class TestEmailBody(BaseModel):
    to: str | None = None


class DigestResponse(BaseModel):
    subject: str
    summary: str
    properties: int
    upcoming_deadlines: list[dict]
    sent: bool = False
