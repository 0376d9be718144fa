"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed for fresh installs.
"""
from app.models.user import User, Plan, UserRole
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.property import Property, UsageType
from app.models.deadline import DeadlineRule, DeadlineRecord, DeadlineStatus
from app.models.notification import NotificationRecord, NotificationType, NotificationPriority

__all__ = [
    "User",
    "Plan",
    "UserRole",
    "Subscription",
    "SubscriptionStatus",
    "Property",
    "UsageType",
    "DeadlineRule",
    "DeadlineRecord",
    "DeadlineStatus",
    "NotificationRecord",
    "NotificationType",
    "NotificationPriority",
]
