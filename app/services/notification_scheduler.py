"""Threshold notifications for MAT filings, STR licence expiry and by-law updates.

The generators are pure functions of (properties, now): they never read the
database or send anything, and the same inputs always yield the same
notification ids, so a caller can de-duplicate before persisting or emailing.

Thresholds are exact-day matches (30 days, 7 days, ...). The caller must run
the generators at least once a day or a threshold day will be skipped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from app.models.notification import NotificationPriority, NotificationType
from app.services.jurisdictions import is_long_term, read_field
from app.services.mat_reporting import MATPropertyType, calculate_next_mat_due_date
from app.services.scoring import as_datetime, days_until

PRIORITY_ORDER = {
    NotificationPriority.critical: 4,
    NotificationPriority.high: 3,
    NotificationPriority.medium: 2,
    NotificationPriority.low: 1,
}


@dataclass(frozen=True)
class Notification:
    id: str
    user_id: Any
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    created_at: datetime
    municipality: str | None = None
    property_id: Any = None
    due_date: datetime | None = None
    read: bool = False
    scheduled_for: datetime | None = None


@dataclass(frozen=True)
class NotificationRule:
    id: str
    type: str  # mat_reminder | license_expiry | bylaw_update
    days_before: int
    enabled: bool = True
    municipality: str | None = None


DEFAULT_NOTIFICATION_RULES: tuple[NotificationRule, ...] = (
    NotificationRule("mat_30_days", "mat_reminder", 30),
    NotificationRule("mat_7_days", "mat_reminder", 7),
    NotificationRule("license_60_days", "license_expiry", 60),
    NotificationRule("license_30_days", "license_expiry", 30),
    NotificationRule("bylaw_immediate", "bylaw_update", 0),
)


class NotificationSink(Protocol):
    def append(self, notification: Notification) -> bool:
        """Store one notification. Returns False when its id is already stored."""
        ...


@dataclass
class InMemoryNotificationSink:
    notifications: list[Notification] = field(default_factory=list)

    def append(self, notification: Notification) -> bool:
        if any(n.id == notification.id for n in self.notifications):
            return False
        self.notifications.append(notification)
        return True


def _fires(rules: Iterable[NotificationRule], rule_id: str, days: int) -> bool:
    """True when the enabled rule `rule_id` has its threshold exactly `days` out."""
    return any(r.id == rule_id and r.enabled and r.days_before == days for r in rules)


def _ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _fmt_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def generate_mat_notifications(
    properties: Iterable[Any],
    now: datetime | None = None,
    rules: Iterable[NotificationRule] = DEFAULT_NOTIFICATION_RULES,
) -> list[Notification]:
    """30-day (medium), 7-day (high) and overdue (critical) MAT filing notices for STR properties.

    `rules` sets which day thresholds fire; overdue notices always do.
    """
    now = _now(now)
    rules = tuple(rules)
    notifications: list[Notification] = []
    for prop in properties:
        if is_long_term(prop):
            continue
        municipality = read_field(prop, "municipality")
        mat = calculate_next_mat_due_date(municipality, MATPropertyType.str, now)
        if mat is None or mat.due_date is None:
            continue

        due = mat.due_date
        property_id = read_field(prop, "id")
        days = days_until(due, now)
        common = dict(
            user_id=read_field(prop, "user_id"),
            type=NotificationType.mat_due,
            municipality=municipality,
            property_id=property_id,
            due_date=due,
            created_at=now,
            scheduled_for=now,
        )
        description = mat.description.lower()

        if _fires(rules, "mat_30_days", days):
            notifications.append(Notification(
                id=f"mat_30_{property_id}_{_ms(due)}",
                title="MAT Report Due in 30 Days",
                message=f"Your {municipality} MAT report is due {description}. Due date: {_fmt_date(due)}",
                priority=NotificationPriority.medium,
                **common,
            ))
        if _fires(rules, "mat_7_days", days):
            notifications.append(Notification(
                id=f"mat_7_{property_id}_{_ms(due)}",
                title="MAT Report Due in 7 Days",
                message=f"Urgent: Your {municipality} MAT report is due {description}. Due date: {_fmt_date(due)}",
                priority=NotificationPriority.high,
                **common,
            ))
        if days < 0:
            notifications.append(Notification(
                id=f"mat_overdue_{property_id}_{_ms(due)}",
                title="MAT Report Overdue",
                message=(
                    f"Critical: Your {municipality} MAT report was due {abs(days)} days ago. "
                    "File immediately to avoid penalties."
                ),
                priority=NotificationPriority.critical,
                **common,
            ))
    return notifications


def generate_license_expiry_notifications(
    properties: Iterable[Any],
    now: datetime | None = None,
    rules: Iterable[NotificationRule] = DEFAULT_NOTIFICATION_RULES,
) -> list[Notification]:
    """60-day (medium), 30-day (high) and expired (critical) STR licence notices."""
    now = _now(now)
    rules = tuple(rules)
    notifications: list[Notification] = []
    for prop in properties:
        license_expiry = read_field(prop, "license_expiry")
        if not license_expiry or is_long_term(prop):
            continue

        expiry = as_datetime(license_expiry, now)
        municipality = read_field(prop, "municipality")
        property_id = read_field(prop, "id")
        days = days_until(expiry, now)
        common = dict(
            user_id=read_field(prop, "user_id"),
            type=NotificationType.license_expiry,
            municipality=municipality,
            property_id=property_id,
            due_date=expiry,
            created_at=now,
            scheduled_for=now,
        )

        if _fires(rules, "license_60_days", days):
            notifications.append(Notification(
                id=f"license_60_{property_id}_{_ms(expiry)}",
                title="License Expires in 60 Days",
                message=f"Your {municipality} STR license expires on {_fmt_date(expiry)}. Start renewal process now.",
                priority=NotificationPriority.medium,
                **common,
            ))
        if _fires(rules, "license_30_days", days):
            notifications.append(Notification(
                id=f"license_30_{property_id}_{_ms(expiry)}",
                title="License Expires in 30 Days",
                message=f"Urgent: Your {municipality} STR license expires on {_fmt_date(expiry)}. Renew immediately.",
                priority=NotificationPriority.high,
                **common,
            ))
        if days < 0:
            notifications.append(Notification(
                id=f"license_expired_{property_id}_{_ms(expiry)}",
                title="License Expired",
                message=(
                    f"Critical: Your {municipality} STR license expired {abs(days)} days ago. "
                    "Operating without valid license may result in penalties."
                ),
                priority=NotificationPriority.critical,
                **common,
            ))
    return notifications


def create_bylaw_update_notifications(
    municipality: str,
    title: str,
    description: str,
    affected_user_ids: Iterable[Any],
    now: datetime | None = None,
) -> list[Notification]:
    now = _now(now)
    return [
        Notification(
            id=f"bylaw_{municipality}_{_ms(now)}_{user_id}",
            user_id=user_id,
            type=NotificationType.bylaw_update,
            title=f"{municipality} By-law Update: {title}",
            message=description,
            municipality=municipality,
            priority=NotificationPriority.high,
            created_at=now,
            scheduled_for=now,
        )
        for user_id in affected_user_ids
    ]


def sort_notifications(notifications: Iterable[Any]) -> list[Any]:
    """Highest priority first, newest first within a priority."""
    def key(n: Any):
        priority = NotificationPriority(read_field(n, "priority"))
        created = read_field(n, "created_at")
        ts = created.timestamp() if isinstance(created, datetime) else 0
        return (-PRIORITY_ORDER[priority], -ts)

    return sorted(notifications, key=key)


def dispatch(notifications: Iterable[Notification], sink: NotificationSink) -> list[Notification]:
    """Append to the sink; returns only the notifications the sink had not seen."""
    return [n for n in notifications if sink.append(n)]
