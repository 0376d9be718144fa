"""Daily reminder job: refresh deadlines, persist threshold notifications, email the urgent ones."""
import logging
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import SessionLocal
from app.models.deadline import DeadlineRecord, DeadlineRule
from app.models.notification import NotificationRecord, NotificationType
from app.models.property import Property
from app.models.user import Plan, User
from app.services.jurisdictions import normalize_municipality
from app.services.notification_scheduler import (
    Notification,
    dispatch,
    generate_license_expiry_notifications,
    generate_mat_notifications,
)
from app.services.notifications import build_personalized_digest, send_digest_email, send_notification_email
from app.services.scoring import calculate_deadline_status, generate_deadlines

logger = logging.getLogger(__name__)

# Deadline row stamped with last_notified_at when its notice is emailed
_DEADLINE_KEY_BY_TYPE = {
    NotificationType.license_expiry: "str_license",
    NotificationType.mat_due: "mat_filing",
}


class DatabaseNotificationSink:
    """Persists notifications; an id already in the table is skipped."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, notification: Notification) -> bool:
        if self.db.get(NotificationRecord, notification.id) is not None:
            return False
        self.db.add(NotificationRecord(
            id=notification.id,
            user_id=notification.user_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            municipality=notification.municipality,
            property_id=notification.property_id,
            due_date=notification.due_date,
            priority=notification.priority,
            read=notification.read,
            created_at=notification.created_at,
            scheduled_for=notification.scheduled_for,
        ))
        self.db.flush()
        return True


def active_deadline_rules(db: Session, municipality: str | None) -> list[DeadlineRule]:
    return (
        db.query(DeadlineRule)
        .filter(DeadlineRule.municipality == normalize_municipality(municipality), DeadlineRule.is_active.is_(True))
        .order_by(DeadlineRule.id)
        .all()
    )


def refresh_property_deadlines(db: Session, prop: Property, now: datetime | None = None) -> list[DeadlineRecord]:
    """Create missing deadlines from the municipality's rules and re-classify existing ones."""
    if now is None:
        now = datetime.now(timezone.utc)
    existing = {d.rule_key: d for d in prop.deadlines}
    rules = active_deadline_rules(db, prop.municipality)
    for generated in generate_deadlines(rules, now):
        if generated.rule_key in existing:
            continue
        record = DeadlineRecord(
            property_id=prop.id,
            rule_key=generated.rule_key,
            due_date=generated.due_date,
            status=generated.status,
        )
        prop.deadlines.append(record)
        existing[record.rule_key] = record
    for record in existing.values():
        record.status = calculate_deadline_status(record.due_date, now)
    db.flush()
    return sorted(existing.values(), key=lambda d: d.due_date)


def _stamp_deadline(db: Session, notification: Notification, now: datetime) -> None:
    rule_key = _DEADLINE_KEY_BY_TYPE.get(notification.type)
    if rule_key is None or notification.property_id is None:
        return
    deadline = db.query(DeadlineRecord).filter(
        DeadlineRecord.property_id == notification.property_id,
        DeadlineRecord.rule_key == rule_key,
    ).first()
    if deadline is not None:
        deadline.last_notified_at = now


def _email_new(db: Session, notifications: Iterable[Notification], now: datetime) -> int:
    priorities = set(get_settings().notification_email_priorities)
    emailed = 0
    for n in notifications:
        if n.priority.value not in priorities:
            continue
        user = db.query(User).filter(User.id == n.user_id).first()
        if not user:
            continue
        if send_notification_email(n, user.email):
            record = db.get(NotificationRecord, n.id)
            if record is not None:
                record.emailed_at = now
            _stamp_deadline(db, n, now)
            emailed += 1
    return emailed


def process_notifications(db: Session, properties: list[Property], now: datetime | None = None) -> dict:
    """Generate MAT and licence notifications for `properties`; store new ones and email high/critical."""
    if now is None:
        now = datetime.now(timezone.utc)
    for prop in properties:
        refresh_property_deadlines(db, prop, now)
    generated = generate_mat_notifications(properties, now) + generate_license_expiry_notifications(properties, now)
    stored = dispatch(generated, DatabaseNotificationSink(db))
    db.commit()
    emailed = _email_new(db, stored, now)
    db.commit()
    logger.info(
        "[Reminders] properties=%s generated=%s stored=%s emailed=%s",
        len(properties), len(generated), len(stored), emailed,
    )
    return {"properties": len(properties), "generated": len(generated), "stored": len(stored), "emailed": emailed}


def build_user_digest(db: Session, user: User, now: datetime | None = None) -> dict:
    properties = db.query(Property).filter(Property.user_id == user.id).order_by(Property.id).all()
    entries = []
    for prop in properties:
        deadlines = refresh_property_deadlines(db, prop, now)
        entries.append({
            "address": prop.address_line1,
            "municipality": prop.municipality,
            "deadlines": [
                {"rule_key": d.rule_key, "due_date": d.due_date, "status": d.status.value}
                for d in deadlines
            ],
        })
    db.commit()
    return build_personalized_digest(user, entries)


def send_user_digest(db: Session, user: User, now: datetime | None = None) -> tuple[dict, bool]:
    digest = build_user_digest(db, user, now)
    if not digest["upcoming_deadlines"]:
        return digest, False
    return digest, send_digest_email(user.email, digest)


def run_compliance_notification_job() -> None:
    """Scheduler entry point. Thresholds are exact-day matches, so this must run at least daily."""
    if not get_settings().notification_cron_enabled:
        return
    db = SessionLocal()
    try:
        properties = db.query(Property).all()
        process_notifications(db, properties)
    except Exception:
        db.rollback()
        logger.exception("[Reminders] notification job failed")
    finally:
        db.close()


def run_digest_job() -> None:
    """Monthly digest for Pro users with something due soon or overdue."""
    if not get_settings().notification_cron_enabled:
        return
    db = SessionLocal()
    try:
        sent = 0
        for user in db.query(User).filter(User.plan == Plan.paid).all():
            _, ok = send_user_digest(db, user)
            sent += int(ok)
        logger.info("[Reminders] digests sent=%s", sent)
    except Exception:
        db.rollback()
        logger.exception("[Reminders] digest job failed")
    finally:
        db.close()
