"""Notification inbox, on-demand generation, by-law broadcasts, digests and email checks."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.dependencies import get_current_user, require_admin, require_paid_plan
from app.models.notification import NotificationRecord
from app.models.property import Property
from app.models.user import User
from app.schemas.notification import (
    BylawUpdateRequest,
    DigestResponse,
    GenerateNotificationsRequest,
    NotificationJobResult,
    NotificationResponse,
    NotificationUpdate,
    TestEmailBody,
)
from app.services.jurisdictions import normalize_municipality
from app.services.notification_scheduler import (
    create_bylaw_update_notifications,
    dispatch,
    generate_license_expiry_notifications,
    generate_mat_notifications,
    sort_notifications,
)
from app.services.notifications import send_email, send_notification_email
from app.services.reminder_job import DatabaseNotificationSink, process_notifications, send_user_digest

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)
settings = get_settings()

_GENERATORS = {
    "mat": generate_mat_notifications,
    "license": generate_license_expiry_notifications,
}


def _my_properties(db: Session, user: User) -> list[Property]:
    return db.query(Property).filter(Property.user_id == user.id).order_by(Property.id).all()


@router.get("", response_model=list[NotificationResponse])
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Critical first, then high/medium/low; newest first within a priority."""
    q = db.query(NotificationRecord).filter(NotificationRecord.user_id == current_user.id)
    if unread_only:
        q = q.filter(NotificationRecord.read.is_(False))
    return [NotificationResponse.model_validate(n) for n in sort_notifications(q.all())]


@router.patch("/{notification_id}", response_model=NotificationResponse)
def update_notification(
    notification_id: str,
    data: NotificationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    n = db.query(NotificationRecord).filter(
        NotificationRecord.id == notification_id,
        NotificationRecord.user_id == current_user.id,
    ).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    n.read = data.read
    db.commit()
    db.refresh(n)
    return NotificationResponse.model_validate(n)


@router.post("/generate", response_model=NotificationJobResult)
def generate(
    data: GenerateNotificationsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Run one generator over the caller's properties. Already-stored ids are not stored or emailed again."""
    now = datetime.now(timezone.utc)
    properties = _my_properties(db, current_user)
    generated = _GENERATORS[data.kind](properties, now)
    stored = dispatch(generated, DatabaseNotificationSink(db))
    db.commit()
    emailed = 0
    for n in stored:
        if n.priority.value in settings.notification_email_priorities and send_notification_email(n, current_user.email):
            db.get(NotificationRecord, n.id).emailed_at = now
            emailed += 1
    db.commit()
    return NotificationJobResult(generated=len(generated), stored=len(stored), emailed=emailed, properties=len(properties))


@router.post("/bylaw-update", response_model=NotificationJobResult)
def bylaw_update(
    data: BylawUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Broadcast a by-law change (admins only). Every recipient is emailed."""
    municipality = normalize_municipality(data.municipality)
    if not municipality:
        raise HTTPException(status_code=400, detail="Municipality is required")
    if data.affected_user_ids is None:
        rows = db.query(Property.user_id).filter(Property.municipality == municipality).distinct().all()
        user_ids = sorted(r[0] for r in rows)
    else:
        user_ids = list(dict.fromkeys(data.affected_user_ids))
    users = {u.id: u for u in db.query(User).filter(User.id.in_(user_ids)).all()} if user_ids else {}
    missing = [uid for uid in user_ids if uid not in users]
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown user ids: {missing}")

    now = datetime.now(timezone.utc)
    generated = create_bylaw_update_notifications(municipality, data.title, data.description, user_ids, now)
    stored = dispatch(generated, DatabaseNotificationSink(db))
    db.commit()
    emailed = 0
    for n in stored:
        if send_notification_email(n, users[n.user_id].email):
            db.get(NotificationRecord, n.id).emailed_at = now
            emailed += 1
    db.commit()
    logger.info("[Reminders] by-law update for %s: recipients=%s emailed=%s", municipality, len(stored), emailed)
    return NotificationJobResult(generated=len(generated), stored=len(stored), emailed=emailed)


@router.post("/run-job", response_model=NotificationJobResult)
def run_job(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Run the daily reminder job now, for the caller's properties only."""
    result = process_notifications(db, _my_properties(db, current_user))
    return NotificationJobResult(**result)


@router.post("/digest", response_model=DigestResponse)
def send_digest(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_paid_plan),
):
    """Build and email the caller's compliance digest (nothing is sent when nothing is due)."""
    digest, sent = send_user_digest(db, current_user)
    return DigestResponse(
        subject=digest["subject"],
        summary=digest["summary"],
        properties=digest["properties"],
        upcoming_deadlines=[
            {
                "address": e["address"],
                "municipality": e["municipality"],
                "deadlines": [
                    {"rule_key": d["rule_key"], "due_date": d["due_date"].isoformat(), "status": d["status"]}
                    for d in e["deadlines"]
                ],
            }
            for e in digest["upcoming_deadlines"]
        ],
        sent=sent,
    )


@router.post("/test-email")
def send_test_email(
    body: TestEmailBody | None = Body(None),
    current_user: User = Depends(get_current_user),
):
    """Send a test email to `to`, or to the caller. Needs Mailgun or SendGrid settings in .env."""
    if not (settings.mailgun_api_key and settings.mailgun_domain) and not settings.sendgrid_api_key:
        raise HTTPException(
            status_code=503,
            detail="Email is not configured. Set MAILGUN_API_KEY and MAILGUN_DOMAIN (or SENDGRID_API_KEY) in .env.",
        )
    to_email = (body.to if body and body.to else current_user.email).strip()
    subject = "[GTA Compliance] Test email"
    html_content = """
    <p>Hello,</p>
    <p>This is a test email from <strong>GTA Compliance</strong>.</p>
    <p>If you received this, email delivery is configured correctly.</p>
    """
    text_content = "This is a test email from GTA Compliance. If you received this, email delivery is configured correctly."
    if not send_email(to_email, subject, html_content, text_content=text_content):
        raise HTTPException(status_code=502, detail="Email request failed. Check server logs and MAILGUN_*/SENDGRID_* settings.")
    return {"status": "ok", "message": f"Test email sent to {to_email}."}
