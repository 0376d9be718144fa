"""GTA Rental Compliance – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.database import Base, SessionLocal, engine
# Import models so Base.metadata has all tables before create_all
from app.models import (  # noqa: F401
    User, Subscription, Property, DeadlineRule, DeadlineRecord, NotificationRecord,
)
from app.routers import auth, billing, jurisdictions, notifications, properties
from app.seed import seed_deadline_rules

settings = get_settings()
log = logging.getLogger("uvicorn.error")
app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(jurisdictions.router)
app.include_router(properties.router)
app.include_router(notifications.router)
app.include_router(billing.router)

scheduler = None


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        added = seed_deadline_rules(db)
        if added:
            log.info("[Seed] added %s deadline rules", added)
    finally:
        db.close()


def start_scheduler():
    """Daily reminder job at notification_cron_hour, monthly digest on the 1st."""
    from apscheduler.schedulers.background import BackgroundScheduler
    from app.services.reminder_job import run_compliance_notification_job, run_digest_job

    sched = BackgroundScheduler()
    sched.add_job(run_compliance_notification_job, "cron", hour=settings.notification_cron_hour, minute=0)
    sched.add_job(run_digest_job, "cron", day=1, hour=settings.notification_cron_hour, minute=30)
    sched.start()
    log.info("[Reminders] scheduler started (daily at %02d:00)", settings.notification_cron_hour)
    return sched


@app.on_event("startup")
def startup():
    global scheduler
    if settings.mailgun_api_key and settings.mailgun_domain:
        log.info("[Mailgun] using domain=%s", settings.mailgun_domain)
    elif settings.sendgrid_api_key:
        log.info("[SendGrid] configured")
    else:
        log.warning("[Email] Not configured - reminder emails will be skipped; set MAILGUN_* or SENDGRID_API_KEY in .env")
    try:
        init_db()
    except Exception as e:
        log.warning("Database startup failed (tables/seed skipped). Check DATABASE_URL. Error: %s", e)
    if settings.notification_cron_enabled:
        scheduler = start_scheduler()


@app.on_event("shutdown")
def shutdown():
    if scheduler is not None:
        scheduler.shutdown(wait=False)


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
