"""Shared fixtures: in-memory SQLite app, users, properties and an email outbox."""

import os

# Must be set before app.config / app.database are imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "development"
os.environ["NOTIFICATION_CRON_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["MAILGUN_DOMAIN"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_PUBLISHABLE_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from app import models  # noqa: F401
from app.database import Base, SessionLocal, engine
from app.models.property import Property, UsageType
from app.models.user import Plan, User, UserRole
from app.seed import seed_deadline_rules
from app.services.auth import create_access_token, get_password_hash


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_property(**overrides) -> dict:
    """Property as a plain dict (what the core accepts besides ORM rows). Defaults: compliant Toronto STR."""
    defaults = {
        "id": "p1",
        "user_id": "u1",
        "address_line1": "100 Queen St W",
        "municipality": "toronto",
        "usage_type": "short_term",
        "is_principal_residence": True,
        "license_number": "STR-2401-0001",
        "license_expiry": None,
        "mat_number": "MAT-1",
        "annual_nights": 120,
        "emergency_contact": "416-555-0100",
        "provides_911_info": True,
        "exit_diagram_posted": True,
        "keeps_records": True,
    }
    defaults.update(overrides)
    return defaults


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database / app fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_deadline_rules(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox(monkeypatch):
    """Captures every email instead of calling Mailgun/SendGrid."""
    sent = []

    def _fake_send(to_email, subject, html_content, text_content=None):
        sent.append({"to": to_email, "subject": subject, "html": html_content, "text": text_content})
        return True

    monkeypatch.setattr("app.services.notifications.send_email", _fake_send)
    return sent


@pytest.fixture
def client(db, outbox):
    from app.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    def _make(email="landlord@example.com", plan=Plan.free, full_name="Test Landlord", role=UserRole.landlord) -> User:
        user = User(
            email=email,
            hashed_password=get_password_hash("Password123!"),
            full_name=full_name,
            plan=plan,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_db_property(db):
    def _make(user: User, **overrides) -> Property:
        fields = make_property(**overrides)
        fields.pop("id")
        fields["user_id"] = user.id
        fields["usage_type"] = UsageType(fields["usage_type"])
        prop = Property(**fields)
        db.add(prop)
        db.commit()
        db.refresh(prop)
        return prop

    return _make


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
