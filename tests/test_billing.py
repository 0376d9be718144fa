"""Stripe plan policy and webhook handlers (against the test database)."""

import json

import pytest

from app.models.subscription import Subscription, SubscriptionStatus
from app.config import get_settings
from app.models.user import Plan
from app.services.billing import (
    construct_event,
    format_price,
    handle_webhook_event,
    plan_for_subscription_status,
    subscription_status_text,
)


# ── plan policy ────────────────────────────────────────────────


@pytest.mark.parametrize("status,current,expected", [
    ("canceled", Plan.paid, Plan.free),
    ("active", Plan.free, Plan.paid),
    ("trialing", Plan.free, Plan.paid),
    ("past_due", Plan.paid, Plan.paid),
    ("incomplete", Plan.free, Plan.free),
    ("unpaid", Plan.paid, Plan.paid),
    (SubscriptionStatus.canceled, Plan.paid, Plan.free),
])
def test_plan_for_subscription_status(status, current, expected):
    assert plan_for_subscription_status(status, current) == expected


def test_display_helpers():
    assert format_price(2900, "cad") == "$29.00 CAD"
    assert subscription_status_text("trialing") == "Trial"
    assert subscription_status_text(None) == "Unknown"


def test_construct_event_in_development_without_secret_parses_json():
    event = construct_event(json.dumps({"id": "evt_1", "type": "ping"}).encode(), None)
    assert event["type"] == "ping"
    with pytest.raises(ValueError):
        construct_event(b"not json", None)


def test_construct_event_outside_development_requires_secret(monkeypatch):
    monkeypatch.setattr(get_settings(), "app_env", "production")
    payload = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()
    with pytest.raises(ValueError, match="secret"):
        construct_event(payload, None)


def test_construct_event_with_secret_requires_signature(monkeypatch):
    monkeypatch.setattr(get_settings(), "stripe_webhook_secret", "whsec_test")
    with pytest.raises(ValueError, match="Stripe-Signature"):
        construct_event(b"{}", None)


# ── webhook handlers ───────────────────────────────────────────


def _event(type_, obj):
    return {"id": "evt_test", "type": type_, "data": {"object": obj}}


def _subscription(db, user, **overrides):
    fields = dict(
        user_id=user.id,
        stripe_customer_id="cus_123",
        stripe_subscription_id="sub_123",
        status=SubscriptionStatus.active,
    )
    fields.update(overrides)
    sub = Subscription(**fields)
    db.add(sub)
    db.commit()
    return sub


def test_checkout_completed_upgrades_user_and_records_subscription(db, make_user):
    user = make_user()
    result = handle_webhook_event(db, _event("checkout.session.completed", {
        "id": "cs_1",
        "customer": "cus_123",
        "subscription": "sub_123",
        "metadata": {"user_id": str(user.id), "plan": "pro"},
    }))
    assert result.success is True
    db.refresh(user)
    assert user.plan == Plan.paid
    sub = db.query(Subscription).filter(Subscription.user_id == user.id).one()
    assert sub.stripe_subscription_id == "sub_123"
    assert sub.status == SubscriptionStatus.active


def test_checkout_completed_without_user_fails_softly(db):
    result = handle_webhook_event(db, _event("checkout.session.completed", {"id": "cs_2", "metadata": {}}))
    assert result.success is False
    assert "user_id" in result.error


def test_subscription_created_fills_period(db, make_user):
    user = make_user()
    _subscription(db, user, stripe_subscription_id=None, status=SubscriptionStatus.incomplete)
    result = handle_webhook_event(db, _event("customer.subscription.created", {
        "id": "sub_999",
        "customer": "cus_123",
        "status": "trialing",
        "current_period_start": 1735689600,
        "current_period_end": 1738368000,
    }))
    assert result.success is True
    sub = db.query(Subscription).one()
    assert sub.stripe_subscription_id == "sub_999"
    assert sub.status == SubscriptionStatus.trialing
    assert sub.current_period_end is not None


def test_subscription_created_for_unknown_customer_fails(db):
    result = handle_webhook_event(db, _event("customer.subscription.created", {
        "id": "sub_1", "customer": "cus_nope", "status": "active",
    }))
    assert result.success is False


def test_subscription_updated_past_due_keeps_paid(db, make_user):
    user = make_user(plan=Plan.paid)
    _subscription(db, user)
    result = handle_webhook_event(db, _event("customer.subscription.updated", {"id": "sub_123", "status": "past_due"}))
    assert result.success is True
    db.refresh(user)
    assert user.plan == Plan.paid
    assert db.query(Subscription).one().status == SubscriptionStatus.past_due


def test_subscription_deleted_downgrades(db, make_user):
    user = make_user(plan=Plan.paid)
    _subscription(db, user)
    assert handle_webhook_event(db, _event("customer.subscription.deleted", {"id": "sub_123"})).success
    db.refresh(user)
    assert user.plan == Plan.free
    assert db.query(Subscription).one().status == SubscriptionStatus.canceled


def test_invoice_events(db, make_user):
    user = make_user(plan=Plan.free)
    _subscription(db, user, status=SubscriptionStatus.past_due)

    assert handle_webhook_event(db, _event("invoice.payment_succeeded", {"id": "in_1", "subscription": "sub_123"})).success
    db.refresh(user)
    assert user.plan == Plan.paid
    assert db.query(Subscription).one().status == SubscriptionStatus.active

    assert handle_webhook_event(db, _event("invoice.payment_failed", {"id": "in_2", "subscription": "sub_123"})).success
    db.refresh(user)
    assert user.plan == Plan.paid
    assert db.query(Subscription).one().status == SubscriptionStatus.past_due


def test_invoice_without_subscription_is_skipped(db):
    result = handle_webhook_event(db, _event("invoice.payment_failed", {"id": "in_3"}))
    assert result.success is True
    assert result.data["skipped"] is True


def test_unhandled_event_type_is_acknowledged(db):
    result = handle_webhook_event(db, _event("customer.created", {"id": "cus_1"}))
    assert result.success is True
    assert result.data["skipped"] is True
