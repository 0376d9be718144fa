"""Stripe billing: checkout / portal sessions and webhook event handlers.

Webhook handlers never raise. Each returns a WebhookHandlerResult so the
webhook endpoint can acknowledge Stripe and log failures.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import Plan, User

logger = logging.getLogger(__name__)

PRO_PLAN = {
    "name": "Pro Plan",
    "interval": "month",
    "features": [
        "Property-specific monitoring",
        "Compliance scoring (0-100)",
        "Deadline reminders & alerts",
        "Personalized digests",
    ],
}

STATUS_LABELS = {
    "active": "Active",
    "past_due": "Past Due",
    "canceled": "Canceled",
    "incomplete": "Incomplete",
    "trialing": "Trial",
    "unpaid": "Unpaid",
}


class BillingError(Exception):
    """Stripe is not configured or rejected the request."""


class _HandlerError(Exception):
    pass


@dataclass
class WebhookHandlerResult:
    success: bool
    error: str | None = None
    data: dict = field(default_factory=dict)


def stripe_configured() -> bool:
    s = get_settings()
    return bool(s.stripe_secret_key and s.stripe_pro_price_id)


def _stripe():
    import stripe

    stripe.api_key = get_settings().stripe_secret_key
    return stripe


def plan_for_subscription_status(status: str | SubscriptionStatus, current_plan: Plan) -> Plan:
    """Plan a user should be on for a Stripe subscription status.

    past_due keeps the paid plan (grace period); only cancellation downgrades.
    """
    status = getattr(status, "value", status)
    if status == SubscriptionStatus.canceled.value:
        return Plan.free
    if status in (SubscriptionStatus.active.value, SubscriptionStatus.trialing.value, SubscriptionStatus.past_due.value):
        return Plan.paid
    return current_plan


def format_price(amount_cents: int, currency: str = "cad") -> str:
    return f"${amount_cents / 100:,.2f} {currency.upper()}"


def subscription_status_text(status: str | None) -> str:
    return STATUS_LABELS.get(getattr(status, "value", status) or "", "Unknown")


def create_checkout_session(user: User, db: Session, success_url: str, cancel_url: str) -> dict:
    """Reuses the user's Stripe customer when one exists. Returns {session_id, url}."""
    if not stripe_configured():
        raise BillingError("Billing is not configured. Set STRIPE_SECRET_KEY and STRIPE_PRO_PRICE_ID in .env.")
    stripe = _stripe()
    settings = get_settings()
    sub = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    try:
        if sub and sub.stripe_customer_id:
            customer_id = sub.stripe_customer_id
        else:
            customer = stripe.Customer.create(email=user.email, metadata={"user_id": str(user.id)})
            customer_id = customer.id
            if sub is None:
                sub = Subscription(user_id=user.id, status=SubscriptionStatus.incomplete)
                db.add(sub)
            sub.stripe_customer_id = customer_id
            db.commit()

        metadata = {"user_id": str(user.id), "plan": "pro"}
        session = stripe.checkout.Session.create(
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": settings.stripe_pro_price_id, "quantity": 1}],
            mode="subscription",
            success_url=success_url,
            cancel_url=cancel_url,
            client_reference_id=str(user.id),
            metadata=metadata,
            subscription_data={"metadata": metadata},
            allow_promotion_codes=True,
            billing_address_collection="required",
            customer_update={"address": "auto", "name": "auto"},
        )
    except stripe.StripeError as e:
        logger.error("[Stripe] checkout session failed for user %s: %s", user.id, e)
        raise BillingError(f"Stripe error: {getattr(e, 'user_message', None) or str(e)}") from e
    logger.info("[Stripe] checkout session %s created for user %s", session.id, user.id)
    return {"session_id": session.id, "url": session.url}


def create_portal_session(customer_id: str, return_url: str) -> dict:
    if not get_settings().stripe_secret_key:
        raise BillingError("Billing is not configured. Set STRIPE_SECRET_KEY in .env.")
    stripe = _stripe()
    try:
        session = stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
    except stripe.StripeError as e:
        logger.error("[Stripe] portal session failed for customer %s: %s", customer_id, e)
        raise BillingError(f"Stripe error: {getattr(e, 'user_message', None) or str(e)}") from e
    return {"url": session.url}


def _as_dict(obj: Any) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    for attr in ("to_dict_recursive", "to_dict"):
        fn = getattr(obj, attr, None)
        if callable(fn):
            return fn()
    return dict(obj)


def construct_event(payload: bytes, signature: str | None) -> dict:
    """Verified via the Stripe SDK. Only APP_ENV=development without a webhook secret accepts plain JSON.

    Raises ValueError for a bad payload, a missing secret or a bad signature.
    """
    settings = get_settings()
    secret = settings.stripe_webhook_secret
    if not secret and settings.app_env == "development":
        logger.warning("[Stripe] STRIPE_WEBHOOK_SECRET not set; skipping webhook signature verification")
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid payload: {e}") from e
    if not secret:
        logger.error("[Stripe] STRIPE_WEBHOOK_SECRET not set (APP_ENV=%s); rejecting webhook", settings.app_env)
        raise ValueError("Webhook secret not configured")
    if not signature:
        raise ValueError("Missing Stripe-Signature header")
    stripe = _stripe()
    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as e:
        raise ValueError(f"Invalid signature: {e}") from e
    return _as_dict(event)


def _ts(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _status(value: Any) -> SubscriptionStatus:
    try:
        return SubscriptionStatus(value)
    except ValueError:
        raise _HandlerError(f"Unknown subscription status: {value}")


def _set_plan(db: Session, user_id: int, plan: Plan) -> None:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise _HandlerError(f"User {user_id} not found")
    user.plan = plan


def _by_subscription_id(db: Session, subscription_id: str) -> Subscription | None:
    return db.query(Subscription).filter(Subscription.stripe_subscription_id == subscription_id).first()


def _run(name: str, db: Session, fn, obj: dict) -> WebhookHandlerResult:
    logger.info("[Stripe] processing %s: %s", name, obj.get("id"))
    try:
        data = fn(db, obj)
        db.commit()
    except _HandlerError as e:
        db.rollback()
        logger.error("[Stripe] %s failed: %s", name, e)
        return WebhookHandlerResult(success=False, error=str(e))
    return WebhookHandlerResult(success=True, data=data)


def _checkout_completed(db: Session, session: dict) -> dict:
    metadata = session.get("metadata") or {}
    raw_user_id = metadata.get("user_id") or session.get("client_reference_id")
    if not raw_user_id:
        raise _HandlerError("No user_id in checkout session metadata")
    try:
        user_id = int(raw_user_id)
    except (TypeError, ValueError):
        raise _HandlerError(f"Invalid user_id in checkout session: {raw_user_id}")
    _set_plan(db, user_id, Plan.paid)

    if session.get("subscription") and session.get("customer"):
        sub = db.query(Subscription).filter(Subscription.user_id == user_id).first()
        if sub is None:
            sub = Subscription(user_id=user_id)
            db.add(sub)
        sub.stripe_customer_id = session["customer"]
        sub.stripe_subscription_id = session["subscription"]
        sub.status = SubscriptionStatus.active
        sub.plan_name = metadata.get("plan") or "pro"
    return {"user_id": user_id, "session_id": session.get("id")}


def _subscription_created(db: Session, subscription: dict) -> dict:
    customer = subscription.get("customer")
    sub = db.query(Subscription).filter(Subscription.stripe_customer_id == customer).first()
    if sub is None:
        raise _HandlerError(f"Could not find user for customer: {customer}")
    sub.stripe_subscription_id = subscription.get("id")
    sub.status = _status(subscription.get("status"))
    sub.current_period_start = _ts(subscription.get("current_period_start"))
    sub.current_period_end = _ts(subscription.get("current_period_end"))
    return {"subscription_id": subscription.get("id"), "user_id": sub.user_id}


def _subscription_updated(db: Session, subscription: dict) -> dict:
    sub = _by_subscription_id(db, subscription.get("id"))
    if sub is None:
        raise _HandlerError(f"Unknown subscription: {subscription.get('id')}")
    sub.status = _status(subscription.get("status"))
    sub.current_period_start = _ts(subscription.get("current_period_start")) or sub.current_period_start
    sub.current_period_end = _ts(subscription.get("current_period_end")) or sub.current_period_end
    user = db.query(User).filter(User.id == sub.user_id).first()
    if user is not None:
        user.plan = plan_for_subscription_status(sub.status, user.plan)
    return {"subscription_id": subscription.get("id"), "status": sub.status.value}


def _subscription_deleted(db: Session, subscription: dict) -> dict:
    sub = _by_subscription_id(db, subscription.get("id"))
    if sub is None:
        raise _HandlerError(f"Unknown subscription: {subscription.get('id')}")
    sub.status = SubscriptionStatus.canceled
    _set_plan(db, sub.user_id, Plan.free)
    return {"subscription_id": subscription.get("id")}


def _invoice_paid(db: Session, invoice: dict) -> dict:
    subscription_id = invoice.get("subscription")
    if not subscription_id:
        return {"skipped": True, "reason": "No subscription"}
    sub = _by_subscription_id(db, subscription_id)
    if sub is not None:
        sub.status = SubscriptionStatus.active
        _set_plan(db, sub.user_id, Plan.paid)
    return {"invoice_id": invoice.get("id"), "subscription_id": subscription_id}


def _invoice_failed(db: Session, invoice: dict) -> dict:
    subscription_id = invoice.get("subscription")
    if not subscription_id:
        return {"skipped": True, "reason": "No subscription"}
    sub = _by_subscription_id(db, subscription_id)
    if sub is not None:
        # Plan stays paid while past_due
        sub.status = SubscriptionStatus.past_due
    return {"invoice_id": invoice.get("id"), "subscription_id": subscription_id}


WEBHOOK_HANDLERS = {
    "checkout.session.completed": _checkout_completed,
    "customer.subscription.created": _subscription_created,
    "customer.subscription.updated": _subscription_updated,
    "customer.subscription.deleted": _subscription_deleted,
    "invoice.payment_succeeded": _invoice_paid,
    "invoice.payment_failed": _invoice_failed,
}


def handle_webhook_event(db: Session, event: dict) -> WebhookHandlerResult:
    event_type = event.get("type")
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.info("[Stripe] ignoring event type %s", event_type)
        return WebhookHandlerResult(success=True, data={"skipped": True, "reason": f"Unhandled event type {event_type}"})
    obj = _as_dict((event.get("data") or {}).get("object"))
    result = _run(event_type, db, handler, obj)
    logger.info("[Stripe] event %s (%s) success=%s error=%s", event.get("id"), event_type, result.success, result.error)
    return result
