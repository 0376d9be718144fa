"""Billing schemas."""
from datetime import datetime

from pydantic import BaseModel

from app.models.subscription import SubscriptionStatus
from app.models.user import Plan


class CheckoutRequest(BaseModel):
    success_url: str | None = None
    cancel_url: str | None = None


class PortalRequest(BaseModel):
    return_url: str | None = None


class SessionResponse(BaseModel):
    url: str | None = None
    session_id: str | None = None


class SubscriptionResponse(BaseModel):
    plan: Plan
    status: SubscriptionStatus | None = None
    status_label: str = "Unknown"
    plan_name: str | None = None
    current_period_end: datetime | None = None
    price: str
    features: list[str]
    # For the frontend Stripe.js client; None when billing is not configured
    publishable_key: str | None = None
