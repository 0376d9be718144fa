"""Stripe checkout, customer portal, webhook and subscription status."""
import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.dependencies import get_current_user
from app.models.subscription import Subscription
from app.models.user import User
from app.schemas.billing import CheckoutRequest, PortalRequest, SessionResponse, SubscriptionResponse
from app.services.billing import (
    PRO_PLAN,
    BillingError,
    construct_event,
    create_checkout_session,
    create_portal_session,
    format_price,
    handle_webhook_event,
    stripe_configured,
    subscription_status_text,
)

router = APIRouter(prefix="/billing", tags=["billing"])
logger = logging.getLogger(__name__)


def _app_url(path: str) -> str:
    return f"{get_settings().app_url.rstrip('/')}{path}"


@router.post("/checkout", response_model=SessionResponse)
def checkout(
    body: CheckoutRequest | None = Body(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not stripe_configured():
        raise HTTPException(
            status_code=503,
            detail="Billing is not configured. Set STRIPE_SECRET_KEY and STRIPE_PRO_PRICE_ID in .env.",
        )
    body = body or CheckoutRequest()
    try:
        session = create_checkout_session(
            current_user,
            db,
            success_url=body.success_url or _app_url("/dashboard?upgraded=1"),
            cancel_url=body.cancel_url or _app_url("/upgrade"),
        )
    except BillingError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return SessionResponse(**session)


@router.post("/portal", response_model=SessionResponse)
def portal(
    body: PortalRequest | None = Body(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not get_settings().stripe_secret_key:
        raise HTTPException(status_code=503, detail="Billing is not configured. Set STRIPE_SECRET_KEY in .env.")
    sub = db.query(Subscription).filter(Subscription.user_id == current_user.id).first()
    if not sub or not sub.stripe_customer_id:
        raise HTTPException(status_code=404, detail="No billing account found. Upgrade first.")
    return_url = (body.return_url if body else None) or _app_url("/dashboard")
    try:
        session = create_portal_session(sub.stripe_customer_id, return_url)
    except BillingError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return SessionResponse(**session)


@router.post("/webhook")
async def webhook(request: Request, db: Session = Depends(get_db)):
    """Stripe webhook. Handler failures are logged and acknowledged so Stripe does not retry forever."""
    payload = await request.body()
    try:
        event = construct_event(payload, request.headers.get("stripe-signature"))
    except ValueError as e:
        logger.warning("[Stripe] rejected webhook: %s", e)
        raise HTTPException(status_code=400, detail="Invalid webhook")
    result = handle_webhook_event(db, event)
    return {"received": True, "success": result.success, "error": result.error}


@router.get("/subscription", response_model=SubscriptionResponse)
def get_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    settings = get_settings()
    sub = db.query(Subscription).filter(Subscription.user_id == current_user.id).first()
    return SubscriptionResponse(
        plan=current_user.plan,
        status=sub.status if sub else None,
        status_label=subscription_status_text(sub.status if sub else None),
        plan_name=sub.plan_name if sub else None,
        current_period_end=sub.current_period_end if sub else None,
        price=f"{format_price(settings.stripe_pro_amount_cents, settings.stripe_currency)}/{PRO_PLAN['interval']}",
        features=PRO_PLAN["features"],
        publishable_key=settings.stripe_publishable_key or None,
    )
