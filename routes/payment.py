# routes/payment.py
import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlmodel import Session

from core.config import settings
from core.database import get_session
from core.security import get_current_user
from core.team_utils import ensure_success, get_current_team
from models.models import Team, User
from schemas.action_result import Success
from schemas.payment_schema import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalSessionResponse,
    PricingResponse,
)
from services.billing_service import (
    apply_subscription_webhook_event,
    complete_checkout,
    create_checkout_session,
    create_customer_portal_session,
    list_stripe_prices,
    list_stripe_products,
    reconcile_seat_quantity,
    subscription_change_from_stripe,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}


# ==================================================================
# Pricing
# ==================================================================
@router.get("/prices", response_model=PricingResponse)
def get_prices():
    """Active per-seat prices and products for the pricing page."""
    try:
        return PricingResponse(prices=list_stripe_prices(), products=list_stripe_products())
    except stripe.StripeError as e:
        logger.error("❌ Failed to load Stripe catalog: %s", e)
        raise HTTPException(status_code=502, detail="Failed to load prices")


# ==================================================================
# Checkout
# ==================================================================
@router.post("/checkout", response_model=CheckoutSessionResponse)
def create_checkout(
    data: CheckoutSessionRequest,
    team: Team = Depends(get_current_team),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Start a per-seat subscription checkout for the current team."""
    result = ensure_success(create_checkout_session(session, team, current_user, data.price_id))
    return CheckoutSessionResponse(**result.data)


@router.get("/checkout/complete")
def checkout_complete(session_id: str, session: Session = Depends(get_session)):
    """Stripe redirects here after a successful checkout."""
    ensure_success(complete_checkout(session, session_id))
    return RedirectResponse(settings.PORTAL_RETURN_URL, status_code=303)


# ==================================================================
# Customer portal
# ==================================================================
@router.post("/portal", response_model=PortalSessionResponse)
def customer_portal(team: Team = Depends(get_current_team)):
    result = ensure_success(create_customer_portal_session(team))
    return PortalSessionResponse(**result.data)


# ==================================================================
# Manual seat reconciliation
# ==================================================================
@router.post("/reconcile", response_model=Success)
def reconcile(team: Team = Depends(get_current_team), session: Session = Depends(get_session)):
    return ensure_success(reconcile_seat_quantity(session, team.id))


# ==================================================================
# Stripe webhook
# ==================================================================
@router.post("/webhook")
async def stripe_webhook(request: Request, session: Session = Depends(get_session)):
    """Apply Stripe subscription changes to the owning team."""
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        return JSONResponse(status_code=500, content={"error": "Webhook secret not configured"})

    if not sig_header:
        return JSONResponse(status_code=400, content={"error": "Missing stripe-signature header"})

    try:
        event = stripe.Webhook.construct_event(
            payload=payload,
            sig_header=sig_header,
            secret=settings.STRIPE_WEBHOOK_SECRET,
        )
    except ValueError as e:
        logger.warning("❌ Invalid webhook payload: %s", e)
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})
    except stripe.SignatureVerificationError as e:
        logger.warning("❌ Invalid webhook signature: %s", e)
        return JSONResponse(status_code=400, content={"error": "Invalid signature"})

    event_type = event["type"]
    if event_type not in SUBSCRIPTION_EVENTS:
        logger.info("ℹ️ Unhandled event type: %s", event_type)
        return {"status": "ignored", "event": event_type}

    change = subscription_change_from_stripe(event["data"]["object"], event["created"])
    result = apply_subscription_webhook_event(session, change)

    # Dropped events (unknown customer, stale, unhandled status) are still
    # acknowledged so Stripe does not retry them
    return {"status": result.kind, "event": event_type}
