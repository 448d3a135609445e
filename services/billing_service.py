# ================================================================
# services/billing_service.py — Stripe per-seat billing sync
# ================================================================
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import stripe
from sqlmodel import Session, select

from core.config import settings
from models.models import (
    BILLABLE_STATUSES,
    ENDED_STATUSES,
    ActivityType,
    Team,
    User,
    utcnow,
)
from schemas.action_result import (
    ActionResult,
    AlreadyInState,
    ExternalServiceFailure,
    NotFound,
    Success,
)
from schemas.payment_schema import StripePrice, StripeProduct, SubscriptionChange
from services.team_service import count_active_members, get_membership, log_activity, resolve_current_team

logger = logging.getLogger(__name__)

# ------------------------
# STRIPE CONFIG
# ------------------------
stripe.api_key = settings.STRIPE_SECRET_KEY
stripe.default_http_client = stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS)


# -------------------------
# Helpers
# -------------------------
def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Bracket lookup that works for both StripeObjects and plain dicts."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def _from_timestamp(ts: Optional[int]) -> Optional[datetime]:
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def _first_item(subscription: Any) -> Any:
    """The single billable line item of a per-seat subscription."""
    return subscription["items"]["data"][0]


def _period_end(subscription: Any, item: Any) -> Optional[datetime]:
    # Newer API versions report the billing period on the item
    return _from_timestamp(
        _field(item, "current_period_end") or _field(subscription, "current_period_end")
    )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _billing_snapshot(team: Team) -> tuple:
    return (
        team.stripe_subscription_id,
        team.stripe_product_id,
        team.plan_name,
        team.subscription_status,
        team.cancel_at_period_end,
        team.seats_billed,
        _as_utc(team.next_billing_date),
    )


def _id_of(ref: Any) -> Optional[str]:
    """Stripe references are either an id string or an expanded object."""
    if ref is None or isinstance(ref, str):
        return ref
    return _field(ref, "id")


def _product_name(product_id: str) -> Optional[str]:
    try:
        product = stripe.Product.retrieve(product_id)
    except stripe.StripeError as e:
        logger.warning("⚠️ Could not load Stripe product %s: %s", product_id, e)
        return None
    return _field(product, "name")


# ==================================================================
# Seat reconciliation
# ==================================================================
def reconcile_seat_quantity(session: Session, team_id: int) -> ActionResult:
    """
    Make the Stripe subscription quantity match the team's member count.

    At least one seat is always billed. Stripe is called first; the team's
    `seats_billed` / `next_billing_date` are only written after Stripe
    accepted the update, so a failure leaves the database untouched.
    """
    team = session.get(Team, team_id)
    if not team:
        return NotFound(message=f"Team {team_id} not found.")
    if not team.stripe_subscription_id:
        return AlreadyInState(
            message="Team has no subscription to sync.", data={"team_id": team_id}
        )

    quantity = max(1, count_active_members(session, team_id))

    try:
        subscription = stripe.Subscription.retrieve(team.stripe_subscription_id)
        item = _first_item(subscription)
        stripe.Subscription.modify(
            team.stripe_subscription_id,
            items=[{"id": item["id"], "quantity": quantity}],
        )
    except stripe.StripeError as e:
        logger.error(
            "❌ Failed to update seat quantity for team %s (subscription %s): %s",
            team_id, team.stripe_subscription_id, e,
        )
        return ExternalServiceFailure(reason="Failed to update subscription quantity")
    except (KeyError, IndexError):
        logger.error("❌ Subscription %s has no billable line item", team.stripe_subscription_id)
        return ExternalServiceFailure(reason="Subscription has no billable line item")

    team.seats_billed = quantity
    team.next_billing_date = _period_end(subscription, item)
    team.updated_at = utcnow()
    session.add(team)
    session.commit()
    session.refresh(team)

    logger.info("✅ Team %s billed for %s seat(s)", team_id, quantity)
    return Success(
        message="Subscription quantity updated.",
        data={
            "team_id": team_id,
            "quantity": quantity,
            "next_billing_date": team.next_billing_date,
        },
    )


# ==================================================================
# Subscription webhook events
# ==================================================================
def subscription_change_from_stripe(
    subscription: Any, event_created: Optional[int] = None
) -> SubscriptionChange:
    """Flatten a Stripe subscription object into a SubscriptionChange."""
    status = _field(subscription, "status")
    item = None
    try:
        item = _first_item(subscription)
    except (KeyError, IndexError, TypeError):
        pass

    product_id = None
    plan_name = None
    if item is not None:
        price = _field(item, "price") or _field(item, "plan")
        product = _field(price, "product")
        product_id = _id_of(product)
        if isinstance(product, str):
            # Name is only needed while the subscription is billable
            if status in BILLABLE_STATUSES:
                plan_name = _product_name(product)
        else:
            plan_name = _field(product, "name")

    return SubscriptionChange(
        customer_id=_id_of(_field(subscription, "customer")),
        subscription_id=_field(subscription, "id"),
        status=status,
        cancel_at_period_end=bool(_field(subscription, "cancel_at_period_end", False)),
        current_period_end=_period_end(subscription, item),
        product_id=product_id,
        plan_name=plan_name,
        quantity=_field(item, "quantity"),
        event_created=_from_timestamp(event_created),
    )


def apply_subscription_webhook_event(session: Session, change: SubscriptionChange) -> ActionResult:
    """
    Mirror an out-of-band subscription change onto the owning team.

    Every write is an overwrite, so re-applying the same change is harmless.
    Events older than the last one applied to the team are skipped.
    """
    team = session.exec(
        select(Team).where(Team.stripe_customer_id == change.customer_id)
    ).first()
    if not team:
        logger.error("❌ Team not found for Stripe customer: %s", change.customer_id)
        return NotFound(message=f"No team for Stripe customer {change.customer_id}.")

    event_created = _as_utc(change.event_created)
    applied_at = _as_utc(team.subscription_event_at)
    if event_created and applied_at and event_created < applied_at:
        logger.warning(
            "⚠️ Skipping stale event for subscription %s (event %s < applied %s)",
            change.subscription_id, event_created, applied_at,
        )
        return AlreadyInState(message="A newer subscription event was already applied.")

    before = _billing_snapshot(team)

    if change.status in BILLABLE_STATUSES:
        team.stripe_subscription_id = change.subscription_id
        team.stripe_product_id = change.product_id
        team.plan_name = change.plan_name
        team.subscription_status = change.status
        team.cancel_at_period_end = change.cancel_at_period_end
        team.seats_billed = change.quantity or 1
        team.next_billing_date = _as_utc(change.current_period_end)
        logger.info(
            "✅ Subscription %s updated with status %s, cancel at period end: %s",
            change.subscription_id, change.status, change.cancel_at_period_end,
        )
    elif change.status in ENDED_STATUSES:
        team.stripe_subscription_id = None
        team.stripe_product_id = None
        team.plan_name = None
        team.subscription_status = change.status
        team.cancel_at_period_end = False
        team.seats_billed = None
        team.next_billing_date = None
        logger.info("🗑️ Subscription %s was canceled or is unpaid", change.subscription_id)
    else:
        logger.info(
            "ℹ️ Unhandled subscription status %s for subscription %s",
            change.status, change.subscription_id,
        )
        return AlreadyInState(message=f"No handling for subscription status '{change.status}'.")

    changed = _billing_snapshot(team) != before
    if event_created:
        team.subscription_event_at = event_created
    team.updated_at = utcnow()
    session.add(team)
    # Only real billing changes reach the activity log
    if changed:
        log_activity(session, team.id, None, ActivityType.UPDATE_SUBSCRIPTION, commit=False)
    session.commit()
    session.refresh(team)

    return Success(
        message="Subscription state applied." if changed else "Subscription state unchanged.",
        data={
            "team_id": team.id,
            "subscription_status": team.subscription_status,
            "seats_billed": team.seats_billed,
            "changed": changed,
        },
    )


# ==================================================================
# Checkout
# ==================================================================
def create_checkout_session(session: Session, team: Team, user: User, price_id: str) -> ActionResult:
    """Start a per-seat Stripe Checkout for the team."""
    quantity = max(1, count_active_members(session, team.id))

    params = dict(
        payment_method_types=["card"],
        line_items=[{"price": price_id, "quantity": quantity}],
        mode="subscription",
        success_url=settings.STRIPE_SUCCESS_URL,
        cancel_url=settings.STRIPE_CANCEL_URL,
        client_reference_id=str(user.id),
        allow_promotion_codes=True,
        metadata={"team_id": str(team.id)},
        subscription_data={"trial_period_days": settings.STRIPE_TRIAL_DAYS},
    )
    if team.stripe_customer_id:
        params["customer"] = team.stripe_customer_id
    else:
        params["customer_email"] = user.email

    try:
        checkout_session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error("❌ Stripe session creation failed for team %s: %s", team.id, e)
        return ExternalServiceFailure(reason="Failed to create checkout session")

    logger.info("✅ Checkout session %s created for team %s (%s seats)", checkout_session.id, team.id, quantity)
    return Success(
        data={"checkout_url": checkout_session.url, "session_id": checkout_session.id}
    )


def complete_checkout(session: Session, checkout_session_id: str) -> ActionResult:
    """
    Link the Stripe customer created by a finished checkout to its team and
    mirror the new subscription.
    """
    try:
        checkout_session = stripe.checkout.Session.retrieve(checkout_session_id)
        subscription_id = _id_of(_field(checkout_session, "subscription"))
        if not subscription_id:
            return NotFound(message="No subscription found for this checkout session.")
        subscription = stripe.Subscription.retrieve(
            subscription_id, expand=["items.data.price.product"]
        )
    except stripe.StripeError as e:
        logger.error("❌ Could not load checkout session %s: %s", checkout_session_id, e)
        return ExternalServiceFailure(reason="Failed to load checkout session")

    customer_id = _id_of(_field(checkout_session, "customer"))
    user_id = _field(checkout_session, "client_reference_id")
    user = session.get(User, int(user_id)) if user_id else None
    if not user or not customer_id:
        return NotFound(message="Checkout session is not linked to a known user.")

    metadata = _field(checkout_session, "metadata", {})
    hinted_team_id = _field(metadata, "team_id")
    team = None
    if hinted_team_id and get_membership(session, int(hinted_team_id), user.id):
        team = session.get(Team, int(hinted_team_id))
    if team is None:
        team = resolve_current_team(session, user.id)
    if team is None:
        return NotFound(message="User does not belong to a team.")

    team.stripe_customer_id = customer_id
    team.updated_at = utcnow()
    session.add(team)
    session.commit()

    change = subscription_change_from_stripe(subscription, _field(checkout_session, "created"))
    change.customer_id = customer_id
    result = apply_subscription_webhook_event(session, change)
    if isinstance(result, AlreadyInState):
        # The customer link stands even when the subscription data is stale or unhandled
        return Success(
            message=f"Checkout linked. {result.message}",
            data={"team_id": team.id},
        )
    return result


# ==================================================================
# Customer portal
# ==================================================================
PORTAL_CANCELLATION_REASONS = [
    "too_expensive",
    "missing_features",
    "switched_service",
    "unused",
    "other",
]


def _portal_configuration_id(product_id: str) -> str:
    """
    Reuse the first billing portal configuration, or create one that lets
    customers change seat quantity and plan and cancel at period end.
    Raises ValueError when the team's product cannot be offered.
    """
    configurations = stripe.billing_portal.Configuration.list()
    if configurations["data"]:
        return configurations["data"][0]["id"]

    product = stripe.Product.retrieve(product_id)
    if not _field(product, "active", False):
        raise ValueError("Team's product is not active in Stripe")

    prices = stripe.Price.list(product=product_id, active=True)
    if not prices["data"]:
        raise ValueError("No active prices found for the team's product")

    configuration = stripe.billing_portal.Configuration.create(
        business_profile={"headline": "Manage your subscription"},
        features={
            "subscription_update": {
                "enabled": True,
                "default_allowed_updates": ["price", "quantity", "promotion_code"],
                "proration_behavior": "create_prorations",
                "products": [
                    {"product": product_id, "prices": [price["id"] for price in prices["data"]]}
                ],
            },
            "subscription_cancel": {
                "enabled": True,
                "mode": "at_period_end",
                "cancellation_reason": {
                    "enabled": True,
                    "options": PORTAL_CANCELLATION_REASONS,
                },
            },
        },
    )
    logger.info("🛠️ Created billing portal configuration %s", configuration["id"])
    return configuration["id"]


def create_customer_portal_session(team: Team) -> ActionResult:
    if not team.stripe_customer_id or not team.stripe_product_id:
        return NotFound(message="No billing account found for this team.")

    try:
        configuration_id = _portal_configuration_id(team.stripe_product_id)
        portal_session = stripe.billing_portal.Session.create(
            customer=team.stripe_customer_id,
            return_url=settings.PORTAL_RETURN_URL,
            configuration=configuration_id,
        )
    except ValueError as e:
        logger.error("❌ Cannot configure billing portal for team %s: %s", team.id, e)
        return NotFound(message=str(e))
    except stripe.StripeError as e:
        logger.error("❌ Portal session creation failed for team %s: %s", team.id, e)
        return ExternalServiceFailure(reason="Failed to create customer portal session")

    return Success(data={"portal_url": portal_session.url})


# ==================================================================
# Catalog (pricing page)
# ==================================================================
def list_stripe_prices() -> List[StripePrice]:
    """Active recurring prices, with the product expanded."""
    prices = stripe.Price.list(expand=["data.product"], active=True, type="recurring")
    return [
        StripePrice(
            id=price["id"],
            product_id=_id_of(_field(price, "product")),
            unit_amount=_field(price, "unit_amount"),
            currency=price["currency"],
            interval=_field(_field(price, "recurring"), "interval"),
            trial_period_days=_field(_field(price, "recurring"), "trial_period_days"),
        )
        for price in prices["data"]
    ]


def list_stripe_products() -> List[StripeProduct]:
    products = stripe.Product.list(active=True, expand=["data.default_price"])
    return [
        StripeProduct(
            id=product["id"],
            name=product["name"],
            description=_field(product, "description"),
            default_price_id=_id_of(_field(product, "default_price")),
        )
        for product in products["data"]
    ]
