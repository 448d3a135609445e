# payment_schema.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


# ---------------------------
# Subscription change (webhook / checkout)
# ---------------------------
class SubscriptionChange(BaseModel):
    """
    The subset of a Stripe subscription the team billing mirror cares about.
    Built from `customer.subscription.*` webhook events and from completed
    checkout sessions.
    """
    customer_id: str
    subscription_id: str
    status: str
    cancel_at_period_end: bool = False
    current_period_end: Optional[datetime] = None
    product_id: Optional[str] = None
    plan_name: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    event_created: Optional[datetime] = None


# ---------------------------
# Checkout / Portal
# ---------------------------
class CheckoutSessionRequest(BaseModel):
    price_id: str = Field(..., min_length=1)


class CheckoutSessionResponse(BaseModel):
    checkout_url: str
    session_id: str


class PortalSessionResponse(BaseModel):
    portal_url: str


# ---------------------------
# Catalog
# ---------------------------
class StripePrice(BaseModel):
    id: str
    product_id: Optional[str] = None
    unit_amount: Optional[int] = None
    currency: str
    interval: Optional[str] = None
    trial_period_days: Optional[int] = None


class StripeProduct(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    default_price_id: Optional[str] = None


class PricingResponse(BaseModel):
    prices: List[StripePrice] = []
    products: List[StripeProduct] = []
