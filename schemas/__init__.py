from .action_result import ActionResult, Success, NotFound, AlreadyInState, ExternalServiceFailure, Unauthorized
from .invitation_schema import InvitationCreate, PendingInvitationRead
from .payment_schema import (
    SubscriptionChange, CheckoutSessionRequest, CheckoutSessionResponse, PortalSessionResponse,
    StripePrice, StripeProduct, PricingResponse,
)
from .team_schema import TeamRead, MemberRead, TeamSummary, ActivityLogRead

__all__ = [
    # Action outcomes
    "ActionResult", "Success", "NotFound", "AlreadyInState", "ExternalServiceFailure", "Unauthorized",

    # Invitation
    "InvitationCreate", "PendingInvitationRead",

    # Payment
    "SubscriptionChange", "CheckoutSessionRequest", "CheckoutSessionResponse", "PortalSessionResponse",
    "StripePrice", "StripeProduct", "PricingResponse",

    # Team
    "TeamRead", "MemberRead", "TeamSummary", "ActivityLogRead",
]
