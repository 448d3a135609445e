# action_result.py
from pydantic import BaseModel, Field
from typing import Annotated, Any, Dict, Literal, Optional, Union


# ============================================================
# ✅ Outcome of a team / invitation / billing action
# ============================================================
class Success(BaseModel):
    kind: Literal["success"] = "success"
    message: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class NotFound(BaseModel):
    """Entity absent, or not in the state the transition needs."""
    kind: Literal["not_found"] = "not_found"
    message: str


class AlreadyInState(BaseModel):
    """The transition would be a no-op (already a member, stale event, ...)."""
    kind: Literal["already_in_state"] = "already_in_state"
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ExternalServiceFailure(BaseModel):
    """The billing processor call failed; nothing was persisted."""
    kind: Literal["external_service_failure"] = "external_service_failure"
    reason: str


class Unauthorized(BaseModel):
    kind: Literal["unauthorized"] = "unauthorized"
    message: str


ActionResult = Annotated[
    Union[Success, NotFound, AlreadyInState, ExternalServiceFailure, Unauthorized],
    Field(discriminator="kind"),
]
