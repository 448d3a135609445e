# core/team_utils.py
from typing import Optional

from fastapi import HTTPException, Depends, status
from sqlmodel import Session

from core.database import get_session
from core.security import get_current_user, get_current_team_hint
from models.models import Team, User
from schemas.action_result import (
    ActionResult,
    AlreadyInState,
    ExternalServiceFailure,
    NotFound,
    Success,
    Unauthorized,
)
from services.team_service import resolve_current_team


def get_current_team(
    current_user: User = Depends(get_current_user),
    current_team_id: Optional[int] = Depends(get_current_team_hint),
    session: Session = Depends(get_session),
) -> Team:
    """
    Dependency resolving the team the request acts on.
    Users without any team get a 404 so the client can send them to onboarding.
    """
    team = resolve_current_team(session, current_user.id, current_team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


_STATUS_BY_KIND = {
    NotFound: status.HTTP_404_NOT_FOUND,
    AlreadyInState: status.HTTP_409_CONFLICT,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    ExternalServiceFailure: status.HTTP_502_BAD_GATEWAY,
}


def ensure_success(result: ActionResult) -> Success:
    """Return a Success as-is, raise the matching HTTPException otherwise."""
    if isinstance(result, Success):
        return result
    raise HTTPException(
        status_code=_STATUS_BY_KIND[type(result)],
        detail=result.model_dump(),
    )
