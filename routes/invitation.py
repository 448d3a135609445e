# routes/invitation.py
import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlmodel import Session

from core.config import settings
from core.database import get_session
from core.security import get_current_user
from core.team_utils import ensure_success, get_current_team
from models.models import Team, User
from schemas.action_result import Success
from schemas.invitation_schema import InvitationCreate, PendingInvitationRead
from services.email_service import email_service
from services.membership_service import (
    accept_invitation,
    decline_invitation,
    invite_team_member,
    list_pending_invitations,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["Invitations"])


# ==================================================================
# Pending invitations for the signed-in user
# ==================================================================
@router.get("/pending", response_model=List[PendingInvitationRead])
def get_pending_invitations(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return list_pending_invitations(session, current_user)


# ==================================================================
# Create / Send Invitation
# ==================================================================
@router.post("", response_model=Success)
def invite(
    invite: InvitationCreate,
    background_tasks: BackgroundTasks,
    team: Team = Depends(get_current_team),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """
    Create a pending invitation for the current team and email the invitee
    in the background. Only owners may invite.
    """
    result = ensure_success(
        invite_team_member(session, team, current_user, invite.email, invite.role.value)
    )

    background_tasks.add_task(
        email_service.send_invitation_email,
        invite.email,
        settings.INVITATIONS_URL,
        invite.role.value,
        team.name,
        current_user.name or current_user.email,
    )
    logger.info("Invitation email scheduled for %s", invite.email)
    return result


# ==================================================================
# Accept / Decline
# ==================================================================
@router.post("/{invitation_id}/accept", response_model=Success)
def accept(
    invitation_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ensure_success(accept_invitation(session, invitation_id, current_user))


@router.post("/{invitation_id}/decline", response_model=Success)
def decline(
    invitation_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ensure_success(decline_invitation(session, invitation_id, current_user))
