# ================================================================
# services/membership_service.py — Invitations & team membership
# ================================================================
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from models.models import (
    ActivityType,
    Invitation,
    InvitationStatus,
    Team,
    TeamMember,
    TeamRole,
    User,
    utcnow,
)
from schemas.action_result import (
    ActionResult,
    AlreadyInState,
    NotFound,
    Success,
    Unauthorized,
)
from schemas.invitation_schema import PendingInvitationRead
from services.billing_service import reconcile_seat_quantity
from services.team_service import get_membership, log_activity

logger = logging.getLogger(__name__)


# -----------------------
# Helper: pending invitation addressed to the user
# -----------------------
def _get_pending_invitation(session: Session, invitation_id: int, email: str) -> Optional[Invitation]:
    return session.exec(
        select(Invitation).where(
            Invitation.id == invitation_id,
            Invitation.email == email,
            Invitation.status == InvitationStatus.PENDING.value,
        )
    ).first()


def _find_pending_invitation(session: Session, team_id: int, email: str) -> Optional[Invitation]:
    return session.exec(
        select(Invitation).where(
            Invitation.email == email,
            Invitation.team_id == team_id,
            Invitation.status == InvitationStatus.PENDING.value,
        )
    ).first()


def _is_owner(session: Session, team_id: int, user_id: int) -> bool:
    membership = get_membership(session, team_id, user_id)
    return bool(membership and membership.role == TeamRole.OWNER.value)


# ==================================================================
# Pending invitations for the current user
# ==================================================================
def list_pending_invitations(session: Session, user: User) -> List[PendingInvitationRead]:
    rows = session.exec(
        select(Invitation, Team, User)
        .join(Team, Invitation.team_id == Team.id, isouter=True)
        .join(User, Invitation.invited_by == User.id, isouter=True)
        .where(
            Invitation.email == user.email,
            Invitation.status == InvitationStatus.PENDING.value,
        )
        .order_by(Invitation.id)
    ).all()

    return [
        PendingInvitationRead(
            id=invitation.id,
            team_id=invitation.team_id,
            team_name=team.name if team else "Unknown Team",
            invited_by=inviter.email if inviter else "Unknown User",
            role=invitation.role,
        )
        for invitation, team, inviter in rows
    ]


# ==================================================================
# Accept invitation
# ==================================================================
def accept_invitation(session: Session, invitation_id: int, acting_user: User) -> ActionResult:
    """
    Join the invited team.

    Only a pending invitation addressed to the acting user's email can be
    accepted, so accepting twice is a NotFound. The seat reconciliation that
    follows never turns a successful join into a failure; its outcome is
    reported under `data["billing"]`.
    """
    invitation = _get_pending_invitation(session, invitation_id, acting_user.email)
    if not invitation:
        return NotFound(message="Invitation not found or already processed")

    team_id = invitation.team_id

    if get_membership(session, team_id, acting_user.id):
        invitation.status = InvitationStatus.ACCEPTED.value
        session.add(invitation)
        session.commit()
        return AlreadyInState(
            message="You are already a member of this team",
            data={"invitation_id": invitation_id, "team_id": team_id},
        )

    try:
        session.add(TeamMember(user_id=acting_user.id, team_id=team_id, role=invitation.role))
        session.flush()
    except IntegrityError:
        # Another request created the membership between the check and the insert
        session.rollback()
        logger.warning("⚠️ Concurrent accept of invitation %s by user %s", invitation_id, acting_user.id)
        return AlreadyInState(
            message="You are already a member of this team",
            data={"invitation_id": invitation_id, "team_id": team_id},
        )

    invitation.status = InvitationStatus.ACCEPTED.value
    session.add(invitation)
    log_activity(session, team_id, acting_user.id, ActivityType.ACCEPT_INVITATION, commit=False)
    session.commit()
    logger.info("✅ User %s joined team %s as %s", acting_user.id, team_id, invitation.role)

    billing = reconcile_seat_quantity(session, team_id)

    return Success(
        message="You have successfully joined the team",
        data={
            "invitation_id": invitation_id,
            "team_id": team_id,
            "billing": billing.model_dump(),
        },
    )


# ==================================================================
# Decline invitation
# ==================================================================
def decline_invitation(session: Session, invitation_id: int, acting_user: User) -> ActionResult:
    invitation = _get_pending_invitation(session, invitation_id, acting_user.email)
    if not invitation:
        return NotFound(message="Invitation not found or already processed")

    invitation.status = InvitationStatus.DECLINED.value
    session.add(invitation)
    log_activity(session, invitation.team_id, acting_user.id, ActivityType.DECLINE_INVITATION, commit=False)
    session.commit()

    return Success(
        message="You have declined the team invitation",
        data={"invitation_id": invitation_id, "team_id": invitation.team_id},
    )


# ==================================================================
# Invite a new member (owners only)
# ==================================================================
def invite_team_member(
    session: Session, team: Team, inviter: User, email: str, role: str = TeamRole.MEMBER.value
) -> ActionResult:
    if not _is_owner(session, team.id, inviter.id):
        return Unauthorized(message="Only team owners can invite new members.")

    existing_member = session.exec(
        select(TeamMember)
        .join(User, TeamMember.user_id == User.id)
        .where(TeamMember.team_id == team.id, User.email == email)
    ).first()
    if existing_member:
        return AlreadyInState(message="User is already a member of this team")

    pending = _find_pending_invitation(session, team.id, email)
    if pending:
        return AlreadyInState(
            message="An invitation has already been sent to this email",
            data={"invitation_id": pending.id},
        )

    invitation = Invitation(
        team_id=team.id,
        email=email,
        role=role,
        invited_by=inviter.id,
        invited_at=utcnow(),
        status=InvitationStatus.PENDING.value,
    )
    session.add(invitation)
    log_activity(session, team.id, inviter.id, ActivityType.INVITE_TEAM_MEMBER, commit=False)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        return AlreadyInState(message="An invitation has already been sent to this email")
    session.refresh(invitation)

    logger.info("📨 Invitation %s created for %s (team %s)", invitation.id, email, team.id)
    return Success(
        message="Invitation sent successfully",
        data={"invitation_id": invitation.id, "email": email, "role": role},
    )


# ==================================================================
# Remove member (owners only)
# ==================================================================
def remove_team_member(session: Session, team: Team, acting_user: User, member_id: int) -> ActionResult:
    """Delete a membership by its id and shrink the billed seats."""
    if not _is_owner(session, team.id, acting_user.id):
        return Unauthorized(message="Only team owners can remove members.")

    membership = session.exec(
        select(TeamMember).where(TeamMember.id == member_id, TeamMember.team_id == team.id)
    ).first()
    if not membership:
        return NotFound(message="Team member not found")

    if membership.user_id == acting_user.id:
        return AlreadyInState(message="You cannot remove yourself from the team")

    removed_user_id = membership.user_id
    session.delete(membership)
    log_activity(session, team.id, acting_user.id, ActivityType.REMOVE_TEAM_MEMBER, commit=False)
    session.commit()
    logger.info("🗑️ User %s removed from team %s by %s", removed_user_id, team.id, acting_user.id)

    billing = reconcile_seat_quantity(session, team.id)

    return Success(
        message="Team member removed successfully",
        data={"team_id": team.id, "user_id": removed_user_id, "billing": billing.model_dump()},
    )
