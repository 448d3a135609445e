# ================================================================
# services/team_service.py — Team resolution, seat counting, activity
# ================================================================
import logging
from typing import List, Optional

from sqlmodel import Session, select, func

from models.models import ActivityLog, ActivityType, Team, TeamMember, User, utcnow
from schemas.team_schema import ActivityLogRead, TeamSummary

logger = logging.getLogger(__name__)


# -----------------------
# Seat Counter
# -----------------------
def count_active_members(session: Session, team_id: int) -> int:
    """Number of memberships in the team, all roles included."""
    return session.exec(
        select(func.count(TeamMember.id)).where(TeamMember.team_id == team_id)
    ).one()


# -----------------------
# Team Resolver
# -----------------------
def resolve_current_team(
    session: Session, user_id: int, current_team_id: Optional[int] = None
) -> Optional[Team]:
    """
    Resolve the team a request acts on.

    A `current_team_id` hint wins only if the user actually belongs to that
    team. Otherwise the team of the user's first membership (insertion order)
    is used. Returns None when the user has no memberships at all.
    """
    if current_team_id:
        membership = session.exec(
            select(TeamMember).where(
                TeamMember.user_id == user_id,
                TeamMember.team_id == current_team_id,
            )
        ).first()
        if membership and membership.team:
            return membership.team
        logger.info(
            "Current team hint %s ignored for user %s (not a member)", current_team_id, user_id
        )

    first_membership = session.exec(
        select(TeamMember).where(TeamMember.user_id == user_id).order_by(TeamMember.id)
    ).first()
    return first_membership.team if first_membership else None


def get_membership(session: Session, team_id: int, user_id: int) -> Optional[TeamMember]:
    return session.exec(
        select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
    ).first()


def list_teams_for_user(session: Session, user_id: int) -> List[TeamSummary]:
    memberships = session.exec(
        select(TeamMember).where(TeamMember.user_id == user_id).order_by(TeamMember.id)
    ).all()
    return [
        TeamSummary(team_id=m.team.id, team_name=m.team.name, role=m.role)
        for m in memberships
    ]


# -----------------------
# Activity log
# -----------------------
def log_activity(
    session: Session,
    team_id: int,
    user_id: Optional[int],
    action: ActivityType,
    ip_address: Optional[str] = None,
    commit: bool = True,
) -> ActivityLog:
    entry = ActivityLog(
        team_id=team_id,
        user_id=user_id,
        action=action.value,
        timestamp=utcnow(),
        ip_address=ip_address,
    )
    session.add(entry)
    if commit:
        session.commit()
    return entry


def list_activity_logs(session: Session, user_id: int, limit: int = 10) -> List[ActivityLogRead]:
    rows = session.exec(
        select(ActivityLog, User)
        .join(User, ActivityLog.user_id == User.id, isouter=True)
        .where(ActivityLog.user_id == user_id)
        .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
        .limit(limit)
    ).all()
    return [
        ActivityLogRead(
            id=log.id,
            action=log.action,
            timestamp=log.timestamp,
            ip_address=log.ip_address,
            user_name=user.name if user else None,
        )
        for log, user in rows
    ]
