# routes/teams.py
from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from core.database import get_session
from core.security import get_current_user
from core.team_utils import ensure_success, get_current_team
from models.models import Team, User
from schemas.action_result import Success
from schemas.team_schema import ActivityLogRead, TeamRead, TeamSummary
from services.membership_service import remove_team_member
from services.team_service import list_activity_logs, list_teams_for_user

router = APIRouter(prefix="/teams", tags=["Teams"])


# ==================================================================
#  ✅ CURRENT TEAM (with roster and billing)
# ==================================================================
@router.get("/current", response_model=TeamRead)
def get_team(team: Team = Depends(get_current_team)):
    return TeamRead.from_team(team)


# ==================================================================
#  ✅ ALL TEAMS FOR THE TEAM SWITCHER
# ==================================================================
@router.get("", response_model=List[TeamSummary])
def get_my_teams(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return list_teams_for_user(session, current_user.id)


# ==================================================================
#  ✅ RECENT ACTIVITY
# ==================================================================
@router.get("/activity", response_model=List[ActivityLogRead])
def get_activity(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return list_activity_logs(session, current_user.id)


# ==================================================================
#  ✅ REMOVE MEMBER (owners only)
# ==================================================================
@router.delete("/current/members/{member_id}", response_model=Success)
def delete_member(
    member_id: int,
    team: Team = Depends(get_current_team),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ensure_success(remove_team_member(session, team, current_user, member_id))
