# team_schema.py
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime


class MemberRead(BaseModel):
    id: int
    user_id: int
    name: Optional[str] = None
    email: str
    role: str
    joined_at: datetime


class TeamRead(BaseModel):
    id: int
    name: str
    plan_name: Optional[str] = None
    subscription_status: str
    cancel_at_period_end: bool = False
    seats_billed: Optional[int] = None
    next_billing_date: Optional[datetime] = None
    members: List[MemberRead] = []

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_team(cls, team) -> "TeamRead":
        """Build the read model with the roster flattened from memberships."""
        return cls(
            id=team.id,
            name=team.name,
            plan_name=team.plan_name,
            subscription_status=team.subscription_status,
            cancel_at_period_end=team.cancel_at_period_end,
            seats_billed=team.seats_billed,
            next_billing_date=team.next_billing_date,
            members=[
                MemberRead(
                    id=m.id,
                    user_id=m.user_id,
                    name=m.user.name if m.user else None,
                    email=m.user.email if m.user else "",
                    role=m.role,
                    joined_at=m.joined_at,
                )
                for m in team.members
            ],
        )


# Team switcher entry
class TeamSummary(BaseModel):
    team_id: int
    team_name: str
    role: str


class ActivityLogRead(BaseModel):
    id: int
    action: str
    timestamp: datetime
    ip_address: Optional[str] = None
    user_name: Optional[str] = None
