# teamseats_backend/models.py
from typing import Optional, List
from datetime import datetime, timezone
from enum import Enum
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import UniqueConstraint, Index, text


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp; datetime columns reject naive values."""
    return datetime.now(timezone.utc)


# ============================================================
# ENUMS
# ============================================================
class TeamRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class SubscriptionStatus(str, Enum):
    NONE = "none"
    ACTIVE = "active"
    TRIALING = "trialing"
    CANCELED = "canceled"
    UNPAID = "unpaid"


BILLABLE_STATUSES = {SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value}
ENDED_STATUSES = {SubscriptionStatus.CANCELED.value, SubscriptionStatus.UNPAID.value}


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ActivityType(str, Enum):
    CREATE_TEAM = "CREATE_TEAM"
    REMOVE_TEAM_MEMBER = "REMOVE_TEAM_MEMBER"
    INVITE_TEAM_MEMBER = "INVITE_TEAM_MEMBER"
    ACCEPT_INVITATION = "ACCEPT_INVITATION"
    DECLINE_INVITATION = "DECLINE_INVITATION"
    UPDATE_SUBSCRIPTION = "UPDATE_SUBSCRIPTION"


# ============================================================
# USER
# ============================================================
class User(SQLModel, table=True):
    __tablename__ = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True, nullable=False)
    name: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime = Field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    memberships: List["TeamMember"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"order_by": "TeamMember.id"},
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# ============================================================
# TEAM (tenant + billing state)
# ============================================================
class Team(SQLModel, table=True):
    __tablename__ = "team"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Stripe billing mirror
    stripe_customer_id: Optional[str] = Field(default=None, max_length=255, unique=True, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None, max_length=255, index=True)
    stripe_product_id: Optional[str] = Field(default=None, max_length=255)
    plan_name: Optional[str] = Field(default=None, max_length=50)
    subscription_status: str = Field(default=SubscriptionStatus.NONE.value, max_length=20)
    cancel_at_period_end: bool = Field(default=False)
    seats_billed: Optional[int] = Field(default=None, ge=0)
    next_billing_date: Optional[datetime] = None

    # Creation time of the last subscription webhook event applied
    subscription_event_at: Optional[datetime] = None

    members: List["TeamMember"] = Relationship(
        back_populates="team",
        sa_relationship_kwargs={"order_by": "TeamMember.id"},
    )
    invitations: List["Invitation"] = Relationship(back_populates="team")


# ============================================================
# TEAM MEMBER (membership join)
# ============================================================
class TeamMember(SQLModel, table=True):
    __tablename__ = "team_member"
    __table_args__ = (UniqueConstraint("user_id", "team_id", name="uq_team_member_user_team"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    role: str = Field(default=TeamRole.MEMBER.value, max_length=20)
    joined_at: datetime = Field(default_factory=utcnow)

    user: Optional["User"] = Relationship(back_populates="memberships")
    team: Optional["Team"] = Relationship(back_populates="members")


# ============================================================
# INVITATION
# ============================================================
class Invitation(SQLModel, table=True):
    __tablename__ = "invitation"
    __table_args__ = (
        Index(
            "uq_pending_invitation_email_team",
            "email",
            "team_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    email: str = Field(max_length=255, index=True, nullable=False)
    role: str = Field(default=TeamRole.MEMBER.value, max_length=20)
    invited_by: int = Field(foreign_key="user.id")
    invited_at: datetime = Field(default_factory=utcnow)
    status: str = Field(default=InvitationStatus.PENDING.value, max_length=20, index=True)

    team: Optional["Team"] = Relationship(back_populates="invitations")
    inviter: Optional["User"] = Relationship()


# ============================================================
# ACTIVITY LOG (append-only)
# ============================================================
class ActivityLog(SQLModel, table=True):
    __tablename__ = "activity_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    action: str = Field(max_length=50)
    timestamp: datetime = Field(default_factory=utcnow)
    ip_address: Optional[str] = Field(default=None, max_length=45)


__all__ = [
    "User",
    "Team",
    "TeamMember",
    "Invitation",
    "ActivityLog",
    "TeamRole",
    "SubscriptionStatus",
    "InvitationStatus",
    "ActivityType",
    "BILLABLE_STATUSES",
    "ENDED_STATUSES",
    "utcnow",
]
