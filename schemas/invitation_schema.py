from pydantic import BaseModel, EmailStr, Field

from models.models import TeamRole


# ============================================================
# ✅ Create Invitation (input)
# ============================================================
class InvitationCreate(BaseModel):
    email: EmailStr
    role: TeamRole = TeamRole.MEMBER
    # team_id and invited_by are set server-side from the current team / user


# ============================================================
# ✅ Pending invitation as shown to the invitee
# ============================================================
class PendingInvitationRead(BaseModel):
    id: int
    team_id: int
    team_name: str = Field(default="Unknown Team")
    invited_by: str = Field(default="Unknown User")
    role: str
