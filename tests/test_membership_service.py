from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from models.models import ActivityLog, Invitation, InvitationStatus, TeamMember, TeamRole
from schemas.action_result import (
    AlreadyInState,
    ExternalServiceFailure,
    NotFound,
    Success,
    Unauthorized,
)
from services.membership_service import (
    accept_invitation,
    decline_invitation,
    invite_team_member,
    list_pending_invitations,
    remove_team_member,
)


@pytest.fixture
def mock_reconcile():
    with patch("services.membership_service.reconcile_seat_quantity") as reconcile:
        reconcile.return_value = Success(data={"quantity": 2})
        yield reconcile


@pytest.fixture
def invitee(make_user):
    return make_user("a@x.com", name="Ada", id=5)


def _memberships(session, team_id):
    return session.exec(select(TeamMember).where(TeamMember.team_id == team_id)).all()


def _actions(session, team_id):
    return session.exec(
        select(ActivityLog.action).where(ActivityLog.team_id == team_id).order_by(ActivityLog.id)
    ).all()


class TestAcceptInvitation:
    """Joining a team through a pending invitation."""

    def test_accept_creates_membership_and_reconciles(
        self, session, team, owner, invitee, make_invitation, mock_reconcile
    ):
        invitation = make_invitation(team, "a@x.com", owner)

        result = accept_invitation(session, invitation.id, invitee)

        assert isinstance(result, Success)
        membership = [m for m in _memberships(session, team.id) if m.user_id == 5]
        assert len(membership) == 1
        assert membership[0].role == TeamRole.MEMBER.value
        session.refresh(invitation)
        assert invitation.status == InvitationStatus.ACCEPTED.value
        assert _actions(session, team.id) == ["ACCEPT_INVITATION"]
        mock_reconcile.assert_called_once_with(session, team.id)
        assert result.data["billing"] == {"kind": "success", "message": None, "data": {"quantity": 2}}

    def test_accept_uses_invited_role(
        self, session, team, owner, invitee, make_invitation, mock_reconcile
    ):
        invitation = make_invitation(team, "a@x.com", owner, role=TeamRole.OWNER.value)

        accept_invitation(session, invitation.id, invitee)

        membership = [m for m in _memberships(session, team.id) if m.user_id == invitee.id]
        assert membership[0].role == TeamRole.OWNER.value

    def test_accept_twice_is_not_found(
        self, session, team, owner, invitee, make_invitation, mock_reconcile
    ):
        invitation = make_invitation(team, "a@x.com", owner)
        accept_invitation(session, invitation.id, invitee)

        result = accept_invitation(session, invitation.id, invitee)

        assert isinstance(result, NotFound)
        assert len(_memberships(session, team.id)) == 2
        assert mock_reconcile.call_count == 1

    def test_declined_invitation_cannot_be_accepted(
        self, session, team, owner, invitee, make_invitation, mock_reconcile
    ):
        invitation = make_invitation(
            team, "a@x.com", owner, status=InvitationStatus.DECLINED.value
        )

        result = accept_invitation(session, invitation.id, invitee)

        assert isinstance(result, NotFound)
        mock_reconcile.assert_not_called()

    def test_invitation_for_other_email_is_not_found(
        self, session, team, owner, make_user, make_invitation, mock_reconcile
    ):
        invitation = make_invitation(team, "a@x.com", owner)
        stranger = make_user("b@x.com")

        result = accept_invitation(session, invitation.id, stranger)

        assert isinstance(result, NotFound)
        session.refresh(invitation)
        assert invitation.status == InvitationStatus.PENDING.value

    def test_missing_invitation(self, session, invitee, mock_reconcile):
        assert isinstance(accept_invitation(session, 999, invitee), NotFound)

    def test_existing_member_gets_no_duplicate(
        self, session, team, owner, invitee, add_member, make_invitation, mock_reconcile
    ):
        add_member(team, invitee)
        invitation = make_invitation(team, "a@x.com", owner)

        result = accept_invitation(session, invitation.id, invitee)

        assert isinstance(result, AlreadyInState)
        assert len(_memberships(session, team.id)) == 2
        session.refresh(invitation)
        assert invitation.status == InvitationStatus.ACCEPTED.value
        mock_reconcile.assert_not_called()

    def test_billing_failure_does_not_undo_join(
        self, session, team, owner, invitee, make_invitation, mock_reconcile
    ):
        mock_reconcile.return_value = ExternalServiceFailure(
            reason="Failed to update subscription quantity"
        )
        invitation = make_invitation(team, "a@x.com", owner)

        result = accept_invitation(session, invitation.id, invitee)

        assert isinstance(result, Success)
        assert result.data["billing"]["kind"] == "external_service_failure"
        assert len(_memberships(session, team.id)) == 2

    def test_concurrent_accept_stopped_by_unique_membership(
        self, session, team, owner, invitee, add_member, make_invitation, mock_reconcile
    ):
        add_member(team, invitee)
        invitation = make_invitation(team, "a@x.com", owner)

        # The membership check misses the row another request just inserted
        with patch("services.membership_service.get_membership", return_value=None):
            result = accept_invitation(session, invitation.id, invitee)

        assert isinstance(result, AlreadyInState)
        assert [m.user_id for m in _memberships(session, team.id)].count(invitee.id) == 1
        assert _actions(session, team.id) == []
        mock_reconcile.assert_not_called()


class TestDeclineInvitation:
    def test_decline_marks_invitation_only(
        self, session, team, owner, invitee, make_invitation, mock_reconcile
    ):
        invitation = make_invitation(team, "a@x.com", owner)

        result = decline_invitation(session, invitation.id, invitee)

        assert isinstance(result, Success)
        session.refresh(invitation)
        assert invitation.status == InvitationStatus.DECLINED.value
        assert len(_memberships(session, team.id)) == 1
        assert _actions(session, team.id) == ["DECLINE_INVITATION"]
        mock_reconcile.assert_not_called()

    def test_decline_after_accept_is_not_found(
        self, session, team, owner, invitee, make_invitation, mock_reconcile
    ):
        invitation = make_invitation(team, "a@x.com", owner)
        accept_invitation(session, invitation.id, invitee)

        assert isinstance(decline_invitation(session, invitation.id, invitee), NotFound)


class TestListPendingInvitations:
    def test_lists_pending_for_email_with_team_and_inviter(
        self, session, team, owner, invitee, make_team, make_invitation
    ):
        make_invitation(team, "a@x.com", owner)
        make_invitation(make_team("Other"), "a@x.com", owner, status=InvitationStatus.DECLINED.value)
        make_invitation(team, "someone@x.com", owner)

        pending = list_pending_invitations(session, invitee)

        assert len(pending) == 1
        assert pending[0].team_name == "Acme"
        assert pending[0].invited_by == "owner@x.com"
        assert pending[0].role == "member"


class TestInviteTeamMember:
    def test_owner_invites(self, session, team, owner):
        result = invite_team_member(session, team, owner, "new@x.com")

        assert isinstance(result, Success)
        invitation = session.get(Invitation, result.data["invitation_id"])
        assert invitation.status == InvitationStatus.PENDING.value
        assert invitation.invited_by == owner.id
        assert _actions(session, team.id) == ["INVITE_TEAM_MEMBER"]

    def test_member_cannot_invite(self, session, team, make_user, add_member):
        member = make_user("m@x.com")
        add_member(team, member)

        result = invite_team_member(session, team, member, "new@x.com")

        assert isinstance(result, Unauthorized)
        assert session.exec(select(Invitation)).all() == []

    def test_existing_member_not_invited(self, session, team, owner, invitee, add_member):
        add_member(team, invitee)

        assert isinstance(invite_team_member(session, team, owner, "a@x.com"), AlreadyInState)

    def test_duplicate_pending_invitation(self, session, team, owner):
        invite_team_member(session, team, owner, "new@x.com")

        result = invite_team_member(session, team, owner, "new@x.com")

        assert isinstance(result, AlreadyInState)
        assert len(session.exec(select(Invitation)).all()) == 1

    def test_reinvite_after_decline(self, session, team, owner, make_invitation):
        make_invitation(team, "new@x.com", owner, status=InvitationStatus.DECLINED.value)

        assert isinstance(invite_team_member(session, team, owner, "new@x.com"), Success)

    def test_second_pending_row_rejected_by_database(self, session, team, owner, make_invitation):
        make_invitation(team, "new@x.com", owner)

        with pytest.raises(IntegrityError):
            make_invitation(team, "new@x.com", owner)
        session.rollback()

        assert len(session.exec(select(Invitation)).all()) == 1

    def test_concurrent_invite_stopped_by_pending_index(self, session, team, owner, make_invitation):
        make_invitation(team, "new@x.com", owner)

        # The pending check misses the invitation another request just created
        with patch("services.membership_service._find_pending_invitation", return_value=None):
            result = invite_team_member(session, team, owner, "new@x.com")

        assert isinstance(result, AlreadyInState)
        assert len(session.exec(select(Invitation)).all()) == 1
        assert _actions(session, team.id) == []


class TestRemoveTeamMember:
    def test_owner_removes_member(
        self, session, team, owner, invitee, add_member, mock_reconcile
    ):
        membership = add_member(team, invitee)

        result = remove_team_member(session, team, owner, membership.id)

        assert isinstance(result, Success)
        assert [m.user_id for m in _memberships(session, team.id)] == [owner.id]
        assert _actions(session, team.id) == ["REMOVE_TEAM_MEMBER"]
        mock_reconcile.assert_called_once_with(session, team.id)

    def test_member_cannot_remove(
        self, session, team, owner, invitee, make_user, add_member, mock_reconcile
    ):
        add_member(team, invitee)
        other = add_member(team, make_user("b@x.com"))

        result = remove_team_member(session, team, invitee, other.id)

        assert isinstance(result, Unauthorized)
        assert len(_memberships(session, team.id)) == 3
        mock_reconcile.assert_not_called()

    def test_owner_cannot_remove_self(self, session, team, owner, mock_reconcile):
        own = _memberships(session, team.id)[0]

        result = remove_team_member(session, team, owner, own.id)

        assert isinstance(result, AlreadyInState)
        assert len(_memberships(session, team.id)) == 1

    def test_membership_of_other_team(
        self, session, team, owner, invitee, make_team, add_member, mock_reconcile
    ):
        foreign = add_member(make_team("Other"), invitee)

        result = remove_team_member(session, team, owner, foreign.id)

        assert isinstance(result, NotFound)
        mock_reconcile.assert_not_called()
