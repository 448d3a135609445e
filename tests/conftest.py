import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_dummy")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from models.models import Invitation, InvitationStatus, Team, TeamMember, TeamRole, User


@pytest.fixture
def engine():
    """In-memory SQLite database with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(session):
    def _make(email: str, name: str = None, **kwargs) -> User:
        user = User(email=email, name=name, **kwargs)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_team(session):
    def _make(name: str = "Acme", **kwargs) -> Team:
        team = Team(name=name, **kwargs)
        session.add(team)
        session.commit()
        session.refresh(team)
        return team

    return _make


@pytest.fixture
def add_member(session):
    def _add(team: Team, user: User, role: str = TeamRole.MEMBER.value) -> TeamMember:
        membership = TeamMember(team_id=team.id, user_id=user.id, role=role)
        session.add(membership)
        session.commit()
        session.refresh(membership)
        return membership

    return _add


@pytest.fixture
def make_invitation(session):
    def _make(
        team: Team,
        email: str,
        inviter: User,
        role: str = TeamRole.MEMBER.value,
        status: str = InvitationStatus.PENDING.value,
    ) -> Invitation:
        invitation = Invitation(
            team_id=team.id, email=email, role=role, invited_by=inviter.id, status=status
        )
        session.add(invitation)
        session.commit()
        session.refresh(invitation)
        return invitation

    return _make


@pytest.fixture
def owner(make_user):
    return make_user("owner@x.com", name="Olivia Owner")


@pytest.fixture
def team(make_team, add_member, owner):
    team = make_team("Acme")
    add_member(team, owner, TeamRole.OWNER.value)
    return team
