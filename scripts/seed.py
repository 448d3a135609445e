# scripts/seed.py

import os
import sys
import argparse

from dotenv import load_dotenv
from sqlmodel import Session, select

# Ensure root path for relative imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

import stripe  # noqa: E402

from core.database import engine, create_db_and_tables  # noqa: E402
from models.models import ActivityType, Team, TeamMember, TeamRole, User  # noqa: E402
from services.team_service import log_activity  # noqa: E402

# Per-seat products: (name, description, unit amount in cents)
SEAT_PLANS = [
    ("Base", "Base subscription plan with per-seat pricing", 800),
    ("Plus", "Plus subscription plan with per-seat pricing", 1200),
]


def create_stripe_products():
    """Create the per-seat Stripe products and monthly prices."""
    print("💳 Creating Stripe products and prices...")
    stripe.api_key = os.getenv("STRIPE_SECRET_KEY")

    for name, description, unit_amount in SEAT_PLANS:
        product = stripe.Product.create(name=name, description=description)
        stripe.Price.create(
            product=product.id,
            unit_amount=unit_amount,
            currency="usd",
            recurring={
                "interval": "month",
                "trial_period_days": 7,
                "usage_type": "licensed",
            },
        )
        print(f"✅ Created {name} plan ({product.id})")


def seed_dev_data():
    """Seed a demo team owned by test@test.com."""
    print("🌱 Seeding development data...")
    create_db_and_tables()

    with Session(engine) as session:
        user = session.exec(select(User).where(User.email == "test@test.com")).first()
        if not user:
            user = User(email="test@test.com", name="Test Owner")
            session.add(user)
            session.commit()
            session.refresh(user)
            print("✅ Initial user created.")

        team = session.exec(select(Team).where(Team.name == "Test Team")).first()
        if not team:
            team = Team(name="Test Team")
            session.add(team)
            session.commit()
            session.refresh(team)
            session.add(TeamMember(user_id=user.id, team_id=team.id, role=TeamRole.OWNER.value))
            log_activity(session, team.id, user.id, ActivityType.CREATE_TEAM, commit=False)
            session.commit()
            print("✅ Created Test Team")

    print("🌱 Development data seeding complete.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the TeamSeats database.")
    parser.add_argument(
        "--with-stripe",
        action="store_true",
        help="Also create the per-seat products and prices in Stripe",
    )
    args = parser.parse_args()

    seed_dev_data()
    if args.with_stripe:
        create_stripe_products()
