"""
Create a free user and a Pro user, each with one Toronto short-term rental,
plus an admin who can broadcast by-law updates.
Use to log in and try the app without Stripe.

Run from project root:
  python scripts/create_test_users.py

Credentials are printed at the end.
"""
import os
import sys
from datetime import date, timedelta

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models.property import Property, UsageType  # noqa: E402
from app.models.user import Plan, User, UserRole  # noqa: E402
from app.seed import seed_deadline_rules  # noqa: E402
from app.services.auth import get_password_hash  # noqa: E402
from app.services.reminder_job import refresh_property_deadlines  # noqa: E402

PASSWORD = "Password123!"
USERS = [
    ("free@gtacompliance.demo", "Free Landlord", Plan.free, UserRole.landlord),
    ("pro@gtacompliance.demo", "Pro Landlord", Plan.paid, UserRole.landlord),
    # Can broadcast by-law updates; owns no property
    ("ops@gtacompliance.demo", "Compliance Ops", Plan.free, UserRole.admin),
]


def _sample_property(user: User) -> Property:
    return Property(
        user_id=user.id,
        address_line1="100 Queen St W",
        postal_code="M5H 2N2",
        municipality="toronto",
        usage_type=UsageType.short_term,
        is_principal_residence=True,
        license_number="STR-2401-DEMO",
        license_expiry=date.today() + timedelta(days=30),
        mat_number="MAT-DEMO-001",
        annual_nights=120,
        emergency_contact="416-555-0100",
    )


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_deadline_rules(db)
        for email, name, plan, role in USERS:
            user = db.query(User).filter(User.email == email).first()
            if user:
                print(f"User already exists: {email}")
                continue
            user = User(email=email, full_name=name, hashed_password=get_password_hash(PASSWORD), plan=plan, role=role)
            db.add(user)
            db.flush()
            if role == UserRole.admin:
                print(f"Created admin user: {email}")
                continue
            prop = _sample_property(user)
            db.add(prop)
            db.flush()
            refresh_property_deadlines(db, prop)
            print(f"Created {plan.value} user: {email}")
        db.commit()
    finally:
        db.close()

    print("\n--- Test credentials ---")
    for email, _, plan, role in USERS:
        print(f"{role.value:8} {plan.value:5}  {email} / {PASSWORD}")


if __name__ == "__main__":
    main()
