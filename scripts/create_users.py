#!/usr/bin/env python3
"""
Create a demo law firm and its first staff accounts.
Run once against a fresh database.
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from counsel_intake.core.db import SessionLocal, create_all
from counsel_intake.models.orm import Organization, User
from counsel_intake.auth.security import hash_password

DEMO_USERS = [
    # email, password, role, first, last
    ("admin@demo-firm.local", "admin123", "admin", "Ada", "Admin"),
    ("lawyer@demo-firm.local", "lawyer123", "lawyer", "Lee", "Counsel"),
]


def create_initial_users():
    """Create the demo firm plus an admin and a lawyer"""
    create_all()
    db = SessionLocal()

    try:
        firm = db.scalar(select(Organization).where(Organization.slug == "demo-firm"))
        if not firm:
            firm = Organization(slug="demo-firm", name="Demo Law Firm", active=True)
            db.add(firm)
            db.flush()  # Get the ID
            print("✅ Created organization: demo-firm")

        for email, password, role, first, last in DEMO_USERS:
            if db.scalar(select(User).where(User.email == email)):
                print(f"⚠️  {email} already exists")
                continue
            db.add(
                User(
                    email=email,
                    hashed_password=hash_password(password),
                    first_name=first,
                    last_name=last,
                    role=role,
                    organization_id=firm.id,
                    is_active=True,
                )
            )
            print(f"✅ Created {role} ({email} / {password})")

        db.commit()

        print("\n⚠️  IMPORTANT: Change these passwords in production!")
        print()

    except Exception as e:
        print(f"\n❌ Error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    create_initial_users()
