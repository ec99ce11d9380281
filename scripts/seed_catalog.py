#!/usr/bin/env python3
"""Seed a demo stylist, services and users, and print bearer tokens for them.

The engine only verifies tokens; this script is the local stand-in for the
auth service that would normally issue them.
"""
import argparse
import sys
from datetime import time
from pathlib import Path

# Ensure the project root is on sys.path so ``salonbook`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from salonbook import create_app
from salonbook.extensions import db
from salonbook.identity import Identity, issue_token
from salonbook.models import Service, Stylist, User

SAMPLE_SERVICES = [
    {"name": "Signature Cut", "price_cents": 5000, "duration_minutes": 45},   # $50.00
    {"name": "Blow Dry", "price_cents": 3000, "duration_minutes": 30},        # $30.00
    {"name": "Full Colour", "price_cents": 12000, "duration_minutes": 90},    # $120.00
    {"name": "Beard Trim", "price_cents": 1800, "duration_minutes": 15},      # $18.00
]


def _get_or_create_user(email: str, name: str, role: str, points: int = 0) -> User:
    user = User.query.filter_by(email=email).first()
    if user:
        print(f"⏭️  {email} already exists (ID: {user.user_id})")
        return user
    user = User(name=name, email=email, role=role, point_balance=points)
    db.session.add(user)
    db.session.flush()
    print(f"👤 Created {role} {email} (ID: {user.user_id})")
    return user


def seed_catalog(customer_points: int) -> None:
    app = create_app()

    with app.app_context():
        db.create_all()

        customer = _get_or_create_user("casey@example.com", "Casey Customer", "customer", customer_points)
        stylist_user = _get_or_create_user("sam@example.com", "Sam Stylist", "stylist")
        admin = _get_or_create_user("alex@example.com", "Alex Admin", "admin")

        stylist = Stylist.query.filter_by(user_id=stylist_user.user_id).first()
        if stylist is None:
            # Off on Sundays and Mondays (0=Sunday).
            stylist = Stylist(user_id=stylist_user.user_id, title="Senior Stylist",
                              work_start=time(9, 0), work_end=time(18, 0), days_off=[0, 1])
            db.session.add(stylist)
            db.session.flush()
            print(f"✂️  Created stylist profile (ID: {stylist.stylist_id})")

        if Service.query.count() == 0:
            db.session.add_all(Service(**data) for data in SAMPLE_SERVICES)
            print(f"📦 Added {len(SAMPLE_SERVICES)} services")
        else:
            print("⏭️  Services already seeded. Skipping...")

        db.session.commit()

        print("\n🔑 Bearer tokens:")
        for user in (customer, stylist_user, admin):
            print(f"  {user.role:<9} {issue_token(Identity(user.user_id, user.role))}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed demo data for local testing.")
    parser.add_argument("--points", type=int, default=150, help="Starting loyalty balance for the demo customer")
    return parser.parse_args()


if __name__ == "__main__":
    seed_catalog(parse_args().points)
