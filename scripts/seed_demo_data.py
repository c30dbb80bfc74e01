#!/usr/bin/env python3
"""
Demo Data Seeding Script

Creates one user per role plus a handful of unclaimed leads, then prints
a bearer token for each user so the API can be exercised by hand.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --db data/demo.db --leads 10
"""

import argparse
import random
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config.database import get_database_settings, sqlite_settings
from config.logging_config import configure_logging
from database.lead_store import LeadStore
from lead_workflow import LeadLifecycleEngine, NewLead
from rbac.jwt import create_access_token
from rbac.roles import Role


DEMO_USERS = [
    ("admin", Role.ADMIN, "Ada Admin"),
    ("manager", Role.MANAGER, "Morgan Manager"),
    ("sam", Role.AGENT, "Sam Sales"),
    ("riley", Role.AGENT, "Riley Sales"),
    ("viewer", Role.VIEWER, "Val Viewer"),
    ("designer", Role.DESIGNER, "Dana Designer"),
]

# Sample lead data for realistic demos
SAMPLE_COMPANIES = [
    "Northside Little League",
    "Harbor Brewing Co.",
    "Summit Dental Group",
    "Riverbend 5K",
    "Oakwood High Robotics",
    "Blue Fin Swim Club",
    "Maple Street Church",
    "Copperline Construction",
]
SAMPLE_SOURCES = ["web", "referral", "trade_show", "phone"]


def seed(store: LeadStore, lead_count: int) -> None:
    engine = LeadLifecycleEngine(store)

    existing = {u.username for u in store.list_users()}
    created = []
    for username, role, full_name in DEMO_USERS:
        if username in existing:
            continue
        created.append(store.create_user(username, role, full_name=full_name))

    admin = next(u for u in store.list_users() if u.username == "admin")
    for _ in range(lead_count):
        company = random.choice(SAMPLE_COMPANIES)
        engine.create_lead(
            admin.id,
            NewLead(
                name=f"{company} order",
                company=company,
                source=random.choice(SAMPLE_SOURCES),
                value=float(random.randrange(300, 8000, 50)),
            ),
        )

    print(f"Created {len(created)} users and {lead_count} leads\n")
    print("Bearer tokens:")
    for user in store.list_users():
        role = user.role.value if user.role else "unknown"
        print(f"  {user.username:10s} ({role:8s}) {create_access_token(user.id, user.username)}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo users and leads")
    parser.add_argument("--db", type=Path, help="SQLite file (defaults to DB_* settings)")
    parser.add_argument("--leads", type=int, default=5, help="Number of leads to create")
    args = parser.parse_args()

    configure_logging(level="WARNING")

    settings = sqlite_settings(args.db) if args.db else get_database_settings()
    store = LeadStore.from_settings(settings)
    try:
        seed(store, args.leads)
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
