"""Seed a local SQLite database with demo users for manual testing.

Creates one regular user and one admin, each with a year of personal and
business transactions, a few assets (including crypto) and liabilities, a
profile with a spending limit and some recurring expenses.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --db-path /tmp/ledgerly.db
"""

import argparse
import random
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ledgerly.database.db import SQLiteStore
from ledgerly.database.store import OPERATING_MODES, table_for

DEMO_USERS = [
    {"user_id": "demo_user", "email": "demo@ledgerly.local", "role": "user", "full_name": "Demo User"},
    {"user_id": "demo_admin", "email": "admin@ledgerly.local", "role": "admin", "full_name": "Demo Admin"},
]

DEMO_ASSETS = [
    {"name": "Checking account", "type": "Conta Bancária", "value": 8500.0},
    {"name": "Index fund", "type": "Investimento", "value": 22000.0},
    {"name": "Bitcoin", "type": "Cripto", "value": 3000.0, "symbol": "BTC", "quantity": 0.01},
    {"name": "Car", "type": "Veículo", "value": 45000.0},
]

DEMO_LIABILITIES = [
    {"name": "Car loan", "value": 18000.0},
    {"name": "Credit card", "value": 2300.0},
]

DEMO_RECURRING = [
    {"description": "Rent", "amount": 2200.0, "due_day": 5, "category": "Housing", "payment_method": "pix"},
    {"description": "Internet", "amount": 120.0, "due_day": 15, "category": "Utilities", "payment_method": "card"},
    {"description": "Gym", "amount": 99.9, "due_day": 28, "category": "Health", "payment_method": "card"},
]


def seed(db_path: Optional[str] = None, seed_value: int = 42) -> None:
    rng = random.Random(seed_value)
    store = SQLiteStore(db_path)
    today = date.today()

    for user in DEMO_USERS:
        user_id = user["user_id"]
        print(f"Seeding {user_id}...")
        store.upsert("users", {
            "user_id": user_id,
            "email": user["email"],
            "role": user["role"],
            "created_at": today.isoformat(),
            "last_sign_in_at": today.isoformat(),
        }, ("user_id",))
        store.upsert("profiles", {
            "user_id": user_id,
            "full_name": user["full_name"],
            "monthly_spending_limit": 6000.0,
            "notification_days_before": 3,
        }, ("user_id",))

        for mode in OPERATING_MODES:
            for days_ago in range(0, 360, 15):
                day = (today - timedelta(days=days_ago)).isoformat()
                store.insert(table_for(mode, "transactions"), {
                    "user_id": user_id, "amount": round(rng.uniform(4000, 6000), 2),
                    "type": "income", "date": day, "description": "Salary", "category": "Income",
                })
                store.insert(table_for(mode, "transactions"), {
                    "user_id": user_id, "amount": round(rng.uniform(2500, 4500), 2),
                    "type": "expense", "date": day, "description": "Groceries", "category": "Food",
                })
            for asset in DEMO_ASSETS:
                store.insert(table_for(mode, "assets"), {"user_id": user_id, **asset})
            for liability in DEMO_LIABILITIES:
                store.insert(table_for(mode, "liabilities"), {"user_id": user_id, **liability})

        for expense in DEMO_RECURRING:
            store.insert("recurring_expenses", {"user_id": user_id, "is_paid": False, **expense})

    print(f"Seeded {len(DEMO_USERS)} users into {store.db_path}")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data into SQLite")
    parser.add_argument("--db-path", default=None, help="SQLite database path")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()
    seed(args.db_path, args.seed)


if __name__ == "__main__":
    main()
