"""Pytest configuration for Ledgerly tests.

This file adds the project root to sys.path so that imports like
`from ledgerly.health import calculator` work without installing the package,
and provides a SQLite-backed store plus helpers to seed it.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ledgerly.database.db import SQLiteStore
from ledgerly.database.store import table_for

TODAY = date(2024, 6, 15)


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite store with the full schema."""
    return SQLiteStore(str(tmp_path / "ledgerly_test.db"))


def add_user(store, user_id, email=None, role="user", created_at="2024-01-10", last_sign_in_at=None):
    store.upsert("users", {
        "user_id": user_id,
        "email": email or f"{user_id}@example.com",
        "role": role,
        "created_at": created_at,
        "last_sign_in_at": last_sign_in_at,
    }, ("user_id",))


def add_transaction(store, user_id, amount, type_, day, mode="personal", description=None):
    store.insert(table_for(mode, "transactions"), {
        "user_id": user_id,
        "amount": amount,
        "type": type_,
        "date": day,
        "description": description or type_,
    })


def add_asset(store, user_id, value, type_, mode="personal", name="asset", symbol=None, quantity=None):
    store.insert(table_for(mode, "assets"), {
        "user_id": user_id,
        "name": name,
        "type": type_,
        "value": value,
        "symbol": symbol,
        "quantity": quantity,
    })


def add_liability(store, user_id, value, mode="personal", name="loan"):
    store.insert(table_for(mode, "liabilities"), {
        "user_id": user_id,
        "name": name,
        "value": value,
    })


def add_profile(store, user_id, webhook_url=None, monthly_spending_limit=None, full_name=None,
                notification_days_before=3):
    store.upsert("profiles", {
        "user_id": user_id,
        "full_name": full_name,
        "webhook_url": webhook_url,
        "monthly_spending_limit": monthly_spending_limit,
        "notification_days_before": notification_days_before,
    }, ("user_id",))


@pytest.fixture
def seeded_user(store):
    """User with the reference numbers: income 5000, expense 4000, debt 1500, liquid 2400."""
    add_user(store, "user_a")
    add_transaction(store, "user_a", 3000, "income", "2024-01-10")
    add_transaction(store, "user_a", 2000, "income", "2024-05-10")
    add_transaction(store, "user_a", 4000, "expense", "2024-03-01")
    add_asset(store, "user_a", 1000, "Conta Bancária")
    add_asset(store, "user_a", 1400, "Investimento")
    add_asset(store, "user_a", 50000, "Imóvel")
    add_liability(store, "user_a", 1500)
    return "user_a"


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Rate-limit counts are module state; start every test from zero."""
    from ledgerly.api.rate_limit import rate_limit_storage
    rate_limit_storage.reset()
    yield
    rate_limit_storage.reset()
