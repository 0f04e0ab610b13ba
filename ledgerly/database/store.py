"""Storage interface shared by the SQLite and Firestore backends.

Every privileged operation in Ledgerly talks to the data platform through a
``Store`` instance that is created once at start-up and passed in explicitly.
Filters are ``(column, op, value)`` triples, the same shape Firestore's
``where`` takes, so both backends can honour them directly.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

Filter = Tuple[str, str, Any]

SUPPORTED_OPERATORS = {"==", "!=", "<", "<=", ">", ">="}

IDENTIFIER_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")

# Tables per operating mode
MODE_TABLES = {
    "personal": {
        "transactions": "transactions",
        "assets": "assets",
        "liabilities": "liabilities",
        "health_snapshots": "health_snapshots",
    },
    "business": {
        "transactions": "emp_transactions",
        "assets": "emp_assets",
        "liabilities": "emp_liabilities",
        "health_snapshots": "emp_health_snapshots",
    },
}

OPERATING_MODES = tuple(MODE_TABLES.keys())

SHARED_TABLES = {
    "users",
    "profiles",
    "subscriptions",
    "discount_coupons",
    "recurring_expenses",
    "pin_attempts",
    "pin_reset_tokens",
}

KNOWN_TABLES = SHARED_TABLES | {
    table for tables in MODE_TABLES.values() for table in tables.values()
}


class StoreError(Exception):
    """Raised when the backing data platform rejects or fails a request."""

    def __init__(self, table: str, message: str):
        self.table = table
        self.message = message
        super().__init__(f"{table}: {message}")


def table_for(mode: str, concept: str) -> str:
    """Resolve the physical table for a concept in an operating mode.

    Args:
        mode: "personal" or "business"
        concept: "transactions", "assets", "liabilities" or "health_snapshots"

    Returns:
        Table name, e.g. ``emp_transactions`` for business transactions
    """
    try:
        return MODE_TABLES[mode][concept]
    except KeyError:
        raise ValueError(f"Unknown mode/table combination: {mode}/{concept}")


def check_table(table: str) -> str:
    if table not in KNOWN_TABLES:
        raise StoreError(table, "unknown table")
    return table


def check_column(table: str, column: str) -> str:
    if not IDENTIFIER_PATTERN.match(column):
        raise StoreError(table, f"invalid column name: {column!r}")
    return column


def check_filters(table: str, filters: Iterable[Filter]) -> List[Filter]:
    checked = []
    for column, op, value in filters:
        check_column(table, column)
        if op not in SUPPORTED_OPERATORS:
            raise StoreError(table, f"unsupported operator: {op!r}")
        checked.append((column, op, value))
    return checked


class Store:
    """Interface implemented by every storage backend."""

    backend = "abstract"

    def fetch(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return rows of ``table`` matching all filters."""
        raise NotImplementedError

    def upsert(self, table: str, record: Dict[str, Any], conflict_keys: Sequence[str]) -> None:
        """Insert ``record`` or overwrite the row sharing its ``conflict_keys`` values."""
        raise NotImplementedError

    def insert(self, table: str, record: Dict[str, Any]) -> None:
        raise NotImplementedError

    def update(self, table: str, values: Dict[str, Any], filters: Sequence[Filter]) -> int:
        """Update matching rows and return how many were changed."""
        raise NotImplementedError

    def list_users(self) -> List[Dict[str, Any]]:
        return self.fetch("users", order_by="user_id")

    def fetch_one(self, table: str, filters: Sequence[Filter] = (), **kwargs) -> Optional[Dict[str, Any]]:
        rows = self.fetch(table, filters, limit=1, **kwargs)
        return rows[0] if rows else None

    def ping(self) -> None:
        """Raise StoreError if the backend is unreachable."""
        self.fetch("users", limit=1)
