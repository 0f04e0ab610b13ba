"""Storage backends for Ledgerly."""

from ledgerly.database.store import (
    MODE_TABLES,
    OPERATING_MODES,
    Filter,
    Store,
    StoreError,
    table_for,
)

__all__ = [
    "MODE_TABLES",
    "OPERATING_MODES",
    "Filter",
    "Store",
    "StoreError",
    "table_for",
]
