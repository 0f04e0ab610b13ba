"""Centralized database configuration and detection logic.

This module provides a single source of truth for determining which database
backend to use (SQLite vs Firebase) and builds the ``Store`` that the API and
the batch job receive.

Rules:
1. If USE_SQLITE=true: Force SQLite (local development override)
2. If the Firestore emulator or Firebase credentials are configured: Use Firebase
3. Default: Use SQLite (local development)
"""

import os
from typing import Optional

from ledgerly.database.store import Store


def should_use_firestore() -> bool:
    """Determine if Firestore should be used instead of SQLite.

    Returns:
        True if Firestore should be used, False if SQLite should be used
    """
    # Rule 1: Force SQLite if explicitly requested
    if os.getenv('USE_SQLITE', '').lower() == 'true':
        return False

    # Rule 2: Use Firestore if Firebase is configured
    from ledgerly.database.firestore import has_credentials, use_emulator
    return use_emulator() or has_credentials()


def create_store(force_sqlite: bool = False, db_path: Optional[str] = None) -> Store:
    """Build the store for the configured backend.

    Args:
        force_sqlite: Ignore Firebase configuration and use SQLite
        db_path: SQLite file path (default: LEDGERLY_DB_PATH or data/ledgerly.db)

    Returns:
        SQLiteStore or FirestoreStore
    """
    if not force_sqlite and should_use_firestore():
        from ledgerly.database.firestore import FirestoreStore
        return FirestoreStore()

    from ledgerly.database.db import SQLiteStore
    return SQLiteStore(db_path)


def get_database_info(store: Store) -> dict:
    """Get information about the current database configuration.

    Returns:
        Dictionary with database configuration details
    """
    info = {'backend': store.backend}

    if store.backend == 'firestore':
        info['firebase_mode'] = 'emulator' if os.getenv('FIRESTORE_EMULATOR_HOST') else 'production'
        if info['firebase_mode'] == 'emulator':
            info['emulator_host'] = os.getenv('FIRESTORE_EMULATOR_HOST', 'unknown')
    else:
        info['db_path'] = getattr(store, 'db_path', 'unknown')

    return info
