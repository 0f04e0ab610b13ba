"""Firestore backend for Ledgerly (hosted data platform).

Each logical table is a top-level collection. Upserts write a document whose
id is derived from the conflict-key values, so recomputing a snapshot for the
same ``(user_id, snapshot_date)`` overwrites the same document.
"""

import json
import os
from typing import Any, Dict, List, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from ledgerly.database.store import (
    Filter,
    Store,
    StoreError,
    check_column,
    check_filters,
    check_table,
)
from ledgerly.utils.logging import get_logger

logger = get_logger("database.firestore")

_initialized = False
_db = None


def use_emulator() -> bool:
    return (
        os.getenv('FIRESTORE_EMULATOR_HOST') is not None or
        os.getenv('USE_FIREBASE_EMULATOR', '').lower() == 'true'
    )


def has_credentials() -> bool:
    cred_path = os.getenv('GOOGLE_APPLICATION_CREDENTIALS', 'firebase-service-account.json')
    return os.getenv('FIREBASE_SERVICE_ACCOUNT') is not None or os.path.exists(cred_path)


def initialize_firebase() -> None:
    """Initialize the Firebase Admin SDK with emulator or production credentials.

    Credentials come from FIREBASE_SERVICE_ACCOUNT (a JSON string, for
    serverless deployments) or from the GOOGLE_APPLICATION_CREDENTIALS file.
    Calling this more than once is a no-op.

    Raises:
        ValueError: If FIREBASE_SERVICE_ACCOUNT is not valid JSON
    """
    global _initialized
    if _initialized or firebase_admin._apps:
        _initialized = True
        return

    if use_emulator():
        if not os.getenv('FIRESTORE_EMULATOR_HOST'):
            os.environ['FIRESTORE_EMULATOR_HOST'] = '127.0.0.1:8080'
        logger.info(f"Initializing Firebase emulator at {os.getenv('FIRESTORE_EMULATOR_HOST')}")
        project_id = os.getenv('FIREBASE_PROJECT_ID', 'demo-ledgerly')
        firebase_admin.initialize_app(options={'projectId': project_id})
        _initialized = True
        return

    service_account = os.getenv('FIREBASE_SERVICE_ACCOUNT')
    if service_account:
        try:
            service_account_json = json.loads(service_account)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid FIREBASE_SERVICE_ACCOUNT JSON: {e}")
        cred = credentials.Certificate(service_account_json)
        logger.info(f"Using Firebase service account: {service_account_json.get('client_email', 'unknown')}")
    else:
        cred_path = os.getenv('GOOGLE_APPLICATION_CREDENTIALS', 'firebase-service-account.json')
        cred = credentials.Certificate(cred_path)
        logger.info(f"Using Firebase credentials file: {cred_path}")

    logger.warning("Connecting to Firebase PRODUCTION environment")
    firebase_admin.initialize_app(cred)
    _initialized = True


def get_db():
    """Get Firestore client, initializing if needed.

    Returns:
        Firestore client, or None when neither the emulator nor credentials are configured
    """
    global _db
    if _db is None:
        if os.getenv('USE_SQLITE', '').lower() == 'true':
            return None
        if not (use_emulator() or has_credentials()):
            return None
        initialize_firebase()
        _db = firestore.client()
    return _db


def document_id(record: Dict[str, Any], conflict_keys: Sequence[str]) -> str:
    """Build a deterministic document id from conflict-key values."""
    return "__".join(str(record[key]).replace("/", "_") for key in conflict_keys)


class FirestoreStore(Store):
    """Store backed by Cloud Firestore through the Firebase Admin SDK."""

    backend = "firestore"

    def __init__(self, client=None):
        self.client = client if client is not None else get_db()
        if self.client is None:
            raise RuntimeError(
                "Firebase not initialized. Ensure FIREBASE_SERVICE_ACCOUNT is set "
                "or firebase-service-account.json exists."
            )

    def _collection(self, table: str):
        return self.client.collection(check_table(table))

    def _query(self, table: str, filters: Sequence[Filter]):
        query = self._collection(table)
        for column, op, value in check_filters(table, filters):
            query = query.where(column, op, value)
        return query

    def fetch(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._query(table, filters)
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(check_column(table, order_by), direction=direction)
        if limit is not None:
            query = query.limit(int(limit))
        try:
            return [{"id": doc.id, **doc.to_dict()} for doc in query.stream()]
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore error reading {table}: {e}")
            raise StoreError(table, str(e)) from e

    def upsert(self, table: str, record: Dict[str, Any], conflict_keys: Sequence[str]) -> None:
        missing = [k for k in conflict_keys if k not in record]
        if missing:
            raise StoreError(table, f"upsert record lacks conflict keys: {missing}")
        doc_ref = self._collection(table).document(document_id(record, conflict_keys))
        try:
            doc_ref.set(record, merge=True)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore error writing {table}: {e}")
            raise StoreError(table, str(e)) from e

    def insert(self, table: str, record: Dict[str, Any]) -> None:
        try:
            self._collection(table).document().set(record)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore error writing {table}: {e}")
            raise StoreError(table, str(e)) from e

    def _matching_refs(self, table: str, filters: Sequence[Filter]):
        # Rows read from Firestore carry their document id as "id"
        if len(filters) == 1 and filters[0][0] == "id" and filters[0][1] == "==":
            return [self._collection(table).document(str(filters[0][2]))]
        return [doc.reference for doc in self._query(table, filters).stream()]

    def update(self, table: str, values: Dict[str, Any], filters: Sequence[Filter]) -> int:
        updated = 0
        try:
            for ref in self._matching_refs(table, filters):
                ref.update(values)
                updated += 1
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore error updating {table}: {e}")
            raise StoreError(table, str(e)) from e
        return updated

    def list_users(self) -> List[Dict[str, Any]]:
        try:
            return [
                {'user_id': doc.id, **doc.to_dict()}
                for doc in self._collection('users').stream()
            ]
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore error listing users: {e}")
            raise StoreError('users', str(e)) from e
