"""SQLite backend for Ledgerly.

This module provides database connection management, schema initialization
and the ``SQLiteStore`` used for local development and tests.
"""

import sqlite3
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ledgerly.database.store import (
    Filter,
    Store,
    StoreError,
    check_column,
    check_filters,
    check_table,
)
from ledgerly.utils.logging import get_logger

logger = get_logger("database.sqlite")

# Default database path
DEFAULT_DB_PATH = os.getenv(
    "LEDGERLY_DB_PATH",
    str(Path(__file__).parent.parent.parent / "data" / "ledgerly.db")
)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """Get a database connection.

    Args:
        db_path: Path to SQLite database file. If None, uses default path.

    Returns:
        sqlite3.Connection: Database connection object.
    """
    if db_path is None:
        db_path = str(DEFAULT_DB_PATH)

    if db_path != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row  # Enable column access by name
    return conn


@contextmanager
def get_db_connection(db_path: Optional[str] = None):
    """Context manager for database connections.

    Usage:
        with get_db_connection() as conn:
            cursor = conn.execute("SELECT * FROM users")
            rows = cursor.fetchall()

    Commits on success, rolls back on any exception.

    Args:
        db_path: Path to SQLite database file. If None, uses default path.

    Yields:
        sqlite3.Connection: Database connection object.
    """
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_schema(db_path: Optional[str] = None) -> None:
    """Initialize the database schema by executing schema.sql.

    Safe to run repeatedly: every statement uses IF NOT EXISTS.

    Args:
        db_path: Path to SQLite database file. If None, uses default path.
    """
    with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
        schema_sql = f.read()

    with get_db_connection(db_path) as conn:
        conn.executescript(schema_sql)


def _where_clause(table: str, filters: Sequence[Filter]) -> tuple:
    clauses = []
    params = []
    for column, op, value in check_filters(table, filters):
        if value is None and op in ("==", "!="):
            clauses.append(f"{column} IS {'NOT ' if op == '!=' else ''}NULL")
            continue
        sql_op = "=" if op == "==" else op
        clauses.append(f"{column} {sql_op} ?")
        params.append(value)
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, tuple(params)


class SQLiteStore(Store):
    """Store backed by a local SQLite file.

    Each call opens its own connection, so the store can be shared freely
    between request handlers and the batch job.
    """

    backend = "sqlite"

    def __init__(self, db_path: Optional[str] = None, init: bool = True):
        self.db_path = db_path or str(DEFAULT_DB_PATH)
        if init:
            init_schema(self.db_path)

    def _execute(self, table: str, query: str, params: tuple = ()) -> tuple:
        try:
            with get_db_connection(self.db_path) as conn:
                cursor = conn.execute(query, params)
                rows = cursor.fetchall() if cursor.description else None
                return rows, cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"SQLite error on {table}: {e}")
            raise StoreError(table, str(e)) from e

    def fetch(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        check_table(table)
        where, params = _where_clause(table, filters)
        query = f"SELECT * FROM {table}{where}"
        if order_by:
            check_column(table, order_by)
            query += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += " LIMIT ?"
            params = params + (int(limit),)
        rows, _ = self._execute(table, query, params)
        return [dict(row) for row in rows]

    def upsert(self, table: str, record: Dict[str, Any], conflict_keys: Sequence[str]) -> None:
        check_table(table)
        columns = [check_column(table, c) for c in record.keys()]
        missing = [k for k in conflict_keys if k not in record]
        if missing:
            raise StoreError(table, f"upsert record lacks conflict keys: {missing}")
        placeholders = ", ".join(["?"] * len(columns))
        updates = [c for c in columns if c not in conflict_keys]
        if updates:
            action = "DO UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in updates)
        else:
            action = "DO NOTHING"
        query = (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT ({', '.join(check_column(table, k) for k in conflict_keys)}) {action}"
        )
        self._execute(table, query, tuple(record.values()))

    def insert(self, table: str, record: Dict[str, Any]) -> None:
        check_table(table)
        columns = [check_column(table, c) for c in record.keys()]
        placeholders = ", ".join(["?"] * len(columns))
        query = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        self._execute(table, query, tuple(record.values()))

    def update(self, table: str, values: Dict[str, Any], filters: Sequence[Filter]) -> int:
        check_table(table)
        assignments = ", ".join(f"{check_column(table, c)} = ?" for c in values.keys())
        where, params = _where_clause(table, filters)
        query = f"UPDATE {table} SET {assignments}{where}"
        _, rowcount = self._execute(table, query, tuple(values.values()) + params)
        return rowcount

    def ping(self) -> None:
        self._execute("users", "SELECT 1")
