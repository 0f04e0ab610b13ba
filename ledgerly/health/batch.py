"""Batch recomputation of financial health snapshots for all users.

Users are processed one at a time; each user's personal and business modes
are computed within that user's turn. A failure for one user is logged and
recorded, and the batch moves on to the next user.

Usage:
    python -m ledgerly.health.batch
    python -m ledgerly.health.batch --user-id abc123
    python -m ledgerly.health.batch --sqlite --quiet
"""

import argparse
import sys
import time
from datetime import date
from typing import Optional

from dotenv import load_dotenv

from ledgerly.database.store import Store
from ledgerly.health.calculator import calculate_user_health
from ledgerly.health.models import BatchHealthResult, UserHealthResult
from ledgerly.utils.logging import get_logger, setup_logging

logger = get_logger("health.batch")


def calculate_all_users(store: Store, today: Optional[date] = None, verbose: bool = False) -> BatchHealthResult:
    """Compute health snapshots for every user in the store.

    Args:
        store: Data store
        today: End of the lookback window (default: today)
        verbose: Log one line per user at INFO instead of DEBUG

    Returns:
        BatchHealthResult with exactly one entry per user

    Raises:
        StoreError: If the user list itself cannot be read
    """
    users = store.list_users()
    total_users = len(users)
    logger.info(f"Calculating health for {total_users} users")

    results = []
    start_time = time.time()

    for idx, user_row in enumerate(users, 1):
        user_id = user_row["user_id"]
        try:
            result = calculate_user_health(store, user_id, today)
        except Exception as e:
            logger.error(f"[{idx}/{total_users}] Error calculating health for user {user_id}: {e}")
            result = UserHealthResult(user_id=user_id, success=False, error=str(e))
        else:
            log = logger.info if verbose else logger.debug
            log(
                f"[{idx}/{total_users}] User {user_id}: written={result.modes_written} "
                f"skipped={result.modes_skipped}"
            )
        results.append(result)

    succeeded = sum(1 for r in results if r.success)
    elapsed_time = time.time() - start_time
    logger.info(
        f"Health batch completed in {elapsed_time:.1f}s: "
        f"{succeeded} succeeded, {total_users - succeeded} failed"
    )

    return BatchHealthResult(
        processed=total_users,
        succeeded=succeeded,
        failed=total_users - succeeded,
        results=results,
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Recompute financial health snapshots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Recompute for every user
  python -m ledgerly.health.batch

  # Recompute a single user
  python -m ledgerly.health.batch --user-id abc123

  # Use SQLite instead of Firestore
  python -m ledgerly.health.batch --sqlite
        """
    )
    parser.add_argument("--user-id", default=None, help="Only recompute this user")
    parser.add_argument("--sqlite", action="store_true", help="Force use of SQLite even if Firestore is available")
    parser.add_argument("--db-path", default=None, help="SQLite database path")
    parser.add_argument("--date", default=None, help="Compute as of this date (YYYY-MM-DD, default: today)")
    parser.add_argument("--quiet", action="store_true", help="Only log the summary")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging("WARNING" if args.quiet else None)

    from ledgerly.database.db_config import create_store
    store = create_store(force_sqlite=args.sqlite, db_path=args.db_path)
    today = date.fromisoformat(args.date) if args.date else None

    if args.user_id:
        result = calculate_user_health(store, args.user_id, today)
        print(f"User {result.user_id}: written={result.modes_written} skipped={result.modes_skipped}")
        return 0

    batch = calculate_all_users(store, today, verbose=not args.quiet)
    print(f"Processed {batch.processed} users: {batch.succeeded} succeeded, {batch.failed} failed")
    for result in batch.results:
        if not result.success:
            print(f"  ✗ {result.user_id}: {result.error}")
    return 0 if batch.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
