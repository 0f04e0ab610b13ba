"""Financial health snapshot calculation.

For each user and operating mode this module derives four ratios from the
last 12 months of transactions and the current asset/liability totals:

- Savings rate: (income - expense) / income * 100
- Debt to monthly income: total debt / (income / 12) * 100
- Emergency fund in months: liquid assets / (expense / 12)
- Net worth growth against the previous snapshot, in percent

Snapshots are upserted by ``(user_id, snapshot_date)`` into the mode's own
snapshot table, so recomputing on the same day overwrites.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from ledgerly.api.exceptions import HealthCalculationError
from ledgerly.database.store import OPERATING_MODES, Store, StoreError, table_for
from ledgerly.health.models import (
    LIQUID_ASSET_CATEGORIES,
    HealthSnapshot,
    UserHealthResult,
)
from ledgerly.utils.calculators import (
    round_money,
    safe_divide,
    subtract_months,
    sum_field,
    to_number,
)
from ledgerly.utils.logging import get_logger

logger = get_logger("health")

LOOKBACK_MONTHS = 12

SNAPSHOT_CONFLICT_KEYS = ("user_id", "snapshot_date")

# Traffic-light thresholds shown on the dashboard
HEALTH_THRESHOLDS = {
    "savings_rate_pct": {"good": 20.0, "warning": 10.0, "higher_is_better": True},
    "debt_income_pct": {"good": 30.0, "warning": 50.0, "higher_is_better": False},
    "months_emergency_fund": {"good": 6.0, "warning": 3.0, "higher_is_better": True},
}


def compute_net_worth_growth(current_net_worth: float, previous: Optional[Dict[str, Any]]) -> float:
    """Percent change in net worth against the previous snapshot.

    Returns 0 when there is no previous snapshot or its net worth is not
    positive, so a negative base never flips the sign of the result.
    """
    if not previous:
        return 0.0
    previous_net_worth = to_number(previous.get("total_assets")) - to_number(previous.get("total_debt"))
    if previous_net_worth <= 0:
        return 0.0
    return (current_net_worth - previous_net_worth) / previous_net_worth * 100


def compute_snapshot(
    user_id: str,
    snapshot_date: str,
    transactions: List[Dict[str, Any]],
    assets: List[Dict[str, Any]],
    liabilities: List[Dict[str, Any]],
    previous_snapshot: Optional[Dict[str, Any]] = None,
) -> HealthSnapshot:
    """Compute a health snapshot from already-fetched rows.

    Args:
        user_id: User identifier
        snapshot_date: ISO date the snapshot is recorded under
        transactions: Transactions in the lookback window (amount, type)
        assets: All asset rows (value, type)
        liabilities: All liability rows (value)
        previous_snapshot: Most recent earlier snapshot row, if any

    Returns:
        HealthSnapshot with every numeric field rounded to 2 decimals
    """
    total_income = sum_field((t for t in transactions if t.get("type") == "income"), "amount")
    total_expense = sum_field((t for t in transactions if t.get("type") == "expense"), "amount")

    total_assets = sum_field(assets, "value")
    total_debt = sum_field(liabilities, "value")
    emergency_fund = sum_field(
        (a for a in assets if a.get("type") in LIQUID_ASSET_CATEGORIES), "value"
    )

    monthly_income = total_income / LOOKBACK_MONTHS
    avg_monthly_expense = total_expense / LOOKBACK_MONTHS

    savings_rate_pct = safe_divide(total_income - total_expense, total_income) * 100
    debt_income_pct = safe_divide(total_debt, monthly_income) * 100
    months_emergency_fund = safe_divide(emergency_fund, avg_monthly_expense)
    net_worth_growth = compute_net_worth_growth(total_assets - total_debt, previous_snapshot)

    return HealthSnapshot(
        user_id=user_id,
        snapshot_date=snapshot_date,
        savings_rate_pct=round_money(savings_rate_pct),
        debt_income_pct=round_money(debt_income_pct),
        months_emergency_fund=round_money(months_emergency_fund),
        net_worth_growth_12m=round_money(net_worth_growth),
        total_income=round_money(total_income),
        total_expense=round_money(total_expense),
        total_debt=round_money(total_debt),
        total_assets=round_money(total_assets),
        emergency_fund=round_money(emergency_fund),
        avg_monthly_expense=round_money(avg_monthly_expense),
    )


def calculate_health_for_mode(
    store: Store,
    user_id: str,
    mode: str,
    today: Optional[date] = None,
) -> Optional[HealthSnapshot]:
    """Compute (but do not save) the snapshot for one user and mode.

    Args:
        store: Data store
        user_id: User identifier
        mode: "personal" or "business"
        today: End of the lookback window (default: today)

    Returns:
        HealthSnapshot, or None when the window holds no transactions

    Raises:
        StoreError: If any required table cannot be read
    """
    today = today or date.today()
    start_date = subtract_months(today, LOOKBACK_MONTHS)
    snapshot_date = today.isoformat()

    transactions = store.fetch(
        table_for(mode, "transactions"),
        [
            ("user_id", "==", user_id),
            ("date", ">=", start_date.isoformat()),
            ("date", "<=", snapshot_date),
        ],
    )

    if not transactions:
        logger.info(f"No transactions found for user {user_id} in mode {mode}; skipping snapshot")
        return None

    assets = store.fetch(table_for(mode, "assets"), [("user_id", "==", user_id)])
    liabilities = store.fetch(table_for(mode, "liabilities"), [("user_id", "==", user_id)])

    previous = store.fetch_one(
        table_for(mode, "health_snapshots"),
        [("user_id", "==", user_id), ("snapshot_date", "<", snapshot_date)],
        order_by="snapshot_date",
        descending=True,
    )

    return compute_snapshot(user_id, snapshot_date, transactions, assets, liabilities, previous)


def save_health_snapshot(store: Store, snapshot: HealthSnapshot, mode: str) -> None:
    """Upsert a snapshot into the mode's snapshot table."""
    table = table_for(mode, "health_snapshots")
    store.upsert(table, snapshot.to_row(), SNAPSHOT_CONFLICT_KEYS)
    logger.info(f"Health snapshot saved to {table} for user {snapshot.user_id}")


def calculate_user_health(
    store: Store,
    user_id: str,
    today: Optional[date] = None,
) -> UserHealthResult:
    """Compute and save snapshots for both operating modes of one user.

    Modes run sequentially. A storage failure in one mode is logged and does
    not stop the other mode; once both were attempted the failure is raised.

    Raises:
        HealthCalculationError: If any mode failed to read or write
    """
    logger.info(f"Calculating health for user {user_id}")
    result = UserHealthResult(user_id=user_id, success=True)
    failures = {}

    for mode in OPERATING_MODES:
        try:
            snapshot = calculate_health_for_mode(store, user_id, mode, today)
            if snapshot is None:
                result.modes_skipped.append(mode)
                continue
            save_health_snapshot(store, snapshot, mode)
            result.modes_written.append(mode)
        except StoreError as e:
            logger.error(f"Error calculating {mode} health for user {user_id}: {e}")
            failures[mode] = str(e)

    if failures:
        raise HealthCalculationError(user_id, list(failures.keys()), "; ".join(failures.values()))

    return result


def classify_value(metric: str, value: float) -> str:
    """Return "good", "warning" or "critical" for one ratio."""
    if metric == "net_worth_growth_12m":
        return "good" if value >= 0 else "critical"
    thresholds = HEALTH_THRESHOLDS[metric]
    if thresholds["higher_is_better"]:
        if value >= thresholds["good"]:
            return "good"
        if value >= thresholds["warning"]:
            return "warning"
        return "critical"
    if value <= thresholds["good"]:
        return "good"
    if value <= thresholds["warning"]:
        return "warning"
    return "critical"


def classify_snapshot(snapshot: HealthSnapshot) -> Dict[str, str]:
    """Classify each ratio of a snapshot for dashboard display."""
    return {
        metric: classify_value(metric, getattr(snapshot, metric))
        for metric in (*HEALTH_THRESHOLDS.keys(), "net_worth_growth_12m")
    }


def get_health_history(store: Store, user_id: str, mode: str, limit: int = 12) -> List[HealthSnapshot]:
    """Stored snapshots for a user and mode, newest first."""
    rows = store.fetch(
        table_for(mode, "health_snapshots"),
        [("user_id", "==", user_id)],
        order_by="snapshot_date",
        descending=True,
        limit=limit,
    )
    return [HealthSnapshot.from_row(row) for row in rows]
