"""Back-office dashboard statistics."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ledgerly.database.store import Store, table_for
from ledgerly.utils.calculators import parse_date, round_money, safe_divide, sum_field
from ledgerly.utils.logging import get_logger

logger = get_logger("admin.stats")

REVENUE_WINDOW_DAYS = 30


def get_dashboard_stats(store: Store, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Aggregate user, subscription, coupon and revenue counts.

    ``monthly_revenue`` is the income recorded in personal transactions over
    the last 30 days. ``conversion_rate`` is the share of users with an active
    subscription, in percent with one decimal.
    """
    now = now or datetime.now(timezone.utc)
    today = now.date()
    logger.info("Fetching admin dashboard stats")

    users = store.list_users()
    subscriptions = store.fetch("subscriptions")
    coupons = store.fetch("discount_coupons")
    transactions = store.fetch(table_for("personal", "transactions"))

    window_start = (today - timedelta(days=REVENUE_WINDOW_DAYS)).isoformat()
    recent_income = [
        t for t in transactions
        if t.get("type") == "income" and str(t.get("date") or "") >= window_start
    ]

    def _created_this_month(user: Dict[str, Any]) -> bool:
        created = parse_date(user.get("created_at"))
        return created is not None and (created.year, created.month) == (today.year, today.month)

    def _count_status(status: str) -> int:
        return sum(1 for s in subscriptions if s.get("status") == status)

    total_users = len(users)
    active_subscriptions = _count_status("active")

    return {
        "users": {
            "total": total_users,
            "active": sum(1 for u in users if u.get("last_sign_in_at")),
            "new_this_month": sum(1 for u in users if _created_this_month(u)),
        },
        "subscriptions": {
            "total": len(subscriptions),
            "active": active_subscriptions,
            "trialing": _count_status("trialing"),
            "canceled": _count_status("canceled"),
        },
        "coupons": {
            "total": len(coupons),
            "active": sum(1 for c in coupons if c.get("is_active")),
        },
        "financial": {
            "monthly_revenue": round_money(sum_field(recent_income, "amount")),
            "total_transactions": len(transactions),
            "conversion_rate": round_money(safe_divide(active_subscriptions, total_users) * 100, 1),
        },
    }
