"""Monthly spending-limit alerts."""

from datetime import date
from typing import Any, Dict, List, Optional

from ledgerly.alerts.messages import DEFAULT_USER_NAME, SPENDING_LIMIT_MESSAGES
from ledgerly.alerts.notifier import WebhookNotifier
from ledgerly.database.store import Store, table_for
from ledgerly.utils.calculators import add_months, round_money, sum_field, to_number
from ledgerly.utils.formatters import format_brl, render_template
from ledgerly.utils.logging import get_logger

logger = get_logger("alerts.spending")


def classify_spending(total_spent: float, limit: float) -> Optional[str]:
    """Alert type for a month's spending, or None below 75% of the limit."""
    if limit <= 0:
        return None
    if total_spent > limit:
        return "spending_limit_exceeded"
    percent_used = total_spent / limit * 100
    if percent_used >= 90:
        return "spending_limit_warning_90"
    if percent_used >= 75:
        return "spending_limit_warning_75"
    return None


def profiles_with_limits(store: Store) -> List[Dict[str, Any]]:
    return [
        p for p in store.fetch("profiles")
        if p.get("webhook_url") and p.get("monthly_spending_limit") is not None
    ]


def monthly_expenses(store: Store, user_id: str, today: date, mode: str = "business") -> float:
    """Sum of expense transactions in ``today``'s calendar month."""
    month_start = today.replace(day=1)
    next_month = add_months(month_start, 1)
    rows = store.fetch(
        table_for(mode, "transactions"),
        [
            ("user_id", "==", user_id),
            ("type", "==", "expense"),
            ("date", ">=", month_start.isoformat()),
            ("date", "<", next_month.isoformat()),
        ],
    )
    return sum_field(rows, "amount")


def build_spending_payload(
    profile: Dict[str, Any],
    user_email: str,
    alert_type: str,
    total_spent: float,
    limit: float,
    month: str,
) -> Dict[str, Any]:
    percent_used = total_spent / limit * 100
    exceeded_amount = max(total_spent - limit, 0.0)
    remaining_amount = max(limit - total_spent, 0.0)
    user_name = profile.get("full_name") or DEFAULT_USER_NAME

    message_data = {
        "user_name": user_name,
        "total_spent": format_brl(total_spent),
        "spending_limit": format_brl(limit),
        "exceeded_amount": format_brl(exceeded_amount),
        "exceeded_percent": f"{percent_used - 100:.1f}",
        "remaining_amount": format_brl(remaining_amount),
        "percent_used": f"{percent_used:.1f}",
        "month": month,
    }
    template = SPENDING_LIMIT_MESSAGES[alert_type]

    return {
        "alert_type": alert_type,
        "user_id": profile["user_id"],
        "user_name": user_name,
        "user_email": user_email,
        "month": month,
        "total_spent": round_money(total_spent),
        "spending_limit": round_money(limit),
        "exceeded_amount": round_money(exceeded_amount),
        "remaining_amount": round_money(remaining_amount),
        "percent_used": round_money(percent_used, 1),
        "title": template["title"],
        "message": render_template(template["message"], message_data),
        "message_chat": render_template(template["chat"], message_data),
    }


def _user_email(store: Store, user_id: str) -> str:
    user = store.fetch_one("users", [("user_id", "==", user_id)])
    return (user or {}).get("email") or ""


def check_spending_limits(
    store: Store,
    notifier: WebhookNotifier,
    today: Optional[date] = None,
    mode: str = "business",
) -> Dict[str, int]:
    """Notify every profile whose month-to-date spending crossed a threshold.

    Errors for one profile are logged and the check moves on.

    Returns:
        ``{"profiles_checked": n, "notifications_sent": m}``

    Raises:
        StoreError: If the profile list cannot be read
    """
    today = today or date.today()
    month = today.strftime("%Y-%m")
    profiles = profiles_with_limits(store)
    logger.info(f"Checking spending limits for {len(profiles)} profiles ({month})")

    sent = 0
    for profile in profiles:
        user_id = profile["user_id"]
        try:
            limit = to_number(profile["monthly_spending_limit"])
            total_spent = monthly_expenses(store, user_id, today, mode)
            alert_type = classify_spending(total_spent, limit)
            logger.debug(f"User {user_id}: spent {total_spent:.2f} of {limit:.2f} -> {alert_type}")
            if alert_type is None:
                continue

            payload = build_spending_payload(
                profile, _user_email(store, user_id), alert_type, total_spent, limit, month
            )
            if notifier.send(profile["webhook_url"], payload):
                logger.info(f"Sent {alert_type} alert for user {user_id}")
                sent += 1
        except Exception as e:
            logger.error(f"Error checking spending limit for user {user_id}: {e}")

    return {"profiles_checked": len(profiles), "notifications_sent": sent}
