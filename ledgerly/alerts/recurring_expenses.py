"""Reminders for unpaid recurring expenses.

Each recurring expense has a day of the month it falls due. An unpaid expense
whose day passed this month stays overdue for 7 days and then rolls over to
next month. Overdue expenses and those up to ``days_before`` days ahead are
reported.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from ledgerly.alerts.messages import DEFAULT_USER_NAME, RECURRING_EXPENSE_MESSAGES
from ledgerly.alerts.notifier import WebhookNotifier
from ledgerly.database.store import Store
from ledgerly.utils.calculators import add_months, clamp_day, round_money, sum_field, to_number
from ledgerly.utils.formatters import format_brl, render_template
from ledgerly.utils.logging import get_logger

logger = get_logger("alerts.recurring")

DEFAULT_DAYS_BEFORE = 3

OVERDUE_WINDOW_DAYS = 7


def urgency_level(days_until_due: int) -> Dict[str, str]:
    """Urgency label for an expense due in ``days_until_due`` days."""
    if days_until_due < 0:
        return {"level": "overdue", "text": "OVERDUE", "emoji": "🚨"}
    if days_until_due == 0:
        return {"level": "due_today", "text": "DUE TODAY", "emoji": "⏰"}
    if days_until_due == 1:
        return {"level": "due_soon", "text": "DUE TOMORROW", "emoji": "⚠️"}
    if days_until_due <= 3:
        return {"level": "due_soon", "text": f"DUE IN {days_until_due} DAYS", "emoji": "🔔"}
    return {"level": "due_soon", "text": f"DUE IN {days_until_due} DAYS", "emoji": "📅"}


def next_due_date(due_day: int, today: date, overdue_window: int = OVERDUE_WINDOW_DAYS) -> date:
    """This month's due date, or next month's once it is more than ``overdue_window`` days past."""
    due_date = clamp_day(today.year, today.month, due_day)
    if (today - due_date).days > overdue_window:
        next_month = add_months(today.replace(day=1), 1)
        due_date = clamp_day(next_month.year, next_month.month, due_day)
    return due_date


def upcoming_expenses(
    expenses: List[Dict[str, Any]],
    today: date,
    days_before: int = DEFAULT_DAYS_BEFORE,
) -> List[Dict[str, Any]]:
    """Expenses inside the reminder window, most urgent first.

    Each returned row carries ``due_date``, ``days_until_due`` and ``urgency``.
    """
    upcoming = []
    for expense in expenses:
        due_date = next_due_date(int(expense["due_day"]), today)
        days_until_due = (due_date - today).days
        if not -OVERDUE_WINDOW_DAYS <= days_until_due <= days_before:
            continue
        upcoming.append({
            **expense,
            "due_date": due_date.isoformat(),
            "days_until_due": days_until_due,
            "urgency": urgency_level(days_until_due),
        })
    return sorted(upcoming, key=lambda e: e["days_until_due"])


def format_expenses_list(expenses: List[Dict[str, Any]]) -> str:
    lines = []
    for expense in expenses:
        days = expense["days_until_due"]
        when = "TODAY" if days == 0 else "TOMORROW" if days == 1 else f"{days} days"
        lines.append(f"• {expense.get('description')}: {format_brl(to_number(expense.get('amount')))} ({when})")
    return "\n".join(lines)


def build_recurring_payload(
    profile: Dict[str, Any],
    user_email: str,
    expenses: List[Dict[str, Any]],
    today: date,
    days_before: int,
) -> Dict[str, Any]:
    overdue = [e for e in expenses if e["days_until_due"] < 0]
    due_today = [e for e in expenses if e["days_until_due"] == 0]
    due_soon = [e for e in expenses if e["days_until_due"] > 0]

    if overdue:
        alert_type = "recurring_expenses_overdue"
    elif due_today:
        alert_type = "recurring_expenses_due_today"
    else:
        alert_type = "recurring_expenses_due_soon"

    total_amount = sum_field(expenses, "amount")
    user_name = profile.get("full_name") or DEFAULT_USER_NAME
    message_data = {
        "user_name": user_name,
        "count": len(expenses),
        "total_amount": format_brl(total_amount),
        "expenses_list": format_expenses_list(expenses),
        "description": due_today[0].get("description") if due_today else "",
        "amount": format_brl(to_number(due_today[0].get("amount"))) if due_today else "",
    }
    template = RECURRING_EXPENSE_MESSAGES[alert_type]

    return {
        "alert_type": alert_type,
        "user_id": profile["user_id"],
        "user_name": user_name,
        "user_email": user_email,
        "expenses": [
            {
                "description": e.get("description"),
                "amount": to_number(e.get("amount")),
                "due_day": e["due_day"],
                "due_date": e["due_date"],
                "days_until_due": e["days_until_due"],
                "category": e.get("category"),
                "payment_method": e.get("payment_method"),
                "urgency_level": e["urgency"]["level"],
                "urgency_text": e["urgency"]["text"],
            }
            for e in expenses
        ],
        "total_amount": round_money(total_amount),
        "notification_date": today.isoformat(),
        "days_before_notification": days_before,
        "overdue_count": len(overdue),
        "due_today_count": len(due_today),
        "due_soon_count": len(due_soon),
        "title": template["title"],
        "message": render_template(template["message"], message_data),
        "message_chat": render_template(template["chat"], message_data),
    }


def check_recurring_expenses(
    store: Store,
    notifier: WebhookNotifier,
    today: Optional[date] = None,
) -> Dict[str, int]:
    """Send reminders for unpaid recurring expenses to every profile with a webhook.

    Returns:
        ``{"profiles_checked": n, "notifications_sent": m}``

    Raises:
        StoreError: If the profile list cannot be read
    """
    today = today or date.today()
    profiles = [p for p in store.fetch("profiles") if p.get("webhook_url")]
    logger.info(f"Checking recurring expenses for {len(profiles)} profiles")

    sent = 0
    for profile in profiles:
        user_id = profile["user_id"]
        days_before = int(profile.get("notification_days_before") or DEFAULT_DAYS_BEFORE)
        try:
            expenses = store.fetch(
                "recurring_expenses",
                [("user_id", "==", user_id), ("is_paid", "==", False)],
            )
            upcoming = upcoming_expenses(expenses, today, days_before)
            if not upcoming:
                logger.debug(f"No upcoming expenses for user {user_id}")
                continue

            user = store.fetch_one("users", [("user_id", "==", user_id)])
            payload = build_recurring_payload(
                profile, (user or {}).get("email") or "", upcoming, today, days_before
            )
            if notifier.send(profile["webhook_url"], payload):
                logger.info(f"Sent {payload['alert_type']} reminder for user {user_id}")
                sent += 1
        except Exception as e:
            logger.error(f"Error checking recurring expenses for user {user_id}: {e}")

    return {"profiles_checked": len(profiles), "notifications_sent": sent}
