"""Subscription status lookups."""

from typing import Any, Dict

from ledgerly.database.store import Store

ACTIVE_STATUSES = {"trialing", "active"}


def get_subscription_status(store: Store, user_id: str) -> Dict[str, Any]:
    """Summarize a user's subscription.

    A user has access while the subscription is trialing or active.

    Returns:
        Dictionary with status, plan_type, is_active, is_trial, period and
        cancellation details. Users without a row get status "none".
    """
    row = store.fetch_one("subscriptions", [("user_id", "==", user_id)])
    if not row:
        return {
            "user_id": user_id,
            "status": "none",
            "plan_type": None,
            "is_active": False,
            "is_trial": False,
            "current_period_end": None,
            "trial_end": None,
            "cancel_at_period_end": False,
        }

    status = row.get("status")
    return {
        "user_id": user_id,
        "status": status,
        "plan_type": row.get("plan_type"),
        "is_active": status in ACTIVE_STATUSES,
        "is_trial": status == "trialing",
        "current_period_end": row.get("current_period_end"),
        "trial_end": row.get("trial_end"),
        "cancel_at_period_end": bool(row.get("cancel_at_period_end")),
    }
