"""Back-office user and subscription listings, and admin promotion."""

import re
from typing import Any, Dict, List

from ledgerly.api.exceptions import InvalidInputError, UserNotFoundError
from ledgerly.database.store import Store
from ledgerly.utils.logging import get_logger

logger = get_logger("admin.users")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SUBSCRIPTION_STATUSES = ("active", "trialing", "canceled", "inactive")


def list_users_with_subscriptions(store: Store) -> List[Dict[str, Any]]:
    """Every user with their subscription status and role.

    Users without a subscription row are reported as ``inactive``.
    """
    users = store.list_users()
    statuses = {s["user_id"]: s.get("status") for s in store.fetch("subscriptions")}
    logger.info(f"Listing {len(users)} users")

    return [
        {
            "id": user["user_id"],
            "email": user.get("email"),
            "created_at": user.get("created_at"),
            "last_sign_in_at": user.get("last_sign_in_at"),
            "subscription_status": statuses.get(user["user_id"]) or "inactive",
            "role": user.get("role") or "user",
            "is_admin": user.get("role") == "admin",
        }
        for user in users
    ]


def list_subscriptions(store: Store) -> Dict[str, Any]:
    """Subscriptions newest first, each with its owner's email, plus counts per status."""
    subscriptions = store.fetch("subscriptions", order_by="updated_at", descending=True)
    emails = {u["user_id"]: u.get("email") for u in store.list_users()}

    rows = [{**s, "user_email": emails.get(s["user_id"]) or "N/A"} for s in subscriptions]
    stats = {"total": len(rows)}
    for status in SUBSCRIPTION_STATUSES:
        stats[status] = sum(1 for s in rows if s.get("status") == status)

    return {"subscriptions": rows, "stats": stats}


def promote_to_admin(store: Store, email: str) -> Dict[str, Any]:
    """Give the user registered under ``email`` the admin role.

    Returns:
        ``{"success": True, "message": ..., "user_id": ...}``; promoting an
        existing admin is not an error

    Raises:
        InvalidInputError: If ``email`` is not an email address
        UserNotFoundError: If no user has that email
    """
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise InvalidInputError("Invalid email format", field="email")

    user = next((u for u in store.list_users() if (u.get("email") or "").lower() == email), None)
    if user is None:
        raise UserNotFoundError(email)

    user_id = user["user_id"]
    if user.get("role") == "admin":
        return {"success": True, "message": "User already has admin role", "user_id": user_id}

    store.update("users", {"role": "admin"}, [("user_id", "==", user_id)])
    logger.info(f"Promoted user {user_id} to admin")
    return {"success": True, "message": f"Admin role granted to {email}", "user_id": user_id}
