"""Forgotten-PIN reset through a one-time link.

A reset request stores a random token valid for 15 minutes and delivers the
link over the user's notification webhook. Redeeming the token sets the new
PIN and marks the token used.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ledgerly.alerts.messages import DEFAULT_USER_NAME, PIN_RESET_MESSAGE
from ledgerly.alerts.notifier import WebhookNotifier
from ledgerly.api.exceptions import InvalidInputError, UpstreamServiceError
from ledgerly.database.store import Store
from ledgerly.pins.hashing import hash_pin, is_valid_pin_format
from ledgerly.utils.calculators import parse_timestamp
from ledgerly.utils.formatters import render_template
from ledgerly.utils.logging import get_logger

logger = get_logger("pins.reset")

TOKENS_TABLE = "pin_reset_tokens"
TOKEN_TTL = timedelta(minutes=15)
DEFAULT_SITE_URL = "http://localhost:8080"


def get_site_url() -> str:
    return os.getenv("SITE_URL", DEFAULT_SITE_URL).rstrip("/")


def request_pin_reset(
    store: Store,
    user_id: str,
    notifier: WebhookNotifier,
    site_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Create a reset token and send the reset link to the user's webhook.

    Raises:
        InvalidInputError: If the user has no notification webhook configured
        UpstreamServiceError: If the webhook did not accept the message
    """
    now = now or datetime.now(timezone.utc)
    profile = store.fetch_one("profiles", [("user_id", "==", user_id)]) or {}
    webhook_url = profile.get("webhook_url")
    if not webhook_url:
        raise InvalidInputError("No notification webhook configured for PIN reset", field="webhook_url")

    token = str(uuid.uuid4())
    expires_at = now + TOKEN_TTL
    store.insert(TOKENS_TABLE, {
        "token": token,
        "user_id": user_id,
        "expires_at": expires_at.isoformat(),
        "used": False,
        "created_at": now.isoformat(),
    })
    logger.info(f"PIN reset token created for user {user_id}, expires {expires_at.isoformat()}")

    reset_url = f"{site_url or get_site_url()}/profile?reset_token={token}"
    data = {
        "user_name": profile.get("full_name") or DEFAULT_USER_NAME,
        "reset_url": reset_url,
        "expires_at": expires_at.strftime("%Y-%m-%d %H:%M UTC"),
    }
    payload = {
        "alert_type": "pin_reset_requested",
        "user_id": user_id,
        "title": PIN_RESET_MESSAGE["title"],
        "message": render_template(PIN_RESET_MESSAGE["message"], data),
        "reset_url": reset_url,
        "expires_at": expires_at.isoformat(),
    }
    if not notifier.send(webhook_url, payload):
        raise UpstreamServiceError("notification webhook", "PIN reset link could not be delivered")

    return {"success": True, "message": "Reset link sent", "expires_at": expires_at.isoformat()}


def reset_pin(store: Store, token: str, new_pin: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Redeem a reset token and set ``new_pin``.

    Raises:
        InvalidInputError: If the PIN is malformed or the token is unknown, used or expired
    """
    now = now or datetime.now(timezone.utc)
    if not token or not new_pin:
        raise InvalidInputError("Token and new PIN are required")
    if not is_valid_pin_format(new_pin):
        raise InvalidInputError("PIN must be exactly 4 digits", field="new_pin")

    row = store.fetch_one(TOKENS_TABLE, [("token", "==", token), ("used", "==", False)])
    if not row:
        logger.warning("PIN reset with unknown or used token")
        raise InvalidInputError("Invalid or already used token", field="token")

    if parse_timestamp(row["expires_at"]) < now:
        logger.warning(f"Expired PIN reset token for user {row['user_id']}")
        raise InvalidInputError("Token expired. Request a new reset.", field="token")

    store.upsert("profiles", {"user_id": row["user_id"], "mode_switch_pin_hash": hash_pin(new_pin)}, ("user_id",))
    store.update(TOKENS_TABLE, {"used": True}, [("token", "==", token)])
    logger.info(f"Mode PIN reset for user {row['user_id']}")
    return {"success": True, "message": "PIN reset"}
