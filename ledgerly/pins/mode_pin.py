"""Mode-switch PIN create, validate and update.

The PIN guards switching between the personal and business modes. Every
validation attempt, and every wrong current PIN on update, is recorded in
``pin_attempts``; five attempts inside 15 minutes lock the user out of all
PIN actions until the window passes.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ledgerly.api.exceptions import ConflictError, ForbiddenError, InvalidInputError, RateLimitError
from ledgerly.database.store import Store
from ledgerly.pins.hashing import hash_pin, is_legacy_hash, is_valid_pin_format, verify_pin
from ledgerly.utils.logging import get_logger

logger = get_logger("pins")

MAX_PIN_ATTEMPTS = 5
LOCKOUT_WINDOW = timedelta(minutes=15)
ATTEMPT_ACTION = "pin_validate"

PIN_ACTIONS = ("create", "validate", "update")


def _attempt_identifier(user_id: str) -> str:
    return f"pin_{user_id}"


def _stored_hash(store: Store, user_id: str) -> Optional[str]:
    profile = store.fetch_one("profiles", [("user_id", "==", user_id)])
    return (profile or {}).get("mode_switch_pin_hash") or None


def _save_hash(store: Store, user_id: str, pin_hash: str) -> None:
    store.upsert("profiles", {"user_id": user_id, "mode_switch_pin_hash": pin_hash}, ("user_id",))


def record_attempt(store: Store, user_id: str, now: datetime) -> None:
    store.insert("pin_attempts", {
        "identifier": _attempt_identifier(user_id),
        "action": ATTEMPT_ACTION,
        "created_at": now.isoformat(),
    })


def check_lockout(store: Store, user_id: str, now: datetime) -> None:
    """Raise RateLimitError once the user has used up the attempts in the window."""
    window_start = (now - LOCKOUT_WINDOW).isoformat()
    attempts = store.fetch("pin_attempts", [
        ("identifier", "==", _attempt_identifier(user_id)),
        ("action", "==", ATTEMPT_ACTION),
        ("created_at", ">=", window_start),
    ])
    if len(attempts) >= MAX_PIN_ATTEMPTS:
        logger.warning(f"PIN lockout for user {user_id} ({len(attempts)} attempts)")
        raise RateLimitError(
            "Too many PIN attempts. Wait 15 minutes.",
            retry_after=int(LOCKOUT_WINDOW.total_seconds()),
        )


def _require_pin_format(pin, field: str) -> None:
    if not is_valid_pin_format(pin):
        raise InvalidInputError("PIN must be exactly 4 digits", field=field)


def create_pin(store: Store, user_id: str, pin: str) -> Dict[str, Any]:
    """Set the first PIN for a user.

    Raises:
        InvalidInputError: If the PIN is not 4 digits
        ConflictError: If a PIN is already configured
    """
    _require_pin_format(pin, "pin")
    if _stored_hash(store, user_id):
        raise ConflictError("PIN already configured")

    _save_hash(store, user_id, hash_pin(pin))
    logger.info(f"Mode PIN created for user {user_id}")
    return {"success": True, "message": "PIN created"}


def validate_pin(store: Store, user_id: str, pin: str, now: datetime) -> Dict[str, Any]:
    """Check a PIN, upgrading a legacy SHA-256 hash after a match.

    Returns:
        ``{"has_pin": False}`` when no PIN is set, else
        ``{"has_pin": True, "valid": bool, "message": ...}``
    """
    _require_pin_format(pin, "pin")
    record_attempt(store, user_id, now)

    stored = _stored_hash(store, user_id)
    if not stored:
        return {"has_pin": False}

    is_valid = verify_pin(pin, stored)
    logger.info(f"Mode PIN validation for user {user_id}: {'ok' if is_valid else 'wrong PIN'}")

    if is_valid and is_legacy_hash(stored):
        _save_hash(store, user_id, hash_pin(pin))
        logger.info(f"Upgraded legacy PIN hash for user {user_id}")

    return {"has_pin": True, "valid": is_valid, "message": "PIN correct" if is_valid else "PIN incorrect"}


def update_pin(store: Store, user_id: str, pin: str, new_pin: Optional[str], now: datetime) -> Dict[str, Any]:
    """Replace the PIN after checking the current one.

    Raises:
        InvalidInputError: If either PIN is malformed or no PIN is configured
        ForbiddenError: If the current PIN is wrong
    """
    _require_pin_format(pin, "pin")
    _require_pin_format(new_pin, "new_pin")

    stored = _stored_hash(store, user_id)
    if not stored:
        raise InvalidInputError("No PIN configured", field="pin")

    if not verify_pin(pin, stored):
        record_attempt(store, user_id, now)
        logger.warning(f"Wrong current PIN on update for user {user_id}")
        raise ForbiddenError("Current PIN is incorrect")

    _save_hash(store, user_id, hash_pin(new_pin))
    logger.info(f"Mode PIN updated for user {user_id}")
    return {"success": True, "message": "PIN updated"}


def handle_pin_action(
    store: Store,
    user_id: str,
    action: str,
    pin: str,
    new_pin: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Run one PIN action behind the attempt lockout."""
    now = now or datetime.now(timezone.utc)
    if action not in PIN_ACTIONS:
        raise InvalidInputError(f"Invalid action: {action}", field="action")

    check_lockout(store, user_id, now)

    if action == "create":
        return create_pin(store, user_id, pin)
    if action == "validate":
        return validate_pin(store, user_id, pin, now)
    return update_pin(store, user_id, pin, new_pin, now)
