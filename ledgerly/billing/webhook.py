"""Billing webhook handling.

Payment-processor events are mirrored onto the ``subscriptions`` table, one
row per user. The processor owns the subscription state machine; each handler
only copies the reported state. Signatures are checked with the Stripe SDK.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import stripe

from ledgerly.api.exceptions import WebhookSignatureError
from ledgerly.database.store import Store
from ledgerly.utils.logging import get_logger

logger = get_logger("billing")

SUBSCRIPTIONS_TABLE = "subscriptions"

# Seconds a signed payload stays acceptable
SIGNATURE_TOLERANCE = 300


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _from_epoch(value: Optional[int]) -> Optional[str]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()


def _decode(payload: bytes) -> str:
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise WebhookSignatureError(f"Payload is not valid UTF-8: {e}")


def verify_signature(
    payload: bytes,
    header: Optional[str],
    secret: str,
    tolerance: int = SIGNATURE_TOLERANCE,
) -> None:
    """Verify a ``Stripe-Signature`` header (``t=<timestamp>,v1=<signature>``).

    Delegates to ``stripe.WebhookSignature.verify_header``: the signature is
    the hex HMAC-SHA256 of ``"<timestamp>.<payload>"`` keyed with the endpoint
    secret, any of several ``v1`` entries may match, and timestamps older than
    ``tolerance`` seconds are rejected.

    Raises:
        WebhookSignatureError: If the header is missing, malformed, stale or does not match
    """
    if not header:
        raise WebhookSignatureError("Missing signature header")

    try:
        stripe.WebhookSignature.verify_header(_decode(payload), header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(f"Signature verification failed: {e}")


def parse_event(payload: bytes, header: Optional[str], secret: Optional[str]) -> Dict[str, Any]:
    """Verify (when a secret is configured) and decode a webhook payload."""
    if secret:
        verify_signature(payload, header, secret)
    else:
        logger.warning("No webhook secret configured - accepting unverified webhook")
    try:
        event = json.loads(_decode(payload))
    except json.JSONDecodeError as e:
        raise WebhookSignatureError(f"Invalid JSON payload: {e}")
    if not isinstance(event, dict) or "type" not in event:
        raise WebhookSignatureError("Payload is not an event")
    return event


def _find_user_by_customer(store: Store, customer_id: Optional[str]) -> Optional[str]:
    if not customer_id:
        return None
    row = store.fetch_one(SUBSCRIPTIONS_TABLE, [("stripe_customer_id", "==", customer_id)])
    return row["user_id"] if row else None


def _plan_type(subscription: Dict[str, Any]) -> str:
    items = (subscription.get("items") or {}).get("data") or []
    interval = None
    if items:
        interval = ((items[0].get("price") or {}).get("recurring") or {}).get("interval")
    return "annual" if interval == "year" else "monthly"


def handle_checkout_completed(store: Store, obj: Dict[str, Any]) -> bool:
    metadata = obj.get("metadata") or {}
    user_id = metadata.get("user_id")
    logger.info(f"Checkout completed for user {user_id}, customer {obj.get('customer')}")

    if not user_id:
        logger.error("No user_id in checkout session metadata")
        return False

    store.upsert(SUBSCRIPTIONS_TABLE, {
        "user_id": user_id,
        "stripe_customer_id": obj.get("customer"),
        "stripe_subscription_id": obj.get("subscription"),
        "status": "trialing",
        "plan_type": metadata.get("plan_type"),
        "updated_at": _now_iso(),
    }, ("user_id",))
    return True


def handle_subscription_changed(store: Store, obj: Dict[str, Any]) -> bool:
    metadata = obj.get("metadata") or {}
    user_id = metadata.get("user_id") or _find_user_by_customer(store, obj.get("customer"))
    logger.info(f"Subscription {obj.get('id')} is {obj.get('status')} for user {user_id}")

    if not user_id:
        logger.error(f"Could not find user for subscription {obj.get('id')}")
        return False

    store.upsert(SUBSCRIPTIONS_TABLE, {
        "user_id": user_id,
        "stripe_customer_id": obj.get("customer"),
        "stripe_subscription_id": obj.get("id"),
        "status": obj.get("status"),
        "plan_type": _plan_type(obj),
        "current_period_start": _from_epoch(obj.get("current_period_start")),
        "current_period_end": _from_epoch(obj.get("current_period_end")),
        "trial_end": _from_epoch(obj.get("trial_end")),
        "cancel_at_period_end": bool(obj.get("cancel_at_period_end")),
        "updated_at": _now_iso(),
    }, ("user_id",))
    return True


def _set_status(store: Store, subscription_id: Optional[str], status: str) -> bool:
    if not subscription_id:
        return False
    updated = store.update(
        SUBSCRIPTIONS_TABLE,
        {"status": status, "updated_at": _now_iso()},
        [("stripe_subscription_id", "==", subscription_id)],
    )
    if not updated:
        logger.warning(f"No subscription row for {subscription_id}; status {status} not recorded")
    return updated > 0


def handle_subscription_deleted(store: Store, obj: Dict[str, Any]) -> bool:
    logger.info(f"Subscription deleted: {obj.get('id')}")
    return _set_status(store, obj.get("id"), "canceled")


def handle_payment_succeeded(store: Store, obj: Dict[str, Any]) -> bool:
    logger.info(f"Payment succeeded for invoice {obj.get('id')}")
    return _set_status(store, obj.get("subscription"), "active")


def handle_payment_failed(store: Store, obj: Dict[str, Any]) -> bool:
    logger.info(f"Payment failed for invoice {obj.get('id')}")
    return _set_status(store, obj.get("subscription"), "past_due")


EVENT_HANDLERS: Dict[str, Callable[[Store, Dict[str, Any]], bool]] = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_changed,
    "customer.subscription.updated": handle_subscription_changed,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_payment_succeeded,
    "invoice.payment_failed": handle_payment_failed,
}


def handle_event(store: Store, event: Dict[str, Any]) -> bool:
    """Dispatch a decoded webhook event to its handler.

    Args:
        store: Data store
        event: Decoded event with ``type`` and ``data.object``

    Returns:
        True if the event changed a subscription row, False if it was ignored

    Raises:
        StoreError: If the subscription row cannot be read or written
    """
    event_type = event.get("type")
    logger.info(f"Processing event {event.get('id')} of type {event_type}")

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        return False

    obj = (event.get("data") or {}).get("object") or {}
    return handler(store, obj)
