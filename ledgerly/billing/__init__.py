"""Billing webhook handling and subscription status."""

from ledgerly.billing.subscriptions import get_subscription_status
from ledgerly.billing.webhook import handle_event, parse_event, verify_signature

__all__ = [
    "get_subscription_status",
    "handle_event",
    "parse_event",
    "verify_signature",
]
