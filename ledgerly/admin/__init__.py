"""Back-office statistics, user listings and discount coupons."""

from ledgerly.admin.coupons import create_coupon, validate_coupon
from ledgerly.admin.stats import get_dashboard_stats
from ledgerly.admin.users import list_subscriptions, list_users_with_subscriptions, promote_to_admin

__all__ = [
    "create_coupon",
    "get_dashboard_stats",
    "list_subscriptions",
    "list_users_with_subscriptions",
    "promote_to_admin",
    "validate_coupon",
]
