"""Tests for coupons and dashboard statistics."""

from datetime import datetime, timezone

import pytest

from conftest import add_transaction, add_user
from ledgerly.admin.coupons import create_coupon, validate_coupon
from ledgerly.admin.stats import get_dashboard_stats
from ledgerly.admin.users import list_subscriptions, list_users_with_subscriptions, promote_to_admin
from ledgerly.api.exceptions import ConflictError, InvalidInputError, UserNotFoundError

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def add_coupon(store, code, discount_percent=20, valid_until=None, max_uses=None, current_uses=0, is_active=True):
    store.insert("discount_coupons", {
        "code": code,
        "discount_percent": discount_percent,
        "valid_until": valid_until,
        "max_uses": max_uses,
        "current_uses": current_uses,
        "is_active": is_active,
    })


class TestValidateCoupon:
    """Tests for validate_coupon."""

    def test_valid_coupon_is_case_insensitive(self, store):
        add_coupon(store, "WELCOME20")

        result = validate_coupon(store, "  welcome20 ", NOW)

        assert result == {"valid": True, "discount_percent": 20, "code": "WELCOME20"}

    def test_unknown_coupon(self, store):
        assert validate_coupon(store, "NOPE", NOW) == {"valid": False, "error": "Invalid or unknown coupon"}

    def test_inactive_coupon(self, store):
        add_coupon(store, "OLD", is_active=False)

        assert validate_coupon(store, "OLD", NOW)["error"] == "Invalid or unknown coupon"

    def test_expired_coupon(self, store):
        add_coupon(store, "SUMMER", valid_until="2024-06-01T00:00:00Z")

        assert validate_coupon(store, "SUMMER", NOW) == {"valid": False, "error": "Coupon expired"}

    def test_future_expiry_is_valid(self, store):
        add_coupon(store, "WINTER", valid_until="2024-07-01T00:00:00")

        assert validate_coupon(store, "WINTER", NOW)["valid"] is True

    def test_usage_limit_reached(self, store):
        add_coupon(store, "LIMITED", max_uses=5, current_uses=5)

        assert validate_coupon(store, "LIMITED", NOW) == {"valid": False, "error": "Coupon usage limit reached"}

    def test_malformed_expiry_is_invalid_not_an_error(self, store):
        add_coupon(store, "BROKEN", valid_until="next tuesday")

        assert validate_coupon(store, "BROKEN", NOW) == {"valid": False, "error": "Invalid or unknown coupon"}


class TestCreateCoupon:
    """Tests for create_coupon."""

    def test_creates_normalized_active_coupon(self, store):
        coupon = create_coupon(store, " launch50 ", 50, max_uses=100, created_by="admin_1")

        assert coupon["code"] == "LAUNCH50"
        stored = store.fetch_one("discount_coupons", [("code", "==", "LAUNCH50")])
        assert stored["is_active"] == 1
        assert stored["current_uses"] == 0
        assert stored["created_by"] == "admin_1"
        assert validate_coupon(store, "LAUNCH50", NOW)["valid"] is True

    def test_duplicate_code_conflicts(self, store):
        create_coupon(store, "DUP", 10)

        with pytest.raises(ConflictError):
            create_coupon(store, "dup", 15)

    @pytest.mark.parametrize("kwargs,field", [
        ({"code": "  ", "discount_percent": 10}, "code"),
        ({"code": "X1", "discount_percent": 0}, "discount_percent"),
        ({"code": "X1", "discount_percent": 101}, "discount_percent"),
        ({"code": "X1", "discount_percent": 10, "max_uses": 0}, "max_uses"),
        ({"code": "X1", "discount_percent": 10, "valid_until": "next week"}, "valid_until"),
    ])
    def test_invalid_input(self, store, kwargs, field):
        with pytest.raises(InvalidInputError) as exc_info:
            create_coupon(store, **kwargs)

        assert exc_info.value.field == field
        assert store.fetch("discount_coupons") == []


class TestDashboardStats:
    """Tests for get_dashboard_stats."""

    def test_counts(self, store):
        add_user(store, "a", created_at="2024-06-02", last_sign_in_at="2024-06-14")
        add_user(store, "b", created_at="2024-05-20", last_sign_in_at="2024-06-01")
        add_user(store, "c", created_at="2024-06-10")
        add_user(store, "d", created_at="2023-12-31")
        store.upsert("subscriptions", {"user_id": "a", "status": "active"}, ("user_id",))
        store.upsert("subscriptions", {"user_id": "b", "status": "trialing"}, ("user_id",))
        store.upsert("subscriptions", {"user_id": "c", "status": "canceled"}, ("user_id",))
        add_coupon(store, "ONE")
        add_coupon(store, "TWO", is_active=False)
        add_transaction(store, "a", 1000, "income", "2024-06-01")
        add_transaction(store, "b", 500.5, "income", "2024-05-20")
        add_transaction(store, "b", 700, "income", "2024-05-10")
        add_transaction(store, "a", 300, "expense", "2024-06-05")

        stats = get_dashboard_stats(store, NOW)

        assert stats["users"] == {"total": 4, "active": 2, "new_this_month": 2}
        assert stats["subscriptions"] == {"total": 3, "active": 1, "trialing": 1, "canceled": 1}
        assert stats["coupons"] == {"total": 2, "active": 1}
        assert stats["financial"]["monthly_revenue"] == 1500.5
        assert stats["financial"]["total_transactions"] == 4
        assert stats["financial"]["conversion_rate"] == 25.0

    def test_empty_store(self, store):
        stats = get_dashboard_stats(store, NOW)

        assert stats["users"]["total"] == 0
        assert stats["financial"]["conversion_rate"] == 0


class TestUserListings:
    """Tests for the user and subscription listings."""

    def test_users_carry_subscription_status_and_role(self, store):
        add_user(store, "a", email="ana@example.com", last_sign_in_at="2024-06-14")
        add_user(store, "b", email="bo@example.com", role="admin")
        store.upsert("subscriptions", {"user_id": "a", "status": "trialing"}, ("user_id",))

        users = list_users_with_subscriptions(store)

        assert users == [
            {
                "id": "a",
                "email": "ana@example.com",
                "created_at": "2024-01-10",
                "last_sign_in_at": "2024-06-14",
                "subscription_status": "trialing",
                "role": "user",
                "is_admin": False,
            },
            {
                "id": "b",
                "email": "bo@example.com",
                "created_at": "2024-01-10",
                "last_sign_in_at": None,
                "subscription_status": "inactive",
                "role": "admin",
                "is_admin": True,
            },
        ]

    def test_subscriptions_newest_first_with_emails_and_stats(self, store):
        add_user(store, "a", email="ana@example.com")
        store.upsert("subscriptions", {"user_id": "a", "status": "active", "updated_at": "2024-06-01"}, ("user_id",))
        store.upsert("subscriptions", {"user_id": "ghost", "status": "canceled", "updated_at": "2024-06-10"},
                     ("user_id",))

        result = list_subscriptions(store)

        assert [s["user_id"] for s in result["subscriptions"]] == ["ghost", "a"]
        assert [s["user_email"] for s in result["subscriptions"]] == ["N/A", "ana@example.com"]
        assert result["stats"] == {"total": 2, "active": 1, "trialing": 0, "canceled": 1, "inactive": 0}


class TestPromoteToAdmin:
    """Tests for promote_to_admin."""

    def test_promotes_by_email(self, store):
        add_user(store, "a", email="Ana@Example.com")

        result = promote_to_admin(store, " ana@example.com ")

        assert result["success"] is True
        assert result["user_id"] == "a"
        assert store.fetch_one("users", [("user_id", "==", "a")])["role"] == "admin"

    def test_existing_admin_is_not_an_error(self, store):
        add_user(store, "a", email="ana@example.com", role="admin")

        result = promote_to_admin(store, "ana@example.com")

        assert result == {"success": True, "message": "User already has admin role", "user_id": "a"}

    def test_bad_email_format(self, store):
        with pytest.raises(InvalidInputError) as exc_info:
            promote_to_admin(store, "not-an-email")

        assert exc_info.value.field == "email"

    def test_unknown_email(self, store):
        with pytest.raises(UserNotFoundError):
            promote_to_admin(store, "nobody@example.com")
