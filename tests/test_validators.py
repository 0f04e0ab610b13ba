"""Tests for API validation utilities."""

import pytest

from ledgerly.api.validators import (
    validate_coupon_code,
    validate_discount_percent,
    validate_limit,
    validate_mode,
    validate_symbols,
    validate_user_id,
)


class TestValidateUserID:
    """Tests for user_id validation."""

    def test_valid_user_id(self):
        """Test valid user_id formats."""
        assert validate_user_id("user_001")[0] is True
        assert validate_user_id("Xk3pQ9vLm2R7sT1uW4yZ6aB8cD0e")[0] is True
        assert validate_user_id("demo-user")[0] is True

    def test_invalid_user_id_empty(self):
        is_valid, error_msg = validate_user_id("")
        assert is_valid is False
        assert "required" in error_msg.lower()

    @pytest.mark.parametrize("user_id", ["user 1", "user/1", "a" * 129, "../etc"])
    def test_invalid_user_id_format(self, user_id):
        assert validate_user_id(user_id)[0] is False


class TestValidateMode:
    """Tests for operating mode validation."""

    def test_default_is_personal(self):
        assert validate_mode(None) == (True, "", "personal")

    def test_case_insensitive(self):
        assert validate_mode("Business") == (True, "", "business")

    def test_unknown_mode(self):
        is_valid, error_msg, mode = validate_mode("family")
        assert is_valid is False
        assert "family" in error_msg
        assert mode is None


class TestValidateLimit:
    """Tests for limit validation."""

    def test_default(self):
        assert validate_limit(None) == (True, "", 12)

    def test_valid(self):
        assert validate_limit(50) == (True, "", 50)

    @pytest.mark.parametrize("limit", [0, -1, 101, "10"])
    def test_invalid(self, limit):
        assert validate_limit(limit)[0] is False


class TestValidateCouponCode:
    """Tests for coupon code validation."""

    def test_normalizes(self):
        assert validate_coupon_code("  welcome20 ") == (True, "", "WELCOME20")

    @pytest.mark.parametrize("code", [None, "", "   ", "AB", "BAD CODE", "X" * 33])
    def test_invalid(self, code):
        is_valid, error_msg, normalized = validate_coupon_code(code)
        assert is_valid is False
        assert error_msg
        assert normalized is None


class TestValidateDiscountPercent:
    """Tests for discount percent validation."""

    @pytest.mark.parametrize("value", [1, 50, 99.5, 100])
    def test_valid(self, value):
        assert validate_discount_percent(value) == (True, "")

    @pytest.mark.parametrize("value", [None, 0, 100.01, "20", True])
    def test_invalid(self, value):
        assert validate_discount_percent(value)[0] is False


class TestValidateSymbols:
    """Tests for ticker list validation."""

    def test_splits_and_uppercases(self):
        assert validate_symbols("btc, ETH ,sol,") == (True, "", ["BTC", "ETH", "SOL"])

    def test_required(self):
        assert validate_symbols("")[0] is False
        assert validate_symbols(" , ")[0] is False

    def test_rejects_bad_symbol(self):
        is_valid, error_msg, _ = validate_symbols("BTC,$ETH")
        assert is_valid is False
        assert "$ETH" in error_msg

    def test_rejects_too_many(self):
        assert validate_symbols(",".join(["BTC"] * 3), max_symbols=2)[0] is False
