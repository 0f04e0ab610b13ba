"""Input validation utilities for the Ledgerly API.

Validators return ``(is_valid, error_message)`` tuples, with the normalized
value appended where one exists. Endpoints turn failures into
InvalidInputError.
"""

import re
from typing import Optional, Tuple

from ledgerly.database.store import OPERATING_MODES

# Firebase uids and test ids: letters, digits, underscore and dash
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")

COUPON_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{3,32}$")

SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9-]{1,20}$")


def validate_user_id(user_id: str) -> Tuple[bool, str]:
    if not user_id:
        return False, "user_id is required"

    if not isinstance(user_id, str):
        return False, "user_id must be a string"

    if not USER_ID_PATTERN.match(user_id):
        return False, f"Invalid user_id format: {user_id}"

    return True, ""


def validate_mode(mode: Optional[str]) -> Tuple[bool, str, Optional[str]]:
    """Validate an operating mode, defaulting to personal."""
    if mode is None:
        return True, "", "personal"

    mode_lower = mode.lower()
    if mode_lower not in OPERATING_MODES:
        return False, f"Invalid mode: {mode}. Must be one of: {', '.join(OPERATING_MODES)}", None

    return True, "", mode_lower


def validate_limit(limit: Optional[int], default: int = 12, max_limit: int = 100) -> Tuple[bool, str, int]:
    """Validate pagination limit parameter.

    Args:
        limit: Limit value to validate
        default: Default limit if None
        max_limit: Maximum allowed limit

    Returns:
        Tuple of (is_valid, error_message, normalized_limit)
    """
    if limit is None:
        return True, "", default

    if not isinstance(limit, int):
        return False, "limit must be an integer", 0

    if limit < 1:
        return False, "limit must be >= 1", 0

    if limit > max_limit:
        return False, f"limit must be <= {max_limit}", 0

    return True, "", limit


def validate_coupon_code(code: Optional[str]) -> Tuple[bool, str, Optional[str]]:
    """Validate and normalize (trim, upper-case) a coupon code."""
    if not code or not isinstance(code, str) or not code.strip():
        return False, "Coupon code is required", None

    normalized = code.strip().upper()
    if not COUPON_CODE_PATTERN.match(normalized):
        return False, f"Invalid coupon code format: {code}", None

    return True, "", normalized


def validate_discount_percent(discount_percent) -> Tuple[bool, str]:
    if discount_percent is None:
        return False, "discount_percent is required"

    if isinstance(discount_percent, bool) or not isinstance(discount_percent, (int, float)):
        return False, "discount_percent must be a number"

    if not 1 <= discount_percent <= 100:
        return False, "discount_percent must be between 1 and 100"

    return True, ""


def validate_symbols(symbols: Optional[str], max_symbols: int = 250) -> Tuple[bool, str, list]:
    """Split a comma-separated ticker list."""
    if not symbols:
        return False, "symbols is required", []

    parts = [s.strip() for s in symbols.split(",") if s.strip()]
    if not parts:
        return False, "symbols is required", []

    if len(parts) > max_symbols:
        return False, f"At most {max_symbols} symbols per request", []

    for symbol in parts:
        if not SYMBOL_PATTERN.match(symbol):
            return False, f"Invalid symbol: {symbol}", []

    return True, "", [s.upper() for s in parts]
