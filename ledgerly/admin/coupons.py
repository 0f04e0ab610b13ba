"""Discount coupon validation and creation."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ledgerly.api.exceptions import ConflictError, InvalidInputError
from ledgerly.database.store import Store
from ledgerly.utils.calculators import parse_timestamp
from ledgerly.utils.logging import get_logger

logger = get_logger("admin.coupons")

COUPONS_TABLE = "discount_coupons"


def normalize_code(code: str) -> str:
    return code.strip().upper()


def validate_coupon(store: Store, code: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Check whether a coupon code can be redeemed.

    Returns:
        ``{"valid": True, "discount_percent": ..., "code": ...}`` or
        ``{"valid": False, "error": ...}`` naming why it cannot be used
    """
    now = now or datetime.now(timezone.utc)
    normalized = normalize_code(code)
    coupon = store.fetch_one(COUPONS_TABLE, [("code", "==", normalized)])

    if not coupon or not coupon.get("is_active"):
        logger.info(f"Coupon {normalized} not found or inactive")
        return {"valid": False, "error": "Invalid or unknown coupon"}

    try:
        valid_until = parse_timestamp(coupon.get("valid_until"))
    except ValueError:
        logger.error(f"Coupon {normalized} has a malformed valid_until: {coupon.get('valid_until')!r}")
        return {"valid": False, "error": "Invalid or unknown coupon"}
    if valid_until is not None and valid_until < now:
        logger.info(f"Coupon {normalized} expired at {coupon['valid_until']}")
        return {"valid": False, "error": "Coupon expired"}

    max_uses = coupon.get("max_uses")
    if max_uses and (coupon.get("current_uses") or 0) >= max_uses:
        logger.info(f"Coupon {normalized} reached its usage limit ({max_uses})")
        return {"valid": False, "error": "Coupon usage limit reached"}

    return {"valid": True, "discount_percent": coupon["discount_percent"], "code": coupon["code"]}


def create_coupon(
    store: Store,
    code: str,
    discount_percent: float,
    valid_until: Optional[str] = None,
    max_uses: Optional[int] = None,
    created_by: Optional[str] = None,
) -> Dict[str, Any]:
    """Create an active coupon.

    Args:
        store: Data store
        code: Coupon code, stored trimmed and upper-cased
        discount_percent: Percentage off, 1 to 100
        valid_until: Optional ISO expiry timestamp
        max_uses: Optional redemption cap
        created_by: Admin user id

    Returns:
        The stored coupon row

    Raises:
        InvalidInputError: If the code is empty or the percentage is out of range
        ConflictError: If a coupon with the same code exists
    """
    if not code or not code.strip():
        raise InvalidInputError("Coupon code is required", field="code")
    if discount_percent is None or not 1 <= discount_percent <= 100:
        raise InvalidInputError("Discount percent must be between 1 and 100", field="discount_percent")
    if max_uses is not None and max_uses < 1:
        raise InvalidInputError("max_uses must be positive", field="max_uses")
    if valid_until:
        try:
            parse_timestamp(valid_until)
        except ValueError:
            raise InvalidInputError(f"Invalid valid_until timestamp: {valid_until}", field="valid_until")

    normalized = normalize_code(code)
    if store.fetch_one(COUPONS_TABLE, [("code", "==", normalized)]):
        raise ConflictError(f"A coupon with code {normalized} already exists")

    coupon = {
        "code": normalized,
        "discount_percent": discount_percent,
        "valid_until": valid_until or None,
        "max_uses": max_uses,
        "current_uses": 0,
        "is_active": True,
        "created_by": created_by,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    store.insert(COUPONS_TABLE, coupon)
    logger.info(f"Coupon {normalized} created ({discount_percent}% off)")
    return coupon
