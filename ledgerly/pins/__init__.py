"""Mode-switch PIN lifecycle: hashing, lockout and reset links."""

from ledgerly.pins.hashing import hash_pin, verify_pin
from ledgerly.pins.mode_pin import handle_pin_action
from ledgerly.pins.reset import request_pin_reset, reset_pin

__all__ = ["handle_pin_action", "hash_pin", "request_pin_reset", "reset_pin", "verify_pin"]
