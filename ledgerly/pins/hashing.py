"""Mode-switch PIN hashing.

PINs are stored as ``<salt hex>$<hash hex>``: PBKDF2-HMAC-SHA256 with a
16-byte random salt, 100,000 iterations and a 32-byte key. Older profiles
hold a bare SHA-256 hex digest (64 characters, no ``$``); those still verify
and are re-hashed on the next successful validation.
"""

import hashlib
import hmac
import re
import secrets

PBKDF2_ITERATIONS = 100_000
SALT_LENGTH = 16
HASH_LENGTH = 32

PIN_PATTERN = re.compile(r"^\d{4}$")


def is_valid_pin_format(pin) -> bool:
    return isinstance(pin, str) and bool(PIN_PATTERN.match(pin))


def _derive(pin: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", pin.encode(), salt, PBKDF2_ITERATIONS, dklen=HASH_LENGTH)


def hash_pin(pin: str, salt: bytes = None) -> str:
    """Salted PBKDF2 hash of ``pin`` in ``salt$hash`` form."""
    salt = salt if salt is not None else secrets.token_bytes(SALT_LENGTH)
    return f"{salt.hex()}${_derive(pin, salt).hex()}"


def is_legacy_hash(stored_hash: str) -> bool:
    return "$" not in stored_hash and len(stored_hash) == 64


def verify_pin(pin: str, stored_hash: str) -> bool:
    """Check ``pin`` against a stored hash in either format, in constant time."""
    if not stored_hash:
        return False

    if is_legacy_hash(stored_hash):
        legacy = hashlib.sha256(pin.encode()).hexdigest()
        return hmac.compare_digest(legacy, stored_hash)

    salt_hex, _, hash_hex = stored_hash.partition("$")
    if not salt_hex or not hash_hex:
        return False
    try:
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        return False
    return hmac.compare_digest(_derive(pin, salt).hex(), hash_hex)
