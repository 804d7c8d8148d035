"""PIN digest helpers (unsalted SHA-256, demo-grade by intent)."""

import hashlib
import hmac

DIGEST_HEX_LENGTH = hashlib.sha256().digest_size * 2


def hash_pin(pin: str) -> str:
    """Return the hex SHA-256 digest of a PIN."""
    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def verify_pin(pin: str, pin_hash: str) -> bool:
    """Compare a PIN against a stored digest without an early-exit comparison."""
    if not pin_hash:
        return False
    return hmac.compare_digest(hash_pin(pin), pin_hash)
