"""Password hashing and device identifier helpers."""
from __future__ import annotations

import secrets
import time

import bcrypt

BCRYPT_ROUNDS = 10


def hash_password(password: str) -> str:
    """Return a bcrypt hash of `password` suitable for storage."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check `password` against a stored bcrypt hash.

    Returns:
        True if the password matches; False otherwise, including for a
        malformed stored hash.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_device_id() -> str:
    """Return a fresh device identifier for clients that send no fingerprint."""
    return f"device_{int(time.time() * 1000)}_{secrets.token_hex(16)}"


def generate_email_token() -> str:
    """Return an opaque single-use token for verification and reset links."""
    return secrets.token_hex(32)
