"""
bcrypt password hashes for marketplace accounts.

BCRYPT_ROUNDS (default 12) sets the work factor for new hashes; existing
hashes keep the cost they were created with.
"""
from __future__ import annotations

import os

import bcrypt

# bcrypt only looks at the first 72 bytes of the secret
MAX_PASSWORD_BYTES = 72


def _rounds() -> int:
    return max(4, min(31, int(os.getenv("BCRYPT_ROUNDS", "12"))))


def hash_password(raw_password: str) -> str:
    secret = raw_password.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password longer than {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=_rounds())).decode("utf-8")


def verify_password(raw_password: str, password_hash: str) -> bool:
    if not raw_password or not password_hash:
        return False
    secret = raw_password.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, password_hash.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash (e.g. an archived placeholder)
        return False


__all__ = ["MAX_PASSWORD_BYTES", "hash_password", "verify_password"]
