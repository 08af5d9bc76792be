"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Opaque random tokens for refresh, verification and reset flows
- Naive-UTC clock shared by every expiry check
"""
from __future__ import annotations

import hmac
import secrets
from datetime import datetime, timezone

from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

ph = PasswordHasher()

TOKEN_BYTES = 32


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_token() -> str:
    """URL-safe random token with 256 bits of entropy."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def tokens_match(presented: str | None, stored: str | None) -> bool:
    """Constant-time comparison; a missing side never matches."""
    if not presented or not stored:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), stored.encode("utf-8"))


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
