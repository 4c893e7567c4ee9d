"""
Security utilities for authentication.

Provides password hashing and JWT utilities.
"""

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt as _bcrypt
from jose import JWTError, jwt


# =============================================================================
# Password Hashing  (direct bcrypt – avoids passlib/bcrypt>=4 incompatibility)
# =============================================================================


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return _bcrypt.hashpw(password.encode("utf-8"), _bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    try:
        return _bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# =============================================================================
# JWT Token Management
# =============================================================================

ALGORITHM = "HS256"


def create_access_token(
    data: dict[str, Any],
    secret_key: str,
    expires_delta: timedelta,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode in token (``sub``, ``role``, ``email``)
        secret_key: Signing secret
        expires_delta: Token lifetime

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def decode_token(token: str, secret_key: str) -> Optional[dict[str, Any]]:
    """
    Decode and verify a JWT token.

    Signature and expiry are both checked by python-jose.

    Args:
        token: JWT token string
        secret_key: Signing secret

    Returns:
        Decoded payload dict or None if invalid
    """
    try:
        return jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None


def token_fingerprint(token: str) -> str:
    """SHA-256 of a token, used as the revocation key so raw tokens are never stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_request_id() -> str:
    """Correlation id for a request that arrived without one."""
    return str(uuid.uuid4())
