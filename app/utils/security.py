"""
Security utilities: IP hashing for audit metadata and session tokens.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import hashlib
import logging

import jwt

from app.core.settings import settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_ip_address(ip_address: Optional[str]) -> Optional[str]:
    """
    Hash IP address for privacy protection.

    Uses SHA-256 with a salt to prevent rainbow table attacks.
    Stores only first 16 characters (64 bits) for reasonable uniqueness.

    Args:
        ip_address: Raw IP address string (IPv4 or IPv6)

    Returns:
        Hashed IP address (first 16 chars) or None if input is None/empty
    """
    if not ip_address or not ip_address.strip():
        return None

    hashed = hashlib.sha256(f"{settings.IP_HASH_SALT}{ip_address.strip()}".encode()).hexdigest()
    return hashed[:16]


def _encode(payload: Dict, expires_in: timedelta) -> str:
    now = datetime.now(timezone.utc)
    body = {"iat": now, "exp": now + expires_in}
    body.update(payload)
    return jwt.encode(body, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: str, role: str) -> str:
    """Encode a short-lived access token carrying the user's id and role."""
    return _encode(
        {"sub": user_id, "role": role, "type": ACCESS_TOKEN_TYPE},
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user_id: str) -> str:
    return _encode(
        {"sub": user_id, "type": REFRESH_TOKEN_TYPE},
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> Dict:
    """
    Decode and validate a session token.

    Raises jwt.InvalidTokenError subclasses on failure.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp", "iat", "sub"]},
    )
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token")
    return payload
