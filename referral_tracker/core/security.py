"""
JWT utilities for referrer identity.

Tokens are issued by the authentication service; this module only needs to
decode them to learn who submitted a referral. ``create_access_token`` exists
for local tooling (seed script, tests) that needs to act as a user.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from referral_tracker.core.config import settings


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None,
                        secret_key: Optional[str] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary containing claims to encode (typically {"sub": user_id})
        expires_delta: Optional expiration time delta (default: ACCESS_TOKEN_EXPIRE_MINUTES)
        secret_key: Signing key override (defaults to settings.SECRET_KEY)

    Returns:
        Encoded JWT token as a string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key or settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT token.

    Raises:
        JWTError: If token is invalid or expired
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def get_subject(token: str) -> Optional[str]:
    """Return the token's subject, or None if the token is unusable."""
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    subject = payload.get("sub")
    return str(subject) if subject is not None else None
