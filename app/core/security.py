"""
Security utilities for authentication and authorization.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import bcrypt
import uuid
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def _encode_token(data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _decode_token(token: str, token_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        raise

    if payload.get("type") != token_type:
        raise JWTError("Invalid token type")
    return payload


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode; ``sub`` must hold the user id
        expires_delta: Token lifetime, defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT token
    """
    lifetime = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode_token(data, "access", lifetime)


def create_refresh_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT refresh token."""
    lifetime = expires_delta or timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode_token(data, "refresh", lifetime)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode a JWT access token.

    Raises:
        JWTError: If the token is invalid, expired or not an access token
    """
    return _decode_token(token, "access")


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """
    Decode a JWT refresh token.

    Raises:
        JWTError: If the token is invalid, expired or not a refresh token
    """
    return _decode_token(token, "refresh")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Bcrypt only considers the first 72 bytes, so both sides truncate.
    """
    password_bytes = plain_password.encode("utf-8")[:72]
    hashed_bytes = hashed_password.encode("utf-8") if isinstance(hashed_password, str) else hashed_password
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def generate_referral_code() -> str:
    """
    Generate a referral code.

    Returns:
        Eight upper-case hexadecimal characters
    """
    return uuid.uuid4().hex[:8].upper()
