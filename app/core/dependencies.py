"""
Common dependencies for FastAPI endpoints.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import time

from app.core.config import settings
from app.core.exceptions import AuthFailedError, ForbiddenError, RateLimitError
from app.core.security import decode_access_token
from app.db.base import get_db_read, get_db_write, get_redis
from app.models.user import User
from app.schemas.user import CurrentUser

logger = logging.getLogger(__name__)

# Missing credentials are reported as AuthFailed rather than FastAPI's default
security = HTTPBearer(auto_error=False)

__all__ = [
    "get_db_read",
    "get_db_write",
    "get_current_user",
    "get_admin_user",
    "RateLimitDependency",
    "rate_limit_generations",
]


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_read)
) -> CurrentUser:
    """
    Resolve the caller from the bearer token.

    Args:
        credentials: Bearer token from Authorization header
        db: Database session

    Returns:
        Identity of the caller

    Raises:
        AuthFailedError: If the token is missing or invalid, or the user is gone
        ForbiddenError: If the user is banned
    """
    if credentials is None or not credentials.credentials:
        raise AuthFailedError("Not authenticated")

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise AuthFailedError("Could not validate credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthFailedError("Invalid authentication credentials")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning(f"Token for unknown user: {user_id}")
        raise AuthFailedError("User not found")

    if user.is_banned:
        logger.warning(f"Banned user {user_id} rejected")
        raise ForbiddenError("Account is banned")

    return CurrentUser(
        id=user.id,
        email=user.email,
        role=user.role,
        is_banned=user.is_banned,
        full_name=user.full_name,
    )


async def get_admin_user(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """
    Require the admin role.

    Raises:
        ForbiddenError: If the caller is not an admin
    """
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


class RateLimitDependency:
    """Per-user rate limiting using a Redis sorted-set sliding window."""

    def __init__(self, calls: int = 100, period: int = 60):
        """
        Args:
            calls: Number of calls allowed
            period: Time period in seconds
        """
        self.calls = calls
        self.period = period

    async def __call__(
        self,
        request: Request,
        current_user: CurrentUser = Depends(get_current_user)
    ) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return

        redis_client = await get_redis()
        if redis_client is None:
            logger.warning("Redis unavailable - rate limiting skipped")
            return

        key = f"rate_limit:user:{current_user.id}:{request.method}:{request.url.path}"
        now = time.time()

        try:
            await redis_client.zadd(key, {str(now): now})
            await redis_client.zremrangebyscore(key, 0, now - self.period)
            request_count = await redis_client.zcard(key)
            await redis_client.expire(key, self.period + 1)
        except Exception as e:
            # Fail open so a Redis outage does not block generation
            logger.error(f"Rate limiting error: {e}", exc_info=True)
            return

        if request_count > self.calls:
            logger.warning(f"Rate limit exceeded for {key}: {request_count}/{self.calls} in {self.period}s")
            raise RateLimitError(
                f"Rate limit exceeded. Maximum {self.calls} requests per {self.period} seconds."
            )


rate_limit_generations = RateLimitDependency(calls=settings.RATE_LIMIT_GENERATIONS_PER_MINUTE, period=60)
