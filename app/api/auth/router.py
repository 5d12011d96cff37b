"""
Authentication API endpoints.
"""

from fastapi import APIRouter, Depends, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.dependencies import get_current_user, get_db_read, get_db_write
from app.core.exceptions import AuthFailedError, ForbiddenError
from app.core.security import create_access_token, create_refresh_token, decode_refresh_token
from app.models.user import User
from app.schemas.user import (
    CurrentUser,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from app.services.accounts.provisioning import authenticate_user, register_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_tokens(user_id: str) -> TokenResponse:
    claims = {"sub": user_id}
    return TokenResponse(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
        user_id=user_id,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db_write)
):
    """
    Create an account.

    New accounts start with the welcome bonus; a valid referral code also
    rewards the referrer.
    """
    user = await register_user(
        request.email,
        request.password,
        db,
        full_name=request.full_name,
        referral_code=request.referral_code,
    )
    return _issue_tokens(user.id)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db_read)
):
    """Exchange email and password for a token pair."""
    user = await authenticate_user(request.email, request.password, db)
    logger.info(f"User logged in: {user.id}")
    return _issue_tokens(user.id)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    request: RefreshRequest,
    db: AsyncSession = Depends(get_db_read)
):
    """Exchange a refresh token for a new token pair."""
    try:
        payload = decode_refresh_token(request.refresh_token)
    except JWTError:
        raise AuthFailedError("Invalid refresh token")

    user_id = payload.get("sub")
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise AuthFailedError("User not found")
    if user.is_banned:
        raise ForbiddenError("Account is banned")

    return _issue_tokens(user.id)


@router.get("/me", response_model=CurrentUser)
async def me(current_user: CurrentUser = Depends(get_current_user)):
    """Identity of the caller."""
    return current_user
