"""
User profile API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.dependencies import get_current_user, get_db_read, get_db_write
from app.core.exceptions import UserNotFoundError
from app.models.credit import CreditBalance
from app.models.user import User
from app.schemas.user import CurrentUser, ProfileResponse, ProfileUpdateRequest, UserStatsResponse
from app.services.accounts.stats import get_user_stats

logger = logging.getLogger(__name__)

router = APIRouter()


async def _load_profile(user_id: str, db: AsyncSession) -> ProfileResponse:
    result = await db.execute(
        select(User, CreditBalance.amount)
        .outerjoin(CreditBalance, CreditBalance.user_id == User.id)
        .where(User.id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise UserNotFoundError()

    user, credits = row
    profile = ProfileResponse.model_validate(user)
    profile.credits = credits or 0
    return profile


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    """Current user profile with balance and referral code."""
    return await _load_profile(current_user.id, db)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_write)
):
    """Update display name or avatar."""
    user = (await db.execute(select(User).where(User.id == current_user.id))).scalar_one_or_none()
    if user is None:
        raise UserNotFoundError()

    if request.full_name is not None:
        user.full_name = request.full_name
    if request.avatar_url is not None:
        user.avatar_url = request.avatar_url
    await db.commit()

    logger.info(f"Profile updated for user: {current_user.id}")
    return await _load_profile(current_user.id, db)


@router.get("/stats", response_model=UserStatsResponse)
async def get_stats(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    """Dashboard statistics."""
    return UserStatsResponse(**await get_user_stats(current_user.id, db))
