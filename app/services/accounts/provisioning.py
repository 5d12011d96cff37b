"""
Account registration, login and signup rewards.

A new account gets a profile with its own referral code, a balance of
DEFAULT_USER_CREDITS backed by a matching welcome bonus ledger entry and,
when signing up with someone's referral code, a reward for the referrer.
Everything is committed in one transaction.
"""

import logging
from typing import Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from app.core.config import settings
from app.core.exceptions import AuthFailedError, ForbiddenError, InvalidRequestError, StorageError
from app.core.security import get_password_hash, verify_password, generate_referral_code
from app.models.credit import CreditBalance, TransactionType
from app.models.referral import Referral
from app.models.user import User
from app.services.credits.manager import CreditManager

logger = logging.getLogger(__name__)

REFERRAL_CODE_ATTEMPTS = 5


async def _unique_referral_code(db: AsyncSession) -> str:
    for _ in range(REFERRAL_CODE_ATTEMPTS):
        code = generate_referral_code()
        taken = (await db.execute(select(User.id).where(User.referral_code == code))).scalar_one_or_none()
        if taken is None:
            return code
    raise StorageError("Could not allocate a referral code")


async def _find_referrer(referral_code: Optional[str], db: AsyncSession) -> Optional[User]:
    if not referral_code or not referral_code.strip():
        return None
    result = await db.execute(
        select(User).where(User.referral_code == referral_code.strip().upper())
    )
    referrer = result.scalar_one_or_none()
    if referrer is None:
        logger.info(f"Ignoring unknown referral code {referral_code!r}")
    return referrer


async def register_user(
    email: str,
    password: str,
    db: AsyncSession,
    full_name: Optional[str] = None,
    referral_code: Optional[str] = None
) -> User:
    """
    Create an account with its starting balance and referral reward.

    Args:
        email: Login email
        password: Plain password (hashed with bcrypt)
        db: Write session; committed on success
        full_name: Display name
        referral_code: Code of the referring user, if any

    Returns:
        The new user

    Raises:
        InvalidRequestError: If the email is already registered
        StorageError: If provisioning failed; nothing was created
    """
    email = email.strip().lower()
    existing = (await db.execute(
        select(User.id).where(func.lower(User.email) == email)
    )).scalar_one_or_none()
    if existing is not None:
        raise InvalidRequestError("Email already registered")

    try:
        referrer = await _find_referrer(referral_code, db)

        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            full_name=full_name or email.split("@")[0],
            referral_code=await _unique_referral_code(db),
            referred_by=referrer.id if referrer else None,
        )
        db.add(user)
        await db.flush()

        db.add(CreditBalance(user_id=user.id, amount=settings.DEFAULT_USER_CREDITS))
        await CreditManager.record_transaction(
            user.id,
            settings.DEFAULT_USER_CREDITS,
            TransactionType.BONUS,
            f"Welcome bonus - {settings.DEFAULT_USER_CREDITS} free credits",
            db,
        )

        if referrer is not None:
            reward = settings.CREDITS_REFERRAL_REWARD
            db.add(Referral(referrer_id=referrer.id, referred_id=user.id, credits_awarded=reward))
            await CreditManager.credit_balance(referrer.id, reward, db)
            await CreditManager.record_transaction(
                referrer.id,
                reward,
                TransactionType.BONUS,
                "Referral bonus - new user signup",
                db,
            )

        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Registration conflict for {email}: {e}")
        raise InvalidRequestError("Email already registered") from e
    except (StorageError, SQLAlchemyError) as e:
        await db.rollback()
        logger.error(f"Failed to provision account for {email}: {e}", exc_info=True)
        if isinstance(e, StorageError):
            raise
        raise StorageError("Failed to create account") from e

    logger.info(
        f"User {user.id} registered"
        + (f" with referral from {referrer.id}" if referrer else "")
    )
    return user


async def authenticate_user(email: str, password: str, db: AsyncSession) -> User:
    """
    Check email/password credentials.

    Raises:
        AuthFailedError: If the credentials are wrong
        ForbiddenError: If the account is banned
    """
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthFailedError("Incorrect email or password")
    if user.is_banned:
        raise ForbiddenError("Account is banned")
    return user
