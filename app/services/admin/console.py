"""
Admin console operations: user moderation, credit adjustments, API key
rotation, payment listings and usage statistics.

Every mutating operation writes an AdminLog entry in the same transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    ForbiddenError,
    InvalidRequestError,
    MissingFieldsError,
    StorageError,
    UserNotFoundError,
)
from app.models.admin import AdminLog, ApiKey
from app.models.credit import CreditBalance, CreditTransaction, TransactionType
from app.models.generation import CodeGeneration
from app.models.payment import PaymentTransaction, PaymentStatus
from app.models.user import User, UserRole
from app.schemas.user import CurrentUser
from app.services.completion.client import GEMINI_KEY_NAME
from app.services.credits.manager import CreditManager

logger = logging.getLogger(__name__)

ROTATABLE_KEYS = (GEMINI_KEY_NAME,)


class AdminConsole:
    """Operations available to admins."""

    def __init__(self, db: AsyncSession, admin: CurrentUser):
        if not admin.is_admin:
            raise ForbiddenError("Admin access required")
        self.db = db
        self.admin = admin

    def _log(self, action: str, target_user_id: Optional[str] = None, **details) -> None:
        self.db.add(AdminLog(
            admin_id=self.admin.id,
            action=action,
            target_user_id=target_user_id,
            details=details or None,
        ))

    async def _commit(self, what: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Admin {self.admin.id} failed to {what}: {e}", exc_info=True)
            raise StorageError(f"Failed to {what}") from e

    async def _get_user(self, user_id: str) -> User:
        user = (await self.db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
        if user is None:
            raise UserNotFoundError()
        return user

    async def list_users(
        self,
        limit: int = 20,
        offset: int = 0,
        search: Optional[str] = None
    ) -> Tuple[List[Tuple[User, int]], int]:
        """
        List users with their balances, newest first.

        Returns:
            Tuple of ([(user, balance)], total count)
        """
        conditions = []
        if search:
            pattern = f"%{search.strip().lower()}%"
            conditions.append(
                func.lower(User.email).like(pattern) | func.lower(func.coalesce(User.full_name, "")).like(pattern)
            )

        total = (await self.db.execute(select(func.count(User.id)).where(*conditions))).scalar_one()
        result = await self.db.execute(
            select(User, func.coalesce(CreditBalance.amount, 0))
            .outerjoin(CreditBalance, CreditBalance.user_id == User.id)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id)
            .limit(limit)
            .offset(offset)
        )
        return [(user, amount) for user, amount in result.all()], total

    async def toggle_ban(self, user_id: str) -> User:
        """Ban or unban a user. Admins cannot be banned."""
        user = await self._get_user(user_id)
        if user.role == UserRole.ADMIN:
            raise ForbiddenError("Cannot ban an admin")

        user.is_banned = not user.is_banned
        self._log("ban_user" if user.is_banned else "unban_user", user.id, email=user.email)
        await self._commit("update ban status")

        logger.info(f"Admin {self.admin.id} {'banned' if user.is_banned else 'unbanned'} user {user.id}")
        return user

    async def adjust_credits(self, user_id: str, amount: int, reason: Optional[str] = None) -> int:
        """
        Add or remove credits from a user's balance.

        Returns:
            New balance

        Raises:
            InsufficientCreditsError: If a deduction exceeds the balance
        """
        if amount == 0:
            raise InvalidRequestError("Adjustment amount cannot be zero")
        await self._get_user(user_id)

        try:
            if amount > 0:
                balance = await CreditManager.credit_balance(user_id, amount, self.db)
            else:
                balance = await CreditManager.adjust_balance(user_id, amount, self.db)
            await CreditManager.record_transaction(
                user_id,
                amount,
                TransactionType.ADMIN_ADJUSTMENT,
                f"Admin adjustment - {reason or 'No reason given'}",
                self.db,
            )
            self._log("adjust_credits", user_id, amount=amount, reason=reason, balance_after=balance)
        except Exception:
            await self.db.rollback()
            raise
        await self._commit("adjust credits")

        logger.info(f"Admin {self.admin.id} adjusted credits of user {user_id} by {amount:+d}")
        return balance

    async def update_api_key(self, key_name: str, key_value: str) -> ApiKey:
        """Store a new value for a provider API key."""
        if not key_name or not key_value or not key_value.strip():
            raise MissingFieldsError("Missing required fields: key_name and key_value")
        if key_name not in ROTATABLE_KEYS:
            raise InvalidRequestError("Invalid API key type")

        api_key = (await self.db.execute(
            select(ApiKey).where(ApiKey.key_name == key_name)
        )).scalar_one_or_none()
        if api_key is None:
            api_key = ApiKey(key_name=key_name, key_value=key_value.strip())
            self.db.add(api_key)
        else:
            api_key.key_value = key_value.strip()

        self._log("update_api_key", key_name=key_name)
        await self._commit("update API key")

        logger.info(f"Admin {self.admin.id} rotated {key_name}")
        return api_key

    async def list_payments(
        self,
        status: Optional[PaymentStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[PaymentTransaction], int]:
        """List payment transactions, optionally filtered by status."""
        conditions = [PaymentTransaction.status == status] if status else []
        total = (await self.db.execute(
            select(func.count(PaymentTransaction.id)).where(*conditions)
        )).scalar_one()
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(*conditions)
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    async def list_logs(self, limit: int = 50, offset: int = 0) -> List[AdminLog]:
        result = await self.db.execute(
            select(AdminLog).order_by(AdminLog.created_at.desc(), AdminLog.id).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def get_stats(self) -> Dict[str, Any]:
        """Platform usage totals. Credits used are summed from the usage ledger."""
        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)

        total_users = (await self.db.execute(select(func.count(User.id)))).scalar_one()
        total_generations = (await self.db.execute(select(func.count(CodeGeneration.id)))).scalar_one()
        total_credits_used = (await self.db.execute(
            select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
                CreditTransaction.transaction_type == TransactionType.USAGE
            )
        )).scalar_one()
        active_users_today = (await self.db.execute(
            select(func.count(distinct(CodeGeneration.user_id))).where(CodeGeneration.created_at >= today)
        )).scalar_one()
        pending_payments = (await self.db.execute(
            select(func.count(PaymentTransaction.id)).where(PaymentTransaction.status == PaymentStatus.PENDING)
        )).scalar_one()

        return {
            "total_users": total_users,
            "total_generations": total_generations,
            "total_credits_used": -int(total_credits_used),
            "active_users_today": active_users_today,
            "pending_payments": pending_payments,
        }
