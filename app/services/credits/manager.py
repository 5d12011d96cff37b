"""
Credit management service.

Balance changes are single conditional UPDATE statements executed by the
database, so concurrent requests can never drive a balance below zero or
lose an update. Ledger entries are written in the caller's transaction; the
caller decides when to commit.
"""

import logging
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from app.models.credit import CreditBalance, CreditTransaction, TransactionType
from app.core.exceptions import BalanceNotFoundError, InsufficientCreditsError, StorageError

logger = logging.getLogger(__name__)


class CreditManager:
    """
    Balance accessor and transaction recorder.

    Every mutation of ``credits.amount`` made through this class is expected
    to be paired with ``record_transaction`` in the same database transaction.
    """

    @staticmethod
    async def get_balance(user_id: str, db: AsyncSession) -> int:
        """
        Get a user's current credit balance.

        Args:
            user_id: User ID
            db: Database session

        Returns:
            Current balance

        Raises:
            BalanceNotFoundError: If the user has no balance row
        """
        result = await db.execute(
            select(CreditBalance.amount).where(CreditBalance.user_id == user_id)
        )
        amount = result.scalar_one_or_none()
        if amount is None:
            raise BalanceNotFoundError(f"Credit balance not found for user {user_id}")
        return amount

    @staticmethod
    async def _balance_exists(user_id: str, db: AsyncSession) -> bool:
        result = await db.execute(
            select(CreditBalance.id).where(CreditBalance.user_id == user_id)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def adjust_balance(user_id: str, delta: int, db: AsyncSession) -> int:
        """
        Atomically add ``delta`` (may be negative) to a user's balance.

        The guard ``amount + delta >= 0`` is evaluated by the database in the
        same statement as the write.

        Args:
            user_id: User ID
            delta: Signed change
            db: Database session (write)

        Returns:
            Balance after the change

        Raises:
            BalanceNotFoundError: If the user has no balance row
            InsufficientCreditsError: If the change would make the balance negative
            StorageError: If the update fails
        """
        stmt = (
            update(CreditBalance)
            .where(
                CreditBalance.user_id == user_id,
                CreditBalance.amount + delta >= 0,
            )
            .values(amount=CreditBalance.amount + delta, updated_at=func.now())
            .returning(CreditBalance.amount)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await db.execute(stmt)
            new_amount = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Balance update failed for user {user_id} (delta={delta}): {e}", exc_info=True)
            raise StorageError("Failed to update credit balance") from e

        if new_amount is not None:
            logger.debug(f"Balance of user {user_id} adjusted by {delta} to {new_amount}")
            return new_amount

        if not await CreditManager._balance_exists(user_id, db):
            raise BalanceNotFoundError(f"Credit balance not found for user {user_id}")

        logger.warning(f"Insufficient credits for user {user_id}: adjustment {delta} rejected")
        raise InsufficientCreditsError(
            f"Insufficient credits. Need {-delta} credits for this operation."
        )

    @staticmethod
    async def credit_balance(
        user_id: str,
        amount: int,
        db: AsyncSession,
        create_missing: bool = True
    ) -> int:
        """
        Add a positive amount to a balance, creating the row if needed.

        Args:
            user_id: User ID
            amount: Credits to add (positive)
            db: Database session (write)
            create_missing: Insert a balance row when none exists

        Returns:
            Balance after the change
        """
        if amount <= 0:
            raise ValueError("Credit amount must be positive")

        try:
            return await CreditManager.adjust_balance(user_id, amount, db)
        except BalanceNotFoundError:
            if not create_missing:
                raise

        logger.info(f"Creating missing balance row for user {user_id}")
        try:
            async with db.begin_nested():
                db.add(CreditBalance(user_id=user_id, amount=amount))
                await db.flush()
            return amount
        except IntegrityError:
            # A concurrent request created the row first
            return await CreditManager.adjust_balance(user_id, amount, db)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create balance row for user {user_id}: {e}", exc_info=True)
            raise StorageError("Failed to create credit balance") from e

    @staticmethod
    async def record_transaction(
        user_id: str,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        db: AsyncSession,
        reference_id: Optional[str] = None
    ) -> CreditTransaction:
        """
        Append a ledger entry.

        Args:
            user_id: User ID
            amount: Signed amount (negative for usage)
            transaction_type: Kind of entry
            description: Human-readable description
            db: Database session (write)
            reference_id: Related payment transaction id, if any

        Returns:
            The flushed CreditTransaction

        Raises:
            StorageError: If the insert fails
        """
        transaction = CreditTransaction(
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            description=description,
            reference_id=reference_id,
        )
        try:
            db.add(transaction)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to record {transaction_type.value} transaction for user {user_id} "
                f"(amount={amount}): {e}",
                exc_info=True
            )
            raise StorageError("Failed to record credit transaction") from e

        logger.info(
            f"Recorded {transaction_type.value} transaction {transaction.id} "
            f"for user {user_id}: {amount:+d}"
        )
        return transaction

    @staticmethod
    async def ledger_total(user_id: str, db: AsyncSession) -> int:
        """Sum of all ledger amounts for a user."""
        result = await db.execute(
            select(func.coalesce(func.sum(CreditTransaction.amount), 0))
            .where(CreditTransaction.user_id == user_id)
        )
        return int(result.scalar_one())

    @staticmethod
    async def get_transaction_history(
        user_id: str,
        db: AsyncSession,
        limit: int = 50,
        offset: int = 0,
        transaction_type: Optional[TransactionType] = None
    ) -> Tuple[List[CreditTransaction], int]:
        """
        Get a page of a user's ledger, newest first.

        Returns:
            Tuple of (transactions, total count)
        """
        conditions = [CreditTransaction.user_id == user_id]
        if transaction_type is not None:
            conditions.append(CreditTransaction.transaction_type == transaction_type)

        count_result = await db.execute(
            select(func.count(CreditTransaction.id)).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await db.execute(
            select(CreditTransaction)
            .where(*conditions)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total
