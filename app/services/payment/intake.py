"""
Payment intake.

Manual payments are stored as pending and wait for admin review. Automated
payments are stored as processing, committed, and then completed in a
second transaction that credits the balance, records the purchase and marks
the payment completed together. If that second step fails the payment stays
in processing and is picked up again by ``complete_processing_payment``.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_FLOOR
from typing import List, Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import (
    InvalidPaymentMethodError,
    InvalidRequestError,
    PaymentIncompleteError,
    PaymentNotFoundError,
    StorageError,
)
from app.core.logging_config import get_audit_logger
from app.core.metrics import PAYMENT_SUBMISSIONS_TOTAL
from app.models.credit import TransactionType
from app.models.payment import PaymentMethod, PaymentTransaction, PaymentStatus
from app.schemas.payment import PaymentSubmission, PaymentTransactionResponse
from app.services.credits.manager import CreditManager
from app.services.payment.methods import parse_method_config

logger = logging.getLogger(__name__)

MANUAL_SUBMISSION_MESSAGE = "Payment submitted for review. Credits will be awarded after admin approval."
AUTOMATED_SUBMISSION_MESSAGE = "Payment processed successfully!"


def credits_for_amount(amount: Decimal) -> int:
    """One credit per whole currency unit paid."""
    return int(Decimal(amount).to_integral_value(rounding=ROUND_FLOOR))


class PaymentIntake:
    """Accepts payment submissions from users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_enabled_method(self, payment_method_id: str) -> PaymentMethod:
        result = await self.db.execute(
            select(PaymentMethod).where(
                PaymentMethod.id == payment_method_id,
                PaymentMethod.is_enabled.is_(True),
            )
        )
        method = result.scalar_one_or_none()
        if method is None:
            raise InvalidPaymentMethodError("Invalid or disabled payment method")
        return method

    async def submit_payment(
        self,
        user_id: str,
        payment_method_id: str,
        amount: Decimal,
        currency: Optional[str] = None,
        proof_url: Optional[str] = None,
        external_transaction_id: Optional[str] = None,
        sender_number: Optional[str] = None
    ) -> PaymentSubmission:
        """
        Record a payment and, for automated methods, award its credits.

        Args:
            user_id: Paying user
            payment_method_id: Selected payment method
            amount: Amount paid
            currency: Currency code, defaults to DEFAULT_PAYMENT_CURRENCY
            proof_url: Uploaded proof for manual transfers
            external_transaction_id: Gateway or wallet transaction id
            sender_number: Wallet number the payment was sent from

        Returns:
            The stored transaction and a user-facing message

        Raises:
            InvalidPaymentMethodError: If the method is missing or disabled
            PaymentIncompleteError: If an automated payment was stored but
                its credits could not be awarded yet
        """
        if amount is None or Decimal(amount) <= 0:
            raise InvalidRequestError("Amount must be positive")

        method = await self._get_enabled_method(payment_method_id)
        config = parse_method_config(method.name, method.config)

        transaction = PaymentTransaction(
            user_id=user_id,
            payment_method_id=method.id,
            amount=Decimal(amount),
            currency=currency or settings.DEFAULT_PAYMENT_CURRENCY,
            status=PaymentStatus.PENDING if config.requires_review else PaymentStatus.PROCESSING,
            proof_url=proof_url,
            external_transaction_id=external_transaction_id,
            sender_number=sender_number,
            credits_awarded=0,
        )

        try:
            self.db.add(transaction)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to store payment for user {user_id}: {e}", exc_info=True)
            raise StorageError("Failed to create payment transaction") from e

        logger.info(
            f"Payment {transaction.id} submitted by user {user_id} via {method.name}: "
            f"{transaction.amount} {transaction.currency} ({transaction.status.value})"
        )

        if config.requires_review:
            PAYMENT_SUBMISSIONS_TOTAL.labels(status=PaymentStatus.PENDING.value).inc()
            return PaymentSubmission(
                transaction=PaymentTransactionResponse.model_validate(transaction),
                message=MANUAL_SUBMISSION_MESSAGE,
            )

        completed = await self.complete_processing_payment(transaction.id)
        PAYMENT_SUBMISSIONS_TOTAL.labels(status=completed.status.value).inc()
        return PaymentSubmission(
            transaction=PaymentTransactionResponse.model_validate(completed),
            message=AUTOMATED_SUBMISSION_MESSAGE,
        )

    async def complete_processing_payment(self, transaction_id: str) -> PaymentTransaction:
        """
        Award credits for a payment in processing and mark it completed.

        Claiming the row (processing -> completed) happens in the same
        transaction as the credit and the ledger entry, so concurrent retries
        award the credits at most once. Payments in any other status are
        returned unchanged.

        Args:
            transaction_id: Payment transaction id

        Returns:
            The payment transaction after the attempt

        Raises:
            PaymentNotFoundError: If the payment does not exist
            PaymentIncompleteError: If the credit step failed; the payment
                stays in processing
        """
        transaction = await self._load(transaction_id)
        if transaction.status != PaymentStatus.PROCESSING:
            return transaction

        display_name = (await self.db.execute(
            select(PaymentMethod.display_name).where(PaymentMethod.id == transaction.payment_method_id)
        )).scalar_one_or_none() or "payment gateway"

        payment_id, user_id = transaction.id, transaction.user_id
        credits = credits_for_amount(transaction.amount)
        audit = get_audit_logger(payment_id=payment_id, user_id=user_id, credits=credits)

        try:
            claimed = await self.db.execute(
                update(PaymentTransaction)
                .where(
                    PaymentTransaction.id == payment_id,
                    PaymentTransaction.status == PaymentStatus.PROCESSING,
                )
                .values(
                    status=PaymentStatus.COMPLETED,
                    credits_awarded=credits,
                    updated_at=func.now(),
                )
                .returning(PaymentTransaction.id)
                .execution_options(synchronize_session=False)
            )
            if claimed.scalar_one_or_none() is None:
                # Completed by a concurrent retry
                await self.db.rollback()
                return await self._load(transaction_id)

            if credits > 0:
                await CreditManager.credit_balance(user_id, credits, self.db)
                await CreditManager.record_transaction(
                    user_id,
                    credits,
                    TransactionType.PURCHASE,
                    f"Payment via {display_name}",
                    self.db,
                    reference_id=payment_id,
                )
            await self.db.commit()
        except (StorageError, SQLAlchemyError) as e:
            await self.db.rollback()
            audit.error("payment_credit_failed", status=PaymentStatus.PROCESSING.value, error=str(e))
            logger.error(
                f"Payment {payment_id} left in processing: crediting {credits} credits "
                f"to user {user_id} failed: {e}",
                exc_info=True
            )
            raise PaymentIncompleteError() from e

        audit.info("payment_completed", status=PaymentStatus.COMPLETED.value)
        return await self._load(transaction_id)

    async def _load(self, transaction_id: str) -> PaymentTransaction:
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise PaymentNotFoundError()
        return transaction

    async def find_stuck_payments(self, older_than_minutes: int) -> List[str]:
        """Ids of payments that have been in processing longer than the threshold."""
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)
        result = await self.db.execute(
            select(PaymentTransaction.id).where(
                PaymentTransaction.status == PaymentStatus.PROCESSING,
                PaymentTransaction.updated_at <= cutoff,
            )
        )
        return list(result.scalars().all())
