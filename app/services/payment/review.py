"""
Admin review of manual payments.

A pending payment moves to approved or rejected exactly once. The status
change is a conditional update on ``status = 'pending'``, and it commits
together with the balance credit, the purchase ledger entry and the admin
log entry, so a payment can never be credited twice and a failed credit
never leaves a reviewed payment behind.
"""

import logging
from typing import Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    AwardFailedError,
    ForbiddenError,
    InvalidPaymentTransitionError,
    InvalidRequestError,
    PaymentNotFoundError,
    StorageError,
)
from app.core.logging_config import get_audit_logger
from app.core.metrics import PAYMENT_REVIEWS_TOTAL
from app.models.admin import AdminLog
from app.models.credit import TransactionType
from app.models.payment import PaymentTransaction, PaymentStatus
from app.schemas.payment import ReviewDecision, ReviewResult, PaymentTransactionResponse
from app.schemas.user import CurrentUser
from app.services.credits.manager import CreditManager

logger = logging.getLogger(__name__)


def review_message(decision: ReviewDecision, credits_awarded: int) -> str:
    message = f"Payment {decision.value} successfully."
    if decision == ReviewDecision.APPROVED:
        message += f" {credits_awarded} credits awarded."
    return message


class PaymentReviewWorkflow:
    """Approves or rejects pending payments on behalf of an admin."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def review(
        self,
        transaction_id: str,
        reviewer: CurrentUser,
        decision: ReviewDecision,
        admin_notes: Optional[str] = None,
        credits_to_award: int = 0
    ) -> ReviewResult:
        """
        Review a pending payment.

        Args:
            transaction_id: Payment transaction id
            reviewer: Acting user; must be an admin
            decision: approved or rejected
            admin_notes: Free-text notes stored on the payment
            credits_to_award: Credits granted when approved; ignored when rejected

        Returns:
            Confirmation message and the reviewed transaction

        Raises:
            ForbiddenError: If the reviewer is not an admin
            PaymentNotFoundError: If the payment does not exist
            InvalidPaymentTransitionError: If the payment is no longer pending
            AwardFailedError: If any write failed; nothing was changed
        """
        if not reviewer.is_admin:
            raise ForbiddenError("Admin access required")
        if credits_to_award < 0:
            raise InvalidRequestError("Credits to award cannot be negative")

        decision = ReviewDecision(decision)
        approved = decision == ReviewDecision.APPROVED
        credits_awarded = credits_to_award if approved else 0
        audit = get_audit_logger(
            payment_id=transaction_id,
            admin_id=reviewer.id,
            decision=decision.value,
            credits=credits_awarded,
        )

        try:
            result = await self.db.execute(
                update(PaymentTransaction)
                .where(
                    PaymentTransaction.id == transaction_id,
                    PaymentTransaction.status == PaymentStatus.PENDING,
                )
                .values(
                    status=PaymentStatus(decision.value),
                    admin_notes=admin_notes,
                    reviewed_by=reviewer.id,
                    credits_awarded=credits_awarded,
                    updated_at=func.now(),
                )
                .returning(PaymentTransaction.user_id)
                .execution_options(synchronize_session=False)
            )
            user_id = result.scalar_one_or_none()
            if user_id is None:
                await self.db.rollback()
                await self._raise_for_missing_or_reviewed(transaction_id)

            if approved and credits_awarded > 0:
                await CreditManager.credit_balance(user_id, credits_awarded, self.db, create_missing=True)
                await CreditManager.record_transaction(
                    user_id,
                    credits_awarded,
                    TransactionType.PURCHASE,
                    f"Payment approved by admin - {admin_notes or 'Manual payment'}",
                    self.db,
                    reference_id=transaction_id,
                )

            self.db.add(AdminLog(
                admin_id=reviewer.id,
                action=f"payment_{decision.value}",
                target_user_id=user_id,
                details={
                    "transaction_id": transaction_id,
                    "credits_awarded": credits_awarded,
                    "admin_notes": admin_notes,
                },
            ))
            await self.db.commit()
        except (StorageError, SQLAlchemyError) as e:
            await self.db.rollback()
            audit.error("payment_review_failed", error=str(e))
            logger.error(
                f"Review of payment {transaction_id} rolled back; payment remains pending: {e}",
                exc_info=True
            )
            raise AwardFailedError() from e

        audit.info("payment_reviewed", user_id=user_id)
        PAYMENT_REVIEWS_TOTAL.labels(decision=decision.value).inc()

        transaction = (await self.db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )).scalar_one()

        return ReviewResult(
            message=review_message(decision, credits_awarded),
            transaction=PaymentTransactionResponse.model_validate(transaction),
        )

    async def _raise_for_missing_or_reviewed(self, transaction_id: str) -> None:
        status = (await self.db.execute(
            select(PaymentTransaction.status).where(PaymentTransaction.id == transaction_id)
        )).scalar_one_or_none()
        if status is None:
            raise PaymentNotFoundError()
        raise InvalidPaymentTransitionError(f"Payment has already been {status.value}")
