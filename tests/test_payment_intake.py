"""
Payment intake tests: manual submissions wait for review, automated ones
credit the account, and a failed credit step can be retried safely.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.core.exceptions import InvalidPaymentMethodError, PaymentIncompleteError, StorageError
from app.models.credit import CreditTransaction, TransactionType
from app.models.payment import PaymentStatus, PaymentTransaction
from app.services.credits.manager import CreditManager
from app.services.payment.intake import (
    AUTOMATED_SUBMISSION_MESSAGE,
    MANUAL_SUBMISSION_MESSAGE,
    PaymentIntake,
    credits_for_amount,
)


async def purchases(db, user_id):
    result = await db.execute(
        select(CreditTransaction).where(
            CreditTransaction.user_id == user_id,
            CreditTransaction.transaction_type == TransactionType.PURCHASE,
        )
    )
    return list(result.scalars().all())


class TestCreditsForAmount:

    @pytest.mark.parametrize("amount,expected", [
        (Decimal("100"), 100),
        (Decimal("120.75"), 120),
        (Decimal("0.99"), 0),
    ])
    def test_one_credit_per_whole_unit(self, amount, expected):
        assert credits_for_amount(amount) == expected


class TestManualSubmission:

    @pytest.mark.asyncio
    async def test_manual_payment_is_pending(self, db, make_user, payment_methods, balance_of):
        user = await make_user(credits=50)

        submission = await PaymentIntake(db).submit_payment(
            user_id=user.id,
            payment_method_id=payment_methods["manual"],
            amount=Decimal("500.00"),
            proof_url="https://files.codegen.dev/proof.png",
            sender_number="01711111111",
        )

        assert submission.message == MANUAL_SUBMISSION_MESSAGE
        assert submission.transaction.status == PaymentStatus.PENDING
        assert submission.transaction.credits_awarded == 0
        assert submission.transaction.currency == "BDT"
        assert submission.transaction.proof_url == "https://files.codegen.dev/proof.png"

        assert await balance_of(user.id) == 50
        assert await purchases(db, user.id) == []

    @pytest.mark.asyncio
    async def test_disabled_method_rejected(self, db, make_user, payment_methods):
        user = await make_user()

        with pytest.raises(InvalidPaymentMethodError):
            await PaymentIntake(db).submit_payment(
                user_id=user.id, payment_method_id=payment_methods["bkash"], amount=Decimal("100")
            )

        stored = (await db.execute(select(PaymentTransaction))).scalars().all()
        assert stored == []

    @pytest.mark.asyncio
    async def test_unknown_method_rejected(self, db, make_user, payment_methods):
        user = await make_user()

        with pytest.raises(InvalidPaymentMethodError):
            await PaymentIntake(db).submit_payment(
                user_id=user.id, payment_method_id="no-such-method", amount=Decimal("100")
            )


class TestAutomatedSubmission:

    @pytest.mark.asyncio
    async def test_automated_payment_completes(self, db, make_user, payment_methods, enable_method, balance_of):
        await enable_method(payment_methods["bkash"])
        user = await make_user(credits=50)

        submission = await PaymentIntake(db).submit_payment(
            user_id=user.id,
            payment_method_id=payment_methods["bkash"],
            amount=Decimal("120.75"),
            external_transaction_id="TRX123",
        )

        assert submission.message == AUTOMATED_SUBMISSION_MESSAGE
        assert submission.transaction.status == PaymentStatus.COMPLETED
        assert submission.transaction.credits_awarded == 120

        assert await balance_of(user.id) == 170
        entries = await purchases(db, user.id)
        assert len(entries) == 1
        assert entries[0].amount == 120
        assert entries[0].reference_id == submission.transaction.id
        assert entries[0].description == "Payment via bKash"
        assert await CreditManager.ledger_total(user.id, db) == 170

    @pytest.mark.asyncio
    async def test_failed_credit_leaves_processing_then_retry(
        self, db, make_user, payment_methods, enable_method, balance_of
    ):
        await enable_method(payment_methods["bkash"])
        user = await make_user(credits=50)
        intake = PaymentIntake(db)

        with patch(
            "app.services.payment.intake.CreditManager.credit_balance",
            AsyncMock(side_effect=StorageError("Failed to update credit balance")),
        ):
            with pytest.raises(PaymentIncompleteError):
                await intake.submit_payment(
                    user_id=user.id, payment_method_id=payment_methods["bkash"], amount=Decimal("80")
                )

        payment = (await db.execute(
            select(PaymentTransaction).where(PaymentTransaction.user_id == user.id)
        )).scalar_one()
        payment_id = payment.id
        assert payment.status == PaymentStatus.PROCESSING
        assert payment.credits_awarded == 0
        assert await balance_of(user.id) == 50

        completed = await intake.complete_processing_payment(payment_id)

        assert completed.status == PaymentStatus.COMPLETED
        assert completed.credits_awarded == 80
        assert await balance_of(user.id) == 130

    @pytest.mark.asyncio
    async def test_completion_is_idempotent(self, db, make_user, payment_methods, processing_payment, balance_of):
        user = await make_user(credits=0)
        payment_id = await processing_payment(user.id, payment_methods["nagad"], amount="75.00")
        intake = PaymentIntake(db)

        first = await intake.complete_processing_payment(payment_id)
        second = await intake.complete_processing_payment(payment_id)

        assert first.status == PaymentStatus.COMPLETED
        assert second.status == PaymentStatus.COMPLETED
        assert await balance_of(user.id) == 75
        assert len(await purchases(db, user.id)) == 1

    @pytest.mark.asyncio
    async def test_find_stuck_payments(self, db, make_user, payment_methods, processing_payment):
        user = await make_user()
        payment_id = await processing_payment(user.id, payment_methods["stripe"])

        intake = PaymentIntake(db)
        assert await intake.find_stuck_payments(older_than_minutes=-1) == [payment_id]
        assert await intake.find_stuck_payments(older_than_minutes=60) == []
