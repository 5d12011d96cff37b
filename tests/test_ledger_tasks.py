"""
Ledger maintenance task tests.

The async bodies are exercised directly against the test database; the
Celery wrappers only add an event loop and a short-lived engine.
"""

from unittest.mock import patch

import pytest
from sqlalchemy import update

from app.core.exceptions import StorageError
from app.models.credit import CreditBalance
from app.models.payment import PaymentStatus
from app.services.credits.manager import CreditManager
from app.services.payment.intake import PaymentIntake
from celery_app.tasks.ledger_tasks import find_balance_mismatches, retry_stuck_payments


class TestReconcile:

    @pytest.mark.asyncio
    async def test_consistent_balances(self, db, make_user):
        await make_user(credits=50)
        await make_user(credits=0)

        assert await find_balance_mismatches(db) == {}

    @pytest.mark.asyncio
    async def test_reports_mismatch(self, db, make_user):
        user = await make_user(credits=50)
        await db.execute(
            update(CreditBalance).where(CreditBalance.user_id == user.id).values(amount=99)
        )
        await db.commit()

        assert await find_balance_mismatches(db) == {user.id: {"balance": 99, "ledger": 50}}


class TestRetryStuckPayments:

    @pytest.mark.asyncio
    async def test_completes_stuck_payment(self, db, make_user, payment_methods, processing_payment, balance_of):
        user = await make_user(credits=10)
        payment_id = await processing_payment(user.id, payment_methods["bkash"], amount="40.00")

        result = await retry_stuck_payments(db, older_than_minutes=-1)

        assert result == {"found": 1, "completed": 1, "failed": 0}
        assert await balance_of(user.id) == 50
        payment = await PaymentIntake(db)._load(payment_id)
        assert payment.status == PaymentStatus.COMPLETED
        assert await find_balance_mismatches(db) == {}

    @pytest.mark.asyncio
    async def test_recent_payments_left_alone(self, db, make_user, payment_methods, processing_payment):
        user = await make_user()
        await processing_payment(user.id, payment_methods["bkash"])

        result = await retry_stuck_payments(db, older_than_minutes=60)

        assert result == {"found": 0, "completed": 0, "failed": 0}

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_run(
        self, db, make_user, payment_methods, processing_payment, balance_of
    ):
        failing = await make_user(credits=10)
        healthy = await make_user(credits=10)
        failing_payment = await processing_payment(failing.id, payment_methods["bkash"], amount="40.00")
        healthy_payment = await processing_payment(healthy.id, payment_methods["bkash"], amount="40.00")
        credit_balance = CreditManager.credit_balance

        async def credit_unless_failing(user_id, amount, session, **kwargs):
            if user_id == failing.id:
                raise StorageError("Failed to update credit balance")
            return await credit_balance(user_id, amount, session, **kwargs)

        with patch.object(CreditManager, "credit_balance", side_effect=credit_unless_failing):
            result = await retry_stuck_payments(db, older_than_minutes=-1)

        assert result == {"found": 2, "completed": 1, "failed": 1}
        intake = PaymentIntake(db)
        assert (await intake._load(failing_payment)).status == PaymentStatus.PROCESSING
        assert (await intake._load(healthy_payment)).status == PaymentStatus.COMPLETED
        assert await balance_of(failing.id) == 10
        assert await balance_of(healthy.id) == 50
