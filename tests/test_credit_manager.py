"""
Credit manager tests: atomic balance updates and the ledger.
"""

import uuid

import pytest
from sqlalchemy import delete

from app.core.exceptions import BalanceNotFoundError, InsufficientCreditsError
from app.models.credit import CreditBalance, TransactionType
from app.services.credits.manager import CreditManager


class TestBalance:

    @pytest.mark.asyncio
    async def test_get_balance(self, db, make_user):
        user = await make_user(credits=42)
        assert await CreditManager.get_balance(user.id, db) == 42

    @pytest.mark.asyncio
    async def test_get_balance_missing(self, db):
        with pytest.raises(BalanceNotFoundError):
            await CreditManager.get_balance(str(uuid.uuid4()), db)


class TestAdjustBalance:

    @pytest.mark.asyncio
    async def test_debit(self, db, make_user, balance_of):
        user = await make_user(credits=5)

        remaining = await CreditManager.adjust_balance(user.id, -3, db)
        await db.commit()

        assert remaining == 2
        assert await balance_of(user.id) == 2

    @pytest.mark.asyncio
    async def test_debit_to_exactly_zero(self, db, make_user):
        user = await make_user(credits=2)
        assert await CreditManager.adjust_balance(user.id, -2, db) == 0

    @pytest.mark.asyncio
    async def test_overdraw_rejected(self, db, make_user, balance_of):
        """A debit larger than the balance changes nothing."""
        user = await make_user(credits=5)

        with pytest.raises(InsufficientCreditsError):
            await CreditManager.adjust_balance(user.id, -6, db)
        await db.rollback()

        assert await balance_of(user.id) == 5

    @pytest.mark.asyncio
    async def test_missing_balance_row(self, db):
        with pytest.raises(BalanceNotFoundError):
            await CreditManager.adjust_balance(str(uuid.uuid4()), 10, db)


class TestCreditBalance:

    @pytest.mark.asyncio
    async def test_adds_to_existing_row(self, db, make_user):
        user = await make_user(credits=10)
        assert await CreditManager.credit_balance(user.id, 15, db) == 25

    @pytest.mark.asyncio
    async def test_creates_missing_row(self, db, make_user, balance_of):
        user = await make_user(credits=0)
        await db.execute(delete(CreditBalance).where(CreditBalance.user_id == user.id))
        await db.commit()

        assert await CreditManager.credit_balance(user.id, 30, db) == 30
        await db.commit()
        assert await balance_of(user.id) == 30

    @pytest.mark.asyncio
    async def test_missing_row_not_created_when_disabled(self, db):
        with pytest.raises(BalanceNotFoundError):
            await CreditManager.credit_balance(str(uuid.uuid4()), 5, db, create_missing=False)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self, db, make_user):
        user = await make_user()
        with pytest.raises(ValueError):
            await CreditManager.credit_balance(user.id, 0, db)


class TestLedger:

    @pytest.mark.asyncio
    async def test_balance_matches_ledger_sum(self, db, make_user, balance_of):
        user = await make_user(credits=50)

        await CreditManager.adjust_balance(user.id, -4, db)
        await CreditManager.record_transaction(user.id, -4, TransactionType.USAGE, "Code generation", db)
        await CreditManager.adjust_balance(user.id, 20, db)
        await CreditManager.record_transaction(user.id, 20, TransactionType.PURCHASE, "Payment", db)
        await db.commit()

        assert await balance_of(user.id) == 66
        assert await CreditManager.ledger_total(user.id, db) == 66

    @pytest.mark.asyncio
    async def test_transaction_history_filter(self, db, make_user):
        user = await make_user(credits=50)
        await CreditManager.record_transaction(user.id, -1, TransactionType.USAGE, "a", db)
        await CreditManager.record_transaction(user.id, -2, TransactionType.USAGE, "b", db)
        await db.commit()

        items, total = await CreditManager.get_transaction_history(user.id, db)
        assert total == 3
        assert len(items) == 3

        usage, usage_total = await CreditManager.get_transaction_history(
            user.id, db, transaction_type=TransactionType.USAGE
        )
        assert usage_total == 2
        assert {t.amount for t in usage} == {-1, -2}

        page, _ = await CreditManager.get_transaction_history(user.id, db, limit=1)
        assert len(page) == 1
