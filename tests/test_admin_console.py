"""
Admin console tests.
"""

import pytest
from sqlalchemy import select

from app.core.exceptions import ForbiddenError, InsufficientCreditsError, InvalidRequestError, UserNotFoundError
from app.models.admin import AdminLog
from app.models.credit import CreditTransaction, TransactionType
from app.models.generation import CodeGeneration
from app.services.accounts.stats import get_user_stats
from app.services.admin.console import AdminConsole
from app.services.completion.client import resolve_api_key
from app.services.credits.manager import CreditManager
from app.services.generation.history import GenerationHistory


async def admin_actions(db):
    return [log.action for log in (await db.execute(select(AdminLog).order_by(AdminLog.created_at))).scalars().all()]


class TestAccess:

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, db, make_user):
        user = await make_user()
        with pytest.raises(ForbiddenError):
            AdminConsole(db, user)


class TestModeration:

    @pytest.mark.asyncio
    async def test_toggle_ban(self, db, make_user, make_admin):
        user = await make_user()
        console = AdminConsole(db, await make_admin())

        banned = await console.toggle_ban(user.id)
        assert banned.is_banned is True

        unbanned = await console.toggle_ban(user.id)
        assert unbanned.is_banned is False

        assert sorted(await admin_actions(db)) == ["ban_user", "unban_user"]

    @pytest.mark.asyncio
    async def test_admin_cannot_be_banned(self, db, make_admin):
        admin = await make_admin()
        other_admin = await make_admin()

        with pytest.raises(ForbiddenError):
            await AdminConsole(db, admin).toggle_ban(other_admin.id)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db, make_admin):
        with pytest.raises(UserNotFoundError):
            await AdminConsole(db, await make_admin()).toggle_ban("missing")

    @pytest.mark.asyncio
    async def test_list_users_with_balances(self, db, make_user, make_admin):
        user = await make_user(credits=35)
        console = AdminConsole(db, await make_admin())

        rows, total = await console.list_users(search=user.email)

        assert total == 1
        assert [(u.id, credits) for u, credits in rows] == [(user.id, 35)]


class TestCreditAdjustment:

    @pytest.mark.asyncio
    async def test_add_credits(self, db, make_user, make_admin, balance_of):
        user = await make_user(credits=50)
        console = AdminConsole(db, await make_admin())

        assert await console.adjust_credits(user.id, 25, reason="Support goodwill") == 75
        assert await balance_of(user.id) == 75
        assert await CreditManager.ledger_total(user.id, db) == 75

        entry = (await db.execute(
            select(CreditTransaction).where(
                CreditTransaction.user_id == user.id,
                CreditTransaction.transaction_type == TransactionType.ADMIN_ADJUSTMENT,
            )
        )).scalar_one()
        assert entry.amount == 25
        assert entry.description == "Admin adjustment - Support goodwill"
        assert await admin_actions(db) == ["adjust_credits"]

    @pytest.mark.asyncio
    async def test_deduction_cannot_overdraw(self, db, make_user, make_admin, balance_of):
        user = await make_user(credits=50)
        console = AdminConsole(db, await make_admin())

        with pytest.raises(InsufficientCreditsError):
            await console.adjust_credits(user.id, -100)

        assert await balance_of(user.id) == 50
        assert await admin_actions(db) == []

    @pytest.mark.asyncio
    async def test_zero_adjustment_rejected(self, db, make_user, make_admin):
        user = await make_user()
        with pytest.raises(InvalidRequestError):
            await AdminConsole(db, await make_admin()).adjust_credits(user.id, 0)


class TestApiKeys:

    @pytest.mark.asyncio
    async def test_rotate_gemini_key(self, db, make_admin):
        console = AdminConsole(db, await make_admin())

        await console.update_api_key("GEMINI_API_KEY", "first-key")
        await console.update_api_key("GEMINI_API_KEY", "  second-key ")

        assert await resolve_api_key(db) == "second-key"
        assert await admin_actions(db) == ["update_api_key", "update_api_key"]

    @pytest.mark.asyncio
    async def test_unknown_key_type(self, db, make_admin):
        with pytest.raises(InvalidRequestError) as exc_info:
            await AdminConsole(db, await make_admin()).update_api_key("OPENAI_API_KEY", "x")
        assert exc_info.value.message == "Invalid API key type"


class TestStats:

    @pytest.mark.asyncio
    async def test_platform_stats(self, db, make_user, make_admin):
        await make_user()
        await make_user()
        admin = await make_admin()

        stats = await AdminConsole(db, admin).get_stats()

        assert stats == {
            "total_users": 3,
            "total_generations": 0,
            "total_credits_used": 0,
            "active_users_today": 0,
            "pending_payments": 0,
        }

    @pytest.mark.asyncio
    async def test_credits_used_survive_generation_delete(self, db, make_user, make_admin):
        user = await make_user(credits=20)
        admin = await make_admin()
        await CreditManager.adjust_balance(user.id, -2, db)
        await CreditManager.record_transaction(user.id, -2, TransactionType.USAGE, "Code generation", db)
        generation = CodeGeneration(
            user_id=user.id, prompt="Hello", generated_code="print('hi')", language="Python", credits_used=2
        )
        db.add(generation)
        await db.commit()

        await GenerationHistory.delete(generation.id, user.id, db)

        stats = await AdminConsole(db, admin).get_stats()
        assert stats["total_generations"] == 0
        assert stats["total_credits_used"] == 2
        assert stats["total_credits_used"] == (await get_user_stats(user.id, db))["credits_used"]
