"""
Generation orchestrator tests.

The completion client is replaced by a mock factory; everything else runs
against the test database.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.core.exceptions import (
    GenerationNotFoundError,
    InsufficientCreditsError,
    MissingFieldsError,
    ProviderError,
)
from app.models.credit import CreditTransaction, TransactionType
from app.models.generation import CodeGeneration
from app.services.credits.manager import CreditManager
from app.services.generation.history import GenerationHistory
from app.services.generation.orchestrator import GenerationOrchestrator, usage_description


GENERATED_CODE = "from django.http import HttpResponse\n\ndef index(request):\n    return HttpResponse('ok')\n"


@pytest.fixture
def completion():
    """Mock completion client and the factory that builds it."""
    client = MagicMock()
    client.generate = AsyncMock(return_value=GENERATED_CODE)
    factory = MagicMock(return_value=client)
    return factory, client


async def usage_entries(db, user_id):
    result = await db.execute(
        select(CreditTransaction).where(
            CreditTransaction.user_id == user_id,
            CreditTransaction.transaction_type == TransactionType.USAGE,
        )
    )
    return list(result.scalars().all())


async def generation_count(db, user_id):
    result = await db.execute(select(CodeGeneration).where(CodeGeneration.user_id == user_id))
    return len(result.scalars().all())


class TestGenerate:

    @pytest.mark.asyncio
    async def test_full_options_cost_four(self, db, make_user, balance_of, completion):
        factory, client = completion
        user = await make_user(credits=10)

        result = await GenerationOrchestrator(db, client_factory=factory).generate(
            user_id=user.id,
            prompt="A hello world view",
            language="Python",
            complexity="advanced",
            include_tests=True,
            framework="Django",
        )

        assert result.code == GENERATED_CODE
        assert result.credits_used == 4
        assert result.remaining_credits == 6
        assert result.generation_id is not None

        assert await balance_of(user.id) == 6
        entries = await usage_entries(db, user.id)
        assert [e.amount for e in entries] == [-4]
        assert entries[0].description == "Code generation - Python (advanced, with tests, Django)"
        assert await CreditManager.ledger_total(user.id, db) == 6

        stored = await GenerationHistory.get(result.generation_id, user.id, db)
        assert stored.credits_used == 4
        assert stored.framework == "Django"
        assert stored.generated_code == GENERATED_CODE

        factory.assert_called_once_with(settings.GEMINI_API_KEY)
        prompt = client.generate.await_args.args[0]
        assert "A hello world view" in prompt

    @pytest.mark.asyncio
    async def test_default_options_cost_one(self, db, make_user, completion):
        factory, _ = completion
        user = await make_user(credits=1)

        result = await GenerationOrchestrator(db, client_factory=factory).generate(
            user_id=user.id, prompt="Reverse a string", language="Go"
        )

        assert result.credits_used == 1
        assert result.remaining_credits == 0

    @pytest.mark.asyncio
    async def test_zero_balance_rejected(self, db, make_user, completion):
        factory, _ = completion
        user = await make_user(credits=0)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await GenerationOrchestrator(db, client_factory=factory).generate(
                user_id=user.id, prompt="Anything", language="Rust"
            )

        assert exc_info.value.message == "Insufficient credits. Please purchase more credits to continue."
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_balance_below_cost_rejected(self, db, make_user, balance_of, completion):
        factory, _ = completion
        user = await make_user(credits=1)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await GenerationOrchestrator(db, client_factory=factory).generate(
                user_id=user.id, prompt="Anything", language="Rust", complexity="advanced"
            )

        assert exc_info.value.message == "Insufficient credits. Need 2 credits for this generation."
        factory.assert_not_called()
        assert await balance_of(user.id) == 1

    @pytest.mark.asyncio
    async def test_provider_failure_charges_nothing(self, db, make_user, balance_of, completion):
        factory, client = completion
        client.generate.side_effect = ProviderError("Gemini API error: 503")
        user = await make_user(credits=10)

        with pytest.raises(ProviderError):
            await GenerationOrchestrator(db, client_factory=factory).generate(
                user_id=user.id, prompt="Sort a list", language="Python", include_tests=True
            )

        assert await balance_of(user.id) == 10
        assert await usage_entries(db, user.id) == []
        assert await generation_count(db, user.id) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt,language", [
        ("", "Python"),
        ("   ", "Python"),
        ("Sort a list", ""),
        (None, "Python"),
        ("Sort a list", None),
    ])
    async def test_missing_fields(self, db, make_user, balance_of, completion, prompt, language):
        factory, _ = completion
        user = await make_user(credits=10)

        with pytest.raises(MissingFieldsError):
            await GenerationOrchestrator(db, client_factory=factory).generate(
                user_id=user.id, prompt=prompt, language=language
            )

        factory.assert_not_called()
        assert await balance_of(user.id) == 10

    @pytest.mark.asyncio
    async def test_missing_api_key_charges_nothing(self, db, make_user, balance_of, completion, monkeypatch):
        monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
        factory, _ = completion
        user = await make_user(credits=10)

        with pytest.raises(ProviderError):
            await GenerationOrchestrator(db, client_factory=factory).generate(
                user_id=user.id, prompt="Sort a list", language="Python"
            )

        factory.assert_not_called()
        assert await balance_of(user.id) == 10

    @pytest.mark.asyncio
    async def test_balance_spent_during_generation(self, db, make_user, balance_of, completion):
        factory, client = completion
        user = await make_user(credits=2)

        async def spend_elsewhere(prompt):
            await CreditManager.adjust_balance(user.id, -2, db)
            await db.commit()
            return GENERATED_CODE

        client.generate.side_effect = spend_elsewhere

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await GenerationOrchestrator(db, client_factory=factory).generate(
                user_id=user.id, prompt="Sort a list", language="Python"
            )

        assert exc_info.value.message == "Insufficient credits. Need 1 credits for this generation."
        assert await balance_of(user.id) == 0
        assert await usage_entries(db, user.id) == []
        assert await generation_count(db, user.id) == 0

    @pytest.mark.asyncio
    async def test_storage_failure_keeps_charge(self, db, make_user, balance_of, completion, monkeypatch):
        factory, _ = completion
        user = await make_user(credits=5)
        commit = db.commit
        commits = []

        async def fail_second_commit():
            commits.append(1)
            if len(commits) == 2:
                raise OperationalError("INSERT INTO code_generations", {}, Exception("disk I/O error"))
            await commit()

        monkeypatch.setattr(db, "commit", fail_second_commit)

        result = await GenerationOrchestrator(db, client_factory=factory).generate(
            user_id=user.id, prompt="Sort a list", language="Python"
        )

        assert result.code == GENERATED_CODE
        assert result.generation_id is None
        assert result.remaining_credits == 4
        assert len(commits) == 2
        assert await balance_of(user.id) == 4
        assert [e.amount for e in await usage_entries(db, user.id)] == [-1]
        assert await generation_count(db, user.id) == 0


class TestUsageDescription:

    def test_plain(self):
        assert usage_description("Python", "simple", False, None) == "Code generation - Python (simple)"

    def test_with_options(self):
        assert (
            usage_description("TypeScript", "intermediate", True, "React")
            == "Code generation - TypeScript (intermediate, with tests, React)"
        )


class TestHistory:

    @pytest.mark.asyncio
    async def test_private_generation_hidden_from_others(self, db, make_user, completion):
        factory, _ = completion
        owner = await make_user(credits=5)
        other = await make_user(credits=5)

        result = await GenerationOrchestrator(db, client_factory=factory).generate(
            user_id=owner.id, prompt="Hello", language="Python"
        )

        with pytest.raises(GenerationNotFoundError):
            await GenerationHistory.get(result.generation_id, other.id, db)

        await GenerationHistory.set_visibility(result.generation_id, owner.id, True, db)
        await db.commit()

        shared = await GenerationHistory.get(result.generation_id, other.id, db)
        assert shared.is_public is True
        assert await GenerationHistory.like(result.generation_id, db) == 1

    @pytest.mark.asyncio
    async def test_delete_keeps_ledger(self, db, make_user, completion):
        factory, _ = completion
        user = await make_user(credits=5)

        result = await GenerationOrchestrator(db, client_factory=factory).generate(
            user_id=user.id, prompt="Hello", language="Python"
        )
        await GenerationHistory.delete(result.generation_id, user.id, db)
        await db.commit()

        assert await generation_count(db, user.id) == 0
        assert len(await usage_entries(db, user.id)) == 1
