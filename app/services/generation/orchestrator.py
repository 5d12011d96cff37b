"""
Code generation orchestrator.

Order of operations: validate, check balance, price, call the provider,
then debit and record usage in one transaction, then store the generation.
Nothing is charged unless the provider returned code.
"""

import logging
from typing import Optional, Callable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import (
    InsufficientCreditsError,
    MissingFieldsError,
    ProviderError,
    ServiceError,
    StorageError,
)
from app.core.metrics import GENERATIONS_TOTAL, CREDITS_DEBITED_TOTAL
from app.models.credit import TransactionType
from app.models.generation import CodeGeneration
from app.schemas.generation import GenerationResult
from app.services.completion.client import GeminiClient, resolve_api_key
from app.services.completion.prompts import build_generation_prompt
from app.services.credits.manager import CreditManager
from app.services.credits.pricing import calculate_generation_cost

logger = logging.getLogger(__name__)


def usage_description(
    language: str,
    complexity: str,
    include_tests: bool,
    framework: Optional[str]
) -> str:
    """Ledger description for a generation charge."""
    details = complexity
    if include_tests:
        details += ", with tests"
    if framework:
        details += f", {framework}"
    return f"Code generation - {language} ({details})"


class GenerationOrchestrator:
    """Runs a single code generation for a user."""

    def __init__(
        self,
        db: AsyncSession,
        client_factory: Callable[[str], GeminiClient] = GeminiClient
    ):
        """
        Args:
            db: Write session; the orchestrator commits it explicitly
            client_factory: Builds a completion client from an API key
        """
        self.db = db
        self.client_factory = client_factory

    async def generate(
        self,
        user_id: str,
        prompt: Optional[str],
        language: Optional[str],
        complexity: str = "intermediate",
        include_tests: bool = False,
        include_comments: bool = True,
        framework: Optional[str] = None
    ) -> GenerationResult:
        """
        Generate code and charge for it.

        Args:
            user_id: Authenticated user
            prompt: What the code should do
            language: Target language
            complexity: simple, intermediate or advanced
            include_tests: Ask for unit tests (+1 credit)
            include_comments: Ask for explanatory comments
            framework: Optional framework (+1 credit)

        Returns:
            Generated code, credits charged and remaining balance

        Raises:
            MissingFieldsError: If prompt or language is blank
            InsufficientCreditsError: If the balance cannot cover the cost
            ProviderError: If the provider fails or returns nothing
            StorageError: If the charge cannot be recorded
        """
        if not prompt or not prompt.strip() or not language or not language.strip():
            raise MissingFieldsError("Missing required fields: prompt and language")

        framework = framework.strip() if framework and framework.strip() else None

        try:
            result = await self._generate(
                user_id, prompt.strip(), language.strip(), complexity,
                include_tests, include_comments, framework
            )
        except ServiceError as e:
            GENERATIONS_TOTAL.labels(outcome=e.code).inc()
            raise

        GENERATIONS_TOTAL.labels(outcome="success").inc()
        return result

    async def _generate(
        self,
        user_id: str,
        prompt: str,
        language: str,
        complexity: str,
        include_tests: bool,
        include_comments: bool,
        framework: Optional[str]
    ) -> GenerationResult:
        balance = await CreditManager.get_balance(user_id, self.db)
        if balance < 1:
            raise InsufficientCreditsError(
                "Insufficient credits. Please purchase more credits to continue."
            )

        cost = calculate_generation_cost(complexity, include_tests, framework)
        if balance < cost:
            raise InsufficientCreditsError(
                f"Insufficient credits. Need {cost} credits for this generation."
            )

        api_key = await resolve_api_key(self.db)
        full_prompt = build_generation_prompt(
            prompt, language, complexity, include_tests, include_comments, framework
        )

        # Release the read transaction before the slow provider call
        await self.db.rollback()

        logger.info(f"Generating {language} code for user {user_id} (cost={cost})")
        code = await self.client_factory(api_key).generate(full_prompt)

        remaining = await self._charge(user_id, cost, language, complexity, include_tests, framework)
        generation_id = await self._store_generation(
            user_id, prompt, code, language, complexity, framework, cost
        )

        return GenerationResult(
            code=code,
            credits_used=cost,
            remaining_credits=remaining,
            generation_id=generation_id,
        )

    async def _charge(
        self,
        user_id: str,
        cost: int,
        language: str,
        complexity: str,
        include_tests: bool,
        framework: Optional[str]
    ) -> int:
        try:
            remaining = await CreditManager.adjust_balance(user_id, -cost, self.db)
            await CreditManager.record_transaction(
                user_id,
                -cost,
                TransactionType.USAGE,
                usage_description(language, complexity, include_tests, framework),
                self.db,
            )
            await self.db.commit()
        except InsufficientCreditsError:
            # Balance dropped between the check and the debit
            await self.db.rollback()
            raise InsufficientCreditsError(
                f"Insufficient credits. Need {cost} credits for this generation."
            )
        except StorageError:
            await self.db.rollback()
            logger.error(f"Charge of {cost} credits for user {user_id} rolled back after storage failure")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to commit charge of {cost} credits for user {user_id}: {e}", exc_info=True)
            raise StorageError("Failed to update credits") from e

        CREDITS_DEBITED_TOTAL.inc(cost)
        return remaining

    async def _store_generation(
        self,
        user_id: str,
        prompt: str,
        code: str,
        language: str,
        complexity: str,
        framework: Optional[str],
        cost: int
    ) -> Optional[str]:
        generation = CodeGeneration(
            user_id=user_id,
            prompt=prompt,
            generated_code=code,
            language=language,
            complexity=complexity,
            framework=framework,
            credits_used=cost,
            model_used=settings.GEMINI_MODEL,
        )
        try:
            self.db.add(generation)
            await self.db.commit()
        except SQLAlchemyError as e:
            # The charge is already committed; the code is still returned
            await self.db.rollback()
            logger.error(f"Failed to save generation for user {user_id}: {e}", exc_info=True)
            return None

        return generation.id
