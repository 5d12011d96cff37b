"""
Generation history: listing, sharing, likes and deletion.
"""

import logging
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func

from app.core.exceptions import GenerationNotFoundError
from app.models.generation import CodeGeneration

logger = logging.getLogger(__name__)


class GenerationHistory:
    """Queries and the few permitted mutations on stored generations."""

    @staticmethod
    async def list_for_user(
        user_id: str,
        db: AsyncSession,
        limit: int = 20,
        offset: int = 0,
        language: Optional[str] = None
    ) -> Tuple[List[CodeGeneration], int]:
        """
        Get a page of a user's generations, newest first.

        Returns:
            Tuple of (generations, total count)
        """
        conditions = [CodeGeneration.user_id == user_id]
        if language:
            conditions.append(CodeGeneration.language == language)

        total = (await db.execute(
            select(func.count(CodeGeneration.id)).where(*conditions)
        )).scalar_one()

        result = await db.execute(
            select(CodeGeneration)
            .where(*conditions)
            .order_by(CodeGeneration.created_at.desc(), CodeGeneration.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def list_public(
        db: AsyncSession,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[CodeGeneration], int]:
        """Get a page of shared generations, most liked first."""
        total = (await db.execute(
            select(func.count(CodeGeneration.id)).where(CodeGeneration.is_public.is_(True))
        )).scalar_one()

        result = await db.execute(
            select(CodeGeneration)
            .where(CodeGeneration.is_public.is_(True))
            .order_by(CodeGeneration.like_count.desc(), CodeGeneration.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def get(generation_id: str, user_id: str, db: AsyncSession) -> CodeGeneration:
        """
        Get a generation owned by the user or shared publicly.

        Raises:
            GenerationNotFoundError: If it does not exist or is private to someone else
        """
        result = await db.execute(select(CodeGeneration).where(CodeGeneration.id == generation_id))
        generation = result.scalar_one_or_none()
        if generation is None or (generation.user_id != user_id and not generation.is_public):
            raise GenerationNotFoundError()
        return generation

    @staticmethod
    async def set_visibility(
        generation_id: str,
        user_id: str,
        is_public: bool,
        db: AsyncSession
    ) -> CodeGeneration:
        """Share or unshare one of the user's generations."""
        result = await db.execute(
            select(CodeGeneration).where(
                CodeGeneration.id == generation_id,
                CodeGeneration.user_id == user_id,
            )
        )
        generation = result.scalar_one_or_none()
        if generation is None:
            raise GenerationNotFoundError()

        generation.is_public = is_public
        await db.flush()
        logger.info(f"Generation {generation_id} visibility set to {'public' if is_public else 'private'}")
        return generation

    @staticmethod
    async def delete(generation_id: str, user_id: str, db: AsyncSession) -> None:
        """Delete one of the user's generations. The ledger entry for it is kept."""
        result = await db.execute(
            delete(CodeGeneration)
            .where(CodeGeneration.id == generation_id, CodeGeneration.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise GenerationNotFoundError()
        logger.info(f"Generation {generation_id} deleted by user {user_id}")

    @staticmethod
    async def like(generation_id: str, db: AsyncSession) -> int:
        """
        Increment the like count of a public generation.

        Returns:
            New like count
        """
        result = await db.execute(
            update(CodeGeneration)
            .where(CodeGeneration.id == generation_id, CodeGeneration.is_public.is_(True))
            .values(like_count=CodeGeneration.like_count + 1)
            .returning(CodeGeneration.like_count)
            .execution_options(synchronize_session=False)
        )
        like_count = result.scalar_one_or_none()
        if like_count is None:
            raise GenerationNotFoundError()
        return like_count
