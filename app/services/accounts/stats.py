"""
Per-user dashboard statistics.
"""

from typing import Dict, Any
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.credit import CreditBalance, CreditTransaction, TransactionType
from app.models.generation import CodeGeneration
from app.models.referral import Referral


async def get_user_stats(user_id: str, db: AsyncSession) -> Dict[str, Any]:
    """
    Summarize a user's activity.

    Credits used come from the usage ledger, so deleting a generation does
    not lower the figure.
    """
    total_generations = (await db.execute(
        select(func.count(CodeGeneration.id)).where(CodeGeneration.user_id == user_id)
    )).scalar_one()

    credits_used = (await db.execute(
        select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id,
            CreditTransaction.transaction_type == TransactionType.USAGE,
        )
    )).scalar_one()

    language_count = func.count(CodeGeneration.id)
    most_used = (await db.execute(
        select(CodeGeneration.language)
        .where(CodeGeneration.user_id == user_id)
        .group_by(CodeGeneration.language)
        .order_by(language_count.desc(), CodeGeneration.language)
        .limit(1)
    )).scalar_one_or_none()

    referral_count = (await db.execute(
        select(func.count(Referral.id)).where(Referral.referrer_id == user_id)
    )).scalar_one()

    balance = (await db.execute(
        select(CreditBalance.amount).where(CreditBalance.user_id == user_id)
    )).scalar_one_or_none()

    return {
        "total_generations": total_generations,
        "credits_used": -int(credits_used),
        "most_used_language": most_used,
        "referral_count": referral_count,
        "current_balance": balance or 0,
    }
