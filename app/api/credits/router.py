"""
Credit balance and ledger API endpoints.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.dependencies import get_current_user, get_db_read
from app.models.credit import TransactionType
from app.schemas.user import CurrentUser
from app.services.credits.manager import CreditManager

logger = logging.getLogger(__name__)

router = APIRouter()


class BalanceResponse(BaseModel):
    """Credits balance response."""
    user_id: str
    credits: int


class CreditTransactionResponse(BaseModel):
    """Credit ledger entry."""
    id: str
    transaction_type: TransactionType
    amount: int
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditTransactionsResponse(BaseModel):
    """Paginated credit transactions response."""
    total: int
    page: int
    page_size: int
    transactions: List[CreditTransactionResponse]


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    credits = await CreditManager.get_balance(current_user.id, db)
    return BalanceResponse(user_id=current_user.id, credits=credits)


@router.get("/transactions", response_model=CreditTransactionsResponse)
async def get_transactions(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    transaction_type: Optional[TransactionType] = Query(None, description="Filter by transaction type"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    """
    The caller's credit ledger, newest first.
    """
    logger.info(
        f"Get credit transactions for user: {current_user.id}, page={page}, "
        f"page_size={page_size}, type={transaction_type}"
    )
    transactions, total = await CreditManager.get_transaction_history(
        current_user.id,
        db,
        limit=page_size,
        offset=(page - 1) * page_size,
        transaction_type=transaction_type,
    )
    return CreditTransactionsResponse(
        total=total,
        page=page,
        page_size=page_size,
        transactions=[CreditTransactionResponse.model_validate(t) for t in transactions],
    )
