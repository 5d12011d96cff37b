"""
Payment API endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.dependencies import get_current_user, get_db_read, get_db_write
from app.core.exceptions import PaymentNotFoundError
from app.models.payment import PaymentTransaction, PaymentStatus
from app.schemas.payment import (
    PaymentMethodResponse,
    PaymentSubmission,
    PaymentTransactionResponse,
    SubmitPaymentRequest,
)
from app.schemas.user import CurrentUser
from app.services.payment.intake import PaymentIntake
from app.services.payment.methods import describe_method, list_methods

logger = logging.getLogger(__name__)

router = APIRouter()


class PaymentListResponse(BaseModel):
    """Paginated payment transactions."""
    total: int
    page: int
    page_size: int
    payments: List[PaymentTransactionResponse]


@router.get("/methods", response_model=List[PaymentMethodResponse])
async def get_payment_methods(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    """Enabled payment methods with their public configuration."""
    methods = await list_methods(db, enabled_only=True)
    return [PaymentMethodResponse(**describe_method(m)) for m in methods]


@router.post("", response_model=PaymentSubmission, status_code=status.HTTP_201_CREATED)
async def submit_payment(
    request: SubmitPaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_write)
):
    """
    Submit a payment.

    Manual payments wait for admin approval; automated methods credit the
    account immediately at one credit per whole currency unit.
    """
    intake = PaymentIntake(db)
    return await intake.submit_payment(
        user_id=current_user.id,
        payment_method_id=request.payment_method_id,
        amount=request.amount,
        currency=request.currency,
        proof_url=request.proof_url,
        external_transaction_id=request.external_transaction_id,
        sender_number=request.sender_number,
    )


@router.get("", response_model=PaymentListResponse)
async def list_my_payments(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    """The caller's payment submissions, newest first."""
    conditions = [PaymentTransaction.user_id == current_user.id]
    if status_filter:
        conditions.append(PaymentTransaction.status == status_filter)

    total = (await db.execute(select(func.count(PaymentTransaction.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(PaymentTransaction)
        .where(*conditions)
        .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id)
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    return PaymentListResponse(
        total=total,
        page=page,
        page_size=page_size,
        payments=[PaymentTransactionResponse.model_validate(p) for p in result.scalars().all()],
    )


@router.get("/{payment_id}", response_model=PaymentTransactionResponse)
async def get_payment(
    payment_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    result = await db.execute(
        select(PaymentTransaction).where(
            PaymentTransaction.id == payment_id,
            PaymentTransaction.user_id == current_user.id,
        )
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise PaymentNotFoundError()
    return PaymentTransactionResponse.model_validate(payment)
