"""
Admin API endpoints.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.dependencies import get_admin_user, get_db_read, get_db_write
from app.models.payment import PaymentStatus
from app.models.user import UserRole
from app.schemas.payment import (
    PaymentMethodResponse,
    PaymentMethodUpdateRequest,
    PaymentTransactionResponse,
    ReviewPaymentRequest,
    ReviewResult,
)
from app.schemas.user import CurrentUser
from app.services.admin.console import AdminConsole
from app.services.payment.intake import PaymentIntake
from app.services.payment.methods import describe_method, list_methods, update_method
from app.services.payment.review import PaymentReviewWorkflow

logger = logging.getLogger(__name__)

router = APIRouter()


class AdminUserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    role: UserRole
    is_banned: bool
    credits: int
    created_at: datetime


class AdminUserListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    users: List[AdminUserResponse]


class BanResponse(BaseModel):
    id: str
    is_banned: bool


class CreditAdjustmentRequest(BaseModel):
    amount: int = Field(..., description="Credits to add (positive) or remove (negative)")
    reason: Optional[str] = Field(None, max_length=500)


class CreditAdjustmentResponse(BaseModel):
    user_id: str
    credits: int


class ApiKeyUpdateRequest(BaseModel):
    key_name: str
    key_value: str


class ApiKeyUpdateResponse(BaseModel):
    success: bool = True
    message: str


class AdminPaymentListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    payments: List[PaymentTransactionResponse]


class AdminLogResponse(BaseModel):
    id: str
    admin_id: str
    action: str
    target_user_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class StatsResponse(BaseModel):
    total_users: int
    total_generations: int
    total_credits_used: int
    active_users_today: int
    pending_payments: int


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Match email or name"),
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_read)
):
    rows, total = await AdminConsole(db, admin).list_users(
        limit=page_size, offset=(page - 1) * page_size, search=search
    )
    return AdminUserListResponse(
        total=total,
        page=page,
        page_size=page_size,
        users=[
            AdminUserResponse(
                id=user.id,
                email=user.email,
                full_name=user.full_name,
                role=user.role,
                is_banned=user.is_banned,
                credits=credits,
                created_at=user.created_at,
            )
            for user, credits in rows
        ],
    )


@router.post("/users/{user_id}/ban", response_model=BanResponse)
async def toggle_ban(
    user_id: str,
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_write)
):
    """Ban an active user or lift an existing ban."""
    user = await AdminConsole(db, admin).toggle_ban(user_id)
    return BanResponse(id=user.id, is_banned=user.is_banned)


@router.post("/users/{user_id}/credits", response_model=CreditAdjustmentResponse)
async def adjust_credits(
    user_id: str,
    request: CreditAdjustmentRequest,
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_write)
):
    balance = await AdminConsole(db, admin).adjust_credits(user_id, request.amount, request.reason)
    return CreditAdjustmentResponse(user_id=user_id, credits=balance)


@router.put("/api-keys", response_model=ApiKeyUpdateResponse)
async def update_api_key(
    request: ApiKeyUpdateRequest,
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_write)
):
    """Rotate the completion provider key."""
    await AdminConsole(db, admin).update_api_key(request.key_name, request.key_value)
    return ApiKeyUpdateResponse(message="API key updated successfully")


@router.get("/payments", response_model=AdminPaymentListResponse)
async def list_payments(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_read)
):
    payments, total = await AdminConsole(db, admin).list_payments(
        status=status_filter, limit=page_size, offset=(page - 1) * page_size
    )
    return AdminPaymentListResponse(
        total=total,
        page=page,
        page_size=page_size,
        payments=[PaymentTransactionResponse.model_validate(p) for p in payments],
    )


@router.post("/payments/{payment_id}/review", response_model=ReviewResult)
async def review_payment(
    payment_id: str,
    request: ReviewPaymentRequest,
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_write)
):
    """
    Approve or reject a pending payment.

    Returns 409 if the payment has already been reviewed.
    """
    workflow = PaymentReviewWorkflow(db)
    return await workflow.review(
        payment_id,
        admin,
        request.decision,
        admin_notes=request.admin_notes,
        credits_to_award=request.credits_to_award,
    )


@router.post("/payments/{payment_id}/retry", response_model=PaymentTransactionResponse)
async def retry_payment(
    payment_id: str,
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_write)
):
    """Finish an automated payment that is stuck in processing."""
    transaction = await PaymentIntake(db).complete_processing_payment(payment_id)
    logger.info(f"Admin {admin.id} retried payment {payment_id}: {transaction.status.value}")
    return PaymentTransactionResponse.model_validate(transaction)


@router.get("/payment-methods", response_model=List[PaymentMethodResponse])
async def get_payment_methods(
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_read)
):
    methods = await list_methods(db, enabled_only=False)
    return [PaymentMethodResponse(**describe_method(m, include_secrets=True)) for m in methods]


@router.put("/payment-methods/{method_id}", response_model=PaymentMethodResponse)
async def update_payment_method(
    method_id: str,
    request: PaymentMethodUpdateRequest,
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_write)
):
    method = await update_method(
        method_id,
        db,
        display_name=request.display_name,
        is_enabled=request.is_enabled,
        config=request.config,
    )
    await db.commit()
    logger.info(f"Admin {admin.id} updated payment method {method.name}")
    return PaymentMethodResponse(**describe_method(method, include_secrets=True))


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_read)
):
    return StatsResponse(**await AdminConsole(db, admin).get_stats())


@router.get("/logs", response_model=List[AdminLogResponse])
async def get_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    admin: CurrentUser = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db_read)
):
    logs = await AdminConsole(db, admin).list_logs(limit=page_size, offset=(page - 1) * page_size)
    return [
        AdminLogResponse(
            id=log.id,
            admin_id=log.admin_id,
            action=log.action,
            target_user_id=log.target_user_id,
            details=log.details,
            created_at=log.created_at,
        )
        for log in logs
    ]
