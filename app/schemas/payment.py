"""
Pydantic schemas for payment endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any
from decimal import Decimal
from datetime import datetime
from enum import Enum

from app.models.payment import PaymentStatus


class ReviewDecision(str, Enum):
    """Admin review outcome for a pending payment."""
    APPROVED = "approved"
    REJECTED = "rejected"


class SubmitPaymentRequest(BaseModel):
    """Request model for submitting a payment."""
    payment_method_id: str
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, max_length=10, description="Defaults to BDT")
    proof_url: Optional[str] = Field(None, max_length=500)
    external_transaction_id: Optional[str] = Field(None, max_length=100)
    sender_number: Optional[str] = Field(None, max_length=30)


class PaymentTransactionResponse(BaseModel):
    """Payment transaction as shown to its owner and to admins."""
    id: str
    user_id: str
    payment_method_id: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    external_transaction_id: Optional[str] = None
    proof_url: Optional[str] = None
    sender_number: Optional[str] = None
    admin_notes: Optional[str] = None
    credits_awarded: int
    reviewed_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentSubmission(BaseModel):
    """Result of submitting a payment."""
    transaction: PaymentTransactionResponse
    message: str


class ReviewPaymentRequest(BaseModel):
    """Request model for an admin payment review."""
    decision: ReviewDecision
    admin_notes: Optional[str] = Field(None, max_length=2000)
    credits_to_award: int = Field(default=0, ge=0)


class ReviewResult(BaseModel):
    """Result of reviewing a payment."""
    message: str
    transaction: PaymentTransactionResponse


class PaymentMethodResponse(BaseModel):
    """Payment method with the configuration visible to the caller."""
    id: str
    name: str
    display_name: str
    is_enabled: bool
    requires_review: bool
    config: Dict[str, Any]


class PaymentMethodUpdateRequest(BaseModel):
    """Admin update of a payment method."""
    display_name: Optional[str] = Field(None, max_length=100)
    is_enabled: Optional[bool] = None
    config: Optional[Dict[str, Any]] = None
