"""
Payment method and payment transaction models.
"""

from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, ForeignKey, Enum as SQLEnum, Text, JSON
from sqlalchemy.sql import func
import enum
import uuid

from app.db.base import Base


class PaymentStatus(str, enum.Enum):
    """
    Payment status.

    Manual payments move pending -> approved | rejected by admin review;
    automated payments move processing -> completed within the request.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(Base):
    """Configured payment method (manual transfer, bKash, Nagad, Stripe)."""

    __tablename__ = "payment_methods"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(50), unique=True, nullable=False)
    display_name = Column(String(100), nullable=False)
    is_enabled = Column(Boolean, default=False, nullable=False)

    # Shape depends on ``name``; validated by app.services.payment.methods
    config = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PaymentMethod(name={self.name}, enabled={self.is_enabled})>"


class PaymentTransaction(Base):
    """A user's payment submission."""

    __tablename__ = "payment_transactions"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method_id = Column(String(36), ForeignKey("payment_methods.id"), nullable=False)

    # Amount
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), default="BDT", nullable=False)

    # Status
    status = Column(
        SQLEnum(PaymentStatus, name="payment_status", values_callable=lambda e: [m.value for m in e]),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Evidence supplied by the payer
    external_transaction_id = Column(String(100), nullable=True)
    proof_url = Column(String(500), nullable=True)
    sender_number = Column(String(30), nullable=True)

    # Review
    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    # Written together with the final status, never afterwards
    credits_awarded = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PaymentTransaction(id={self.id}, status={self.status}, amount={self.amount})>"
