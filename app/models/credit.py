"""
Credit balance and credit ledger models.

``credits`` holds the current balance (one row per user); every change to it
is mirrored by an append-only ``credit_transactions`` row so that the sum of
a user's transaction amounts equals their balance.
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum as SQLEnum, Text
from sqlalchemy.sql import func
import enum
import uuid

from app.db.base import Base


class TransactionType(str, enum.Enum):
    """Credit transaction type."""
    PURCHASE = "purchase"
    USAGE = "usage"
    BONUS = "bonus"
    REFUND = "refund"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class CreditBalance(Base):
    """Current credit balance of a user."""

    __tablename__ = "credits"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    # Never negative; enforced by the conditional update in CreditManager.adjust_balance
    amount = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<CreditBalance(user_id={self.user_id}, amount={self.amount})>"


class CreditTransaction(Base):
    """Credit ledger entry. Rows are never updated or deleted."""

    __tablename__ = "credit_transactions"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Positive for purchase/bonus/refund, negative for usage
    amount = Column(Integer, nullable=False)
    transaction_type = Column(
        SQLEnum(TransactionType, name="transaction_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    description = Column(Text, nullable=True)

    # Payment transaction id for purchases
    reference_id = Column(String(36), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<CreditTransaction(id={self.id}, type={self.transaction_type}, amount={self.amount})>"
