"""
Database models package.
"""

from app.models.user import User, UserRole
from app.models.credit import CreditBalance, CreditTransaction, TransactionType
from app.models.generation import CodeGeneration
from app.models.payment import PaymentMethod, PaymentTransaction, PaymentStatus
from app.models.admin import AdminLog, ApiKey
from app.models.referral import Referral

__all__ = [
    "User",
    "UserRole",
    "CreditBalance",
    "CreditTransaction",
    "TransactionType",
    "CodeGeneration",
    "PaymentMethod",
    "PaymentTransaction",
    "PaymentStatus",
    "AdminLog",
    "ApiKey",
    "Referral",
]
