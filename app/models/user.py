"""
User model for authentication, roles and referral tracking.
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.sql import func
import enum
import uuid

from app.db.base import Base


class UserRole(str, enum.Enum):
    """User role."""
    USER = "user"
    PREMIUM = "premium"
    ADMIN = "admin"


class User(Base):
    """User account and public profile."""

    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    # Primary Key
    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))

    # Authentication
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    # Profile
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(String(500), nullable=True)

    # Authorization
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=UserRole.USER,
        nullable=False,
    )
    is_banned = Column(Boolean, default=False, nullable=False)

    # Referrals
    referral_code = Column(String(16), unique=True, index=True, nullable=False)
    referred_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
