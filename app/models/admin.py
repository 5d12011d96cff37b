"""
Admin audit log and stored provider API keys.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON
from sqlalchemy.sql import func
import uuid

from app.db.base import Base


class AdminLog(Base):
    """Audit record of an admin action."""

    __tablename__ = "admin_logs"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    admin_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    target_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AdminLog(action={self.action}, admin_id={self.admin_id})>"


class ApiKey(Base):
    """Provider API key rotated from the admin console."""

    __tablename__ = "api_keys"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    key_name = Column(String(100), unique=True, nullable=False)
    key_value = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<ApiKey(key_name={self.key_name})>"
