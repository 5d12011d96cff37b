"""
Code generation history model.
"""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
import uuid

from app.db.base import Base


class CodeGeneration(Base):
    """A successful code generation. Only visibility and likes change after creation."""

    __tablename__ = "code_generations"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Request
    prompt = Column(Text, nullable=False)
    language = Column(String(50), nullable=False, index=True)
    complexity = Column(String(20), nullable=False, default="intermediate")
    framework = Column(String(100), nullable=True)

    # Result
    generated_code = Column(Text, nullable=False)
    credits_used = Column(Integer, nullable=False, default=1)
    model_used = Column(String(50), nullable=False, default="gemini-pro")

    # Sharing
    is_public = Column(Boolean, default=False, nullable=False, index=True)
    like_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<CodeGeneration(id={self.id}, language={self.language}, credits_used={self.credits_used})>"
