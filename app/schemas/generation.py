"""
Pydantic schemas for code generation endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field, validator
from typing import Optional
from datetime import datetime
from enum import Enum


class Complexity(str, Enum):
    """Requested code complexity."""
    SIMPLE = "simple"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class GenerateRequest(BaseModel):
    """
    Request model for code generation.

    Prompt and language are checked by the orchestrator so that a blank value
    is reported as missing rather than as a schema error.
    """
    prompt: Optional[str] = Field(None, max_length=10000, description="What the code should do")
    language: Optional[str] = Field(None, max_length=50, description="Target programming language")
    complexity: Complexity = Field(default=Complexity.INTERMEDIATE)
    include_tests: bool = Field(default=False)
    include_comments: bool = Field(default=True)
    framework: Optional[str] = Field(None, max_length=100)

    @validator("framework")
    def blank_framework_is_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v


class EstimateRequest(BaseModel):
    """Request model for a generation price quote."""
    complexity: Complexity = Field(default=Complexity.INTERMEDIATE)
    include_tests: bool = False
    framework: Optional[str] = Field(None, max_length=100)


class EstimateResponse(BaseModel):
    """Quoted generation cost."""
    credits_required: int
    current_balance: int
    sufficient: bool


class GenerationResult(BaseModel):
    """Outcome of a successful generation."""
    code: str
    credits_used: int
    remaining_credits: int
    generation_id: Optional[str] = None


class GenerationResponse(BaseModel):
    """Stored generation as returned by history endpoints."""
    id: str
    user_id: str
    prompt: str
    generated_code: str
    language: str
    complexity: str
    framework: Optional[str] = None
    credits_used: int
    model_used: str
    is_public: bool
    like_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GenerationVisibilityUpdate(BaseModel):
    """Request model for sharing or unsharing a generation."""
    is_public: bool
