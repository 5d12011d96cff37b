"""
Pydantic schemas for users, authentication and the request identity.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime

from app.models.user import UserRole


class CurrentUser(BaseModel):
    """
    Identity of the caller, resolved from the bearer token.

    Passed explicitly into every service operation that needs to know who
    is acting.
    """
    id: str
    email: str
    role: UserRole = UserRole.USER
    is_banned: bool = False
    full_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class RegisterRequest(BaseModel):
    """Request model for email/password signup."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: Optional[str] = Field(None, max_length=255)
    referral_code: Optional[str] = Field(None, max_length=16)


class LoginRequest(BaseModel):
    """Request model for email/password login."""
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    """Request model for exchanging a refresh token."""
    refresh_token: str


class TokenResponse(BaseModel):
    """Issued token pair."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user_id: str


class ProfileResponse(BaseModel):
    """User profile with current balance."""
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: UserRole
    is_banned: bool
    referral_code: str
    referred_by: Optional[str] = None
    credits: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdateRequest(BaseModel):
    """Editable profile fields."""
    full_name: Optional[str] = Field(None, max_length=255)
    avatar_url: Optional[str] = Field(None, max_length=500)


class UserStatsResponse(BaseModel):
    """Dashboard statistics for the current user."""
    total_generations: int
    credits_used: int
    most_used_language: Optional[str] = None
    referral_count: int
    current_balance: int
