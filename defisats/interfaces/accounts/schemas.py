"""
Pydantic schemas for the accounts API.

These schemas enforce input validation and define the API contract.
No business logic belongs here.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from defisats.domain.accounts.entities import PlanType

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ExchangeCredentialsRequest(BaseModel):
    """LN Markets API key triple."""

    api_key: str = Field(..., min_length=1, max_length=256)
    api_secret: str = Field(..., min_length=1, max_length=256)
    passphrase: str = Field(..., min_length=1, max_length=256)
    testnet: bool = False


class RegisterRequest(ExchangeCredentialsRequest):
    """Request schema for registration.

    Attributes:
        email: Login email.
        username: 3-30 chars of letters, digits, ``_ . -``.
        password: At least 8 characters.
        coupon_code: Optional coupon applied at signup.
    """

    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    coupon_code: str | None = Field(default=None, max_length=64)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    user_id: UUID
    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int = Field(description="Access token lifetime in seconds")
    plan_type: PlanType


class UpdateProfileRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)


class UserResponse(BaseModel):
    """Public view of a user."""

    id: UUID
    email: str
    username: str
    plan_type: PlanType
    is_active: bool
    is_admin: bool
    has_exchange_credentials: bool
    testnet: bool
    created_at: datetime | None = None
    last_activity_at: datetime | None = None


class UsernameAvailabilityResponse(BaseModel):
    username: str
    available: bool


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int


class SetActiveRequest(BaseModel):
    is_active: bool


class ChangePlanRequest(BaseModel):
    plan_type: PlanType
