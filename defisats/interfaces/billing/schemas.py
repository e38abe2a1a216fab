"""
Pydantic schemas for the coupons and payments API.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from defisats.domain.accounts.entities import PlanType
from defisats.domain.billing.entities import PaymentStatus

CODE_PATTERN = r"^[A-Za-z0-9_-]+$"


# ------------------------------------------------------------------
# Coupons
# ------------------------------------------------------------------


class CreateCouponRequest(BaseModel):
    """Request schema for coupon creation.

    Attributes:
        plan_type: Plan granted on redemption.
        code: Explicit code; generated when omitted.
        prefix: Prefix for a generated code.
        usage_limit: Maximum number of redemptions.
        expires_at: Optional expiry instant.
        description: Free text.
    """

    plan_type: PlanType
    code: str | None = Field(default=None, min_length=3, max_length=64, pattern=CODE_PATTERN)
    prefix: str = Field(default="", max_length=16, pattern=r"^[A-Za-z0-9_-]*$")
    usage_limit: int = Field(default=1, ge=1, le=100_000)
    expires_at: datetime | None = None
    description: str | None = Field(default=None, max_length=500)


class UpdateCouponRequest(BaseModel):
    code: str | None = Field(default=None, min_length=3, max_length=64, pattern=CODE_PATTERN)
    plan_type: PlanType | None = None
    usage_limit: int | None = Field(default=None, ge=1, le=100_000)
    expires_at: datetime | None = None
    description: str | None = Field(default=None, max_length=500)


class CouponResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    plan_type: PlanType
    usage_limit: int
    used_count: int
    remaining_uses: int
    expires_at: datetime | None = None
    description: str | None = None
    created_at: datetime | None = None


class RedemptionItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    coupon_id: UUID
    user_id: UUID
    used_at: datetime


class CouponStatsResponse(BaseModel):
    coupon: CouponResponse
    remaining_uses: int
    is_expired: bool
    recent_redemptions: list[RedemptionItem]


class CouponAnalyticsResponse(BaseModel):
    total_coupons: int
    active_coupons: int
    expired_coupons: int
    exhausted_coupons: int
    total_uses: int
    most_popular_plan: PlanType | None
    uses_by_plan: dict[str, int]
    recent_redemptions: list[RedemptionItem]


class CouponValidationResponse(BaseModel):
    valid: bool
    code: str
    plan_type: PlanType | None = None
    remaining_uses: int = 0
    expires_at: datetime | None = None
    reason: str | None = None


class RedeemCouponRequest(BaseModel):
    code: str = Field(..., min_length=3, max_length=64, pattern=CODE_PATTERN)


class GeneratedCodeResponse(BaseModel):
    code: str


# ------------------------------------------------------------------
# Payments
# ------------------------------------------------------------------


class CreateInvoiceRequest(BaseModel):
    plan_type: PlanType


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    plan_type: PlanType
    amount_sats: int
    status: PaymentStatus
    provider: str
    payment_hash: str
    payment_request: str
    expires_at: datetime
    description: str | None = None
    paid_at: datetime | None = None
    created_at: datetime | None = None


class ProviderStatusItem(BaseModel):
    name: str
    available: bool


class PlanItem(BaseModel):
    plan_type: PlanType
    price_sats: int
    description: str
    automation_types: list[str]
    max_protected_trades: int | None
