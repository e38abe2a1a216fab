"""
Data Transfer Objects for the billing bounded context.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

from defisats.domain.accounts.entities import PlanType
from defisats.domain.billing.entities import Coupon, CouponRedemption


@dataclass(frozen=True)
class CreateCouponCommand:
    """Input for creating a coupon.

    Attributes:
        plan_type: Plan granted on redemption.
        code: Explicit code; generated from ``prefix`` when omitted.
        prefix: Prefix for generated codes.
        usage_limit: Maximum redemptions.
        expires_at: Optional expiry instant.
        description: Free text for administrators.
    """

    plan_type: PlanType
    code: Optional[str] = None
    prefix: str = ""
    usage_limit: int = 1
    expires_at: Optional[datetime] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class UpdateCouponCommand:
    """Only fields that are not None are changed."""

    coupon_id: UUID
    code: Optional[str] = None
    plan_type: Optional[PlanType] = None
    usage_limit: Optional[int] = None
    expires_at: Optional[datetime] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class CouponValidation:
    valid: bool
    code: str
    plan_type: Optional[PlanType] = None
    remaining_uses: int = 0
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class CouponStats:
    coupon: Coupon
    remaining_uses: int
    is_expired: bool
    recent_redemptions: list[CouponRedemption] = field(default_factory=list)


@dataclass(frozen=True)
class CouponAnalytics:
    total_coupons: int
    active_coupons: int
    expired_coupons: int
    exhausted_coupons: int
    total_uses: int
    most_popular_plan: Optional[PlanType]
    uses_by_plan: dict[str, int]
    recent_redemptions: list[CouponRedemption]


@dataclass(frozen=True)
class CreateInvoiceCommand:
    user_id: UUID
    plan_type: PlanType


@dataclass(frozen=True)
class ProviderStatus:
    name: str
    available: bool
