"""
Domain entities for the billing bounded context: coupons and payments.
"""

import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from defisats.domain.accounts.entities import PlanType
from defisats.domain.billing.errors import (
    CouponExhaustedError,
    CouponExpiredError,
)

COUPON_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class Coupon:
    """A promotional code granting a plan.

    Attributes:
        code: Unique, uppercase.
        plan_type: Plan assigned to whoever redeems it.
        usage_limit: Maximum number of redemptions.
        used_count: Redemptions so far; never exceeds usage_limit.
        expires_at: After this instant the coupon cannot be redeemed.
    """

    id: UUID
    code: str
    plan_type: PlanType
    usage_limit: int = 1
    used_count: int = 0
    expires_at: Optional[datetime] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def is_exhausted(self) -> bool:
        return self.used_count >= self.usage_limit

    @property
    def remaining_uses(self) -> int:
        return max(self.usage_limit - self.used_count, 0)

    def ensure_redeemable(self, now: datetime) -> None:
        """Raise if the coupon is expired or has no uses left."""
        if self.is_expired(now):
            raise CouponExpiredError(self.code)
        if self.is_exhausted:
            raise CouponExhaustedError(self.code)


@dataclass(frozen=True)
class CouponRedemption:
    coupon_id: UUID
    user_id: UUID
    used_at: datetime


def generate_coupon_code(prefix: str = "", length: int = 8) -> str:
    """Return ``prefix`` followed by ``length`` random uppercase alphanumerics."""
    body = "".join(secrets.choice(COUPON_ALPHABET) for _ in range(length))
    return f"{prefix.upper()}{body}"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"
    FAILED = "failed"


@dataclass(frozen=True)
class LightningInvoice:
    """Invoice returned by a payment provider."""

    payment_hash: str
    payment_request: str
    amount_sats: int
    provider: str
    expires_at: datetime


@dataclass(frozen=True)
class Payment:
    """A subscription payment attempt.

    Attributes:
        plan_type: Plan granted once the invoice is settled.
        provider: Name of the provider that issued the invoice.
        payment_hash: Provider-side identifier used to poll settlement.
        paid_at: Set exactly when status becomes PAID.
    """

    id: UUID
    user_id: UUID
    plan_type: PlanType
    amount_sats: int
    status: PaymentStatus
    provider: str
    payment_hash: str
    payment_request: str
    expires_at: datetime
    description: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
