"""
Port interfaces for the billing bounded context.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from defisats.domain.billing.entities import (
    Coupon,
    CouponRedemption,
    LightningInvoice,
    Payment,
)


class CouponRepository(ABC):
    """Port for coupon and redemption persistence."""

    @abstractmethod
    def get_by_id(self, coupon_id: UUID) -> Optional[Coupon]:
        ...

    @abstractmethod
    def get_by_code(self, code: str) -> Optional[Coupon]:
        ...

    @abstractmethod
    def add(self, coupon: Coupon) -> Coupon:
        """Insert a coupon. Raises CouponCodeTakenError on duplicate code."""

    @abstractmethod
    def update(self, coupon: Coupon) -> Coupon:
        ...

    @abstractmethod
    def delete(self, coupon_id: UUID) -> None:
        ...

    @abstractmethod
    def list(self) -> list[Coupon]:
        """Return all coupons, newest first."""

    @abstractmethod
    def redeem(self, coupon: Coupon, user_id: UUID, used_at: datetime) -> Coupon:
        """Record a redemption and increment ``used_count`` atomically.

        Raises:
            CouponAlreadyRedeemedError: The user already redeemed this coupon.
            CouponExhaustedError: A concurrent redemption used the last slot.
        """

    @abstractmethod
    def redemptions(self, coupon_id: Optional[UUID] = None, limit: int = 50) -> list[CouponRedemption]:
        """Return redemptions, newest first, optionally for one coupon."""


class PaymentRepository(ABC):
    """Port for payment persistence."""

    @abstractmethod
    def add(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    def get_by_id(self, payment_id: UUID) -> Optional[Payment]:
        ...

    @abstractmethod
    def update(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    def list_for_user(self, user_id: UUID) -> list[Payment]:
        """Return the user's payments, newest first."""


class PaymentProvider(ABC):
    """A Lightning backend able to issue and check invoices."""

    name: str

    @abstractmethod
    def create_invoice(self, amount_sats: int, description: str, expiry_seconds: int) -> LightningInvoice:
        """Issue an invoice or raise PaymentProviderError."""

    @abstractmethod
    def is_paid(self, payment_hash: str) -> bool:
        """Return True once the invoice is settled. Raises PaymentProviderError."""

    @abstractmethod
    def is_available(self) -> bool:
        """Reachability check used by the providers status endpoint."""
