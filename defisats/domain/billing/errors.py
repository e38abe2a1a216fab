"""
Domain-specific errors for the billing bounded context.
"""

from defisats.domain.errors import (
    ConflictError,
    DomainValidationError,
    ExternalServiceError,
    NotFoundError,
)


class CouponNotFoundError(NotFoundError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon not found: {code}")
        self.code = code


class CouponCodeTakenError(ConflictError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon code already exists: {code}")
        self.code = code


class CouponExpiredError(DomainValidationError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon has expired: {code}")
        self.code = code


class CouponExhaustedError(DomainValidationError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon usage limit reached: {code}")
        self.code = code


class CouponAlreadyRedeemedError(ConflictError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon already redeemed by this user: {code}")
        self.code = code


class CouponInUseError(ConflictError):
    """A coupon that has been redeemed cannot be deleted."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon has been used and cannot be deleted: {code}")
        self.code = code


class PaymentNotFoundError(NotFoundError):
    def __init__(self, payment_id: str) -> None:
        super().__init__(f"Payment not found: {payment_id}")
        self.payment_id = payment_id


class PaymentAlreadyPaidError(ConflictError):
    def __init__(self, payment_id: str) -> None:
        super().__init__(f"Payment already settled: {payment_id}")
        self.payment_id = payment_id


class FreePlanNotPurchasableError(DomainValidationError):
    def __init__(self, plan: str) -> None:
        super().__init__(f"Plan '{plan}' has no price and cannot be purchased")
        self.plan = plan


class PaymentProviderError(ExternalServiceError):
    """A Lightning backend failed to create or look up an invoice."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class NoPaymentProviderError(ExternalServiceError):
    def __init__(self) -> None:
        super().__init__("No payment provider could create an invoice")
