"""
Dependency injection for the billing bounded context (coupons, payments).
"""

from fastapi import Depends

from defisats.application.billing.coupons import (
    CouponAnalyticsUseCase,
    CouponStatsUseCase,
    CreateCouponUseCase,
    DeleteCouponUseCase,
    GenerateCouponCodeUseCase,
    GetCouponUseCase,
    ListCouponsUseCase,
    RedeemCouponUseCase,
    UpdateCouponUseCase,
    ValidateCouponUseCase,
)
from defisats.application.billing.payments import (
    CheckPaymentUseCase,
    CreateInvoiceUseCase,
    ListPaymentsUseCase,
    PricingUseCase,
    ProvidersStatusUseCase,
    RetryPaymentUseCase,
)
from defisats.core.config import settings
from defisats.interfaces.dependencies import (
    get_coupon_repository,
    get_notification_dispatcher,
    get_payment_providers,
    get_payment_repository,
    get_user_repository,
)


def get_create_coupon_use_case(coupon_repo=Depends(get_coupon_repository)) -> CreateCouponUseCase:
    return CreateCouponUseCase(coupon_repo)


def get_generate_code_use_case(coupon_repo=Depends(get_coupon_repository)) -> GenerateCouponCodeUseCase:
    return GenerateCouponCodeUseCase(coupon_repo)


def get_update_coupon_use_case(coupon_repo=Depends(get_coupon_repository)) -> UpdateCouponUseCase:
    return UpdateCouponUseCase(coupon_repo)


def get_delete_coupon_use_case(coupon_repo=Depends(get_coupon_repository)) -> DeleteCouponUseCase:
    return DeleteCouponUseCase(coupon_repo)


def get_list_coupons_use_case(coupon_repo=Depends(get_coupon_repository)) -> ListCouponsUseCase:
    return ListCouponsUseCase(coupon_repo)


def get_get_coupon_use_case(coupon_repo=Depends(get_coupon_repository)) -> GetCouponUseCase:
    return GetCouponUseCase(coupon_repo)


def get_validate_coupon_use_case(coupon_repo=Depends(get_coupon_repository)) -> ValidateCouponUseCase:
    return ValidateCouponUseCase(coupon_repo)


def get_redeem_coupon_use_case(
    coupon_repo=Depends(get_coupon_repository),
    user_repo=Depends(get_user_repository),
) -> RedeemCouponUseCase:
    return RedeemCouponUseCase(coupon_repo, user_repo)


def get_coupon_stats_use_case(coupon_repo=Depends(get_coupon_repository)) -> CouponStatsUseCase:
    return CouponStatsUseCase(coupon_repo)


def get_coupon_analytics_use_case(coupon_repo=Depends(get_coupon_repository)) -> CouponAnalyticsUseCase:
    return CouponAnalyticsUseCase(coupon_repo)


def get_create_invoice_use_case(
    payment_repo=Depends(get_payment_repository),
    providers=Depends(get_payment_providers),
) -> CreateInvoiceUseCase:
    return CreateInvoiceUseCase(payment_repo, providers, expiry_seconds=settings.invoice_expiry_seconds)


def get_check_payment_use_case(
    payment_repo=Depends(get_payment_repository),
    user_repo=Depends(get_user_repository),
    providers=Depends(get_payment_providers),
    dispatcher=Depends(get_notification_dispatcher),
) -> CheckPaymentUseCase:
    return CheckPaymentUseCase(payment_repo, user_repo, providers, dispatcher)


def get_list_payments_use_case(payment_repo=Depends(get_payment_repository)) -> ListPaymentsUseCase:
    return ListPaymentsUseCase(payment_repo)


def get_retry_payment_use_case(
    payment_repo=Depends(get_payment_repository),
    create_invoice: CreateInvoiceUseCase = Depends(get_create_invoice_use_case),
) -> RetryPaymentUseCase:
    return RetryPaymentUseCase(payment_repo, create_invoice)


def get_providers_status_use_case(providers=Depends(get_payment_providers)) -> ProvidersStatusUseCase:
    return ProvidersStatusUseCase(providers)


def get_pricing_use_case() -> PricingUseCase:
    return PricingUseCase()
