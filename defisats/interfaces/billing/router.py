"""
FastAPI routers for coupons and payments.

Coupon administration is admin only; validation is public and redemption
requires a logged-in user. All routes delegate to use cases.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

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
from defisats.application.billing.dtos import (
    CreateCouponCommand,
    CreateInvoiceCommand,
    UpdateCouponCommand,
)
from defisats.application.billing.payments import (
    CheckPaymentUseCase,
    CreateInvoiceUseCase,
    ListPaymentsUseCase,
    PricingUseCase,
    ProvidersStatusUseCase,
    RetryPaymentUseCase,
)
from defisats.domain.accounts.entities import User
from defisats.interfaces.billing.dependencies import (
    get_check_payment_use_case,
    get_coupon_analytics_use_case,
    get_coupon_stats_use_case,
    get_create_coupon_use_case,
    get_create_invoice_use_case,
    get_delete_coupon_use_case,
    get_generate_code_use_case,
    get_get_coupon_use_case,
    get_list_coupons_use_case,
    get_list_payments_use_case,
    get_pricing_use_case,
    get_providers_status_use_case,
    get_redeem_coupon_use_case,
    get_retry_payment_use_case,
    get_update_coupon_use_case,
    get_validate_coupon_use_case,
)
from defisats.interfaces.billing.schemas import (
    CouponAnalyticsResponse,
    CouponResponse,
    CouponStatsResponse,
    CouponValidationResponse,
    CreateCouponRequest,
    CreateInvoiceRequest,
    GeneratedCodeResponse,
    PaymentResponse,
    PlanItem,
    ProviderStatusItem,
    RedeemCouponRequest,
    RedemptionItem,
    UpdateCouponRequest,
)
from defisats.interfaces.dependencies import get_current_user, require_admin
from defisats.interfaces.schemas import ERROR_RESPONSES, ErrorResponse

coupons_router = APIRouter(prefix="/coupons", tags=["coupons"])
payments_router = APIRouter(prefix="/payments", tags=["payments"])


# ------------------------------------------------------------------
# Coupons
# ------------------------------------------------------------------


@coupons_router.post(
    "",
    response_model=CouponResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Create a coupon",
)
def create_coupon(
    body: CreateCouponRequest,
    _admin: User = Depends(require_admin),
    use_case: CreateCouponUseCase = Depends(get_create_coupon_use_case),
) -> CouponResponse:
    coupon = use_case.execute(CreateCouponCommand(
        plan_type=body.plan_type,
        code=body.code,
        prefix=body.prefix,
        usage_limit=body.usage_limit,
        expires_at=body.expires_at,
        description=body.description,
    ))
    return CouponResponse.model_validate(coupon)


@coupons_router.get(
    "",
    response_model=list[CouponResponse],
    responses=ERROR_RESPONSES,
    summary="List coupons",
)
def list_coupons(
    _admin: User = Depends(require_admin),
    use_case: ListCouponsUseCase = Depends(get_list_coupons_use_case),
) -> list[CouponResponse]:
    return [CouponResponse.model_validate(c) for c in use_case.execute()]


@coupons_router.get(
    "/analytics",
    response_model=CouponAnalyticsResponse,
    responses=ERROR_RESPONSES,
    summary="Coupon analytics",
)
def coupon_analytics(
    _admin: User = Depends(require_admin),
    use_case: CouponAnalyticsUseCase = Depends(get_coupon_analytics_use_case),
) -> CouponAnalyticsResponse:
    result = use_case.execute()
    return CouponAnalyticsResponse(
        total_coupons=result.total_coupons,
        active_coupons=result.active_coupons,
        expired_coupons=result.expired_coupons,
        exhausted_coupons=result.exhausted_coupons,
        total_uses=result.total_uses,
        most_popular_plan=result.most_popular_plan,
        uses_by_plan=result.uses_by_plan,
        recent_redemptions=[RedemptionItem.model_validate(r) for r in result.recent_redemptions],
    )


@coupons_router.get(
    "/generate-code",
    response_model=GeneratedCodeResponse,
    responses=ERROR_RESPONSES,
    summary="Propose an unused coupon code",
)
def generate_code(
    prefix: str = Query("", max_length=16, pattern=r"^[A-Za-z0-9_-]*$"),
    _admin: User = Depends(require_admin),
    use_case: GenerateCouponCodeUseCase = Depends(get_generate_code_use_case),
) -> GeneratedCodeResponse:
    return GeneratedCodeResponse(code=use_case.execute(prefix))


@coupons_router.get(
    "/validate/{code}",
    response_model=CouponValidationResponse,
    summary="Check whether a coupon can be redeemed",
    description="Public endpoint used by the signup form. Never fails for unknown codes.",
)
def validate_coupon(
    code: str,
    use_case: ValidateCouponUseCase = Depends(get_validate_coupon_use_case),
) -> CouponValidationResponse:
    result = use_case.execute(code)
    return CouponValidationResponse(
        valid=result.valid,
        code=result.code,
        plan_type=result.plan_type,
        remaining_uses=result.remaining_uses,
        expires_at=result.expires_at,
        reason=result.reason,
    )


@coupons_router.post(
    "/redeem",
    response_model=CouponResponse,
    responses=ERROR_RESPONSES,
    summary="Redeem a coupon",
    description="Moves the current user to the coupon's plan. Each user redeems a coupon once.",
)
def redeem_coupon(
    body: RedeemCouponRequest,
    user: User = Depends(get_current_user),
    use_case: RedeemCouponUseCase = Depends(get_redeem_coupon_use_case),
) -> CouponResponse:
    return CouponResponse.model_validate(use_case.execute(user.id, body.code))


@coupons_router.get(
    "/code/{code}",
    response_model=CouponResponse,
    responses=ERROR_RESPONSES,
    summary="Get a coupon by code",
)
def get_coupon(
    code: str,
    _admin: User = Depends(require_admin),
    use_case: GetCouponUseCase = Depends(get_get_coupon_use_case),
) -> CouponResponse:
    return CouponResponse.model_validate(use_case.execute(code))


@coupons_router.patch(
    "/{coupon_id}",
    response_model=CouponResponse,
    responses=ERROR_RESPONSES,
    summary="Update a coupon",
)
def update_coupon(
    coupon_id: UUID,
    body: UpdateCouponRequest,
    _admin: User = Depends(require_admin),
    use_case: UpdateCouponUseCase = Depends(get_update_coupon_use_case),
) -> CouponResponse:
    coupon = use_case.execute(UpdateCouponCommand(
        coupon_id=coupon_id,
        code=body.code,
        plan_type=body.plan_type,
        usage_limit=body.usage_limit,
        expires_at=body.expires_at,
        description=body.description,
    ))
    return CouponResponse.model_validate(coupon)


@coupons_router.delete(
    "/{coupon_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES,
    summary="Delete an unused coupon",
)
def delete_coupon(
    coupon_id: UUID,
    _admin: User = Depends(require_admin),
    use_case: DeleteCouponUseCase = Depends(get_delete_coupon_use_case),
) -> Response:
    use_case.execute(coupon_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@coupons_router.get(
    "/{coupon_id}/stats",
    response_model=CouponStatsResponse,
    responses=ERROR_RESPONSES,
    summary="Usage statistics of one coupon",
)
def coupon_stats(
    coupon_id: UUID,
    _admin: User = Depends(require_admin),
    use_case: CouponStatsUseCase = Depends(get_coupon_stats_use_case),
) -> CouponStatsResponse:
    result = use_case.execute(coupon_id)
    return CouponStatsResponse(
        coupon=CouponResponse.model_validate(result.coupon),
        remaining_uses=result.remaining_uses,
        is_expired=result.is_expired,
        recent_redemptions=[RedemptionItem.model_validate(r) for r in result.recent_redemptions],
    )


# ------------------------------------------------------------------
# Payments
# ------------------------------------------------------------------


@payments_router.get(
    "/pricing",
    response_model=list[PlanItem],
    summary="Plan prices",
)
def pricing(use_case: PricingUseCase = Depends(get_pricing_use_case)) -> list[PlanItem]:
    return [
        PlanItem(
            plan_type=plan.plan_type,
            price_sats=plan.price_sats,
            description=plan.description,
            automation_types=sorted(plan.automation_types),
            max_protected_trades=plan.max_protected_trades,
        )
        for plan in use_case.execute()
    ]


@payments_router.get(
    "/providers",
    response_model=list[ProviderStatusItem],
    responses=ERROR_RESPONSES,
    summary="Payment provider availability",
)
def providers_status(
    _user: User = Depends(get_current_user),
    use_case: ProvidersStatusUseCase = Depends(get_providers_status_use_case),
) -> list[ProviderStatusItem]:
    return [ProviderStatusItem(name=s.name, available=s.available) for s in use_case.execute()]


@payments_router.post(
    "/invoice",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**ERROR_RESPONSES, 502: {"model": ErrorResponse}},
    summary="Create a Lightning invoice for a plan",
)
def create_invoice(
    body: CreateInvoiceRequest,
    user: User = Depends(get_current_user),
    use_case: CreateInvoiceUseCase = Depends(get_create_invoice_use_case),
) -> PaymentResponse:
    payment = use_case.execute(CreateInvoiceCommand(user_id=user.id, plan_type=body.plan_type))
    return PaymentResponse.model_validate(payment)


@payments_router.get(
    "",
    response_model=list[PaymentResponse],
    responses=ERROR_RESPONSES,
    summary="List my payments",
)
def list_payments(
    user: User = Depends(get_current_user),
    use_case: ListPaymentsUseCase = Depends(get_list_payments_use_case),
) -> list[PaymentResponse]:
    return [PaymentResponse.model_validate(p) for p in use_case.execute(user.id)]


@payments_router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    responses=ERROR_RESPONSES,
    summary="Check a payment",
    description="Polls the provider; a settled invoice upgrades the plan.",
)
def check_payment(
    payment_id: UUID,
    user: User = Depends(get_current_user),
    use_case: CheckPaymentUseCase = Depends(get_check_payment_use_case),
) -> PaymentResponse:
    return PaymentResponse.model_validate(use_case.execute(user.id, payment_id))


@payments_router.post(
    "/{payment_id}/retry",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Replace an unpaid invoice",
)
def retry_payment(
    payment_id: UUID,
    user: User = Depends(get_current_user),
    use_case: RetryPaymentUseCase = Depends(get_retry_payment_use_case),
) -> PaymentResponse:
    return PaymentResponse.model_validate(use_case.execute(user.id, payment_id))
