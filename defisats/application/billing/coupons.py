"""
Use cases: Coupon administration, validation and redemption.

Input: coupon commands, codes and ids
Output: Coupon entities, CouponValidation, CouponStats, CouponAnalytics
Side effects: Writes coupons and redemptions; redemption upgrades the user's plan.
Failure cases: CouponNotFoundError (404), CouponCodeTakenError,
    CouponInUseError, CouponAlreadyRedeemedError (409),
    CouponExpiredError, CouponExhaustedError (400).
"""

import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from uuid import UUID, uuid4

from defisats.application.billing.dtos import (
    CouponAnalytics,
    CouponStats,
    CouponValidation,
    CreateCouponCommand,
    UpdateCouponCommand,
)
from defisats.domain.accounts.entities import PlanType
from defisats.domain.accounts.errors import UserNotFoundError
from defisats.domain.accounts.ports import UserRepository
from defisats.domain.billing.entities import Coupon, generate_coupon_code
from defisats.domain.billing.errors import (
    CouponCodeTakenError,
    CouponInUseError,
    CouponNotFoundError,
)
from defisats.domain.billing.ports import CouponRepository
from defisats.domain.errors import DomainValidationError

logger = logging.getLogger(__name__)

GENERATE_ATTEMPTS = 5


def _unique_code(coupon_repo: CouponRepository, prefix: str) -> str:
    for _ in range(GENERATE_ATTEMPTS):
        code = generate_coupon_code(prefix)
        if coupon_repo.get_by_code(code) is None:
            return code
    raise CouponCodeTakenError(f"{prefix.upper()}*")


def _require(coupon_repo: CouponRepository, coupon_id: UUID) -> Coupon:
    coupon = coupon_repo.get_by_id(coupon_id)
    if coupon is None:
        raise CouponNotFoundError(str(coupon_id))
    return coupon


class CreateCouponUseCase:
    """Creates a coupon with an explicit or generated code."""

    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self, command: CreateCouponCommand) -> Coupon:
        if command.usage_limit < 1:
            raise DomainValidationError("usage_limit must be at least 1")

        if command.code:
            code = command.code.strip().upper()
            if self._coupon_repo.get_by_code(code) is not None:
                raise CouponCodeTakenError(code)
        else:
            code = _unique_code(self._coupon_repo, command.prefix)

        coupon = self._coupon_repo.add(Coupon(
            id=uuid4(),
            code=code,
            plan_type=command.plan_type,
            usage_limit=command.usage_limit,
            expires_at=command.expires_at,
            description=command.description,
            created_at=datetime.now(timezone.utc),
        ))
        logger.info("Coupon %s created for plan %s", coupon.code, coupon.plan_type.value)
        return coupon


class GenerateCouponCodeUseCase:
    """Proposes an unused code without creating a coupon."""

    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self, prefix: str = "") -> str:
        return _unique_code(self._coupon_repo, prefix)


class UpdateCouponUseCase:
    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self, command: UpdateCouponCommand) -> Coupon:
        coupon = _require(self._coupon_repo, command.coupon_id)
        changes = {}
        if command.code is not None:
            code = command.code.strip().upper()
            existing = self._coupon_repo.get_by_code(code)
            if existing is not None and existing.id != coupon.id:
                raise CouponCodeTakenError(code)
            changes["code"] = code
        if command.plan_type is not None:
            changes["plan_type"] = command.plan_type
        if command.usage_limit is not None:
            if command.usage_limit < max(coupon.used_count, 1):
                raise DomainValidationError("usage_limit cannot be lower than the uses already recorded")
            changes["usage_limit"] = command.usage_limit
        if command.expires_at is not None:
            changes["expires_at"] = command.expires_at
        if command.description is not None:
            changes["description"] = command.description
        return self._coupon_repo.update(replace(coupon, **changes))


class DeleteCouponUseCase:
    """Deletes an unused coupon."""

    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self, coupon_id: UUID) -> None:
        coupon = _require(self._coupon_repo, coupon_id)
        if coupon.used_count > 0:
            raise CouponInUseError(coupon.code)
        self._coupon_repo.delete(coupon.id)
        logger.info("Coupon %s deleted", coupon.code)


class ListCouponsUseCase:
    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self) -> list[Coupon]:
        return self._coupon_repo.list()


class GetCouponUseCase:
    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self, code: str) -> Coupon:
        coupon = self._coupon_repo.get_by_code(code.strip())
        if coupon is None:
            raise CouponNotFoundError(code.strip().upper())
        return coupon


class ValidateCouponUseCase:
    """Reports whether a code can be redeemed right now. Never raises for bad codes."""

    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self, code: str) -> CouponValidation:
        normalized = code.strip().upper()
        coupon = self._coupon_repo.get_by_code(normalized)
        if coupon is None:
            return CouponValidation(valid=False, code=normalized, reason="Coupon not found")
        try:
            coupon.ensure_redeemable(datetime.now(timezone.utc))
        except DomainValidationError as exc:
            return CouponValidation(
                valid=False,
                code=coupon.code,
                plan_type=coupon.plan_type,
                remaining_uses=coupon.remaining_uses,
                expires_at=coupon.expires_at,
                reason=exc.message,
            )
        return CouponValidation(
            valid=True,
            code=coupon.code,
            plan_type=coupon.plan_type,
            remaining_uses=coupon.remaining_uses,
            expires_at=coupon.expires_at,
        )


class RedeemCouponUseCase:
    """Redeems a coupon for a user and moves them to the coupon's plan."""

    def __init__(self, coupon_repo: CouponRepository, user_repo: UserRepository) -> None:
        self._coupon_repo = coupon_repo
        self._user_repo = user_repo

    def execute(self, user_id: UUID, code: str) -> Coupon:
        user = self._user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        coupon = self._coupon_repo.get_by_code(code.strip())
        if coupon is None:
            raise CouponNotFoundError(code.strip().upper())

        now = datetime.now(timezone.utc)
        coupon.ensure_redeemable(now)
        coupon = self._coupon_repo.redeem(coupon, user.id, now)
        self._user_repo.update(replace(user, plan_type=coupon.plan_type))
        logger.info("User %s upgraded to %s via coupon", user.id, coupon.plan_type.value)
        return coupon


class CouponStatsUseCase:
    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self, coupon_id: UUID) -> CouponStats:
        coupon = _require(self._coupon_repo, coupon_id)
        return CouponStats(
            coupon=coupon,
            remaining_uses=coupon.remaining_uses,
            is_expired=coupon.is_expired(datetime.now(timezone.utc)),
            recent_redemptions=self._coupon_repo.redemptions(coupon.id, limit=20),
        )


class CouponAnalyticsUseCase:
    """Aggregates over all coupons."""

    def __init__(self, coupon_repo: CouponRepository) -> None:
        self._coupon_repo = coupon_repo

    def execute(self) -> CouponAnalytics:
        now = datetime.now(timezone.utc)
        coupons = self._coupon_repo.list()
        expired = [c for c in coupons if c.is_expired(now)]
        exhausted = [c for c in coupons if c.is_exhausted and not c.is_expired(now)]

        uses_by_plan: Counter[str] = Counter()
        for coupon in coupons:
            uses_by_plan[coupon.plan_type.value] += coupon.used_count
        most_popular = None
        if uses_by_plan and max(uses_by_plan.values()) > 0:
            most_popular = PlanType(uses_by_plan.most_common(1)[0][0])

        return CouponAnalytics(
            total_coupons=len(coupons),
            active_coupons=len(coupons) - len(expired) - len(exhausted),
            expired_coupons=len(expired),
            exhausted_coupons=len(exhausted),
            total_uses=sum(c.used_count for c in coupons),
            most_popular_plan=most_popular,
            uses_by_plan=dict(uses_by_plan),
            recent_redemptions=self._coupon_repo.redemptions(limit=10),
        )
