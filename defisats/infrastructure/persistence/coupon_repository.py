"""
Adapter: Coupon persistence.

Redemption runs in one transaction: the redemption row is inserted and
``used_count`` incremented only while it is below ``usage_limit``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import IntegrityError

from defisats.domain.accounts.entities import PlanType
from defisats.domain.billing.entities import Coupon, CouponRedemption
from defisats.domain.billing.errors import (
    CouponAlreadyRedeemedError,
    CouponCodeTakenError,
    CouponExhaustedError,
)
from defisats.domain.billing.ports import CouponRepository
from defisats.infrastructure.persistence.tables import (
    as_utc,
    coupon_redemptions,
    coupons,
    utcnow,
)

logger = logging.getLogger(__name__)


def _to_entity(row: RowMapping) -> Coupon:
    return Coupon(
        id=UUID(row["id"]),
        code=row["code"],
        plan_type=PlanType(row["plan_type"]),
        usage_limit=row["usage_limit"],
        used_count=row["used_count"],
        expires_at=as_utc(row["expires_at"]),
        description=row["description"],
        created_at=as_utc(row["created_at"]),
    )


class CouponRepositoryAdapter(CouponRepository):
    """SQLAlchemy Core implementation of CouponRepository."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get_by_id(self, coupon_id: UUID) -> Optional[Coupon]:
        with self._engine.connect() as conn:
            row = conn.execute(select(coupons).where(coupons.c.id == str(coupon_id))).mappings().first()
        return _to_entity(row) if row else None

    def get_by_code(self, code: str) -> Optional[Coupon]:
        with self._engine.connect() as conn:
            row = conn.execute(select(coupons).where(coupons.c.code == code.upper())).mappings().first()
        return _to_entity(row) if row else None

    def add(self, coupon: Coupon) -> Coupon:
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(coupons).values(
                    id=str(coupon.id),
                    code=coupon.code.upper(),
                    plan_type=coupon.plan_type.value,
                    usage_limit=coupon.usage_limit,
                    used_count=coupon.used_count,
                    expires_at=coupon.expires_at,
                    description=coupon.description,
                    created_at=coupon.created_at or utcnow(),
                ))
        except IntegrityError as exc:
            raise CouponCodeTakenError(coupon.code.upper()) from exc
        return self.get_by_id(coupon.id)

    def update(self, coupon: Coupon) -> Coupon:
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    update(coupons)
                    .where(coupons.c.id == str(coupon.id))
                    .values(
                        code=coupon.code.upper(),
                        plan_type=coupon.plan_type.value,
                        usage_limit=coupon.usage_limit,
                        expires_at=coupon.expires_at,
                        description=coupon.description,
                    )
                )
        except IntegrityError as exc:
            raise CouponCodeTakenError(coupon.code.upper()) from exc
        return self.get_by_id(coupon.id)

    def delete(self, coupon_id: UUID) -> None:
        with self._engine.begin() as conn:
            conn.execute(delete(coupons).where(coupons.c.id == str(coupon_id)))

    def list(self) -> list[Coupon]:
        with self._engine.connect() as conn:
            rows = conn.execute(select(coupons).order_by(coupons.c.created_at.desc())).mappings()
            return [_to_entity(row) for row in rows]

    def redeem(self, coupon: Coupon, user_id: UUID, used_at: datetime) -> Coupon:
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(coupon_redemptions).values(
                    id=str(uuid4()),
                    coupon_id=str(coupon.id),
                    user_id=str(user_id),
                    used_at=used_at,
                ))
                result = conn.execute(
                    update(coupons)
                    .where(coupons.c.id == str(coupon.id))
                    .where(coupons.c.used_count < coupons.c.usage_limit)
                    .values(used_count=coupons.c.used_count + 1)
                )
                if result.rowcount == 0:
                    raise CouponExhaustedError(coupon.code)
        except IntegrityError as exc:
            raise CouponAlreadyRedeemedError(coupon.code) from exc

        logger.info("Coupon %s redeemed by user %s", coupon.code, user_id)
        return self.get_by_id(coupon.id)

    def redemptions(self, coupon_id: Optional[UUID] = None, limit: int = 50) -> list[CouponRedemption]:
        stmt = select(coupon_redemptions).order_by(coupon_redemptions.c.used_at.desc()).limit(limit)
        if coupon_id is not None:
            stmt = stmt.where(coupon_redemptions.c.coupon_id == str(coupon_id))
        with self._engine.connect() as conn:
            return [
                CouponRedemption(
                    coupon_id=UUID(row["coupon_id"]),
                    user_id=UUID(row["user_id"]),
                    used_at=as_utc(row["used_at"]),
                )
                for row in conn.execute(stmt).mappings()
            ]
