"""
Adapter: Payment persistence.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine, RowMapping

from defisats.domain.accounts.entities import PlanType
from defisats.domain.billing.entities import Payment, PaymentStatus
from defisats.domain.billing.ports import PaymentRepository
from defisats.infrastructure.persistence.tables import as_utc, payments, utcnow


def _to_entity(row: RowMapping) -> Payment:
    return Payment(
        id=UUID(row["id"]),
        user_id=UUID(row["user_id"]),
        plan_type=PlanType(row["plan_type"]),
        amount_sats=row["amount_sats"],
        status=PaymentStatus(row["status"]),
        provider=row["provider"],
        payment_hash=row["payment_hash"],
        payment_request=row["payment_request"],
        description=row["description"],
        expires_at=as_utc(row["expires_at"]),
        paid_at=as_utc(row["paid_at"]),
        created_at=as_utc(row["created_at"]),
    )


class PaymentRepositoryAdapter(PaymentRepository):
    """SQLAlchemy Core implementation of PaymentRepository."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def add(self, payment: Payment) -> Payment:
        with self._engine.begin() as conn:
            conn.execute(insert(payments).values(
                id=str(payment.id),
                user_id=str(payment.user_id),
                plan_type=payment.plan_type.value,
                amount_sats=payment.amount_sats,
                status=payment.status.value,
                provider=payment.provider,
                payment_hash=payment.payment_hash,
                payment_request=payment.payment_request,
                description=payment.description,
                expires_at=payment.expires_at,
                paid_at=payment.paid_at,
                created_at=payment.created_at or utcnow(),
            ))
        return self.get_by_id(payment.id)

    def get_by_id(self, payment_id: UUID) -> Optional[Payment]:
        with self._engine.connect() as conn:
            row = conn.execute(select(payments).where(payments.c.id == str(payment_id))).mappings().first()
        return _to_entity(row) if row else None

    def update(self, payment: Payment) -> Payment:
        with self._engine.begin() as conn:
            conn.execute(
                update(payments)
                .where(payments.c.id == str(payment.id))
                .values(status=payment.status.value, paid_at=payment.paid_at)
            )
        return self.get_by_id(payment.id)

    def list_for_user(self, user_id: UUID) -> list[Payment]:
        stmt = (
            select(payments)
            .where(payments.c.user_id == str(user_id))
            .order_by(payments.c.created_at.desc())
        )
        with self._engine.connect() as conn:
            return [_to_entity(row) for row in conn.execute(stmt).mappings()]
