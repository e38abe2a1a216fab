"""
Adapter: Trade log persistence.

Logs are append-only. Statistics are computed with aggregate queries.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, insert, select
from sqlalchemy.engine import Engine, RowMapping

from defisats.domain.automation.entities import (
    TradeLog,
    TradeLogFilter,
    TradeLogStats,
    TradeLogStatus,
)
from defisats.domain.automation.ports import TradeLogRepository
from defisats.infrastructure.persistence.tables import as_utc, as_uuid, trade_logs, utcnow


def _to_entity(row: RowMapping) -> TradeLog:
    price = row["price"]
    return TradeLog(
        id=UUID(row["id"]),
        user_id=UUID(row["user_id"]),
        automation_id=as_uuid(row["automation_id"]),
        trade_id=row["trade_id"],
        action=row["action"],
        status=TradeLogStatus(row["status"]),
        message=row["message"],
        pnl=row["pnl"],
        price=Decimal(str(price)) if price is not None else None,
        details=dict(row["details"] or {}),
        created_at=as_utc(row["created_at"]),
    )


class TradeLogRepositoryAdapter(TradeLogRepository):
    """SQLAlchemy Core implementation of TradeLogRepository."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def add(self, log: TradeLog) -> TradeLog:
        created_at = log.created_at or utcnow()
        with self._engine.begin() as conn:
            conn.execute(insert(trade_logs).values(
                id=str(log.id),
                user_id=str(log.user_id),
                automation_id=str(log.automation_id) if log.automation_id else None,
                trade_id=log.trade_id,
                action=log.action,
                status=log.status.value,
                message=log.message,
                pnl=log.pnl,
                price=log.price,
                details=log.details,
                created_at=created_at,
            ))
        return replace(log, created_at=created_at)

    def list(
        self,
        user_id: UUID,
        filters: TradeLogFilter,
        limit: int,
        offset: int,
    ) -> tuple[list[TradeLog], int]:
        conditions = [trade_logs.c.user_id == str(user_id)]
        if filters.action:
            conditions.append(trade_logs.c.action == filters.action)
        if filters.status:
            conditions.append(trade_logs.c.status == filters.status.value)
        if filters.automation_id:
            conditions.append(trade_logs.c.automation_id == str(filters.automation_id))
        if filters.since:
            conditions.append(trade_logs.c.created_at >= filters.since)
        if filters.until:
            conditions.append(trade_logs.c.created_at <= filters.until)
        where = and_(*conditions)

        with self._engine.connect() as conn:
            total = conn.execute(
                select(func.count()).select_from(trade_logs).where(where)
            ).scalar_one()
            rows = conn.execute(
                select(trade_logs)
                .where(where)
                .order_by(trade_logs.c.created_at.desc(), trade_logs.c.id.desc())
                .limit(limit)
                .offset(offset)
            ).mappings()
            return [_to_entity(row) for row in rows], total

    def stats(self, user_id: UUID) -> TradeLogStats:
        owner = trade_logs.c.user_id == str(user_id)
        with self._engine.connect() as conn:
            by_status = dict(conn.execute(
                select(trade_logs.c.status, func.count())
                .where(owner)
                .group_by(trade_logs.c.status)
            ).all())
            by_action = dict(conn.execute(
                select(trade_logs.c.action, func.count())
                .where(owner)
                .group_by(trade_logs.c.action)
            ).all())
            realized = conn.execute(
                select(func.coalesce(func.sum(trade_logs.c.pnl), 0)).where(
                    owner,
                    trade_logs.c.status == TradeLogStatus.SUCCESS.value,
                    trade_logs.c.action.in_(("close_position", "reduce_position")),
                )
            ).scalar_one()

        success = by_status.get(TradeLogStatus.SUCCESS.value, 0)
        errors = by_status.get(TradeLogStatus.ERROR.value, 0)
        return TradeLogStats(
            total=success + errors,
            success=success,
            errors=errors,
            realized_pnl=int(realized or 0),
            by_action=by_action,
        )
