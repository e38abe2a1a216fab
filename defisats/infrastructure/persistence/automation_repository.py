"""
Adapter: Automation persistence.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Engine, RowMapping

from defisats.domain.automation.entities import Automation, AutomationType
from defisats.domain.automation.ports import AutomationRepository
from defisats.infrastructure.persistence.tables import as_utc, automations, utcnow


def _to_entity(row: RowMapping) -> Automation:
    return Automation(
        id=UUID(row["id"]),
        user_id=UUID(row["user_id"]),
        type=AutomationType(row["type"]),
        config=dict(row["config"] or {}),
        is_active=bool(row["is_active"]),
        created_at=as_utc(row["created_at"]),
        updated_at=as_utc(row["updated_at"]),
    )


class AutomationRepositoryAdapter(AutomationRepository):
    """SQLAlchemy Core implementation of AutomationRepository."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def add(self, automation: Automation) -> Automation:
        now = utcnow()
        with self._engine.begin() as conn:
            conn.execute(insert(automations).values(
                id=str(automation.id),
                user_id=str(automation.user_id),
                type=automation.type.value,
                config=automation.config,
                is_active=automation.is_active,
                created_at=automation.created_at or now,
                updated_at=now,
            ))
        return self.get(automation.id)

    def get(self, automation_id: UUID) -> Optional[Automation]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(automations).where(automations.c.id == str(automation_id))
            ).mappings().first()
        return _to_entity(row) if row else None

    def update(self, automation: Automation) -> Automation:
        with self._engine.begin() as conn:
            conn.execute(
                update(automations)
                .where(automations.c.id == str(automation.id))
                .values(
                    config=automation.config,
                    is_active=automation.is_active,
                    updated_at=utcnow(),
                )
            )
        return self.get(automation.id)

    def delete(self, automation_id: UUID) -> None:
        with self._engine.begin() as conn:
            conn.execute(delete(automations).where(automations.c.id == str(automation_id)))

    def list_for_user(
        self,
        user_id: UUID,
        automation_type: Optional[AutomationType] = None,
        is_active: Optional[bool] = None,
    ) -> list[Automation]:
        stmt = select(automations).where(automations.c.user_id == str(user_id))
        if automation_type is not None:
            stmt = stmt.where(automations.c.type == automation_type.value)
        if is_active is not None:
            stmt = stmt.where(automations.c.is_active == is_active)
        stmt = stmt.order_by(automations.c.created_at.desc())
        with self._engine.connect() as conn:
            return [_to_entity(row) for row in conn.execute(stmt).mappings()]

    def find_active(self, user_id: UUID, automation_type: AutomationType) -> Optional[Automation]:
        found = self.list_for_user(user_id, automation_type, is_active=True)
        return found[0] if found else None

    def list_active(self) -> list[Automation]:
        stmt = (
            select(automations)
            .where(automations.c.is_active.is_(True))
            .order_by(automations.c.user_id, automations.c.created_at)
        )
        with self._engine.connect() as conn:
            return [_to_entity(row) for row in conn.execute(stmt).mappings()]
