"""
Adapter: Notification persistence.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Engine, RowMapping

from defisats.domain.notifications.entities import Notification, NotificationType
from defisats.domain.notifications.ports import NotificationRepository
from defisats.infrastructure.persistence.tables import as_utc, notifications, utcnow


def _to_entity(row: RowMapping) -> Notification:
    return Notification(
        id=UUID(row["id"]),
        user_id=UUID(row["user_id"]),
        type=NotificationType(row["type"]),
        title=row["title"],
        message=row["message"],
        is_read=bool(row["is_read"]),
        metadata=dict(row["metadata"] or {}),
        created_at=as_utc(row["created_at"]),
    )


class NotificationRepositoryAdapter(NotificationRepository):
    """SQLAlchemy Core implementation of NotificationRepository."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def add(self, notification: Notification) -> Notification:
        with self._engine.begin() as conn:
            conn.execute(insert(notifications).values({
                "id": str(notification.id),
                "user_id": str(notification.user_id),
                "type": notification.type.value,
                "title": notification.title,
                "message": notification.message,
                "is_read": notification.is_read,
                "metadata": notification.metadata,
                "created_at": notification.created_at or utcnow(),
            }))
        return self.get(notification.id)

    def get(self, notification_id: UUID) -> Optional[Notification]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(notifications).where(notifications.c.id == str(notification_id))
            ).mappings().first()
        return _to_entity(row) if row else None

    def list_for_user(
        self, user_id: UUID, unread_only: bool = False, limit: int = 50, offset: int = 0
    ) -> list[Notification]:
        stmt = select(notifications).where(notifications.c.user_id == str(user_id))
        if unread_only:
            stmt = stmt.where(notifications.c.is_read.is_(False))
        stmt = stmt.order_by(notifications.c.created_at.desc()).limit(limit).offset(offset)
        with self._engine.connect() as conn:
            return [_to_entity(row) for row in conn.execute(stmt).mappings()]

    def count_unread(self, user_id: UUID) -> int:
        stmt = select(func.count()).select_from(notifications).where(
            notifications.c.user_id == str(user_id),
            notifications.c.is_read.is_(False),
        )
        with self._engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    def mark_read(self, notification_id: UUID) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                update(notifications)
                .where(notifications.c.id == str(notification_id))
                .values(is_read=True)
            )

    def mark_all_read(self, user_id: UUID) -> int:
        with self._engine.begin() as conn:
            result = conn.execute(
                update(notifications)
                .where(notifications.c.user_id == str(user_id), notifications.c.is_read.is_(False))
                .values(is_read=True)
            )
            return result.rowcount

    def delete(self, notification_id: UUID) -> None:
        with self._engine.begin() as conn:
            conn.execute(delete(notifications).where(notifications.c.id == str(notification_id)))
