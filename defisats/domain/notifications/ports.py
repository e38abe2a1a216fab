"""
Port interfaces for the notifications bounded context.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from defisats.domain.notifications.entities import Notification


class NotificationRepository(ABC):
    """Port for notification persistence."""

    @abstractmethod
    def add(self, notification: Notification) -> Notification:
        ...

    @abstractmethod
    def get(self, notification_id: UUID) -> Optional[Notification]:
        ...

    @abstractmethod
    def list_for_user(
        self, user_id: UUID, unread_only: bool = False, limit: int = 50, offset: int = 0
    ) -> list[Notification]:
        """Return the user's notifications, newest first."""

    @abstractmethod
    def count_unread(self, user_id: UUID) -> int:
        ...

    @abstractmethod
    def mark_read(self, notification_id: UUID) -> None:
        ...

    @abstractmethod
    def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification of the user as read; return how many."""

    @abstractmethod
    def delete(self, notification_id: UUID) -> None:
        ...
