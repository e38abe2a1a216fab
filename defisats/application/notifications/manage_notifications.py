"""
Use cases: In-app notification inbox.

Input: user id, optional notification id and paging
Output: Notification entities / counts
Side effects: Marks notifications read or deletes them.
Failure cases: NotificationNotFoundError (404) for ids the user does not own.
"""

from uuid import UUID

from defisats.domain.notifications.entities import Notification
from defisats.domain.notifications.errors import NotificationNotFoundError
from defisats.domain.notifications.ports import NotificationRepository


def _owned(repo: NotificationRepository, user_id: UUID, notification_id: UUID) -> Notification:
    notification = repo.get(notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotificationNotFoundError(str(notification_id))
    return notification


class ListNotificationsUseCase:
    def __init__(self, repository: NotificationRepository) -> None:
        self._repository = repository

    def execute(
        self, user_id: UUID, unread_only: bool = False, limit: int = 50, offset: int = 0
    ) -> list[Notification]:
        return self._repository.list_for_user(user_id, unread_only, min(limit, 100), offset)


class UnreadCountUseCase:
    def __init__(self, repository: NotificationRepository) -> None:
        self._repository = repository

    def execute(self, user_id: UUID) -> int:
        return self._repository.count_unread(user_id)


class MarkNotificationReadUseCase:
    def __init__(self, repository: NotificationRepository) -> None:
        self._repository = repository

    def execute(self, user_id: UUID, notification_id: UUID) -> None:
        _owned(self._repository, user_id, notification_id)
        self._repository.mark_read(notification_id)


class MarkAllNotificationsReadUseCase:
    def __init__(self, repository: NotificationRepository) -> None:
        self._repository = repository

    def execute(self, user_id: UUID) -> int:
        return self._repository.mark_all_read(user_id)


class DeleteNotificationUseCase:
    def __init__(self, repository: NotificationRepository) -> None:
        self._repository = repository

    def execute(self, user_id: UUID, notification_id: UUID) -> None:
        _owned(self._repository, user_id, notification_id)
        self._repository.delete(notification_id)
