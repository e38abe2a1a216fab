"""
Dependency injection for the notifications bounded context.
"""

from fastapi import Depends

from defisats.application.notifications.manage_notifications import (
    DeleteNotificationUseCase,
    ListNotificationsUseCase,
    MarkAllNotificationsReadUseCase,
    MarkNotificationReadUseCase,
    UnreadCountUseCase,
)
from defisats.interfaces.dependencies import get_notification_repository


def get_list_notifications_use_case(repo=Depends(get_notification_repository)) -> ListNotificationsUseCase:
    return ListNotificationsUseCase(repo)


def get_unread_count_use_case(repo=Depends(get_notification_repository)) -> UnreadCountUseCase:
    return UnreadCountUseCase(repo)


def get_mark_read_use_case(repo=Depends(get_notification_repository)) -> MarkNotificationReadUseCase:
    return MarkNotificationReadUseCase(repo)


def get_mark_all_read_use_case(repo=Depends(get_notification_repository)) -> MarkAllNotificationsReadUseCase:
    return MarkAllNotificationsReadUseCase(repo)


def get_delete_notification_use_case(repo=Depends(get_notification_repository)) -> DeleteNotificationUseCase:
    return DeleteNotificationUseCase(repo)
