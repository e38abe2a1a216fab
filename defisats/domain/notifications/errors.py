"""
Domain-specific errors for the notifications bounded context.
"""

from defisats.domain.errors import NotFoundError


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id: str) -> None:
        super().__init__(f"Notification not found: {notification_id}")
        self.notification_id = notification_id
