"""
Domain entities for the notifications bounded context.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID


class NotificationType(Enum):
    MARGIN_ALERT = "margin_alert"
    TRADE_EXECUTED = "trade_executed"
    AUTOMATION_ERROR = "automation_error"
    PAYMENT = "payment"
    SYSTEM = "system"


@dataclass(frozen=True)
class Notification:
    """An in-app message for one user."""

    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
