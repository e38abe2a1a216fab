"""
Pydantic schemas for the notifications API.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from defisats.domain.notifications.entities import NotificationType


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: NotificationType
    title: str
    message: str
    is_read: bool
    metadata: dict[str, Any]
    created_at: datetime | None = None


class UnreadCountResponse(BaseModel):
    unread: int


class MarkedReadResponse(BaseModel):
    updated: int
