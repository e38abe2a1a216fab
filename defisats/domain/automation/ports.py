"""
Port interfaces for the automation bounded context.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from defisats.domain.automation.entities import (
    Automation,
    AutomationType,
    TradeLog,
    TradeLogFilter,
    TradeLogStats,
)


class AutomationRepository(ABC):
    """Port for automation persistence."""

    @abstractmethod
    def add(self, automation: Automation) -> Automation:
        ...

    @abstractmethod
    def get(self, automation_id: UUID) -> Optional[Automation]:
        ...

    @abstractmethod
    def update(self, automation: Automation) -> Automation:
        ...

    @abstractmethod
    def delete(self, automation_id: UUID) -> None:
        ...

    @abstractmethod
    def list_for_user(
        self,
        user_id: UUID,
        automation_type: Optional[AutomationType] = None,
        is_active: Optional[bool] = None,
    ) -> list[Automation]:
        """Return the user's automations, newest first."""

    @abstractmethod
    def find_active(self, user_id: UUID, automation_type: AutomationType) -> Optional[Automation]:
        ...

    @abstractmethod
    def list_active(self) -> list[Automation]:
        """Return every active automation across users."""


class TradeLogRepository(ABC):
    """Port for trade log persistence."""

    @abstractmethod
    def add(self, log: TradeLog) -> TradeLog:
        ...

    @abstractmethod
    def list(
        self,
        user_id: UUID,
        filters: TradeLogFilter,
        limit: int,
        offset: int,
    ) -> tuple[list[TradeLog], int]:
        """Return one page of logs (newest first) and the total match count."""

    @abstractmethod
    def stats(self, user_id: UUID) -> TradeLogStats:
        ...
