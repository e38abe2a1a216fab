"""
Data Transfer Objects for the automation bounded context.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from defisats.domain.accounts.entities import PlanType
from defisats.domain.automation.entities import Automation, TradeLog, TradeLogFilter


@dataclass(frozen=True)
class CreateAutomationCommand:
    """Input for creating an automation.

    Attributes:
        user_id: Owner.
        plan_type: Owner's current plan, checked against the type.
        type: Automation type name (margin_guard, tp_sl, auto_entry).
        config: Raw config, validated against the type's schema.
        is_active: Create already active.
    """

    user_id: UUID
    plan_type: PlanType
    type: str
    config: dict[str, Any]
    is_active: bool = True


@dataclass(frozen=True)
class UpdateAutomationCommand:
    """Only fields that are not None are changed."""

    user_id: UUID
    plan_type: PlanType
    automation_id: UUID
    config: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None


@dataclass(frozen=True)
class AutomationStats:
    total: int
    active: int
    inactive: int
    by_type: dict[str, int]
    recent: list[Automation]


@dataclass(frozen=True)
class TradeLogQuery:
    user_id: UUID
    page: int = 1
    page_size: int = 20
    filters: TradeLogFilter = field(default_factory=TradeLogFilter)


@dataclass(frozen=True)
class TradeLogPage:
    items: list[TradeLog]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.page_size else 0


@dataclass(frozen=True)
class PositionRisk:
    """Margin guard view of one running trade."""

    trade_id: str
    side: str
    entry_price: Decimal
    liquidation_price: Decimal
    current_price: Decimal
    margin: int
    pl: int
    margin_level: float
    risk_level: str
    trigger_price: Optional[Decimal]
    distance_percentage: Decimal
    is_at_risk: bool
    protected: bool


@dataclass
class RunSummary:
    """Outcome of one automation pass across users."""

    users_processed: int = 0
    automations_evaluated: int = 0
    actions_executed: int = 0
    actions_failed: int = 0
    users_failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "users_processed": self.users_processed,
            "automations_evaluated": self.automations_evaluated,
            "actions_executed": self.actions_executed,
            "actions_failed": self.actions_failed,
            "users_failed": self.users_failed,
            "errors": list(self.errors),
        }
