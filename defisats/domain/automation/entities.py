"""
Domain entities for the automation bounded context.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID


class AutomationType(Enum):
    MARGIN_GUARD = "margin_guard"
    TP_SL = "tp_sl"
    AUTO_ENTRY = "auto_entry"


@dataclass(frozen=True)
class Automation:
    """A user's automation rule. ``config`` is validated per type."""

    id: UUID
    user_id: UUID
    type: AutomationType
    config: dict[str, Any]
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ActionKind(Enum):
    CLOSE_POSITION = "close_position"
    REDUCE_POSITION = "reduce_position"
    ADD_MARGIN = "add_margin"
    OPEN_POSITION = "open_position"


@dataclass(frozen=True)
class AutomationAction:
    """Something an automation decided to do on the exchange.

    Attributes:
        kind: What to do.
        reason: Human readable trigger, reused in logs and notifications.
        trade_id: Target trade; None for OPEN_POSITION.
        amount: Sats for ADD_MARGIN or OPEN_POSITION margin.
        percentage: Share of the position for REDUCE_POSITION.
        details: Numbers behind the decision, stored on the trade log.
    """

    kind: ActionKind
    reason: str
    trade_id: Optional[str] = None
    amount: Optional[int] = None
    percentage: Optional[Decimal] = None
    details: dict[str, Any] = field(default_factory=dict)


class TradeLogStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class TradeLog:
    """Audit record of an automation action or failure."""

    id: UUID
    user_id: UUID
    action: str
    status: TradeLogStatus
    automation_id: Optional[UUID] = None
    trade_id: Optional[str] = None
    message: Optional[str] = None
    pnl: Optional[int] = None
    price: Optional[Decimal] = None
    details: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TradeLogFilter:
    action: Optional[str] = None
    status: Optional[TradeLogStatus] = None
    automation_id: Optional[UUID] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None


@dataclass(frozen=True)
class TradeLogStats:
    total: int
    success: int
    errors: int
    realized_pnl: int
    by_action: dict[str, int]
