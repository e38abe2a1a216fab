"""
Pydantic schemas for the automations and trade logs API.

Per-type config keys are validated by the domain config models, so the
request schemas accept ``config`` as a free-form object.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from defisats.domain.automation.entities import AutomationType, TradeLogStatus


class CreateAutomationRequest(BaseModel):
    """Request schema for automation creation.

    Attributes:
        type: margin_guard, tp_sl or auto_entry.
        config: Type-specific settings.
        is_active: Start active (default).
    """

    type: str = Field(..., min_length=1, max_length=32)
    config: dict[str, Any]
    is_active: bool = True


class UpdateAutomationRequest(BaseModel):
    config: dict[str, Any] | None = None
    is_active: bool | None = None


class ValidateConfigRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=32)
    config: dict[str, Any]


class ValidateConfigResponse(BaseModel):
    valid: bool
    type: str
    config: dict[str, Any]


class AutomationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: AutomationType
    config: dict[str, Any]
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AutomationStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    by_type: dict[str, int]
    recent: list[AutomationResponse]


class PositionRiskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    trade_id: str
    side: str
    entry_price: Decimal
    liquidation_price: Decimal
    current_price: Decimal
    margin: int
    pl: int
    margin_level: float = Field(description="Equity as a percentage of margin")
    risk_level: str
    trigger_price: Decimal | None
    distance_percentage: Decimal
    is_at_risk: bool
    protected: bool


class TradeLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    automation_id: UUID | None = None
    trade_id: str | None = None
    action: str
    status: TradeLogStatus
    message: str | None = None
    pnl: int | None = None
    price: Decimal | None = None
    details: dict[str, Any]
    created_at: datetime | None = None


class TradeLogPageResponse(BaseModel):
    items: list[TradeLogResponse]
    total: int
    page: int
    page_size: int
    pages: int


class TradeLogStatsResponse(BaseModel):
    total: int
    success: int
    errors: int
    realized_pnl: int
    by_action: dict[str, int]
