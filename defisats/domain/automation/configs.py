"""
Per-type configuration schemas for automations.

Configs are stored as JSON on the automation row; these models are the
single source of the allowed keys and ranges. Unknown keys are rejected.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from defisats.domain.automation.entities import AutomationType
from defisats.domain.automation.errors import (
    InvalidAutomationConfigError,
    UnknownAutomationTypeError,
)


class _Config(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class MarginGuardConfig(_Config):
    """Act when price has covered ``margin_threshold`` percent of the way to liquidation."""

    margin_threshold: float = Field(ge=0.1, le=100)
    action: Literal["close_position", "reduce_position", "add_margin"] = "close_position"
    reduce_percentage: Optional[float] = Field(default=None, ge=1, le=100)
    add_margin_amount: Optional[int] = Field(default=None, ge=0)
    enabled: bool = True

    @model_validator(mode="after")
    def _action_parameters(self) -> "MarginGuardConfig":
        if self.action == "reduce_position" and self.reduce_percentage is None:
            raise ValueError("reduce_percentage is required for reduce_position")
        if self.action == "add_margin" and not self.add_margin_amount:
            raise ValueError("add_margin_amount must be positive for add_margin")
        return self


class TakeProfitStopLossConfig(_Config):
    take_profit_percentage: float = Field(ge=0.1, le=1000)
    stop_loss_percentage: float = Field(ge=0.1, le=100)
    trailing_stop: bool = False
    trailing_percentage: Optional[float] = Field(default=None, ge=0.1, le=10)
    enabled: bool = True

    @model_validator(mode="after")
    def _trailing_parameters(self) -> "TakeProfitStopLossConfig":
        if self.trailing_stop and self.trailing_percentage is None:
            raise ValueError("trailing_percentage is required when trailing_stop is set")
        return self


class AutoEntryConfig(_Config):
    entry_condition: Literal["price_above", "price_below", "rsi_oversold", "rsi_overbought"]
    entry_price: Optional[float] = Field(default=None, gt=0)
    rsi_period: int = Field(default=14, ge=5, le=50)
    rsi_threshold: float = Field(default=30, ge=10, le=90)
    position_size: float = Field(ge=0.001, le=1)
    side: Literal["b", "s"] = "b"
    leverage: float = Field(default=10, ge=1, le=100)
    stop_loss: Optional[float] = Field(default=None, gt=0)
    take_profit: Optional[float] = Field(default=None, gt=0)
    enabled: bool = True

    @model_validator(mode="after")
    def _price_condition_needs_price(self) -> "AutoEntryConfig":
        if self.entry_condition in ("price_above", "price_below") and self.entry_price is None:
            raise ValueError(f"entry_price is required for {self.entry_condition}")
        return self


CONFIG_MODELS: dict[AutomationType, type[_Config]] = {
    AutomationType.MARGIN_GUARD: MarginGuardConfig,
    AutomationType.TP_SL: TakeProfitStopLossConfig,
    AutomationType.AUTO_ENTRY: AutoEntryConfig,
}


def parse_automation_type(value: str) -> AutomationType:
    try:
        return AutomationType(value)
    except ValueError:
        raise UnknownAutomationTypeError(value) from None


def parse_config(automation_type: AutomationType, raw: dict[str, Any]) -> _Config:
    """Validate ``raw`` against the model for ``automation_type``.

    Raises:
        InvalidAutomationConfigError: With one message per failing field.
    """
    model = CONFIG_MODELS[automation_type]
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        errors = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err["loc"])
            errors.append(f"{location}: {err['msg']}" if location else err["msg"])
        raise InvalidAutomationConfigError(automation_type.value, errors) from None


def validate_config(automation_type: AutomationType, raw: dict[str, Any]) -> dict[str, Any]:
    """Return the normalized config dict (defaults filled in)."""
    return parse_config(automation_type, raw).model_dump()
