"""
Domain service: margin guard.

For each running trade the guard measures how far the market has travelled
from the entry price towards the liquidation price. Once it has covered
``margin_threshold`` percent of that distance the configured action fires.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from defisats.domain.automation.configs import MarginGuardConfig
from defisats.domain.automation.entities import ActionKind, AutomationAction
from defisats.domain.exchange.entities import Trade


@dataclass(frozen=True)
class LiquidationDistance:
    """Where a trade stands relative to its liquidation price.

    Attributes:
        absolute: |entry - liquidation| in USD.
        percentage: ``absolute`` relative to the liquidation price.
        activation_distance: Distance from liquidation at which the guard acts.
        trigger_price: Price at which the guard acts.
        is_at_risk: Whether the current price has crossed the trigger.
    """

    absolute: Decimal
    percentage: Decimal
    activation_distance: Decimal
    trigger_price: Decimal
    is_at_risk: bool


def liquidation_distance(
    trade: Trade,
    current_price: Decimal,
    margin_threshold: Decimal,
) -> LiquidationDistance:
    """Compute the guard's trigger for one trade.

    Args:
        trade: Running position.
        current_price: Latest market price.
        margin_threshold: Percentage of the entry-to-liquidation distance
            after which the trade counts as at risk.
    """
    absolute = abs(trade.entry_price - trade.liquidation_price)
    percentage = (
        absolute / trade.liquidation_price * 100 if trade.liquidation_price else Decimal("0")
    )
    activation = absolute * (1 - margin_threshold / 100)

    if trade.is_long:
        trigger = trade.liquidation_price + activation
        at_risk = current_price <= trigger
    else:
        trigger = trade.liquidation_price - activation
        at_risk = current_price >= trigger

    return LiquidationDistance(
        absolute=absolute,
        percentage=percentage,
        activation_distance=activation,
        trigger_price=trigger,
        is_at_risk=at_risk,
    )


def plan_margin_guard(
    trades: list[Trade],
    current_price: Decimal,
    config: MarginGuardConfig,
    max_trades: Optional[int] = None,
) -> list[AutomationAction]:
    """Return the actions the guard takes for the given positions.

    Only the first ``max_trades`` running positions are watched when a cap is set.
    """
    if not config.enabled:
        return []

    threshold = Decimal(str(config.margin_threshold))
    watched = [t for t in trades if t.running]
    if max_trades is not None:
        watched = watched[:max_trades]

    actions = []
    for trade in watched:
        distance = liquidation_distance(trade, current_price, threshold)
        if not distance.is_at_risk:
            continue

        details = {
            "entry_price": str(trade.entry_price),
            "liquidation_price": str(trade.liquidation_price),
            "trigger_price": str(distance.trigger_price),
            "current_price": str(current_price),
            "margin_threshold": config.margin_threshold,
        }
        reason = (
            f"Price {current_price} crossed trigger {distance.trigger_price} "
            f"(liquidation {trade.liquidation_price})"
        )

        if config.action == "reduce_position":
            actions.append(AutomationAction(
                kind=ActionKind.REDUCE_POSITION,
                reason=reason,
                trade_id=trade.id,
                percentage=Decimal(str(config.reduce_percentage)),
                details=details,
            ))
        elif config.action == "add_margin":
            actions.append(AutomationAction(
                kind=ActionKind.ADD_MARGIN,
                reason=reason,
                trade_id=trade.id,
                amount=config.add_margin_amount,
                details=details,
            ))
        else:
            actions.append(AutomationAction(
                kind=ActionKind.CLOSE_POSITION,
                reason=reason,
                trade_id=trade.id,
                details=details,
            ))

    return actions
