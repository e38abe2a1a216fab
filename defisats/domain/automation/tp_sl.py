"""
Domain service: take-profit / stop-loss with optional trailing stop.

P&L is measured in percent of margin. The trailing stop remembers the best
P&L each trade has reached; callers own that state and pass it in.
"""

from decimal import Decimal

from defisats.domain.automation.configs import TakeProfitStopLossConfig
from defisats.domain.automation.entities import ActionKind, AutomationAction
from defisats.domain.exchange.entities import Trade
from defisats.domain.exchange.risk import pnl_percentage


def plan_tp_sl(
    trades: list[Trade],
    config: TakeProfitStopLossConfig,
    peaks: dict[str, Decimal],
) -> list[AutomationAction]:
    """Return close actions for trades that hit a target.

    Args:
        trades: Running positions.
        config: Validated TP/SL config.
        peaks: Best P&L percent seen per trade id. Updated in place and
            pruned of trades that are no longer running.
    """
    if not config.enabled:
        return []

    take_profit = Decimal(str(config.take_profit_percentage))
    stop_loss = Decimal(str(config.stop_loss_percentage))
    trailing = (
        Decimal(str(config.trailing_percentage))
        if config.trailing_stop and config.trailing_percentage
        else None
    )

    running_ids = {t.id for t in trades if t.running}
    for stale in set(peaks) - running_ids:
        del peaks[stale]

    actions = []
    for trade in trades:
        if not trade.running:
            continue
        pnl = pnl_percentage(trade)
        peak = max(peaks.get(trade.id, pnl), pnl)
        peaks[trade.id] = peak

        reason = None
        if pnl >= take_profit:
            reason = f"Take profit reached: {pnl:.2f}% >= {take_profit}%"
        elif pnl <= -stop_loss:
            reason = f"Stop loss reached: {pnl:.2f}% <= -{stop_loss}%"
        elif trailing is not None and peak > 0 and peak - pnl >= trailing:
            reason = f"Trailing stop: {pnl:.2f}% is {peak - pnl:.2f} points below peak {peak:.2f}%"

        if reason:
            actions.append(AutomationAction(
                kind=ActionKind.CLOSE_POSITION,
                reason=reason,
                trade_id=trade.id,
                details={"pnl_percentage": str(pnl), "peak_percentage": str(peak)},
            ))
    return actions
