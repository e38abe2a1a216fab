"""
Domain service: automatic position entry.

Price conditions compare the ticker's last price with ``entry_price``;
RSI conditions use the index history.
"""

from decimal import Decimal
from typing import Optional, Sequence

from defisats.domain.automation.configs import AutoEntryConfig
from defisats.domain.automation.entities import ActionKind, AutomationAction
from defisats.domain.exchange.entities import Ticker

RSI_CONDITIONS = ("rsi_oversold", "rsi_overbought")


def relative_strength_index(closes: Sequence[Decimal], period: int) -> Optional[Decimal]:
    """Return the RSI over the last ``period`` changes, or None without enough data.

    Uses simple averages of gains and losses.
    """
    if period <= 0 or len(closes) < period + 1:
        return None

    window = list(closes)[-(period + 1):]
    gains = Decimal("0")
    losses = Decimal("0")
    for previous, current in zip(window, window[1:]):
        change = current - previous
        if change > 0:
            gains += change
        else:
            losses -= change

    if losses == 0:
        return Decimal("100")
    rs = (gains / period) / (losses / period)
    return Decimal("100") - Decimal("100") / (1 + rs)


def entry_triggered(
    config: AutoEntryConfig,
    ticker: Ticker,
    closes: Sequence[Decimal] = (),
) -> tuple[bool, dict]:
    """Return whether the entry condition holds and the values it was judged on."""
    condition = config.entry_condition
    if condition in ("price_above", "price_below"):
        entry_price = Decimal(str(config.entry_price))
        if condition == "price_above":
            hit = ticker.last_price > entry_price
        else:
            hit = ticker.last_price < entry_price
        return hit, {"last_price": str(ticker.last_price), "entry_price": str(entry_price)}

    rsi = relative_strength_index(closes, config.rsi_period)
    if rsi is None:
        return False, {"rsi": None}
    threshold = Decimal(str(config.rsi_threshold))
    hit = rsi <= threshold if condition == "rsi_oversold" else rsi >= threshold
    return hit, {"rsi": str(rsi.quantize(Decimal("0.01"))), "rsi_threshold": str(threshold)}


def plan_auto_entry(
    config: AutoEntryConfig,
    ticker: Ticker,
    balance_sats: int,
    closes: Sequence[Decimal] = (),
) -> Optional[AutomationAction]:
    """Return an OPEN_POSITION action when the entry condition holds."""
    if not config.enabled:
        return None

    hit, details = entry_triggered(config, ticker, closes)
    if not hit:
        return None

    margin = int(Decimal(balance_sats) * Decimal(str(config.position_size)))
    if margin <= 0:
        return None

    details.update({
        "side": config.side,
        "leverage": config.leverage,
        "balance": balance_sats,
        "position_size": config.position_size,
    })
    return AutomationAction(
        kind=ActionKind.OPEN_POSITION,
        reason=f"Entry condition {config.entry_condition} met",
        amount=margin,
        details=details,
    )
