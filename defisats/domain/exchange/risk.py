"""
Domain service: position risk assessment.

Pure functions over Trade values. The margin level is the position's
equity (margin plus unrealized P&L) as a percentage of its initial margin.
"""

from decimal import Decimal
from enum import Enum

from defisats.domain.exchange.entities import Trade


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def assess_margin_level(margin_level_pct: float) -> RiskLevel:
    """Classify a margin level percentage.

    Args:
        margin_level_pct: Equity as a percentage of initial margin.

    Returns:
        CRITICAL at or below 10, HIGH at or below 20,
        MEDIUM at or below 50, LOW otherwise.
    """
    if margin_level_pct <= 10:
        return RiskLevel.CRITICAL
    if margin_level_pct <= 20:
        return RiskLevel.HIGH
    if margin_level_pct <= 50:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def margin_level(trade: Trade) -> float:
    """Return the trade's equity as a percentage of its margin."""
    if trade.margin <= 0:
        return 0.0
    return (trade.margin + trade.pl) / trade.margin * 100


def pnl_percentage(trade: Trade) -> Decimal:
    """Return unrealized P&L as a percentage of margin."""
    if trade.margin <= 0:
        return Decimal("0")
    return Decimal(trade.pl) / Decimal(trade.margin) * 100
