"""
Domain entities for the exchange bounded context.

Value objects describing what the LN Markets futures API returns.
Amounts in satoshis are ints; prices and quantities are Decimals.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class TradeSide(Enum):
    """Direction of a futures position as encoded by LN Markets."""

    BUY = "b"
    SELL = "s"


@dataclass(frozen=True)
class LNMarketsCredentials:
    """API key triple for one LN Markets account.

    The secret and passphrase are excluded from repr so they never end up in logs.
    """

    api_key: str
    api_secret: str = field(repr=False)
    passphrase: str = field(repr=False)
    testnet: bool = False


@dataclass(frozen=True)
class Trade:
    """A futures position on LN Markets.

    Attributes:
        id: Exchange-side trade identifier.
        side: Long (``b``) or short (``s``).
        quantity: Position size in USD.
        leverage: Leverage multiplier.
        entry_price: Average entry price in USD.
        liquidation_price: Price at which the exchange liquidates the position.
        margin: Collateral in sats.
        maintenance_margin: Minimum collateral in sats.
        pl: Unrealized profit or loss in sats.
        stoploss: Stop-loss price, if any.
        takeprofit: Take-profit price, if any.
        running: Whether the position is open.
    """

    id: str
    side: TradeSide
    quantity: Decimal
    leverage: Decimal
    entry_price: Decimal
    liquidation_price: Decimal
    margin: int
    maintenance_margin: int = 0
    pl: int = 0
    stoploss: Optional[Decimal] = None
    takeprofit: Optional[Decimal] = None
    running: bool = True

    @property
    def is_long(self) -> bool:
        return self.side is TradeSide.BUY


@dataclass(frozen=True)
class Ticker:
    """Snapshot of the futures market."""

    index: Decimal
    last_price: Decimal
    bid: Optional[Decimal] = None
    offer: Optional[Decimal] = None
    funding_rate: Optional[Decimal] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class IndexPoint:
    """One sample of the BTC/USD index history."""

    time: datetime
    value: Decimal


@dataclass(frozen=True)
class AccountInfo:
    """LN Markets account summary."""

    uid: str
    username: Optional[str]
    balance: int


@dataclass(frozen=True)
class DepositInvoice:
    """A Lightning invoice created to fund an LN Markets account."""

    deposit_id: str
    payment_request: str
    amount: int
    expires_at: Optional[datetime] = None
