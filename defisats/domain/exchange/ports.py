"""
Port interfaces for the exchange bounded context.

Application use cases depend on these abstractions only. The LN Markets
adapter in the infrastructure layer implements them.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Optional

from defisats.domain.exchange.entities import (
    AccountInfo,
    DepositInvoice,
    IndexPoint,
    LNMarketsCredentials,
    Ticker,
    Trade,
    TradeSide,
)


class ExchangePort(ABC):
    """Operations on one LN Markets account."""

    @abstractmethod
    def validate_credentials(self) -> bool:
        """Return True if the exchange accepts the credentials, False on 401/403."""

    @abstractmethod
    def get_account(self) -> AccountInfo:
        """Return the account summary (uid, username, balance in sats)."""

    @abstractmethod
    def get_running_trades(self) -> list[Trade]:
        """Return all open futures positions."""

    @abstractmethod
    def get_trade(self, trade_id: str) -> Trade:
        """Return one futures position."""

    @abstractmethod
    def open_trade(
        self,
        side: TradeSide,
        leverage: Decimal,
        quantity: Optional[Decimal] = None,
        margin: Optional[int] = None,
        stoploss: Optional[Decimal] = None,
        takeprofit: Optional[Decimal] = None,
    ) -> Trade:
        """Open a market order sized either by USD quantity or sats margin."""

    @abstractmethod
    def close_trade(self, trade_id: str) -> Trade:
        """Close a running position at market."""

    @abstractmethod
    def add_margin(self, trade_id: str, amount: int) -> Trade:
        """Add collateral (sats) to a running position."""

    @abstractmethod
    def cash_in(self, trade_id: str, amount: int) -> Trade:
        """Withdraw profit (sats) from a running position."""

    @abstractmethod
    def update_stoploss(self, trade_id: str, price: Decimal) -> Trade:
        """Set the stop-loss price of a running position."""

    @abstractmethod
    def update_takeprofit(self, trade_id: str, price: Decimal) -> Trade:
        """Set the take-profit price of a running position."""

    @abstractmethod
    def get_ticker(self) -> Ticker:
        """Return the current futures ticker."""

    @abstractmethod
    def get_index_history(self, limit: int = 100) -> list[IndexPoint]:
        """Return recent index samples, oldest first."""

    @abstractmethod
    def create_deposit(self, amount: int) -> DepositInvoice:
        """Create a Lightning invoice that funds the account."""

    @abstractmethod
    def is_deposit_paid(self, deposit_id: str) -> bool:
        """Return True once the deposit invoice has been settled."""

    def close(self) -> None:
        """Release network resources held by the adapter."""


ExchangeFactory = Callable[[LNMarketsCredentials], ExchangePort]
"""Builds an ExchangePort bound to one user's credentials."""
