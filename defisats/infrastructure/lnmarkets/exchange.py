"""
Adapter: LN Markets exchange.

Implements the ExchangePort on top of LNMarketsClient and maps the v2
JSON payloads to domain entities.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterator, Optional

from defisats.domain.exchange.entities import (
    AccountInfo,
    DepositInvoice,
    IndexPoint,
    LNMarketsCredentials,
    Ticker,
    Trade,
    TradeSide,
)
from defisats.domain.exchange.errors import ExchangeAuthenticationError, ExchangeError
from defisats.domain.exchange.ports import ExchangeFactory, ExchangePort
from defisats.infrastructure.lnmarkets.circuit_breaker import CircuitBreaker
from defisats.infrastructure.lnmarkets.client import LNMarketsClient

logger = logging.getLogger(__name__)


def _dec(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def _from_millis(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


@contextmanager
def _payload(what: str) -> Iterator[None]:
    """Turn a malformed response body into an ExchangeError."""
    try:
        yield
    except (KeyError, TypeError, ValueError, AttributeError, ArithmeticError) as exc:
        raise ExchangeError(f"Unexpected LN Markets {what} payload: {type(exc).__name__}: {exc}") from exc


def _to_trade(data: dict[str, Any]) -> Trade:
    stoploss = _dec(data.get("stoploss"))
    takeprofit = _dec(data.get("takeprofit"))
    return Trade(
        id=str(data["id"]),
        side=TradeSide(data.get("side", "b")),
        quantity=_dec(data.get("quantity")) or Decimal("0"),
        leverage=_dec(data.get("leverage")) or Decimal("1"),
        entry_price=_dec(data.get("entry_price") or data.get("price")) or Decimal("0"),
        liquidation_price=_dec(data.get("liquidation")) or Decimal("0"),
        margin=int(data.get("margin") or 0),
        maintenance_margin=int(data.get("maintenance_margin") or 0),
        pl=int(data.get("pl") or 0),
        stoploss=stoploss or None,
        takeprofit=takeprofit or None,
        running=bool(data.get("running", True)),
    )


class LNMarketsExchange(ExchangePort):
    """ExchangePort backed by the LN Markets REST API.

    Args:
        client: Configured LNMarketsClient (signed when credentials are present).
    """

    def __init__(self, client: LNMarketsClient) -> None:
        self._client = client

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    def validate_credentials(self) -> bool:
        try:
            self._client.request("GET", "/user")
        except ExchangeAuthenticationError:
            return False
        return True

    def get_account(self) -> AccountInfo:
        data = self._client.request("GET", "/user")
        with _payload("account"):
            return AccountInfo(
                uid=str(data.get("uid", "")),
                username=data.get("username"),
                balance=int(data.get("balance") or 0),
            )

    def create_deposit(self, amount: int) -> DepositInvoice:
        data = self._client.request("POST", "/user/deposit", body={"amount": amount})
        with _payload("deposit"):
            return DepositInvoice(
                deposit_id=str(data.get("depositId") or data.get("id")),
                payment_request=data["paymentRequest"],
                amount=amount,
                expires_at=_from_millis(data.get("expiry")),
            )

    def is_deposit_paid(self, deposit_id: str) -> bool:
        data = self._client.request("GET", f"/user/deposit/{deposit_id}")
        if not isinstance(data, dict):
            return False
        return bool(data.get("success")) or data.get("status") in ("paid", "settled")

    # ------------------------------------------------------------------
    # Futures
    # ------------------------------------------------------------------

    def get_running_trades(self) -> list[Trade]:
        data = self._client.request("GET", "/futures", params={"type": "running"})
        with _payload("trades"):
            return [_to_trade(item) for item in data or []]

    def get_trade(self, trade_id: str) -> Trade:
        data = self._client.request("GET", f"/futures/trades/{trade_id}")
        with _payload("trade"):
            return _to_trade(data)

    def open_trade(
        self,
        side: TradeSide,
        leverage: Decimal,
        quantity: Optional[Decimal] = None,
        margin: Optional[int] = None,
        stoploss: Optional[Decimal] = None,
        takeprofit: Optional[Decimal] = None,
    ) -> Trade:
        if (quantity is None) == (margin is None):
            raise ValueError("Exactly one of quantity or margin must be given")
        body: dict[str, Any] = {"type": "m", "side": side.value, "leverage": float(leverage)}
        if quantity is not None:
            body["quantity"] = float(quantity)
        else:
            body["margin"] = int(margin)
        if stoploss is not None:
            body["stoploss"] = float(stoploss)
        if takeprofit is not None:
            body["takeprofit"] = float(takeprofit)
        data = self._client.request("POST", "/futures", body=body)
        with _payload("trade"):
            trade = _to_trade(data)
        logger.info("Opened %s trade %s", side.value, trade.id)
        return trade

    def close_trade(self, trade_id: str) -> Trade:
        data = self._client.request("DELETE", "/futures", params={"id": trade_id})
        logger.info("Closed trade %s", trade_id)
        if isinstance(data, dict) and "id" in data:
            with _payload("trade"):
                return _to_trade({**data, "running": False})
        raise ExchangeError(f"Unexpected close response for trade {trade_id}")

    def add_margin(self, trade_id: str, amount: int) -> Trade:
        data = self._client.request("POST", "/futures/add-margin", body={"id": trade_id, "amount": amount})
        with _payload("trade"):
            return _to_trade(data)

    def cash_in(self, trade_id: str, amount: int) -> Trade:
        data = self._client.request("POST", "/futures/cash-in", body={"id": trade_id, "amount": amount})
        with _payload("trade"):
            return _to_trade(data)

    def update_stoploss(self, trade_id: str, price: Decimal) -> Trade:
        data = self._client.request(
            "PUT", "/futures", body={"id": trade_id, "type": "stoploss", "value": float(price)}
        )
        with _payload("trade"):
            return _to_trade(data)

    def update_takeprofit(self, trade_id: str, price: Decimal) -> Trade:
        data = self._client.request(
            "PUT", "/futures", body={"id": trade_id, "type": "takeprofit", "value": float(price)}
        )
        with _payload("trade"):
            return _to_trade(data)

    # ------------------------------------------------------------------
    # Market data (public)
    # ------------------------------------------------------------------

    def get_ticker(self) -> Ticker:
        data = self._client.request("GET", "/futures/ticker", authenticated=False)
        with _payload("ticker"):
            return Ticker(
                index=_dec(data.get("index")) or Decimal("0"),
                last_price=_dec(data.get("lastPrice")) or Decimal("0"),
                bid=_dec(data.get("bidPrice")),
                offer=_dec(data.get("askPrice")),
                funding_rate=_dec(data.get("carryFeeRate")),
                timestamp=datetime.now(timezone.utc),
            )

    def get_index_history(self, limit: int = 100) -> list[IndexPoint]:
        data = self._client.request(
            "GET", "/futures/history/index", params={"limit": limit}, authenticated=False
        )
        with _payload("index history"):
            points = [
                IndexPoint(time=_from_millis(item["time"]), value=_dec(item["value"]))
                for item in data or []
            ]
        return sorted(points, key=lambda p: p.time)


def lnmarkets_exchange_factory(
    timeout: float = 15.0,
    max_attempts: int = 3,
) -> ExchangeFactory:
    """Return a factory building one LNMarketsExchange per set of credentials.

    All exchanges built by the factory share one circuit breaker per host.
    """
    breakers = {False: CircuitBreaker(name="lnmarkets"), True: CircuitBreaker(name="lnmarkets-testnet")}

    def build(credentials: LNMarketsCredentials) -> LNMarketsExchange:
        client = LNMarketsClient(
            credentials=credentials,
            timeout=timeout,
            max_attempts=max_attempts,
            circuit_breaker=breakers[credentials.testnet],
        )
        return LNMarketsExchange(client)

    return build


def public_exchange(testnet: bool = False, timeout: float = 15.0) -> LNMarketsExchange:
    """Unauthenticated exchange for market data."""
    return LNMarketsExchange(LNMarketsClient(testnet=testnet, timeout=timeout))
