"""
Shared fixtures.

The app runs against an in-memory SQLite database with background workers
and rate limiting disabled. LN Markets is replaced by ``FakeExchange``.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("WORKERS_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-enough-length-0123456789")
os.environ.setdefault("ENCRYPTION_SECRET", "test-encryption-secret")

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from defisats.core.database import get_engine, init_db
from defisats.domain.exchange.entities import (
    AccountInfo,
    DepositInvoice,
    IndexPoint,
    LNMarketsCredentials,
    Ticker,
    Trade,
    TradeSide,
)
from defisats.domain.exchange.errors import ExchangeError
from defisats.domain.exchange.ports import ExchangePort
from defisats.infrastructure.persistence.tables import metadata
from defisats.infrastructure.persistence.user_repository import UserRepositoryAdapter
from defisats.interfaces.dependencies import get_exchange_factory, get_public_exchange
from defisats.main import app

VALID_API_KEY = "good-key"


class FakeExchange(ExchangePort):
    """In-memory LN Markets account."""

    def __init__(
        self,
        trades: Optional[list[Trade]] = None,
        last_price: Decimal = Decimal("60000"),
        balance: int = 1_000_000,
        index_history: Optional[list[Decimal]] = None,
        valid: bool = True,
    ) -> None:
        self.trades = {t.id: t for t in trades or []}
        self.last_price = last_price
        self.balance = balance
        self.index_history = index_history or []
        self.valid = valid
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self.closed = False
        self._ids = count(1)

    def _check(self, name: str) -> None:
        self.calls.append((name,))
        if name in self.fail_on:
            raise ExchangeError(f"{name} rejected")

    def validate_credentials(self) -> bool:
        return self.valid

    def get_account(self) -> AccountInfo:
        self._check("get_account")
        return AccountInfo(uid="uid-1", username="trader", balance=self.balance)

    def get_running_trades(self) -> list[Trade]:
        self._check("get_running_trades")
        return [t for t in self.trades.values() if t.running]

    def get_trade(self, trade_id: str) -> Trade:
        return self.trades[trade_id]

    def open_trade(self, side, leverage, quantity=None, margin=None, stoploss=None, takeprofit=None) -> Trade:
        self._check("open_trade")
        trade = Trade(
            id=f"new-{next(self._ids)}",
            side=side,
            quantity=quantity if quantity is not None else Decimal(margin or 0),
            leverage=leverage,
            entry_price=self.last_price,
            liquidation_price=self.last_price * Decimal("0.9"),
            margin=margin or 0,
            stoploss=stoploss,
            takeprofit=takeprofit,
        )
        self.trades[trade.id] = trade
        self.calls[-1] = ("open_trade", side, leverage, quantity, margin, stoploss, takeprofit)
        return trade

    def close_trade(self, trade_id: str) -> Trade:
        self._check("close_trade")
        trade = replace(self.trades[trade_id], running=False)
        self.trades[trade_id] = trade
        self.calls[-1] = ("close_trade", trade_id)
        return trade

    def add_margin(self, trade_id: str, amount: int) -> Trade:
        self._check("add_margin")
        trade = self.trades[trade_id]
        trade = replace(trade, margin=trade.margin + amount)
        self.trades[trade_id] = trade
        self.calls[-1] = ("add_margin", trade_id, amount)
        return trade

    def cash_in(self, trade_id: str, amount: int) -> Trade:
        return self.trades[trade_id]

    def update_stoploss(self, trade_id: str, price: Decimal) -> Trade:
        return self.trades[trade_id]

    def update_takeprofit(self, trade_id: str, price: Decimal) -> Trade:
        return self.trades[trade_id]

    def get_ticker(self) -> Ticker:
        self._check("get_ticker")
        return Ticker(
            index=self.last_price,
            last_price=self.last_price,
            bid=self.last_price - 1,
            offer=self.last_price + 1,
            timestamp=datetime.now(timezone.utc),
        )

    def get_index_history(self, limit: int = 100) -> list[IndexPoint]:
        self._check("get_index_history")
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        return [
            IndexPoint(time=start + timedelta(minutes=i), value=v)
            for i, v in enumerate(self.index_history[-limit:])
        ]

    def create_deposit(self, amount: int) -> DepositInvoice:
        self._check("create_deposit")
        return DepositInvoice(deposit_id="dep-1", payment_request="lnbc1fake", amount=amount)

    def is_deposit_paid(self, deposit_id: str) -> bool:
        return False

    def close(self) -> None:
        self.closed = True


def make_trade(
    trade_id: str = "t1",
    side: TradeSide = TradeSide.BUY,
    entry: str = "60000",
    liquidation: str = "50000",
    margin: int = 10_000,
    pl: int = 0,
    quantity: str = "100",
) -> Trade:
    return Trade(
        id=trade_id,
        side=side,
        quantity=Decimal(quantity),
        leverage=Decimal("10"),
        entry_price=Decimal(entry),
        liquidation_price=Decimal(liquidation),
        margin=margin,
        pl=pl,
    )


@pytest.fixture(scope="session", autouse=True)
def _create_tables():
    init_db()
    yield


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with get_engine().begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def exchange() -> FakeExchange:
    return FakeExchange()


@pytest.fixture
def client(exchange):
    """TestClient wired to ``exchange`` for every LN Markets account."""

    def factory(credentials: LNMarketsCredentials) -> FakeExchange:
        exchange.valid = credentials.api_key == VALID_API_KEY
        return exchange

    app.dependency_overrides[get_exchange_factory] = lambda: factory
    app.dependency_overrides[get_public_exchange] = lambda: exchange
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email="alice@example.com", username="alice", **extra) -> dict:
    payload = {
        "email": email,
        "username": username,
        "password": "s3cret-pass",
        "api_key": VALID_API_KEY,
        "api_secret": "secret",
        "passphrase": "phrase",
    }
    payload.update(extra)
    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def auth_headers(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def user_headers(client) -> dict:
    return auth_headers(register(client))


@pytest.fixture
def admin_headers(client) -> dict:
    tokens = register(client, email="admin@example.com", username="admin")
    repo = UserRepositoryAdapter(engine=get_engine())
    user = repo.get_by_email("admin@example.com")
    repo.update(replace(user, is_admin=True))
    return auth_headers(tokens)


def set_plan(email: str, plan_type) -> None:
    repo = UserRepositoryAdapter(engine=get_engine())
    user = repo.get_by_email(email)
    repo.update(replace(user, plan_type=plan_type))
