"""
Tests for the automation pass.

Runs RunAutomationsUseCase against the real repositories on SQLite and a
FakeExchange shared by every user.
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from defisats.application.automation.run_automations import RunAutomationsUseCase
from defisats.core.database import get_engine
from defisats.domain.accounts.entities import PlanType
from defisats.domain.automation.configs import validate_config
from defisats.domain.automation.entities import Automation, AutomationType, TradeLogFilter, TradeLogStatus
from defisats.domain.exchange.entities import TradeSide
from defisats.domain.exchange.errors import TradeNotRunningError
from defisats.domain.notifications.dispatcher import NotificationDispatcher
from defisats.domain.notifications.entities import NotificationType
from defisats.infrastructure.persistence.automation_repository import AutomationRepositoryAdapter
from defisats.infrastructure.persistence.notification_repository import NotificationRepositoryAdapter
from defisats.infrastructure.persistence.trade_log_repository import TradeLogRepositoryAdapter
from defisats.infrastructure.persistence.user_repository import UserRepositoryAdapter
from defisats.interfaces.dependencies import get_cipher

from conftest import make_trade, register, set_plan


@pytest.fixture
def runner(exchange) -> RunAutomationsUseCase:
    engine = get_engine()
    return RunAutomationsUseCase(
        automation_repo=AutomationRepositoryAdapter(engine=engine),
        user_repo=UserRepositoryAdapter(engine=engine),
        trade_log_repo=TradeLogRepositoryAdapter(engine=engine),
        cipher=get_cipher(),
        exchange_factory=lambda _credentials: exchange,
        dispatcher=NotificationDispatcher(NotificationRepositoryAdapter(engine=engine)),
    )


@pytest.fixture
def user_id(client) -> UUID:
    return UUID(register(client)["user_id"])


def _automation(user_id: UUID, automation_type: AutomationType, config: dict, active: bool = True) -> Automation:
    repo = AutomationRepositoryAdapter(engine=get_engine())
    return repo.add(Automation(
        id=uuid4(),
        user_id=user_id,
        type=automation_type,
        config=validate_config(automation_type, config),
        is_active=active,
        created_at=datetime.now(timezone.utc),
    ))


def _logs(user_id: UUID):
    items, _total = TradeLogRepositoryAdapter(engine=get_engine()).list(user_id, TradeLogFilter(), limit=50, offset=0)
    return items


def _notifications(user_id: UUID):
    return NotificationRepositoryAdapter(engine=get_engine()).list_for_user(user_id)


class TestMarginGuardPass:
    def test_close_when_trigger_crossed(self, runner, exchange, user_id):
        exchange.trades = {"t1": make_trade(pl=-500)}
        exchange.last_price = Decimal("57000")
        _automation(user_id, AutomationType.MARGIN_GUARD, {"margin_threshold": 20})

        summary = runner.execute()

        assert summary.users_processed == 1
        assert summary.automations_evaluated == 1
        assert summary.actions_executed == 1
        assert ("close_trade", "t1") in exchange.calls
        [log] = _logs(user_id)
        assert log.action == "close_position"
        assert log.status is TradeLogStatus.SUCCESS
        assert log.pnl == -500
        assert log.price == Decimal("57000")
        [notification] = _notifications(user_id)
        assert notification.type is NotificationType.MARGIN_ALERT

    def test_safe_position_untouched(self, runner, exchange, user_id):
        exchange.trades = {"t1": make_trade()}
        _automation(user_id, AutomationType.MARGIN_GUARD, {"margin_threshold": 20})

        summary = runner.execute()

        assert summary.actions_executed == 0
        assert not any(call[0] == "close_trade" for call in exchange.calls)
        assert _logs(user_id) == []

    def test_reduce_reopens_remaining_quantity(self, runner, exchange, user_id):
        exchange.trades = {"t1": make_trade(quantity="100")}
        exchange.last_price = Decimal("55000")
        _automation(user_id, AutomationType.MARGIN_GUARD, {
            "margin_threshold": 20, "action": "reduce_position", "reduce_percentage": 25,
        })

        runner.execute()

        close_call, open_call = [c for c in exchange.calls if c[0] in ("close_trade", "open_trade")]
        assert close_call == ("close_trade", "t1")
        assert open_call[1] is TradeSide.BUY
        assert open_call[3] == Decimal("75")
        assert _logs(user_id)[0].action == "reduce_position"

    def test_add_margin(self, runner, exchange, user_id):
        exchange.trades = {"t1": make_trade()}
        exchange.last_price = Decimal("55000")
        _automation(user_id, AutomationType.MARGIN_GUARD, {
            "margin_threshold": 20, "action": "add_margin", "add_margin_amount": 5000,
        })

        runner.execute()

        assert ("add_margin", "t1", 5000) in exchange.calls
        assert exchange.trades["t1"].margin == 15_000

    def test_free_plan_protects_two_positions(self, runner, exchange, user_id):
        exchange.trades = {f"t{i}": make_trade(trade_id=f"t{i}") for i in range(3)}
        exchange.last_price = Decimal("55000")
        _automation(user_id, AutomationType.MARGIN_GUARD, {"margin_threshold": 20})

        summary = runner.execute()

        assert summary.actions_executed == 2
        assert exchange.trades["t2"].running is True

    def test_failed_action_is_logged_and_notified(self, runner, exchange, user_id):
        exchange.trades = {"t1": make_trade()}
        exchange.last_price = Decimal("55000")
        exchange.fail_on.add("close_trade")
        _automation(user_id, AutomationType.MARGIN_GUARD, {"margin_threshold": 20})

        summary = runner.execute()

        assert summary.actions_failed == 1
        assert summary.users_processed == 1
        [log] = _logs(user_id)
        assert log.status is TradeLogStatus.ERROR
        assert log.message == "close_trade rejected"
        [notification] = _notifications(user_id)
        assert notification.type is NotificationType.AUTOMATION_ERROR


    def test_unexpected_error_is_logged_and_next_trade_handled(self, runner, exchange, user_id, monkeypatch):
        exchange.trades = {f"t{i}": make_trade(trade_id=f"t{i}") for i in range(2)}
        exchange.last_price = Decimal("55000")
        real_close = exchange.close_trade

        def flaky_close(trade_id):
            if trade_id == "t0":
                raise KeyError("pl")
            return real_close(trade_id)

        monkeypatch.setattr(exchange, "close_trade", flaky_close)
        _automation(user_id, AutomationType.MARGIN_GUARD, {"margin_threshold": 20})

        summary = runner.execute()

        assert summary.users_processed == 1
        assert summary.actions_failed == 1
        assert summary.actions_executed == 1
        logs = {log.trade_id: log for log in _logs(user_id)}
        assert logs["t0"].status is TradeLogStatus.ERROR
        assert logs["t0"].message.startswith("Unexpected KeyError")
        assert logs["t1"].status is TradeLogStatus.SUCCESS
        types = {n.type for n in _notifications(user_id)}
        assert types == {NotificationType.AUTOMATION_ERROR, NotificationType.MARGIN_ALERT}

    def test_reduce_with_failed_reopen_records_the_full_close(self, runner, exchange, user_id):
        exchange.trades = {"t1": make_trade(pl=-300)}
        exchange.last_price = Decimal("55000")
        exchange.fail_on.add("open_trade")
        _automation(user_id, AutomationType.MARGIN_GUARD, {
            "margin_threshold": 20, "action": "reduce_position", "reduce_percentage": 25,
        })

        summary = runner.execute()

        assert exchange.trades["t1"].running is False
        assert summary.actions_failed == 1
        by_status = {log.status: log for log in _logs(user_id)}
        assert set(by_status) == {TradeLogStatus.SUCCESS, TradeLogStatus.ERROR}
        assert by_status[TradeLogStatus.SUCCESS].pnl == -300
        assert "fully closed" in by_status[TradeLogStatus.ERROR].message
        [notification] = _notifications(user_id)
        assert notification.type is NotificationType.AUTOMATION_ERROR
        assert "fully closed" in notification.message

    def test_reduce_of_vanished_trade_is_an_error_log(self, runner, exchange, user_id, monkeypatch):
        exchange.trades = {"t1": make_trade()}
        exchange.last_price = Decimal("55000")
        _automation(user_id, AutomationType.MARGIN_GUARD, {
            "margin_threshold": 20, "action": "reduce_position", "reduce_percentage": 25,
        })

        def vanished(_ctx, trade_id):
            raise TradeNotRunningError(trade_id)

        monkeypatch.setattr(
            "defisats.application.automation.run_automations._UserContext.find_trade", vanished
        )

        summary = runner.execute()

        assert summary.actions_failed == 1
        [log] = _logs(user_id)
        assert log.message == "Trade t1 is not running"
        assert ("close_trade", "t1") not in exchange.calls


class TestTakeProfitStopLossPass:
    def test_take_profit_closes(self, runner, exchange, user_id):
        set_plan("alice@example.com", PlanType.BASIC)
        exchange.trades = {"t1": make_trade(pl=1500)}
        _automation(user_id, AutomationType.TP_SL, {"take_profit_percentage": 10, "stop_loss_percentage": 5})

        runner.execute()

        assert ("close_trade", "t1") in exchange.calls
        assert _notifications(user_id)[0].type is NotificationType.TRADE_EXECUTED

    def test_trailing_peak_survives_between_passes(self, runner, exchange, user_id):
        set_plan("alice@example.com", PlanType.BASIC)
        _automation(user_id, AutomationType.TP_SL, {
            "take_profit_percentage": 50, "stop_loss_percentage": 20,
            "trailing_stop": True, "trailing_percentage": 3,
        })

        exchange.trades = {"t1": make_trade(pl=800)}
        assert runner.execute().actions_executed == 0

        exchange.trades = {"t1": make_trade(pl=400)}
        assert runner.execute().actions_executed == 1

    def test_not_in_plan_is_skipped(self, runner, exchange, user_id):
        exchange.trades = {"t1": make_trade(pl=5000)}
        _automation(user_id, AutomationType.TP_SL, {"take_profit_percentage": 10, "stop_loss_percentage": 5})

        summary = runner.execute()

        assert summary.automations_evaluated == 0
        assert ("close_trade", "t1") not in exchange.calls


class TestAutoEntryPass:
    def test_fires_once_then_deactivates(self, runner, exchange, user_id):
        set_plan("alice@example.com", PlanType.PRO)
        exchange.last_price = Decimal("59000")
        automation = _automation(user_id, AutomationType.AUTO_ENTRY, {
            "entry_condition": "price_below", "entry_price": 60000,
            "position_size": 0.1, "leverage": 5, "stop_loss": 55000,
        })

        summary = runner.execute()

        assert summary.actions_executed == 1
        [open_call] = [c for c in exchange.calls if c[0] == "open_trade"]
        assert open_call[1] is TradeSide.BUY
        assert open_call[2] == Decimal("5")
        assert open_call[4] == 100_000
        assert open_call[5] == Decimal("55000")
        stored = AutomationRepositoryAdapter(engine=get_engine()).get(automation.id)
        assert stored.is_active is False

        assert runner.execute().automations_evaluated == 0

    def test_failed_open_stays_active(self, runner, exchange, user_id):
        set_plan("alice@example.com", PlanType.PRO)
        exchange.last_price = Decimal("59000")
        exchange.fail_on.add("open_trade")
        automation = _automation(user_id, AutomationType.AUTO_ENTRY, {
            "entry_condition": "price_below", "entry_price": 60000, "position_size": 0.1,
        })

        runner.execute()

        assert AutomationRepositoryAdapter(engine=get_engine()).get(automation.id).is_active is True


class TestIsolation:
    def test_inactive_user_skipped(self, runner, exchange, user_id):
        repo = UserRepositoryAdapter(engine=get_engine())
        repo.update(replace(repo.get_by_id(user_id), is_active=False))
        _automation(user_id, AutomationType.MARGIN_GUARD, {"margin_threshold": 20})

        summary = runner.execute()

        assert summary.users_processed == 0
        assert exchange.calls == []

    def test_exchange_outage_fails_one_user(self, runner, exchange, user_id):
        exchange.fail_on.add("get_running_trades")
        exchange.closed = False
        _automation(user_id, AutomationType.MARGIN_GUARD, {"margin_threshold": 20})

        summary = runner.execute()

        assert summary.users_failed == 1
        assert summary.users_processed == 0
        assert "get_running_trades rejected" in summary.errors[0]
        assert exchange.closed

    def test_inactive_automations_ignored(self, runner, exchange, user_id):
        exchange.last_price = Decimal("55000")
        exchange.trades = {"t1": make_trade()}
        _automation(user_id, AutomationType.MARGIN_GUARD, {"margin_threshold": 20}, active=False)

        assert runner.execute().automations_evaluated == 0
