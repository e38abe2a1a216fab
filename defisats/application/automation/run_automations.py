"""
Use case: Run every active automation once.

Input: None (reads all active automations)
Output: RunSummary
Side effects: Places orders on LN Markets, writes trade logs, sends
    notifications, deactivates auto-entry rules that fired.
Failure cases: None raised. Failures are isolated per user and per action,
    logged, recorded as error trade logs and counted in the summary.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from defisats.application.accounts.credentials import decrypt_credentials
from defisats.application.automation.dtos import RunSummary
from defisats.domain.accounts.entities import User
from defisats.domain.accounts.plans import get_plan
from defisats.domain.accounts.ports import CredentialCipher, UserRepository
from defisats.domain.automation.auto_entry import RSI_CONDITIONS, plan_auto_entry
from defisats.domain.automation.configs import AutoEntryConfig, parse_config
from defisats.domain.automation.entities import (
    ActionKind,
    Automation,
    AutomationAction,
    AutomationType,
    TradeLog,
    TradeLogStatus,
)
from defisats.domain.automation.margin_guard import plan_margin_guard
from defisats.domain.automation.ports import AutomationRepository, TradeLogRepository
from defisats.domain.automation.tp_sl import plan_tp_sl
from defisats.domain.errors import DomainError
from defisats.domain.exchange.entities import Ticker, Trade, TradeSide
from defisats.domain.exchange.errors import TradeNotRunningError
from defisats.domain.exchange.ports import ExchangeFactory, ExchangePort
from defisats.domain.notifications.dispatcher import NotificationDispatcher
from defisats.domain.notifications.entities import NotificationType

logger = logging.getLogger(__name__)

INDEX_HISTORY_LIMIT = 100


class _UserContext:
    """Per-user exchange state cached for the length of one pass."""

    def __init__(self, exchange: ExchangePort) -> None:
        self.exchange = exchange
        self.closed: set[str] = set()
        self._trades: Optional[list[Trade]] = None
        self._ticker: Optional[Ticker] = None

    @property
    def trades(self) -> list[Trade]:
        if self._trades is None:
            self._trades = self.exchange.get_running_trades()
        return [t for t in self._trades if t.id not in self.closed]

    @property
    def ticker(self) -> Ticker:
        if self._ticker is None:
            self._ticker = self.exchange.get_ticker()
        return self._ticker

    @property
    def known_price(self) -> Optional[Decimal]:
        return self._ticker.last_price if self._ticker is not None else None

    def find_trade(self, trade_id: Optional[str]) -> Trade:
        for trade in self.trades:
            if trade.id == trade_id:
                return trade
        raise TradeNotRunningError(str(trade_id))

    def refresh_trades(self) -> None:
        self._trades = None


class RunAutomationsUseCase:
    """Evaluates each active automation against its owner's positions.

    Args:
        automation_repo: Source of active automations.
        user_repo: Owners, for plan and credentials.
        trade_log_repo: Audit log sink.
        cipher: Decrypts stored exchange credentials.
        exchange_factory: Builds an exchange bound to one user's credentials.
        dispatcher: Optional notification dispatcher.
        peaks: Trailing-stop memory keyed by automation id, kept across passes.
    """

    def __init__(
        self,
        automation_repo: AutomationRepository,
        user_repo: UserRepository,
        trade_log_repo: TradeLogRepository,
        cipher: CredentialCipher,
        exchange_factory: ExchangeFactory,
        dispatcher: Optional[NotificationDispatcher] = None,
        peaks: Optional[dict[str, dict[str, Decimal]]] = None,
    ) -> None:
        self._automations = automation_repo
        self._users = user_repo
        self._logs = trade_log_repo
        self._cipher = cipher
        self._exchange_factory = exchange_factory
        self._dispatcher = dispatcher
        self._peaks = peaks if peaks is not None else {}

    def execute(self) -> RunSummary:
        summary = RunSummary()
        by_user: dict[UUID, list[Automation]] = defaultdict(list)
        for automation in self._automations.list_active():
            by_user[automation.user_id].append(automation)

        active_ids = {str(a.id) for group in by_user.values() for a in group}
        for stale in set(self._peaks) - active_ids:
            del self._peaks[stale]

        for user_id, automations in by_user.items():
            user = self._users.get_by_id(user_id)
            if user is None or not user.is_active or not user.has_exchange_credentials:
                logger.debug("Skipping automations of user %s", user_id)
                continue
            try:
                self._run_user(user, automations, summary)
            except Exception as exc:
                summary.users_failed += 1
                summary.errors.append(f"user {user_id}: {exc}")
                logger.exception("Automation pass failed for user %s", user_id)
            else:
                summary.users_processed += 1

        logger.info(
            "Automation pass: %d users, %d automations, %d actions (%d failed)",
            summary.users_processed,
            summary.automations_evaluated,
            summary.actions_executed,
            summary.actions_failed,
        )
        return summary

    # ------------------------------------------------------------------
    # Per user
    # ------------------------------------------------------------------

    def _run_user(self, user: User, automations: list[Automation], summary: RunSummary) -> None:
        exchange = self._exchange_factory(decrypt_credentials(user, self._cipher))
        try:
            ctx = _UserContext(exchange)
            plan = get_plan(user.plan_type)
            for automation in automations:
                if automation.type.value not in plan.automation_types:
                    logger.info(
                        "Automation %s (%s) not included in plan %s; skipped",
                        automation.id, automation.type.value, user.plan_type.value,
                    )
                    continue
                summary.automations_evaluated += 1
                opened = False
                for action in self._plan(automation, ctx, plan.max_protected_trades):
                    if self._execute(user, automation, action, ctx):
                        summary.actions_executed += 1
                        opened = opened or action.kind is ActionKind.OPEN_POSITION
                    else:
                        summary.actions_failed += 1
                        summary.errors.append(f"automation {automation.id}: {action.kind.value} failed")
                if opened:
                    self._automations.update(replace(
                        automation, is_active=False, updated_at=datetime.now(timezone.utc)
                    ))
                    logger.info("Auto-entry %s fired and was deactivated", automation.id)
        finally:
            exchange.close()

    def _plan(
        self,
        automation: Automation,
        ctx: _UserContext,
        max_protected_trades: Optional[int],
    ) -> list[AutomationAction]:
        config = parse_config(automation.type, automation.config)

        if automation.type is AutomationType.MARGIN_GUARD:
            trades = ctx.trades
            if not trades:
                return []
            return plan_margin_guard(trades, ctx.ticker.last_price, config, max_protected_trades)

        if automation.type is AutomationType.TP_SL:
            peaks = self._peaks.setdefault(str(automation.id), {})
            return plan_tp_sl(ctx.trades, config, peaks)

        return self._plan_auto_entry(config, ctx)

    def _plan_auto_entry(self, config: AutoEntryConfig, ctx: _UserContext) -> list[AutomationAction]:
        closes: list[Decimal] = []
        if config.entry_condition in RSI_CONDITIONS:
            closes = [p.value for p in ctx.exchange.get_index_history(INDEX_HISTORY_LIMIT)]
        balance = ctx.exchange.get_account().balance
        action = plan_auto_entry(config, ctx.ticker, balance, closes)
        if action is None:
            return []
        details = dict(action.details)
        details.update({"stop_loss": config.stop_loss, "take_profit": config.take_profit})
        return [replace(action, details=details)]

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _execute(
        self,
        user: User,
        automation: Automation,
        action: AutomationAction,
        ctx: _UserContext,
    ) -> bool:
        if action.kind is ActionKind.REDUCE_POSITION:
            return self._reduce(user, automation, action, ctx)

        price = ctx.known_price
        try:
            trade = self._apply(action, ctx)
        except Exception as exc:
            reason = _failure_reason(automation, action, exc)
            self._record(user, automation, action, TradeLogStatus.ERROR, reason, None, price)
            self._notify_failure(user, automation, action, f"{_label(action)} failed: {reason}")
            return False

        pnl = trade.pl if action.kind is ActionKind.CLOSE_POSITION else None
        self._record(user, automation, action, TradeLogStatus.SUCCESS, action.reason, pnl, price, trade.id)
        self._notify_success(user, automation, action, action.reason, trade.id, pnl)
        return True

    def _reduce(
        self,
        user: User,
        automation: Automation,
        action: AutomationAction,
        ctx: _UserContext,
    ) -> bool:
        """Close the trade, then reopen it at the remaining quantity.

        The close and the reopen are logged separately so a failed reopen
        never hides that the whole position was closed.
        """
        price = ctx.known_price
        try:
            original = ctx.find_trade(action.trade_id)
            closed = ctx.exchange.close_trade(original.id)
        except Exception as exc:
            reason = _failure_reason(automation, action, exc)
            self._record(user, automation, action, TradeLogStatus.ERROR, reason, None, price)
            self._notify_failure(user, automation, action, f"{_label(action)} failed: {reason}")
            return False

        ctx.closed.add(original.id)
        remaining = original.quantity * (1 - action.percentage / 100)
        self._record(
            user, automation, action, TradeLogStatus.SUCCESS,
            f"Closed trade {original.id} to reduce it by {action.percentage}%",
            closed.pl, price, closed.id,
        )
        if remaining <= 0:
            self._notify_success(user, automation, action, action.reason, closed.id, closed.pl)
            return True

        try:
            reopened = ctx.exchange.open_trade(
                original.side,
                original.leverage,
                quantity=remaining,
                stoploss=original.stoploss,
                takeprofit=original.takeprofit,
            )
        except Exception as exc:
            reason = _failure_reason(automation, action, exc)
            message = (
                f"Trade {original.id} was fully closed but reopening {remaining} "
                f"failed: {reason}"
            )
            self._record(user, automation, action, TradeLogStatus.ERROR, message, None, price, original.id)
            self._notify_failure(user, automation, action, message)
            return False

        ctx.refresh_trades()
        self._notify_success(
            user, automation, action,
            f"{action.reason}; reopened {remaining} as trade {reopened.id}",
            closed.id, closed.pl,
        )
        return True

    def _apply(self, action: AutomationAction, ctx: _UserContext) -> Trade:
        exchange = ctx.exchange
        if action.kind is ActionKind.CLOSE_POSITION:
            trade = exchange.close_trade(action.trade_id)
            ctx.closed.add(action.trade_id)
            return trade

        if action.kind is ActionKind.ADD_MARGIN:
            trade = exchange.add_margin(action.trade_id, action.amount)
            ctx.refresh_trades()
            return trade

        details = action.details
        trade = exchange.open_trade(
            TradeSide(details["side"]),
            Decimal(str(details["leverage"])),
            margin=action.amount,
            stoploss=Decimal(str(details["stop_loss"])) if details.get("stop_loss") else None,
            takeprofit=Decimal(str(details["take_profit"])) if details.get("take_profit") else None,
        )
        ctx.refresh_trades()
        return trade

    def _notify_success(
        self,
        user: User,
        automation: Automation,
        action: AutomationAction,
        message: str,
        trade_id: str,
        pnl: Optional[int],
    ) -> None:
        notification_type = (
            NotificationType.MARGIN_ALERT
            if automation.type is AutomationType.MARGIN_GUARD
            else NotificationType.TRADE_EXECUTED
        )
        self._notify(
            user.id,
            notification_type,
            _label(action),
            message,
            {"automation_id": str(automation.id), "trade_id": trade_id, "pnl": pnl},
        )

    def _notify_failure(
        self, user: User, automation: Automation, action: AutomationAction, message: str
    ) -> None:
        self._notify(
            user.id,
            NotificationType.AUTOMATION_ERROR,
            "Automation failed",
            message,
            {"automation_id": str(automation.id), "trade_id": action.trade_id},
        )

    def _record(
        self,
        user: User,
        automation: Automation,
        action: AutomationAction,
        status: TradeLogStatus,
        message: str,
        pnl: Optional[int],
        price: Optional[Decimal],
        trade_id: Optional[str] = None,
    ) -> None:
        self._logs.add(TradeLog(
            id=uuid4(),
            user_id=user.id,
            action=action.kind.value,
            status=status,
            automation_id=automation.id,
            trade_id=trade_id or action.trade_id,
            message=message,
            pnl=pnl,
            price=price,
            details=dict(action.details),
        ))

    def _notify(self, user_id: UUID, notification_type: NotificationType, title: str, message: str, metadata: dict) -> None:
        if self._dispatcher is not None:
            self._dispatcher.dispatch(user_id, notification_type, title, message, metadata)


def _label(action: AutomationAction) -> str:
    return action.kind.value.replace("_", " ").capitalize()


def _failure_reason(automation: Automation, action: AutomationAction, exc: Exception) -> str:
    """Log a failed action and return the text stored in its trade log."""
    if isinstance(exc, DomainError):
        logger.warning(
            "Automation %s: %s on %s failed: %s",
            automation.id, action.kind.value, action.trade_id, exc.message,
        )
        return exc.message
    logger.exception(
        "Automation %s: %s on %s failed unexpectedly",
        automation.id, action.kind.value, action.trade_id,
    )
    return f"Unexpected {type(exc).__name__}: {exc}"
