"""
Use case: Show how the margin guard sees a user's running positions.

Input: User
Output: list[PositionRisk]
Side effects: Reads positions and the ticker from LN Markets.
Failure cases: MissingExchangeCredentialsError (403), ExchangeError (502).
"""

from decimal import Decimal

from defisats.application.accounts.credentials import decrypt_credentials
from defisats.application.automation.dtos import PositionRisk
from defisats.domain.accounts.entities import User
from defisats.domain.accounts.plans import get_plan
from defisats.domain.accounts.ports import CredentialCipher
from defisats.domain.automation.configs import MarginGuardConfig
from defisats.domain.automation.entities import AutomationType
from defisats.domain.automation.margin_guard import liquidation_distance
from defisats.domain.automation.ports import AutomationRepository
from defisats.domain.exchange.ports import ExchangeFactory
from defisats.domain.exchange.risk import assess_margin_level, margin_level


class PreviewMarginGuardUseCase:
    """Uses the user's active margin guard threshold, if any, for trigger prices."""

    def __init__(
        self,
        automation_repo: AutomationRepository,
        cipher: CredentialCipher,
        exchange_factory: ExchangeFactory,
    ) -> None:
        self._automations = automation_repo
        self._cipher = cipher
        self._exchange_factory = exchange_factory

    def execute(self, user: User) -> list[PositionRisk]:
        guard = self._automations.find_active(user.id, AutomationType.MARGIN_GUARD)
        threshold = None
        if guard is not None:
            threshold = Decimal(str(MarginGuardConfig(**guard.config).margin_threshold))
        max_protected = get_plan(user.plan_type).max_protected_trades

        exchange = self._exchange_factory(decrypt_credentials(user, self._cipher))
        try:
            trades = exchange.get_running_trades()
            price = exchange.get_ticker().last_price
        finally:
            exchange.close()

        positions = []
        for index, trade in enumerate(t for t in trades if t.running):
            level = margin_level(trade)
            distance = liquidation_distance(trade, price, threshold if threshold is not None else Decimal("0"))
            positions.append(PositionRisk(
                trade_id=trade.id,
                side=trade.side.value,
                entry_price=trade.entry_price,
                liquidation_price=trade.liquidation_price,
                current_price=price,
                margin=trade.margin,
                pl=trade.pl,
                margin_level=round(level, 2),
                risk_level=assess_margin_level(level).value,
                trigger_price=distance.trigger_price if threshold is not None else None,
                distance_percentage=distance.percentage,
                is_at_risk=distance.is_at_risk if threshold is not None else False,
                protected=guard is not None and (max_protected is None or index < max_protected),
            ))
        return positions
