"""
Subscription plan catalogue.

Prices are in satoshis. ``max_protected_trades`` caps how many running
positions the margin guard watches; None means unlimited.
"""

from dataclasses import dataclass
from typing import Optional

from defisats.domain.accounts.entities import PlanType
from defisats.domain.accounts.errors import PlanRestrictionError

MARGIN_GUARD = "margin_guard"
TP_SL = "tp_sl"
AUTO_ENTRY = "auto_entry"


@dataclass(frozen=True)
class Plan:
    plan_type: PlanType
    price_sats: int
    description: str
    automation_types: frozenset[str]
    max_protected_trades: Optional[int] = None

    @property
    def is_paid(self) -> bool:
        return self.price_sats > 0


PLANS: dict[PlanType, Plan] = {
    PlanType.FREE: Plan(
        PlanType.FREE, 0, "Margin guard on up to two positions",
        frozenset({MARGIN_GUARD}), max_protected_trades=2,
    ),
    PlanType.BASIC: Plan(
        PlanType.BASIC, 21_000, "Margin guard and take-profit/stop-loss",
        frozenset({MARGIN_GUARD, TP_SL}),
    ),
    PlanType.ADVANCED: Plan(
        PlanType.ADVANCED, 42_000, "All automations",
        frozenset({MARGIN_GUARD, TP_SL, AUTO_ENTRY}),
    ),
    PlanType.PRO: Plan(
        PlanType.PRO, 84_000, "All automations with priority support",
        frozenset({MARGIN_GUARD, TP_SL, AUTO_ENTRY}),
    ),
    PlanType.LIFETIME: Plan(
        PlanType.LIFETIME, 210_000, "Pro features, paid once",
        frozenset({MARGIN_GUARD, TP_SL, AUTO_ENTRY}),
    ),
}


def get_plan(plan_type: PlanType) -> Plan:
    return PLANS[plan_type]


def ensure_automation_allowed(plan_type: PlanType, automation_type: str) -> None:
    """Raise PlanRestrictionError if the plan does not include the automation type."""
    if automation_type not in PLANS[plan_type].automation_types:
        raise PlanRestrictionError(plan_type.value, automation_type)
