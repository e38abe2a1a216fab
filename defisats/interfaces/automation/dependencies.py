"""
Dependency injection for the automation bounded context.
"""

from fastapi import Depends

from defisats.application.automation.manage_automations import (
    AutomationStatsUseCase,
    CreateAutomationUseCase,
    DeleteAutomationUseCase,
    GetAutomationUseCase,
    ListAutomationsUseCase,
    ToggleAutomationUseCase,
    UpdateAutomationUseCase,
    ValidateAutomationConfigUseCase,
)
from defisats.application.automation.preview_margin_guard import PreviewMarginGuardUseCase
from defisats.application.automation.trade_logs import ListTradeLogsUseCase, TradeLogStatsUseCase
from defisats.interfaces.dependencies import (
    get_automation_repository,
    get_cipher,
    get_exchange_factory,
    get_trade_log_repository,
)


def get_create_automation_use_case(repo=Depends(get_automation_repository)) -> CreateAutomationUseCase:
    return CreateAutomationUseCase(repo)


def get_list_automations_use_case(repo=Depends(get_automation_repository)) -> ListAutomationsUseCase:
    return ListAutomationsUseCase(repo)


def get_get_automation_use_case(repo=Depends(get_automation_repository)) -> GetAutomationUseCase:
    return GetAutomationUseCase(repo)


def get_update_automation_use_case(repo=Depends(get_automation_repository)) -> UpdateAutomationUseCase:
    return UpdateAutomationUseCase(repo)


def get_toggle_automation_use_case(repo=Depends(get_automation_repository)) -> ToggleAutomationUseCase:
    return ToggleAutomationUseCase(repo)


def get_delete_automation_use_case(repo=Depends(get_automation_repository)) -> DeleteAutomationUseCase:
    return DeleteAutomationUseCase(repo)


def get_automation_stats_use_case(repo=Depends(get_automation_repository)) -> AutomationStatsUseCase:
    return AutomationStatsUseCase(repo)


def get_validate_config_use_case() -> ValidateAutomationConfigUseCase:
    return ValidateAutomationConfigUseCase()


def get_preview_margin_guard_use_case(
    repo=Depends(get_automation_repository),
    cipher=Depends(get_cipher),
    exchange_factory=Depends(get_exchange_factory),
) -> PreviewMarginGuardUseCase:
    return PreviewMarginGuardUseCase(repo, cipher, exchange_factory)


def get_list_trade_logs_use_case(repo=Depends(get_trade_log_repository)) -> ListTradeLogsUseCase:
    return ListTradeLogsUseCase(repo)


def get_trade_log_stats_use_case(repo=Depends(get_trade_log_repository)) -> TradeLogStatsUseCase:
    return TradeLogStatsUseCase(repo)
