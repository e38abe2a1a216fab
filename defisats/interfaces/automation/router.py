"""
FastAPI routers for automations and trade logs.

All routes act on the current user's own rows; other users' ids answer 404.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from defisats.application.automation.dtos import (
    CreateAutomationCommand,
    TradeLogQuery,
    UpdateAutomationCommand,
)
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
from defisats.application.automation.trade_logs import (
    MAX_PAGE_SIZE,
    ListTradeLogsUseCase,
    TradeLogStatsUseCase,
)
from defisats.domain.accounts.entities import User
from defisats.domain.automation.entities import TradeLogFilter, TradeLogStatus
from defisats.interfaces.automation.dependencies import (
    get_automation_stats_use_case,
    get_create_automation_use_case,
    get_delete_automation_use_case,
    get_get_automation_use_case,
    get_list_automations_use_case,
    get_list_trade_logs_use_case,
    get_preview_margin_guard_use_case,
    get_toggle_automation_use_case,
    get_trade_log_stats_use_case,
    get_update_automation_use_case,
    get_validate_config_use_case,
)
from defisats.interfaces.automation.schemas import (
    AutomationResponse,
    AutomationStatsResponse,
    CreateAutomationRequest,
    PositionRiskResponse,
    TradeLogPageResponse,
    TradeLogResponse,
    TradeLogStatsResponse,
    UpdateAutomationRequest,
    ValidateConfigRequest,
    ValidateConfigResponse,
)
from defisats.interfaces.dependencies import get_current_user
from defisats.interfaces.schemas import ERROR_RESPONSES, ErrorResponse

router = APIRouter(prefix="/automations", tags=["automations"])
trade_logs_router = APIRouter(prefix="/trade-logs", tags=["trade-logs"])


@router.post(
    "",
    response_model=AutomationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Create an automation",
    description="One active automation per type and user. The type must be included in the user's plan.",
)
def create_automation(
    body: CreateAutomationRequest,
    user: User = Depends(get_current_user),
    use_case: CreateAutomationUseCase = Depends(get_create_automation_use_case),
) -> AutomationResponse:
    automation = use_case.execute(CreateAutomationCommand(
        user_id=user.id,
        plan_type=user.plan_type,
        type=body.type,
        config=body.config,
        is_active=body.is_active,
    ))
    return AutomationResponse.model_validate(automation)


@router.get(
    "",
    response_model=list[AutomationResponse],
    responses=ERROR_RESPONSES,
    summary="List my automations",
)
def list_automations(
    type: str | None = Query(default=None, description="Filter by automation type"),
    is_active: bool | None = Query(default=None),
    user: User = Depends(get_current_user),
    use_case: ListAutomationsUseCase = Depends(get_list_automations_use_case),
) -> list[AutomationResponse]:
    return [AutomationResponse.model_validate(a) for a in use_case.execute(user.id, type, is_active)]


@router.get(
    "/stats",
    response_model=AutomationStatsResponse,
    responses=ERROR_RESPONSES,
    summary="Automation counts",
)
def automation_stats(
    user: User = Depends(get_current_user),
    use_case: AutomationStatsUseCase = Depends(get_automation_stats_use_case),
) -> AutomationStatsResponse:
    stats = use_case.execute(user.id)
    return AutomationStatsResponse(
        total=stats.total,
        active=stats.active,
        inactive=stats.inactive,
        by_type=stats.by_type,
        recent=[AutomationResponse.model_validate(a) for a in stats.recent],
    )


@router.post(
    "/validate-config",
    response_model=ValidateConfigResponse,
    responses=ERROR_RESPONSES,
    summary="Validate a config without saving it",
    description="Returns the config with defaults filled in, or 400 listing every invalid field.",
)
def validate_config(
    body: ValidateConfigRequest,
    _user: User = Depends(get_current_user),
    use_case: ValidateAutomationConfigUseCase = Depends(get_validate_config_use_case),
) -> ValidateConfigResponse:
    config = use_case.execute(body.type, body.config)
    return ValidateConfigResponse(valid=True, type=body.type, config=config)


@router.get(
    "/margin-guard/preview",
    response_model=list[PositionRiskResponse],
    responses={**ERROR_RESPONSES, 502: {"model": ErrorResponse}},
    summary="Margin guard view of my running trades",
)
def preview_margin_guard(
    user: User = Depends(get_current_user),
    use_case: PreviewMarginGuardUseCase = Depends(get_preview_margin_guard_use_case),
) -> list[PositionRiskResponse]:
    return [PositionRiskResponse.model_validate(p) for p in use_case.execute(user)]


@router.get(
    "/{automation_id}",
    response_model=AutomationResponse,
    responses=ERROR_RESPONSES,
    summary="Get an automation",
)
def get_automation(
    automation_id: UUID,
    user: User = Depends(get_current_user),
    use_case: GetAutomationUseCase = Depends(get_get_automation_use_case),
) -> AutomationResponse:
    return AutomationResponse.model_validate(use_case.execute(user.id, automation_id))


@router.patch(
    "/{automation_id}",
    response_model=AutomationResponse,
    responses=ERROR_RESPONSES,
    summary="Update an automation",
)
def update_automation(
    automation_id: UUID,
    body: UpdateAutomationRequest,
    user: User = Depends(get_current_user),
    use_case: UpdateAutomationUseCase = Depends(get_update_automation_use_case),
) -> AutomationResponse:
    automation = use_case.execute(UpdateAutomationCommand(
        user_id=user.id,
        plan_type=user.plan_type,
        automation_id=automation_id,
        config=body.config,
        is_active=body.is_active,
    ))
    return AutomationResponse.model_validate(automation)


@router.post(
    "/{automation_id}/toggle",
    response_model=AutomationResponse,
    responses=ERROR_RESPONSES,
    summary="Activate or deactivate an automation",
)
def toggle_automation(
    automation_id: UUID,
    user: User = Depends(get_current_user),
    use_case: ToggleAutomationUseCase = Depends(get_toggle_automation_use_case),
) -> AutomationResponse:
    return AutomationResponse.model_validate(use_case.execute(user.id, user.plan_type, automation_id))


@router.delete(
    "/{automation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES,
    summary="Delete an automation",
)
def delete_automation(
    automation_id: UUID,
    user: User = Depends(get_current_user),
    use_case: DeleteAutomationUseCase = Depends(get_delete_automation_use_case),
) -> Response:
    use_case.execute(user.id, automation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ------------------------------------------------------------------
# Trade logs
# ------------------------------------------------------------------


@trade_logs_router.get(
    "",
    response_model=TradeLogPageResponse,
    responses=ERROR_RESPONSES,
    summary="List my trade logs",
)
def list_trade_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    action: str | None = Query(default=None, max_length=32),
    status_filter: TradeLogStatus | None = Query(default=None, alias="status"),
    automation_id: UUID | None = Query(default=None),
    since: datetime | None = Query(default=None),
    until: datetime | None = Query(default=None),
    user: User = Depends(get_current_user),
    use_case: ListTradeLogsUseCase = Depends(get_list_trade_logs_use_case),
) -> TradeLogPageResponse:
    result = use_case.execute(TradeLogQuery(
        user_id=user.id,
        page=page,
        page_size=page_size,
        filters=TradeLogFilter(
            action=action,
            status=status_filter,
            automation_id=automation_id,
            since=since,
            until=until,
        ),
    ))
    return TradeLogPageResponse(
        items=[TradeLogResponse.model_validate(log) for log in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@trade_logs_router.get(
    "/stats",
    response_model=TradeLogStatsResponse,
    responses=ERROR_RESPONSES,
    summary="Trade log totals",
)
def trade_log_stats(
    user: User = Depends(get_current_user),
    use_case: TradeLogStatsUseCase = Depends(get_trade_log_stats_use_case),
) -> TradeLogStatsResponse:
    stats = use_case.execute(user.id)
    return TradeLogStatsResponse(
        total=stats.total,
        success=stats.success,
        errors=stats.errors,
        realized_pnl=stats.realized_pnl,
        by_action=stats.by_action,
    )
