"""
Real-time endpoints: the market WebSocket, scheduler control and stream
statistics. The components are process singletons injected by create_app.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from defisats.application.accounts.sessions import AuthenticateUseCase
from defisats.domain.accounts.entities import User
from defisats.domain.errors import DomainError
from defisats.interfaces.dependencies import get_authenticate_use_case, require_admin
from defisats.interfaces.schemas import ERROR_RESPONSES, TaskRunResponse
from defisats.realtime.relay import MarketDataRelay
from defisats.realtime.scheduler import AutomationScheduler
from defisats.realtime.stream import MarketStreamManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])

# Set by create_app.
_stream_manager: MarketStreamManager | None = None
_scheduler: AutomationScheduler | None = None
_relay: MarketDataRelay | None = None


def set_realtime_components(
    stream_manager: MarketStreamManager,
    scheduler: AutomationScheduler | None = None,
    relay: MarketDataRelay | None = None,
) -> None:
    """Called by the composition root to inject the singleton instances."""
    global _stream_manager, _scheduler, _relay
    _stream_manager = stream_manager
    _scheduler = scheduler
    _relay = relay


def get_realtime_stream() -> MarketStreamManager:
    if _stream_manager is None:
        raise RuntimeError(
            "MarketStreamManager not initialized. "
            "Ensure create_app wires the realtime components."
        )
    return _stream_manager


def get_market_relay() -> Optional[MarketDataRelay]:
    return _relay


def get_scheduler() -> Optional[AutomationScheduler]:
    return _scheduler


# ------------------------------------------------------------------
# WebSocket endpoint
# ------------------------------------------------------------------


@router.websocket("/ws/market")
async def ws_market(
    websocket: WebSocket,
    token: Annotated[str | None, Query(description="Access token binding the socket to a user")] = None,
    authenticate: AuthenticateUseCase = Depends(get_authenticate_use_case),
) -> None:
    """WebSocket endpoint for live market data.

    Anonymous sockets receive the ticker. Sockets opened with a valid
    ``token`` also receive their owner's notifications.

    Protocol (JSON):
        → {"action": "subscribe", "channels": ["ticker"]}
        ← {"event": "subscribed", "channels": ["ticker"]}

        → {"action": "ping"}
        ← {"event": "pong", "timestamp": "..."}

        ← {"event": "ticker", "channel": "ticker", "data": {...}}
    """
    user_id: str | None = None
    if token:
        try:
            user: User = authenticate.execute(token)
        except DomainError as exc:
            logger.info("WebSocket rejected: %s", exc.message)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        user_id = str(user.id)

    manager = get_realtime_stream()
    await manager.connect(websocket, user_id=user_id)

    try:
        while True:
            raw = await websocket.receive_text()
            await manager.handle_client_message(websocket, raw)
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception:
        logger.exception("WebSocket connection failed.")
        manager.disconnect(websocket)


# ------------------------------------------------------------------
# Scheduler and stream status
# ------------------------------------------------------------------


def _require_scheduler() -> AutomationScheduler:
    if _scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Background workers are disabled",
        )
    return _scheduler


@router.get("/scheduler/status", summary="Automation scheduler state and recent runs")
def scheduler_status() -> dict:
    if _scheduler is None:
        return {"running": False, "interval_seconds": None, "jobs": [], "recent_tasks": []}
    return _scheduler.get_status()


@router.post(
    "/scheduler/run/{task_name}",
    response_model=TaskRunResponse,
    responses=ERROR_RESPONSES,
    summary="Run a scheduler task now (admin)",
)
def scheduler_run_task(
    task_name: str,
    _admin: User = Depends(require_admin),
    scheduler: AutomationScheduler = Depends(_require_scheduler),
) -> TaskRunResponse:
    """Run ``task_name`` synchronously and return its outcome. Known task: ``automations``."""
    result = scheduler.run_now(task_name)
    logger.info("Admin %s ran task %s: %s", _admin.id, task_name, result.status.value)
    return TaskRunResponse(
        task=result.task_name,
        status=result.status.value,
        duration_seconds=result.duration_seconds,
        details=result.details,
        error=result.error,
    )


@router.get("/stream/status", summary="WebSocket and relay statistics")
def stream_status() -> dict:
    manager = get_realtime_stream()
    relay = get_market_relay()
    return {
        **manager.stats,
        "relay": relay.stats if relay is not None else None,
        "recent_events": manager.get_recent_events(limit=20),
    }
