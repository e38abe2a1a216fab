"""
Health check.

Runs ``SELECT 1`` against the configured database and reports whether the
automation scheduler and the ticker relay are running.
"""

import logging

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from defisats.core.config import settings
from defisats.core.database import get_engine
from defisats.interfaces.realtime import get_market_relay, get_scheduler
from defisats.interfaces.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _database_state() -> str:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        return "unreachable"
    return "ok"


@router.get("/health", response_model=HealthResponse, summary="Health check")
def health_check() -> HealthResponse:
    database = _database_state()
    scheduler = get_scheduler()
    relay = get_market_relay()
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        version=settings.version,
        database=database,
        scheduler_running=bool(scheduler and scheduler.is_running),
        relay_running=bool(relay and relay.is_running),
    )
