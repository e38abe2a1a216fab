"""
Application entry point.

Creates the FastAPI application and wires together:
- Routers (one per bounded context)
- Error handlers (centralized domain-to-HTTP mapping)
- Security middleware (headers, CORS, rate limiting)
- Logging configuration
- Real-time pipeline (WebSocket feed, ticker relay, automation scheduler)

No business logic belongs here.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from defisats.application.automation.run_automations import RunAutomationsUseCase
from defisats.core.config import settings
from defisats.core.database import get_engine, init_db
from defisats.infrastructure.lnmarkets.exchange import public_exchange
from defisats.infrastructure.persistence.automation_repository import AutomationRepositoryAdapter
from defisats.infrastructure.persistence.trade_log_repository import TradeLogRepositoryAdapter
from defisats.infrastructure.persistence.user_repository import UserRepositoryAdapter
from defisats.interfaces.accounts.router import admin_router, auth_router, users_router
from defisats.interfaces.automation.router import router as automations_router
from defisats.interfaces.automation.router import trade_logs_router
from defisats.interfaces.billing.router import coupons_router, payments_router
from defisats.interfaces.dependencies import (
    get_cipher,
    get_exchange_factory,
    get_notification_dispatcher,
    get_stream_manager,
)
from defisats.interfaces.health import router as health_router
from defisats.interfaces.market.router import router as market_router
from defisats.interfaces.notifications.router import router as notifications_router
from defisats.interfaces.realtime import router as realtime_router
from defisats.interfaces.realtime import set_realtime_components
from defisats.realtime.relay import MarketDataRelay
from defisats.realtime.scheduler import AutomationScheduler
from defisats.shared.errors.handlers import register_error_handlers
from defisats.shared.logging import configure_logging
from defisats.shared.security.headers import SecurityHeadersMiddleware
from defisats.shared.security.rate_limiting import limiter, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


def build_automation_runner() -> RunAutomationsUseCase:
    """Assemble the automation pass from the shared engine and services."""
    engine = get_engine()
    return RunAutomationsUseCase(
        automation_repo=AutomationRepositoryAdapter(engine=engine),
        user_repo=UserRepositoryAdapter(engine=engine),
        trade_log_repo=TradeLogRepositoryAdapter(engine=engine),
        cipher=get_cipher(),
        exchange_factory=get_exchange_factory(),
        dispatcher=get_notification_dispatcher(),
    )


def _build_realtime(app: FastAPI) -> None:
    stream_manager = get_stream_manager()
    runner = build_automation_runner()
    scheduler = AutomationScheduler(
        run_automations=runner.execute,
        interval_seconds=settings.automation_interval_seconds,
        stream_manager=stream_manager,
    )
    relay = MarketDataRelay(
        public_exchange(testnet=settings.lnmarkets_testnet, timeout=settings.lnmarkets_timeout_seconds),
        stream_manager,
        interval_seconds=settings.market_data_interval_seconds,
    )
    set_realtime_components(stream_manager, scheduler, relay)
    app.state.scheduler = scheduler
    app.state.relay = relay


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: create tables and start/stop the workers."""
    if settings.auto_create_tables:
        init_db()

    loop = asyncio.get_running_loop()
    scheduler: AutomationScheduler = app.state.scheduler
    relay: MarketDataRelay = app.state.relay
    get_notification_dispatcher().bind_loop(loop)
    scheduler.bind_loop(loop)

    if settings.workers_enabled:
        scheduler.start()
        await relay.start()
    else:
        logger.info("Background workers disabled.")

    yield

    # Shutdown
    if settings.workers_enabled:
        scheduler.stop()
        await relay.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Registers routers, error handlers, and security middleware.
    This is the composition root of the application.

    Returns:
        A fully configured FastAPI application instance.
    """
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # --- Rate Limiting ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # --- Security Middleware ---
    app.add_middleware(SecurityHeadersMiddleware, hsts=not settings.debug)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Real-time components ---
    _build_realtime(app)

    # --- Routers ---
    for router in (
        health_router,
        auth_router,
        users_router,
        admin_router,
        automations_router,
        trade_logs_router,
        payments_router,
        coupons_router,
        notifications_router,
        market_router,
        realtime_router,
    ):
        app.include_router(router, prefix="/api/v1")

    return app


app = create_app()
