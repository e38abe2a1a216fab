"""
Shared dependency injection.

Provides FastAPI dependency functions that build infrastructure adapters
from settings and resolve the authenticated user. Per-context
``dependencies`` modules combine these into use cases.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.engine import Engine

from defisats.application.accounts.sessions import AuthenticateUseCase
from defisats.core.config import settings
from defisats.core.database import get_engine
from defisats.domain.accounts.entities import User
from defisats.domain.accounts.errors import AdminRequiredError, InvalidTokenError
from defisats.domain.exchange.ports import ExchangeFactory, ExchangePort
from defisats.domain.notifications.dispatcher import NotificationDispatcher
from defisats.infrastructure.lnmarkets.exchange import lnmarkets_exchange_factory, public_exchange
from defisats.infrastructure.payments.providers import build_payment_providers
from defisats.infrastructure.persistence.automation_repository import AutomationRepositoryAdapter
from defisats.infrastructure.persistence.coupon_repository import CouponRepositoryAdapter
from defisats.infrastructure.persistence.notification_repository import NotificationRepositoryAdapter
from defisats.infrastructure.persistence.payment_repository import PaymentRepositoryAdapter
from defisats.infrastructure.persistence.trade_log_repository import TradeLogRepositoryAdapter
from defisats.infrastructure.persistence.user_repository import UserRepositoryAdapter
from defisats.realtime.stream import MarketStreamManager
from defisats.shared.security.encryption import FernetCredentialCipher
from defisats.shared.security.passwords import PasslibPasswordHasher
from defisats.shared.security.tokens import JWTTokenService

bearer_scheme = HTTPBearer(auto_error=False)


# ------------------------------------------------------------------
# Infrastructure
# ------------------------------------------------------------------


def get_db_engine() -> Engine:
    return get_engine()


def get_user_repository(engine: Engine = Depends(get_db_engine)) -> UserRepositoryAdapter:
    return UserRepositoryAdapter(engine=engine)


def get_coupon_repository(engine: Engine = Depends(get_db_engine)) -> CouponRepositoryAdapter:
    return CouponRepositoryAdapter(engine=engine)


def get_payment_repository(engine: Engine = Depends(get_db_engine)) -> PaymentRepositoryAdapter:
    return PaymentRepositoryAdapter(engine=engine)


def get_automation_repository(engine: Engine = Depends(get_db_engine)) -> AutomationRepositoryAdapter:
    return AutomationRepositoryAdapter(engine=engine)


def get_trade_log_repository(engine: Engine = Depends(get_db_engine)) -> TradeLogRepositoryAdapter:
    return TradeLogRepositoryAdapter(engine=engine)


def get_notification_repository(
    engine: Engine = Depends(get_db_engine),
) -> NotificationRepositoryAdapter:
    return NotificationRepositoryAdapter(engine=engine)


# ------------------------------------------------------------------
# Process-wide services
# ------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_password_hasher() -> PasslibPasswordHasher:
    return PasslibPasswordHasher()


@lru_cache(maxsize=1)
def get_token_service() -> JWTTokenService:
    return JWTTokenService(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
    )


@lru_cache(maxsize=1)
def get_cipher() -> FernetCredentialCipher:
    return FernetCredentialCipher(settings.encryption_secret)


@lru_cache(maxsize=1)
def get_exchange_factory() -> ExchangeFactory:
    return lnmarkets_exchange_factory(
        timeout=settings.lnmarkets_timeout_seconds,
        max_attempts=settings.lnmarkets_max_attempts,
    )


@lru_cache(maxsize=1)
def get_public_exchange() -> ExchangePort:
    return public_exchange(testnet=settings.lnmarkets_testnet, timeout=settings.lnmarkets_timeout_seconds)


@lru_cache(maxsize=1)
def get_payment_providers() -> list:
    return build_payment_providers(settings, get_exchange_factory())


@lru_cache(maxsize=1)
def get_stream_manager() -> MarketStreamManager:
    return MarketStreamManager()


@lru_cache(maxsize=1)
def get_notification_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        repository=NotificationRepositoryAdapter(engine=get_engine()),
        stream_manager=get_stream_manager(),
        webhook_urls=settings.notification_webhooks,
    )


# ------------------------------------------------------------------
# Authentication
# ------------------------------------------------------------------


def get_authenticate_use_case(
    user_repo: UserRepositoryAdapter = Depends(get_user_repository),
    tokens: JWTTokenService = Depends(get_token_service),
) -> AuthenticateUseCase:
    return AuthenticateUseCase(user_repo=user_repo, tokens=tokens)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    use_case: AuthenticateUseCase = Depends(get_authenticate_use_case),
) -> User:
    """Resolve the bearer access token to an active user with a live session."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise InvalidTokenError("Missing bearer token")
    return use_case.execute(credentials.credentials)


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise AdminRequiredError()
    return user
