"""
Dependency injection for the accounts bounded context.

Wires repositories and security services into use cases via
constructor injection.
"""

from datetime import timedelta

from fastapi import Depends

from defisats.application.accounts.manage_profile import (
    CheckUsernameUseCase,
    UpdateExchangeCredentialsUseCase,
    UpdateProfileUseCase,
)
from defisats.application.accounts.manage_users import (
    ChangeUserPlanUseCase,
    ListUsersUseCase,
    SetUserActiveUseCase,
)
from defisats.application.accounts.register_user import RegisterUserUseCase
from defisats.application.accounts.sessions import (
    LoginUseCase,
    LogoutUseCase,
    RefreshSessionUseCase,
)
from defisats.core.config import settings
from defisats.domain.exchange.ports import ExchangeFactory
from defisats.interfaces.dependencies import (
    get_cipher,
    get_coupon_repository,
    get_exchange_factory,
    get_password_hasher,
    get_token_service,
    get_user_repository,
)


def _session_ttl() -> timedelta:
    return timedelta(days=settings.refresh_token_ttl_days)


def _access_ttl() -> timedelta:
    return timedelta(minutes=settings.access_token_ttl_minutes)


def get_register_user_use_case(
    user_repo=Depends(get_user_repository),
    coupon_repo=Depends(get_coupon_repository),
    hasher=Depends(get_password_hasher),
    tokens=Depends(get_token_service),
    cipher=Depends(get_cipher),
    exchange_factory: ExchangeFactory = Depends(get_exchange_factory),
) -> RegisterUserUseCase:
    return RegisterUserUseCase(
        user_repo=user_repo,
        coupon_repo=coupon_repo,
        hasher=hasher,
        tokens=tokens,
        cipher=cipher,
        exchange_factory=exchange_factory,
        session_ttl=_session_ttl(),
        access_ttl=_access_ttl(),
    )


def get_login_use_case(
    user_repo=Depends(get_user_repository),
    hasher=Depends(get_password_hasher),
    tokens=Depends(get_token_service),
) -> LoginUseCase:
    return LoginUseCase(
        user_repo=user_repo,
        hasher=hasher,
        tokens=tokens,
        session_ttl=_session_ttl(),
        access_ttl=_access_ttl(),
    )


def get_refresh_session_use_case(
    user_repo=Depends(get_user_repository),
    tokens=Depends(get_token_service),
) -> RefreshSessionUseCase:
    return RefreshSessionUseCase(user_repo=user_repo, tokens=tokens, access_ttl=_access_ttl())


def get_logout_use_case(user_repo=Depends(get_user_repository)) -> LogoutUseCase:
    return LogoutUseCase(user_repo=user_repo)


def get_update_profile_use_case(user_repo=Depends(get_user_repository)) -> UpdateProfileUseCase:
    return UpdateProfileUseCase(user_repo=user_repo)


def get_update_credentials_use_case(
    user_repo=Depends(get_user_repository),
    cipher=Depends(get_cipher),
    exchange_factory: ExchangeFactory = Depends(get_exchange_factory),
) -> UpdateExchangeCredentialsUseCase:
    return UpdateExchangeCredentialsUseCase(
        user_repo=user_repo, cipher=cipher, exchange_factory=exchange_factory
    )


def get_check_username_use_case(user_repo=Depends(get_user_repository)) -> CheckUsernameUseCase:
    return CheckUsernameUseCase(user_repo=user_repo)


def get_list_users_use_case(user_repo=Depends(get_user_repository)) -> ListUsersUseCase:
    return ListUsersUseCase(user_repo=user_repo)


def get_set_user_active_use_case(user_repo=Depends(get_user_repository)) -> SetUserActiveUseCase:
    return SetUserActiveUseCase(user_repo=user_repo)


def get_change_user_plan_use_case(user_repo=Depends(get_user_repository)) -> ChangeUserPlanUseCase:
    return ChangeUserPlanUseCase(user_repo=user_repo)
