"""
FastAPI routers for the accounts bounded context.

Three routers: ``/auth`` (sessions), ``/users/me`` (self service) and
``/admin/users`` (administration). All routes delegate to use cases.
Error mapping is handled by centralized error handlers.
"""

from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from defisats.application.accounts.dtos import (
    AuthResult,
    LoginCommand,
    RegisterUserCommand,
    UpdateCredentialsCommand,
    UpdateProfileCommand,
    UserProfile,
)
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
from defisats.domain.accounts.entities import User
from defisats.interfaces.accounts.dependencies import (
    get_change_user_plan_use_case,
    get_check_username_use_case,
    get_list_users_use_case,
    get_login_use_case,
    get_logout_use_case,
    get_refresh_session_use_case,
    get_register_user_use_case,
    get_set_user_active_use_case,
    get_update_credentials_use_case,
    get_update_profile_use_case,
)
from defisats.interfaces.accounts.schemas import (
    AuthResponse,
    ChangePlanRequest,
    ExchangeCredentialsRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    SetActiveRequest,
    UpdateProfileRequest,
    UserListResponse,
    UsernameAvailabilityResponse,
    UserResponse,
)
from defisats.interfaces.dependencies import get_current_user, require_admin
from defisats.interfaces.schemas import ERROR_RESPONSES, MessageResponse
from defisats.shared.security.rate_limiting import AUTH_RATE_LIMIT, limiter

auth_router = APIRouter(prefix="/auth", tags=["auth"])
users_router = APIRouter(prefix="/users", tags=["users"])
admin_router = APIRouter(prefix="/admin/users", tags=["admin"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(**asdict(result))


def _user_response(profile: UserProfile) -> UserResponse:
    return UserResponse(**asdict(profile))


# ------------------------------------------------------------------
# /auth
# ------------------------------------------------------------------


@auth_router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Register a user",
    description="Create an account after validating the LN Markets API keys. "
    "An optional coupon sets the starting plan.",
)
@limiter.limit(AUTH_RATE_LIMIT)
def register(
    request: Request,
    body: RegisterRequest,
    use_case: RegisterUserUseCase = Depends(get_register_user_use_case),
) -> AuthResponse:
    result = use_case.execute(RegisterUserCommand(
        email=body.email,
        username=body.username,
        password=body.password,
        api_key=body.api_key,
        api_secret=body.api_secret,
        passphrase=body.passphrase,
        testnet=body.testnet,
        coupon_code=body.coupon_code,
    ))
    return _auth_response(result)


@auth_router.post(
    "/login",
    response_model=AuthResponse,
    responses=ERROR_RESPONSES,
    summary="Log in",
)
@limiter.limit(AUTH_RATE_LIMIT)
def login(
    request: Request,
    body: LoginRequest,
    use_case: LoginUseCase = Depends(get_login_use_case),
) -> AuthResponse:
    return _auth_response(use_case.execute(LoginCommand(email=body.email, password=body.password)))


@auth_router.post(
    "/refresh",
    response_model=AuthResponse,
    responses=ERROR_RESPONSES,
    summary="Refresh the access token",
)
def refresh(
    body: RefreshRequest,
    use_case: RefreshSessionUseCase = Depends(get_refresh_session_use_case),
) -> AuthResponse:
    return _auth_response(use_case.execute(body.refresh_token))


@auth_router.post(
    "/logout",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Log out",
    description="End the current session. Outstanding refresh tokens stop working.",
)
def logout(
    user: User = Depends(get_current_user),
    use_case: LogoutUseCase = Depends(get_logout_use_case),
) -> MessageResponse:
    use_case.execute(user.id)
    return MessageResponse(message="Logged out")


@auth_router.get(
    "/me",
    response_model=UserResponse,
    responses=ERROR_RESPONSES,
    summary="Current user",
)
def me(user: User = Depends(get_current_user)) -> UserResponse:
    return _user_response(UserProfile.from_user(user))


@auth_router.get(
    "/username-available",
    response_model=UsernameAvailabilityResponse,
    summary="Check username availability",
)
def username_available(
    username: str = Query(..., min_length=3, max_length=30),
    use_case: CheckUsernameUseCase = Depends(get_check_username_use_case),
) -> UsernameAvailabilityResponse:
    return UsernameAvailabilityResponse(username=username, available=use_case.execute(username))


# ------------------------------------------------------------------
# /users/me
# ------------------------------------------------------------------


@users_router.patch(
    "/me",
    response_model=UserResponse,
    responses=ERROR_RESPONSES,
    summary="Update profile",
)
def update_profile(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    use_case: UpdateProfileUseCase = Depends(get_update_profile_use_case),
) -> UserResponse:
    return _user_response(use_case.execute(UpdateProfileCommand(user_id=user.id, username=body.username)))


@users_router.put(
    "/me/credentials",
    response_model=UserResponse,
    responses=ERROR_RESPONSES,
    summary="Replace LN Markets credentials",
    description="The new keys are validated against LN Markets before they are stored.",
)
def update_credentials(
    body: ExchangeCredentialsRequest,
    user: User = Depends(get_current_user),
    use_case: UpdateExchangeCredentialsUseCase = Depends(get_update_credentials_use_case),
) -> UserResponse:
    profile = use_case.execute(UpdateCredentialsCommand(
        user_id=user.id,
        api_key=body.api_key,
        api_secret=body.api_secret,
        passphrase=body.passphrase,
        testnet=body.testnet,
    ))
    return _user_response(profile)


# ------------------------------------------------------------------
# /admin/users
# ------------------------------------------------------------------


@admin_router.get(
    "",
    response_model=UserListResponse,
    responses=ERROR_RESPONSES,
    summary="List users",
)
def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _admin: User = Depends(require_admin),
    use_case: ListUsersUseCase = Depends(get_list_users_use_case),
) -> UserListResponse:
    page = use_case.execute(limit=limit, offset=offset)
    return UserListResponse(items=[_user_response(p) for p in page.items], total=page.total)


@admin_router.patch(
    "/{user_id}/active",
    response_model=UserResponse,
    responses=ERROR_RESPONSES,
    summary="Activate or deactivate a user",
)
def set_user_active(
    user_id: UUID,
    body: SetActiveRequest,
    _admin: User = Depends(require_admin),
    use_case: SetUserActiveUseCase = Depends(get_set_user_active_use_case),
) -> UserResponse:
    return _user_response(use_case.execute(user_id, body.is_active))


@admin_router.patch(
    "/{user_id}/plan",
    response_model=UserResponse,
    responses=ERROR_RESPONSES,
    summary="Change a user's plan",
)
def change_user_plan(
    user_id: UUID,
    body: ChangePlanRequest,
    _admin: User = Depends(require_admin),
    use_case: ChangeUserPlanUseCase = Depends(get_change_user_plan_use_case),
) -> UserResponse:
    return _user_response(use_case.execute(user_id, body.plan_type))
