"""
Use cases: Login, refresh, logout and bearer authentication.

Input: LoginCommand / refresh token / access token / user id
Output: AuthResult or the authenticated User
Side effects: Opens, extends or clears the user's session.
Failure cases: InvalidLoginError, InvalidTokenError, SessionExpiredError (401),
    InactiveAccountError (403).
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import UUID

from defisats.application.accounts.dtos import AuthResult, LoginCommand
from defisats.domain.accounts.entities import User
from defisats.domain.accounts.errors import (
    InactiveAccountError,
    InvalidLoginError,
    InvalidTokenError,
    SessionExpiredError,
    UserNotFoundError,
)
from defisats.domain.accounts.ports import PasswordHasher, TokenService, UserRepository

logger = logging.getLogger(__name__)


def _user_from_claims(user_repo: UserRepository, claims: dict) -> User:
    try:
        user_id = UUID(claims["sub"])
    except (KeyError, ValueError):
        raise InvalidTokenError() from None
    user = user_repo.get_by_id(user_id)
    if user is None:
        raise InvalidTokenError()
    return user


class LoginUseCase:
    """Verifies a password and opens a session."""

    def __init__(
        self,
        user_repo: UserRepository,
        hasher: PasswordHasher,
        tokens: TokenService,
        session_ttl: timedelta,
        access_ttl: timedelta,
    ) -> None:
        self._user_repo = user_repo
        self._hasher = hasher
        self._tokens = tokens
        self._session_ttl = session_ttl
        self._access_ttl = access_ttl

    def execute(self, command: LoginCommand) -> AuthResult:
        user = self._user_repo.get_by_email(command.email.strip().lower())
        if user is None or not self._hasher.verify(command.password, user.password_hash):
            logger.info("Failed login attempt")
            raise InvalidLoginError()
        if not user.is_active:
            raise InactiveAccountError()

        now = datetime.now(timezone.utc)
        user = self._user_repo.update(
            replace(user, last_activity_at=now, session_expires_at=now + self._session_ttl)
        )
        logger.info("User %s logged in", user.id)
        return AuthResult(
            user_id=user.id,
            access_token=self._tokens.issue_access_token(user),
            refresh_token=self._tokens.issue_refresh_token(user),
            plan_type=user.plan_type,
            expires_in=int(self._access_ttl.total_seconds()),
        )


class RefreshSessionUseCase:
    """Exchanges a refresh token for a new access token while the session lives."""

    def __init__(self, user_repo: UserRepository, tokens: TokenService, access_ttl: timedelta) -> None:
        self._user_repo = user_repo
        self._tokens = tokens
        self._access_ttl = access_ttl

    def execute(self, refresh_token: str) -> AuthResult:
        claims = self._tokens.decode(refresh_token, expected_type="refresh")
        user = _user_from_claims(self._user_repo, claims)
        if not user.is_active:
            raise InactiveAccountError()

        now = datetime.now(timezone.utc)
        if not user.has_live_session(now):
            raise SessionExpiredError()

        user = self._user_repo.update(replace(user, last_activity_at=now))
        return AuthResult(
            user_id=user.id,
            access_token=self._tokens.issue_access_token(user),
            refresh_token=refresh_token,
            plan_type=user.plan_type,
            expires_in=int(self._access_ttl.total_seconds()),
        )


class LogoutUseCase:
    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def execute(self, user_id: UUID) -> None:
        user = self._user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        self._user_repo.update(replace(user, session_expires_at=None))
        logger.info("User %s logged out", user_id)


class AuthenticateUseCase:
    """Resolves a bearer access token to an active user with a live session."""

    def __init__(self, user_repo: UserRepository, tokens: TokenService) -> None:
        self._user_repo = user_repo
        self._tokens = tokens

    def execute(self, access_token: str) -> User:
        claims = self._tokens.decode(access_token, expected_type="access")
        user = _user_from_claims(self._user_repo, claims)
        if not user.is_active:
            raise InactiveAccountError()
        if not user.has_live_session(datetime.now(timezone.utc)):
            raise SessionExpiredError()
        return user
