"""
Use cases: Self-service profile management.

Input: UpdateProfileCommand / UpdateCredentialsCommand / username
Output: UserProfile or availability flag
Side effects: Updates the user row.
Failure cases: UsernameTakenError (409), InvalidExchangeCredentialsError (400),
    UserNotFoundError (404).
"""

import logging
from dataclasses import replace
from uuid import UUID

from defisats.application.accounts.credentials import check_credentials, encrypt_credentials
from defisats.application.accounts.dtos import (
    UpdateCredentialsCommand,
    UpdateProfileCommand,
    UserProfile,
)
from defisats.domain.accounts.entities import User
from defisats.domain.accounts.errors import UsernameTakenError, UserNotFoundError
from defisats.domain.accounts.ports import CredentialCipher, UserRepository
from defisats.domain.exchange.entities import LNMarketsCredentials
from defisats.domain.exchange.errors import InvalidExchangeCredentialsError
from defisats.domain.exchange.ports import ExchangeFactory

logger = logging.getLogger(__name__)


def _load(user_repo: UserRepository, user_id: UUID) -> User:
    user = user_repo.get_by_id(user_id)
    if user is None:
        raise UserNotFoundError(str(user_id))
    return user


class UpdateProfileUseCase:
    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def execute(self, command: UpdateProfileCommand) -> UserProfile:
        user = _load(self._user_repo, command.user_id)
        username = command.username.strip()
        if username.lower() != user.username.lower():
            if self._user_repo.get_by_username(username) is not None:
                raise UsernameTakenError(username)
        user = self._user_repo.update(replace(user, username=username))
        return UserProfile.from_user(user)


class UpdateExchangeCredentialsUseCase:
    """Re-validates new LN Markets keys before replacing the stored ones."""

    def __init__(
        self,
        user_repo: UserRepository,
        cipher: CredentialCipher,
        exchange_factory: ExchangeFactory,
    ) -> None:
        self._user_repo = user_repo
        self._cipher = cipher
        self._exchange_factory = exchange_factory

    def execute(self, command: UpdateCredentialsCommand) -> UserProfile:
        user = _load(self._user_repo, command.user_id)
        credentials = LNMarketsCredentials(
            api_key=command.api_key.strip(),
            api_secret=command.api_secret.strip(),
            passphrase=command.passphrase.strip(),
            testnet=command.testnet,
        )
        if not check_credentials(credentials, self._exchange_factory):
            raise InvalidExchangeCredentialsError()

        user = self._user_repo.update(
            replace(user, credentials=encrypt_credentials(credentials, self._cipher))
        )
        logger.info("Exchange credentials updated for user %s", user.id)
        return UserProfile.from_user(user)


class CheckUsernameUseCase:
    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def execute(self, username: str) -> bool:
        """Return True if nobody uses ``username`` (case-insensitive)."""
        return self._user_repo.get_by_username(username.strip()) is None
