"""
Port interfaces for the accounts bounded context.

Persistence and the security primitives (hashing, tokens, encryption)
are abstracted here; adapters live in infrastructure and shared.security.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from defisats.domain.accounts.entities import User


class UserRepository(ABC):
    """Port for user persistence."""

    @abstractmethod
    def get_by_id(self, user_id: UUID) -> Optional[User]:
        ...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def get_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    def add(self, user: User) -> User:
        """Insert a new user. Raises ConflictError on duplicate email or username."""

    @abstractmethod
    def update(self, user: User) -> User:
        """Persist all mutable fields of an existing user."""

    @abstractmethod
    def list(self, limit: int = 50, offset: int = 0) -> list[User]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...


class PasswordHasher(ABC):
    @abstractmethod
    def hash(self, password: str) -> str:
        ...

    @abstractmethod
    def verify(self, password: str, password_hash: str) -> bool:
        ...


class TokenService(ABC):
    """Issues and verifies signed access and refresh tokens."""

    @abstractmethod
    def issue_access_token(self, user: User) -> str:
        ...

    @abstractmethod
    def issue_refresh_token(self, user: User) -> str:
        ...

    @abstractmethod
    def decode(self, token: str, expected_type: str) -> dict[str, Any]:
        """Return the claims or raise InvalidTokenError."""


class CredentialCipher(ABC):
    """Symmetric encryption for secrets stored at rest."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        ...

    @abstractmethod
    def decrypt(self, token: str) -> str:
        """Return the plaintext or raise CredentialDecryptionError."""
