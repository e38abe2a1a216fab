"""
Data Transfer Objects for the accounts bounded context.

DTOs are immutable data carriers between the interface and
application layers. They contain no business logic.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from defisats.domain.accounts.entities import PlanType, User


@dataclass(frozen=True)
class RegisterUserCommand:
    """Input for registering a user.

    Attributes:
        email: Login email, normalized to lowercase.
        username: Public handle.
        password: Plaintext password, hashed before storage.
        api_key: LN Markets API key.
        api_secret: LN Markets API secret.
        passphrase: LN Markets API passphrase.
        testnet: Whether the keys belong to the testnet.
        coupon_code: Optional coupon applied at signup.
    """

    email: str
    username: str
    password: str
    api_key: str
    api_secret: str
    passphrase: str
    testnet: bool = False
    coupon_code: Optional[str] = None


@dataclass(frozen=True)
class LoginCommand:
    email: str
    password: str


@dataclass(frozen=True)
class AuthResult:
    """Tokens issued after registration, login or refresh."""

    user_id: UUID
    access_token: str
    refresh_token: str
    plan_type: PlanType
    expires_in: int
    token_type: str = "bearer"


@dataclass(frozen=True)
class UpdateProfileCommand:
    user_id: UUID
    username: str


@dataclass(frozen=True)
class UpdateCredentialsCommand:
    user_id: UUID
    api_key: str
    api_secret: str
    passphrase: str
    testnet: bool = False


@dataclass(frozen=True)
class UserProfile:
    """Public view of a user. Never carries hashes or credentials."""

    id: UUID
    email: str
    username: str
    plan_type: PlanType
    is_active: bool
    is_admin: bool
    has_exchange_credentials: bool
    testnet: bool
    created_at: Optional[datetime]
    last_activity_at: Optional[datetime]

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            plan_type=user.plan_type,
            is_active=user.is_active,
            is_admin=user.is_admin,
            has_exchange_credentials=user.has_exchange_credentials,
            testnet=bool(user.credentials and user.credentials.testnet),
            created_at=user.created_at,
            last_activity_at=user.last_activity_at,
        )


@dataclass(frozen=True)
class UserPage:
    items: list[UserProfile]
    total: int
