"""
Domain entities for the accounts bounded context.

Entities are frozen; updates go through ``dataclasses.replace``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class PlanType(Enum):
    FREE = "free"
    BASIC = "basic"
    ADVANCED = "advanced"
    PRO = "pro"
    LIFETIME = "lifetime"


@dataclass(frozen=True)
class EncryptedCredentials:
    """LN Markets credentials as stored: each field is a Fernet token."""

    api_key: str = field(repr=False)
    api_secret: str = field(repr=False)
    passphrase: str = field(repr=False)
    testnet: bool = False


@dataclass(frozen=True)
class User:
    """A registered account.

    Attributes:
        id: Primary key.
        email: Unique login email (stored lowercase).
        username: Unique public handle.
        password_hash: Output of the password hasher, never the password.
        plan_type: Current subscription plan.
        credentials: Encrypted LN Markets credentials, if linked.
        is_active: Inactive accounts cannot log in.
        is_admin: Grants access to coupon and user administration.
        session_expires_at: End of the current refresh session, None when logged out.
        last_activity_at: Last successful login or refresh.
    """

    id: UUID
    email: str
    username: str
    password_hash: str = field(repr=False)
    plan_type: PlanType = PlanType.FREE
    credentials: Optional[EncryptedCredentials] = None
    is_active: bool = True
    is_admin: bool = False
    session_expires_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_exchange_credentials(self) -> bool:
        return self.credentials is not None

    def has_live_session(self, now: datetime) -> bool:
        return self.session_expires_at is not None and self.session_expires_at > now
