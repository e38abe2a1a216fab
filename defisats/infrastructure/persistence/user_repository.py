"""
Adapter: User persistence.

Implements the UserRepository port on the ``users`` table.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import IntegrityError

from defisats.domain.accounts.entities import EncryptedCredentials, PlanType, User
from defisats.domain.accounts.errors import EmailAlreadyRegisteredError, UsernameTakenError
from defisats.domain.accounts.ports import UserRepository
from defisats.infrastructure.persistence.tables import as_utc, users, utcnow

logger = logging.getLogger(__name__)


def _to_entity(row: RowMapping) -> User:
    credentials = None
    if row["ln_markets_api_key"]:
        credentials = EncryptedCredentials(
            api_key=row["ln_markets_api_key"],
            api_secret=row["ln_markets_api_secret"],
            passphrase=row["ln_markets_passphrase"],
            testnet=bool(row["ln_markets_testnet"]),
        )
    return User(
        id=UUID(row["id"]),
        email=row["email"],
        username=row["username"],
        password_hash=row["password_hash"],
        plan_type=PlanType(row["plan_type"]),
        credentials=credentials,
        is_active=bool(row["is_active"]),
        is_admin=bool(row["is_admin"]),
        session_expires_at=as_utc(row["session_expires_at"]),
        last_activity_at=as_utc(row["last_activity_at"]),
        created_at=as_utc(row["created_at"]),
        updated_at=as_utc(row["updated_at"]),
    )


def _to_values(user: User) -> dict:
    creds = user.credentials
    return {
        "email": user.email,
        "username": user.username,
        "password_hash": user.password_hash,
        "plan_type": user.plan_type.value,
        "ln_markets_api_key": creds.api_key if creds else None,
        "ln_markets_api_secret": creds.api_secret if creds else None,
        "ln_markets_passphrase": creds.passphrase if creds else None,
        "ln_markets_testnet": creds.testnet if creds else False,
        "is_active": user.is_active,
        "is_admin": user.is_admin,
        "session_expires_at": user.session_expires_at,
        "last_activity_at": user.last_activity_at,
    }


class UserRepositoryAdapter(UserRepository):
    """SQLAlchemy Core implementation of UserRepository.

    Args:
        engine: SQLAlchemy engine bound to the application database.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def _one(self, where) -> Optional[User]:
        with self._engine.connect() as conn:
            row = conn.execute(select(users).where(where)).mappings().first()
        return _to_entity(row) if row else None

    def get_by_id(self, user_id: UUID) -> Optional[User]:
        return self._one(users.c.id == str(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        return self._one(users.c.email == email.lower())

    def get_by_username(self, username: str) -> Optional[User]:
        return self._one(func.lower(users.c.username) == username.lower())

    def add(self, user: User) -> User:
        now = utcnow()
        values = _to_values(user)
        values.update(id=str(user.id), created_at=user.created_at or now, updated_at=now)
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(users).values(**values))
        except IntegrityError as exc:
            # Lost a race with a concurrent registration
            if self.get_by_email(user.email) is not None:
                raise EmailAlreadyRegisteredError(user.email) from exc
            raise UsernameTakenError(user.username) from exc
        logger.info("User created: %s", user.id)
        return self.get_by_id(user.id)

    def update(self, user: User) -> User:
        values = _to_values(user)
        values["updated_at"] = utcnow()
        try:
            with self._engine.begin() as conn:
                conn.execute(update(users).where(users.c.id == str(user.id)).values(**values))
        except IntegrityError as exc:
            raise UsernameTakenError(user.username) from exc
        return self.get_by_id(user.id)

    def list(self, limit: int = 50, offset: int = 0) -> list[User]:
        stmt = select(users).order_by(users.c.created_at.desc()).limit(limit).offset(offset)
        with self._engine.connect() as conn:
            return [_to_entity(row) for row in conn.execute(stmt).mappings()]

    def count(self) -> int:
        with self._engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(users)).scalar_one()
