"""
Use case: Register a new user.

Input: RegisterUserCommand
Output: AuthResult (user id, access and refresh tokens, plan)
Side effects: Inserts the user, opens a session, redeems the coupon if given.
Failure cases: EmailAlreadyRegisteredError, UsernameTakenError (409),
    CouponNotFoundError (404), CouponExpiredError / CouponExhaustedError /
    InvalidExchangeCredentialsError (400), ExchangeError (502).
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from defisats.application.accounts.credentials import check_credentials, encrypt_credentials
from defisats.application.accounts.dtos import AuthResult, RegisterUserCommand
from defisats.domain.accounts.entities import PlanType, User
from defisats.domain.accounts.errors import EmailAlreadyRegisteredError, UsernameTakenError
from defisats.domain.accounts.ports import (
    CredentialCipher,
    PasswordHasher,
    TokenService,
    UserRepository,
)
from defisats.domain.billing.errors import CouponNotFoundError
from defisats.domain.billing.ports import CouponRepository
from defisats.domain.errors import DomainError
from defisats.domain.exchange.entities import LNMarketsCredentials
from defisats.domain.exchange.errors import InvalidExchangeCredentialsError
from defisats.domain.exchange.ports import ExchangeFactory

logger = logging.getLogger(__name__)


class RegisterUserUseCase:
    """Orchestrates account creation.

    Uniqueness and the coupon are checked before LN Markets is contacted,
    so a bad signup never costs an exchange round trip.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        coupon_repo: CouponRepository,
        hasher: PasswordHasher,
        tokens: TokenService,
        cipher: CredentialCipher,
        exchange_factory: ExchangeFactory,
        session_ttl: timedelta,
        access_ttl: timedelta,
    ) -> None:
        self._user_repo = user_repo
        self._coupon_repo = coupon_repo
        self._hasher = hasher
        self._tokens = tokens
        self._cipher = cipher
        self._exchange_factory = exchange_factory
        self._session_ttl = session_ttl
        self._access_ttl = access_ttl

    def execute(self, command: RegisterUserCommand) -> AuthResult:
        email = command.email.strip().lower()
        username = command.username.strip()
        now = datetime.now(timezone.utc)

        if self._user_repo.get_by_email(email) is not None:
            raise EmailAlreadyRegisteredError(email)
        if self._user_repo.get_by_username(username) is not None:
            raise UsernameTakenError(username)

        coupon = None
        if command.coupon_code:
            coupon = self._coupon_repo.get_by_code(command.coupon_code.strip())
            if coupon is None:
                raise CouponNotFoundError(command.coupon_code.strip().upper())
            coupon.ensure_redeemable(now)

        credentials = LNMarketsCredentials(
            api_key=command.api_key.strip(),
            api_secret=command.api_secret.strip(),
            passphrase=command.passphrase.strip(),
            testnet=command.testnet,
        )
        if not check_credentials(credentials, self._exchange_factory):
            raise InvalidExchangeCredentialsError()

        user = self._user_repo.add(User(
            id=uuid4(),
            email=email,
            username=username,
            password_hash=self._hasher.hash(command.password),
            plan_type=PlanType.FREE,
            credentials=encrypt_credentials(credentials, self._cipher),
            session_expires_at=now + self._session_ttl,
            last_activity_at=now,
            created_at=now,
        ))

        if coupon is not None:
            try:
                self._coupon_repo.redeem(coupon, user.id, now)
            except DomainError as exc:
                logger.warning("Coupon %s not applied to new user %s: %s", coupon.code, user.id, exc.message)
            else:
                user = self._user_repo.update(replace(user, plan_type=coupon.plan_type))

        logger.info("Registered user %s on plan %s", user.id, user.plan_type.value)
        return AuthResult(
            user_id=user.id,
            access_token=self._tokens.issue_access_token(user),
            refresh_token=self._tokens.issue_refresh_token(user),
            plan_type=user.plan_type,
            expires_in=int(self._access_ttl.total_seconds()),
        )
