"""
JWT access and refresh tokens.

Access tokens are short lived and carry the user's plan; refresh tokens
only identify the user and are checked against the stored session.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from defisats.domain.accounts.entities import User
from defisats.domain.accounts.errors import InvalidTokenError
from defisats.domain.accounts.ports import TokenService

ACCESS = "access"
REFRESH = "refresh"


class JWTTokenService(TokenService):
    """Signs tokens with an HMAC secret using PyJWT.

    Args:
        secret: Signing key.
        algorithm: JWS algorithm, HS256 by default.
        access_ttl: Lifetime of access tokens.
        refresh_ttl: Lifetime of refresh tokens (and of the login session).
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def issue_access_token(self, user: User) -> str:
        return self._encode({
            "sub": str(user.id),
            "email": user.email,
            "plan": user.plan_type.value,
            "type": ACCESS,
        }, self.access_ttl)

    def issue_refresh_token(self, user: User) -> str:
        return self._encode({"sub": str(user.id), "type": REFRESH}, self.refresh_ttl)

    def decode(self, token: str, expected_type: str) -> dict[str, Any]:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token has expired") from None
        except jwt.InvalidTokenError:
            raise InvalidTokenError() from None

        if claims.get("type") != expected_type:
            raise InvalidTokenError(f"Expected a {expected_type} token")
        return claims

    def _encode(self, claims: dict[str, Any], ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, "iat": now, "exp": now + ttl}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)
