"""
Tests for password hashing, tokens, credential encryption, log redaction
and rate limiting.
"""

import logging
from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request

from defisats.domain.accounts.entities import PlanType, User
from defisats.domain.accounts.errors import CredentialDecryptionError, InvalidTokenError
from defisats.shared.logging import RedactingFilter, redact
from defisats.shared.security.encryption import FernetCredentialCipher
from defisats.shared.security.passwords import PasslibPasswordHasher
from defisats.shared.security.rate_limiting import (
    RETRY_AFTER_SECONDS,
    client_key,
    rate_limit_exceeded_handler,
)
from defisats.shared.security.tokens import JWTTokenService


def _user() -> User:
    return User(id=uuid4(), email="bob@example.com", username="bob", password_hash="x", plan_type=PlanType.PRO)


class TestPasswordHasher:
    def test_hash_verifies(self):
        hasher = PasslibPasswordHasher()
        hashed = hasher.hash("correct horse")
        assert hashed != "correct horse"
        assert hasher.verify("correct horse", hashed)
        assert not hasher.verify("wrong horse", hashed)

    def test_unknown_hash_format_is_rejected(self):
        assert PasslibPasswordHasher().verify("pw", "not-a-hash") is False


class TestJWTTokenService:
    def test_access_token_claims(self):
        tokens = JWTTokenService("secret-for-tests-0123456789abcdef")
        user = _user()
        claims = tokens.decode(tokens.issue_access_token(user), expected_type="access")
        assert claims["sub"] == str(user.id)
        assert claims["plan"] == "pro"

    def test_refresh_token_cannot_be_used_as_access(self):
        tokens = JWTTokenService("secret-for-tests-0123456789abcdef")
        refresh = tokens.issue_refresh_token(_user())
        with pytest.raises(InvalidTokenError, match="access"):
            tokens.decode(refresh, expected_type="access")

    def test_expired_token_rejected(self):
        tokens = JWTTokenService("secret-for-tests-0123456789abcdef", access_ttl=timedelta(seconds=-1))
        with pytest.raises(InvalidTokenError, match="expired"):
            tokens.decode(tokens.issue_access_token(_user()), expected_type="access")

    def test_foreign_signature_rejected(self):
        ours = JWTTokenService("secret-for-tests-0123456789abcdef")
        theirs = JWTTokenService("another-secret-0123456789abcdefgh")
        with pytest.raises(InvalidTokenError):
            ours.decode(theirs.issue_access_token(_user()), expected_type="access")


class TestFernetCredentialCipher:
    def test_round_trip(self):
        cipher = FernetCredentialCipher("passphrase")
        token = cipher.encrypt("api-secret")
        assert token != "api-secret"
        assert cipher.decrypt(token) == "api-secret"

    def test_wrong_key_raises_domain_error(self):
        token = FernetCredentialCipher("one").encrypt("api-secret")
        with pytest.raises(CredentialDecryptionError):
            FernetCredentialCipher("two").decrypt(token)

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            FernetCredentialCipher("")


class TestLogRedaction:
    def test_bearer_token_masked(self):
        assert redact("Authorization: Bearer abc.def-123") == "Authorization: Bearer ***"

    def test_signature_header_masked(self):
        text = redact("{'LNM-ACCESS-SIGNATURE': 'c2lnbmF0dXJl', 'LNM-ACCESS-TIMESTAMP': '1700000000000'}")
        assert "c2lnbmF0dXJl" not in text
        assert "1700000000000" in text

    def test_filter_rewrites_formatted_message(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "password=%s", ("hunter2",), None)
        assert RedactingFilter().filter(record) is True
        assert record.getMessage() == "password=***"

    def test_plain_message_untouched(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "closed %s", ("t1",), None)
        RedactingFilter().filter(record)
        assert record.args == ("t1",)


class TestRateLimitKey:
    @staticmethod
    def _request(headers: list[tuple[bytes, bytes]]) -> Request:
        return Request({"type": "http", "headers": headers, "client": ("9.9.9.9", 4000)})

    def test_first_forwarded_hop_wins(self):
        request = self._request([(b"x-forwarded-for", b"1.2.3.4, 10.0.0.1")])
        assert client_key(request) == "1.2.3.4"

    def test_falls_back_to_socket_address(self):
        assert client_key(self._request([])) == "9.9.9.9"


class TestRateLimitExceeded:
    @pytest.fixture
    def throttled(self):
        limiter = Limiter(key_func=client_key)
        app = FastAPI()
        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

        @app.get("/ping")
        @limiter.limit("1/minute")
        def ping(request: Request) -> dict:
            return {"ok": True}

        return TestClient(app)

    def test_second_call_is_429_with_retry_after(self, throttled):
        assert throttled.get("/ping").status_code == 200

        response = throttled.get("/ping")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == RETRY_AFTER_SECONDS
        assert response.json()["error"] == "Too many requests"

    def test_limits_are_per_forwarded_client(self, throttled):
        assert throttled.get("/ping", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 200
        assert throttled.get("/ping", headers={"X-Forwarded-For": "2.2.2.2"}).status_code == 200
        assert throttled.get("/ping", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 429
