"""
Basic application tests.

Validates that the FastAPI app starts correctly, the health endpoint
responds as expected and cross-cutting middleware is installed.
"""

from typing import get_type_hints

import pytest
from fastapi.testclient import TestClient

from defisats.core.config import Settings
from defisats.domain.accounts.ports import UserRepository
from defisats.domain.automation.ports import AutomationRepository
from defisats.domain.billing.ports import CouponRepository
from defisats.infrastructure.persistence.coupon_repository import CouponRepositoryAdapter
from defisats.main import app

client = TestClient(app)


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_returns_200(self) -> None:
        """Health endpoint must return HTTP 200 with status ok."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200

    def test_health_response_body(self) -> None:
        """Health endpoint must return status and version fields."""
        response = client.get("/api/v1/health")
        body = response.json()
        assert body["status"] == "ok"
        assert "version" in body

    def test_health_reports_database_and_workers(self) -> None:
        body = client.get("/api/v1/health").json()
        assert body["database"] == "ok"
        assert body["scheduler_running"] is False
        assert body["relay_running"] is False


class TestSecurityHeaders:
    """Tests for security headers on responses."""

    def test_security_headers_present(self) -> None:
        response = client.get("/api/v1/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" in response.headers

    def test_api_responses_are_not_cached(self) -> None:
        response = client.get("/api/v1/health")
        assert response.headers["Cache-Control"] == "no-store"

    def test_headers_on_error_responses(self) -> None:
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestErrorShape:
    """Every error uses the same JSON body."""

    def test_unknown_route_is_404(self) -> None:
        response = client.get("/api/v1/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_missing_token_is_401_with_challenge(self) -> None:
        response = client.get("/api/v1/automations")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"] == "Unauthorized"

    def test_request_validation_is_400(self) -> None:
        response = client.post("/api/v1/auth/login", json={"email": "not-an-email"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation error"
        assert "password" in body["detail"]

    def test_public_pricing_lists_every_plan(self) -> None:
        response = client.get("/api/v1/payments/pricing")
        assert response.status_code == 200
        plans = {p["plan_type"]: p for p in response.json()}
        assert set(plans) == {"free", "basic", "advanced", "pro", "lifetime"}
        assert plans["free"]["automation_types"] == ["margin_guard"]
        assert plans["free"]["max_protected_trades"] == 2


class TestRepositoryAnnotations:
    """Repositories expose a ``list`` method; later annotations must still mean the builtin."""

    @pytest.mark.parametrize(
        "method",
        [
            CouponRepository.redemptions,
            CouponRepositoryAdapter.redemptions,
            UserRepository.list,
            AutomationRepository.list_active,
        ],
    )
    def test_return_annotations_resolve(self, method) -> None:
        hints = get_type_hints(method)
        assert hints["return"].__origin__ is list


class TestSettings:
    def test_lnmarkets_attempts_read_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("LNMARKETS_MAX_ATTEMPTS", "5")
        assert Settings().lnmarkets_max_attempts == 5
        assert not hasattr(Settings(), "lnmarkets_max_retries")
