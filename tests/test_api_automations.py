"""
API tests for automations and trade logs.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from defisats.core.database import get_engine
from defisats.domain.accounts.entities import PlanType
from defisats.domain.automation.entities import TradeLog, TradeLogStatus
from defisats.infrastructure.persistence.automation_repository import AutomationRepositoryAdapter
from defisats.infrastructure.persistence.trade_log_repository import TradeLogRepositoryAdapter

from conftest import auth_headers, make_trade, register, set_plan

MARGIN_GUARD = {"type": "margin_guard", "config": {"margin_threshold": 20}}
TP_SL = {"type": "tp_sl", "config": {"take_profit_percentage": 10, "stop_loss_percentage": 5}}


@pytest.fixture
def pro_headers(client) -> dict:
    tokens = register(client)
    set_plan("alice@example.com", PlanType.PRO)
    return auth_headers(tokens)


def _create(client, headers, payload=MARGIN_GUARD) -> dict:
    response = client.post("/api/v1/automations", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestAutomationCrud:
    def test_create_fills_config_defaults(self, client, user_headers):
        body = _create(client, user_headers)
        assert body["type"] == "margin_guard"
        assert body["is_active"] is True
        assert body["config"]["action"] == "close_position"

    def test_free_plan_cannot_create_tp_sl(self, client, user_headers):
        response = client.post("/api/v1/automations", json=TP_SL, headers=user_headers)
        assert response.status_code == 403
        assert "free" in response.json()["detail"]

    def test_pro_plan_can_create_tp_sl(self, client, pro_headers):
        assert _create(client, pro_headers, TP_SL)["type"] == "tp_sl"

    def test_second_active_of_same_type_is_409(self, client, user_headers):
        _create(client, user_headers)
        response = client.post("/api/v1/automations", json=MARGIN_GUARD, headers=user_headers)
        assert response.status_code == 409

    def test_racing_duplicate_is_stopped_by_the_database(self, client, user_headers, monkeypatch):
        _create(client, user_headers)
        monkeypatch.setattr(AutomationRepositoryAdapter, "find_active", lambda self, user_id, automation_type: None)

        response = client.post("/api/v1/automations", json=MARGIN_GUARD, headers=user_headers)

        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"

    def test_inactive_duplicate_is_allowed(self, client, user_headers):
        _create(client, user_headers)
        body = _create(client, user_headers, {**MARGIN_GUARD, "is_active": False})
        assert body["is_active"] is False

    def test_invalid_config_is_400(self, client, user_headers):
        payload = {"type": "margin_guard", "config": {"margin_threshold": 500}}
        response = client.post("/api/v1/automations", json=payload, headers=user_headers)
        assert response.status_code == 400
        assert "margin_threshold" in response.json()["detail"]

    def test_unknown_type_is_400(self, client, user_headers):
        response = client.post("/api/v1/automations", json={"type": "grid", "config": {}}, headers=user_headers)
        assert response.status_code == 400

    def test_list_filters_by_type_and_state(self, client, pro_headers):
        _create(client, pro_headers)
        _create(client, pro_headers, {**TP_SL, "is_active": False})

        everything = client.get("/api/v1/automations", headers=pro_headers).json()
        inactive = client.get("/api/v1/automations", params={"is_active": False}, headers=pro_headers).json()
        guards = client.get("/api/v1/automations", params={"type": "margin_guard"}, headers=pro_headers).json()

        assert len(everything) == 2
        assert [a["type"] for a in inactive] == ["tp_sl"]
        assert [a["type"] for a in guards] == ["margin_guard"]

    def test_get_update_delete(self, client, user_headers):
        automation_id = _create(client, user_headers)["id"]
        url = f"/api/v1/automations/{automation_id}"

        assert client.get(url, headers=user_headers).json()["id"] == automation_id

        response = client.patch(url, json={"config": {"margin_threshold": 30}}, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["config"]["margin_threshold"] == 30

        assert client.delete(url, headers=user_headers).status_code == 204
        assert client.get(url, headers=user_headers).status_code == 404

    def test_toggle(self, client, user_headers):
        automation_id = _create(client, user_headers)["id"]
        url = f"/api/v1/automations/{automation_id}/toggle"
        assert client.post(url, headers=user_headers).json()["is_active"] is False
        assert client.post(url, headers=user_headers).json()["is_active"] is True

    def test_toggle_on_blocked_by_active_sibling(self, client, user_headers):
        _create(client, user_headers)
        idle = _create(client, user_headers, {**MARGIN_GUARD, "is_active": False})
        response = client.post(f"/api/v1/automations/{idle['id']}/toggle", headers=user_headers)
        assert response.status_code == 409

    def test_other_users_automation_is_404(self, client, user_headers):
        automation_id = _create(client, user_headers)["id"]
        other = auth_headers(register(client, email="bob@example.com", username="bob"))
        assert client.get(f"/api/v1/automations/{automation_id}", headers=other).status_code == 404
        assert client.delete(f"/api/v1/automations/{automation_id}", headers=other).status_code == 404

    def test_stats(self, client, pro_headers):
        _create(client, pro_headers)
        _create(client, pro_headers, {**TP_SL, "is_active": False})
        body = client.get("/api/v1/automations/stats", headers=pro_headers).json()
        assert body["total"] == 2
        assert body["active"] == 1
        assert body["inactive"] == 1
        assert body["by_type"] == {"margin_guard": 1, "tp_sl": 1}
        assert len(body["recent"]) == 2


class TestValidateConfig:
    def test_valid_config_returns_normalized(self, client, user_headers):
        response = client.post(
            "/api/v1/automations/validate-config",
            json={"type": "tp_sl", "config": {"take_profit_percentage": 10, "stop_loss_percentage": 5}},
            headers=user_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["config"]["trailing_stop"] is False

    def test_invalid_config_lists_fields(self, client, user_headers):
        response = client.post(
            "/api/v1/automations/validate-config",
            json={"type": "auto_entry", "config": {"entry_condition": "price_below"}},
            headers=user_headers,
        )
        assert response.status_code == 400


class TestMarginGuardPreview:
    def test_preview_uses_active_threshold(self, client, exchange, user_headers):
        exchange.trades = {"t1": make_trade(), "t2": make_trade(trade_id="t2", pl=-8_500)}
        _create(client, user_headers)

        response = client.get("/api/v1/automations/margin-guard/preview", headers=user_headers)

        assert response.status_code == 200
        first, second = response.json()
        assert Decimal(first["trigger_price"]) == Decimal("58000")
        assert first["is_at_risk"] is False
        assert first["risk_level"] == "low"
        assert first["protected"] is True
        assert second["risk_level"] == "high"

    def test_preview_without_guard_has_no_trigger(self, client, exchange, user_headers):
        exchange.trades = {"t1": make_trade()}
        [position] = client.get("/api/v1/automations/margin-guard/preview", headers=user_headers).json()
        assert position["trigger_price"] is None
        assert position["protected"] is False

    def test_exchange_failure_is_502(self, client, exchange, user_headers):
        exchange.fail_on.add("get_running_trades")
        response = client.get("/api/v1/automations/margin-guard/preview", headers=user_headers)
        assert response.status_code == 502


class TestTradeLogs:
    def _seed(self, user_id: str) -> UUID:
        repo = TradeLogRepositoryAdapter(engine=get_engine())
        automation_id = uuid4()
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        entries = [
            ("close_position", TradeLogStatus.SUCCESS, 1500),
            ("close_position", TradeLogStatus.SUCCESS, -300),
            ("add_margin", TradeLogStatus.SUCCESS, None),
            ("close_position", TradeLogStatus.ERROR, None),
        ]
        for i, (action, status, pnl) in enumerate(entries):
            repo.add(TradeLog(
                id=uuid4(),
                user_id=UUID(user_id),
                automation_id=automation_id if i < 2 else None,
                trade_id=f"t{i}",
                action=action,
                status=status,
                pnl=pnl,
                price=Decimal("60000"),
                created_at=base + timedelta(minutes=i),
            ))
        return automation_id

    def test_list_newest_first_with_pagination(self, client):
        tokens = register(client)
        self._seed(tokens["user_id"])

        body = client.get(
            "/api/v1/trade-logs", params={"page": 1, "page_size": 3}, headers=auth_headers(tokens)
        ).json()

        assert body["total"] == 4
        assert body["pages"] == 2
        assert [log["trade_id"] for log in body["items"]] == ["t3", "t2", "t1"]

    def test_equal_timestamps_paginate_without_repeats(self, client):
        tokens = register(client)
        repo = TradeLogRepositoryAdapter(engine=get_engine())
        at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            repo.add(TradeLog(
                id=uuid4(),
                user_id=UUID(tokens["user_id"]),
                automation_id=None,
                trade_id=f"t{i}",
                action="close_position",
                status=TradeLogStatus.SUCCESS,
                created_at=at,
            ))

        seen = []
        for page in (1, 2, 3):
            body = client.get(
                "/api/v1/trade-logs", params={"page": page, "page_size": 2}, headers=auth_headers(tokens)
            ).json()
            seen.extend(log["trade_id"] for log in body["items"])

        assert sorted(seen) == [f"t{i}" for i in range(5)]

    def test_filters(self, client):
        tokens = register(client)
        automation_id = self._seed(tokens["user_id"])
        headers = auth_headers(tokens)

        errors = client.get("/api/v1/trade-logs", params={"status": "error"}, headers=headers).json()
        margin = client.get("/api/v1/trade-logs", params={"action": "add_margin"}, headers=headers).json()
        owned = client.get(
            "/api/v1/trade-logs", params={"automation_id": str(automation_id)}, headers=headers
        ).json()

        assert [log["trade_id"] for log in errors["items"]] == ["t3"]
        assert margin["total"] == 1
        assert owned["total"] == 2

    def test_page_size_is_capped(self, client, user_headers):
        response = client.get("/api/v1/trade-logs", params={"page_size": 1000}, headers=user_headers)
        assert response.status_code == 400

    def test_logs_are_private(self, client):
        tokens = register(client)
        self._seed(tokens["user_id"])
        other = auth_headers(register(client, email="bob@example.com", username="bob"))
        assert client.get("/api/v1/trade-logs", headers=other).json()["total"] == 0

    def test_stats(self, client):
        tokens = register(client)
        self._seed(tokens["user_id"])

        body = client.get("/api/v1/trade-logs/stats", headers=auth_headers(tokens)).json()

        assert body["total"] == 4
        assert body["success"] == 3
        assert body["errors"] == 1
        assert body["realized_pnl"] == 1200
        assert body["by_action"] == {"close_position": 3, "add_margin": 1}
