"""
Tests for the real-time market pipeline.

Covers:
- StreamEvent serialization
- MarketStreamManager (channels, personal events, protocol errors)
- AutomationScheduler (task execution, status, history)
- MarketDataRelay (poll, cache, failure)
- WebSocket and status endpoints
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from defisats.application.automation.dtos import RunSummary
from defisats.domain.exchange.errors import ExchangeError
from defisats.realtime.relay import MarketDataRelay
from defisats.realtime.scheduler import AutomationScheduler, TaskResult, TaskStatus
from defisats.realtime.stream import MarketStreamManager, StreamEvent

from conftest import FakeExchange, register


def _socket() -> AsyncMock:
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock()
    return ws


def _last_message(ws: AsyncMock) -> dict:
    return json.loads(ws.send_text.call_args_list[-1].args[0])


# =====================================================================
# StreamEvent
# =====================================================================

class TestStreamEvent:
    def test_to_json_produces_valid_json(self):
        event = StreamEvent(event_type="ticker", channel="ticker", data={"last_price": "60000"})
        parsed = json.loads(event.to_json())

        assert parsed["event"] == "ticker"
        assert parsed["channel"] == "ticker"
        assert parsed["data"]["last_price"] == "60000"
        assert "timestamp" in parsed

    def test_default_timestamp_is_utc(self):
        event = StreamEvent(event_type="test", channel=None, data={})
        dt = datetime.fromisoformat(event.timestamp)
        assert dt.tzinfo is not None


# =====================================================================
# MarketStreamManager
# =====================================================================

class TestMarketStreamManager:
    """Tests for the WebSocket stream manager."""

    def test_initial_state(self):
        mgr = MarketStreamManager()
        assert mgr.active_connections == 0
        assert mgr.stats["total_events_broadcast"] == 0

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self):
        mgr = MarketStreamManager()
        ws = _socket()

        await mgr.connect(ws)
        assert mgr.active_connections == 1
        ws.accept.assert_awaited_once()
        assert _last_message(ws)["event"] == "connected"

        mgr.disconnect(ws)
        assert mgr.active_connections == 0

    @pytest.mark.asyncio
    async def test_ticker_reaches_all_clients(self):
        mgr = MarketStreamManager()
        ws1, ws2 = _socket(), _socket()
        await mgr.connect(ws1)
        await mgr.connect(ws2)

        sent = await mgr.broadcast_ticker({"last_price": "60000"})
        assert sent == 2

    @pytest.mark.asyncio
    async def test_unsubscribed_client_skips_ticker(self):
        mgr = MarketStreamManager()
        ws = _socket()
        await mgr.connect(ws)

        await mgr.handle_client_message(ws, json.dumps({"action": "unsubscribe", "channels": ["ticker"]}))
        assert _last_message(ws) == {"event": "unsubscribed", "channels": ["notifications"]}

        assert await mgr.broadcast_ticker({"last_price": "1"}) == 0

        await mgr.handle_client_message(ws, json.dumps({"action": "subscribe", "channels": ["ticker"]}))
        assert await mgr.broadcast_ticker({"last_price": "2"}) == 1

    @pytest.mark.asyncio
    async def test_unknown_channel_rejected(self):
        mgr = MarketStreamManager()
        ws = _socket()
        await mgr.connect(ws)

        await mgr.handle_client_message(ws, json.dumps({"action": "subscribe", "channels": ["orders"]}))
        msg = _last_message(ws)
        assert "Unknown channels" in msg["error"]
        assert msg["supported"] == ["notifications", "ticker"]

    @pytest.mark.asyncio
    async def test_handle_ping(self):
        mgr = MarketStreamManager()
        ws = _socket()
        await mgr.connect(ws)
        await mgr.handle_client_message(ws, json.dumps({"action": "ping"}))

        assert ws.send_text.await_count == 2
        assert _last_message(ws)["event"] == "pong"

    @pytest.mark.asyncio
    async def test_handle_invalid_json(self):
        mgr = MarketStreamManager()
        ws = _socket()
        await mgr.connect(ws)
        await mgr.handle_client_message(ws, "not json at all")

        assert "error" in _last_message(ws)

    @pytest.mark.asyncio
    async def test_unknown_action(self):
        mgr = MarketStreamManager()
        ws = _socket()
        await mgr.connect(ws)
        await mgr.handle_client_message(ws, json.dumps({"action": "trade"}))

        assert _last_message(ws)["supported"] == ["subscribe", "unsubscribe", "ping"]

    @pytest.mark.asyncio
    async def test_send_to_user_only_reaches_owner(self):
        mgr = MarketStreamManager()
        owner, other, anonymous = _socket(), _socket(), _socket()
        await mgr.connect(owner, user_id="u1")
        await mgr.connect(other, user_id="u2")
        await mgr.connect(anonymous)

        sent = await mgr.send_to_user("u1", "notification", {"title": "hi"})

        assert sent == 1
        assert _last_message(owner)["event"] == "notification"
        assert _last_message(other)["event"] == "connected"
        assert mgr.get_recent_events() == []

    @pytest.mark.asyncio
    async def test_dead_socket_is_dropped(self):
        mgr = MarketStreamManager()
        ws = _socket()
        await mgr.connect(ws)
        ws.send_text.side_effect = RuntimeError("closed")

        assert await mgr.broadcast_ticker({"last_price": "1"}) == 0
        assert mgr.active_connections == 0

    def test_get_recent_events(self):
        mgr = MarketStreamManager()
        for i in range(5):
            mgr._remember(StreamEvent(event_type="ticker", channel="ticker", data={"i": i}))

        recent = mgr.get_recent_events(limit=3)
        assert len(recent) == 3
        assert recent[-1]["data"]["i"] == 4

    def test_history_is_bounded(self):
        mgr = MarketStreamManager(max_history=3)
        for i in range(10):
            mgr._remember(StreamEvent(event_type="ticker", channel="ticker", data={"i": i}))

        assert [e["data"]["i"] for e in mgr.get_recent_events()] == [7, 8, 9]


# =====================================================================
# AutomationScheduler
# =====================================================================

class TestAutomationScheduler:
    """Tests for the automation task orchestrator."""

    def test_initial_state(self):
        scheduler = AutomationScheduler(RunSummary)
        assert not scheduler.is_running
        assert scheduler.task_history == []

    def test_run_unknown_task(self):
        scheduler = AutomationScheduler(RunSummary)
        result = scheduler.run_now("nonexistent_task")
        assert result.status == TaskStatus.FAILED
        assert "Unknown task" in result.error

    def test_get_status_when_stopped(self):
        scheduler = AutomationScheduler(RunSummary, interval_seconds=45)
        status = scheduler.get_status()
        assert status["running"] is False
        assert status["interval_seconds"] == 45
        assert status["jobs"] == []

    def test_run_now_records_summary(self):
        scheduler = AutomationScheduler(lambda: RunSummary(users_processed=2, actions_executed=1))

        result = scheduler.run_now("automations")

        assert result.status == TaskStatus.COMPLETED
        assert result.details["users_processed"] == 2
        assert scheduler.task_history[0].task_name == "automations"

    def test_failed_pass_is_recorded(self):
        def boom() -> RunSummary:
            raise RuntimeError("database down")

        scheduler = AutomationScheduler(boom)
        result = scheduler.run_now("automations")

        assert result.status == TaskStatus.FAILED
        assert result.error == "database down"
        assert scheduler.get_status()["recent_tasks"][0]["status"] == "failed"

    def test_task_result_records_in_history(self):
        scheduler = AutomationScheduler(RunSummary)
        scheduler._record_result(TaskResult(
            task_name="automations",
            status=TaskStatus.COMPLETED,
            started_at=datetime.now(timezone.utc).isoformat(),
            duration_seconds=1.5,
        ))
        assert len(scheduler.task_history) == 1

    def test_start_and_stop(self):
        scheduler = AutomationScheduler(RunSummary, interval_seconds=3600)
        scheduler.start()
        try:
            assert scheduler.is_running
            jobs = scheduler.get_scheduled_jobs()
            assert [j["id"] for j in jobs] == ["automations"]
        finally:
            scheduler.stop()
        assert not scheduler.is_running


# =====================================================================
# MarketDataRelay
# =====================================================================

class TestMarketDataRelay:
    @pytest.mark.asyncio
    async def test_poll_caches_and_broadcasts(self):
        stream = MarketStreamManager()
        ws = _socket()
        await stream.connect(ws)
        relay = MarketDataRelay(FakeExchange(last_price=Decimal("61000")), stream)

        ticker = await relay.poll_once()

        assert ticker.last_price == Decimal("61000")
        assert relay.last_ticker is ticker
        msg = _last_message(ws)
        assert msg["event"] == "ticker"
        assert msg["data"]["last_price"] == "61000"
        assert relay.stats["broadcasts"] == 1

    @pytest.mark.asyncio
    async def test_poll_failure_keeps_previous_ticker(self):
        exchange = FakeExchange()
        relay = MarketDataRelay(exchange, MarketStreamManager())
        first = await relay.poll_once()

        exchange.fail_on.add("get_ticker")
        assert await relay.poll_once() is None
        assert relay.last_ticker is first
        assert relay.stats["errors"] == 1

    @pytest.mark.asyncio
    async def test_start_and_stop_closes_exchange(self):
        exchange = FakeExchange()
        relay = MarketDataRelay(exchange, MarketStreamManager(), interval_seconds=3600)
        await relay.start()
        assert relay.is_running
        await relay.stop()
        assert not relay.is_running
        assert exchange.closed

    @pytest.mark.asyncio
    async def test_loop_survives_unexpected_errors(self):
        class BrokenTicker(FakeExchange):
            def get_ticker(self):
                raise RuntimeError("decoder exploded")

        relay = MarketDataRelay(BrokenTicker(), MarketStreamManager(), interval_seconds=0.01)
        await relay.start()
        await asyncio.sleep(0.1)

        assert relay.is_running
        assert relay.stats["errors"] >= 2
        await relay.stop()


# =====================================================================
# HTTP and WebSocket endpoints
# =====================================================================

class TestRealtimeEndpoints:
    def test_anonymous_socket_gets_welcome(self, client):
        with client.websocket_connect("/api/v1/realtime/ws/market") as ws:
            welcome = ws.receive_json()
            assert welcome["event"] == "connected"
            assert welcome["data"]["authenticated"] is False
            ws.send_text(json.dumps({"action": "ping"}))
            assert ws.receive_json()["event"] == "pong"

    def test_token_binds_socket_to_user(self, client):
        tokens = register(client)
        url = f"/api/v1/realtime/ws/market?token={tokens['access_token']}"
        with client.websocket_connect(url) as ws:
            assert ws.receive_json()["data"]["authenticated"] is True

    def test_invalid_token_closes_socket(self, client):
        from starlette.websockets import WebSocketDisconnect

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/v1/realtime/ws/market?token=garbage") as ws:
                ws.receive_json()
        assert exc_info.value.code == 1008

    def test_stream_status(self, client):
        response = client.get("/api/v1/realtime/stream/status")
        assert response.status_code == 200
        body = response.json()
        assert "active_connections" in body
        assert "recent_events" in body

class TestSchedulerEndpoints:
    def test_status_is_public(self, client):
        body = client.get("/api/v1/realtime/scheduler/status").json()
        assert body["running"] is False

    def test_run_requires_admin(self, client, user_headers):
        response = client.post("/api/v1/realtime/scheduler/run/automations", headers=user_headers)
        assert response.status_code == 403

    def test_unknown_task_reports_failure(self, client, admin_headers):
        response = client.post("/api/v1/realtime/scheduler/run/nope", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "failed"
        assert body["error"].startswith("Unknown task: nope")
