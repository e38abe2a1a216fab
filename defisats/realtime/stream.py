"""
WebSocket market stream manager.

Keeps track of connected WebSocket clients and pushes two kinds of events:

    - market events (ticker updates) to every client subscribed to a channel
    - personal events (notifications) to the sockets of one user

Architecture:
    MarketDataRelay ──broadcast_ticker()──┐
                                          ▼
                                  MarketStreamManager ──▶ subscribed sockets
                                          ▲
    NotificationDispatcher ─send_to_user()┘
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

TICKER_CHANNEL = "ticker"
NOTIFICATIONS_CHANNEL = "notifications"
CHANNELS = frozenset({TICKER_CHANNEL, NOTIFICATIONS_CHANNEL})


@dataclass
class StreamEvent:
    """A single event pushed to connected clients."""

    event_type: str          # "ticker", "notification", "connected", ...
    channel: Optional[str]
    data: dict
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        return json.dumps({
            "event": self.event_type,
            "channel": self.channel,
            "data": self.data,
            "timestamp": self.timestamp,
        }, default=str)


class MarketStreamManager:
    """Manages connected WebSocket clients and their channel subscriptions.

    New clients start subscribed to every channel. Clients that connected
    with a valid token are also associated with their user id and receive
    that user's notifications.

    Usage in FastAPI:
        manager = MarketStreamManager()

        @router.websocket("/ws/market")
        async def ws_endpoint(ws: WebSocket):
            await manager.connect(ws, user_id)
            try:
                while True:
                    await manager.handle_client_message(ws, await ws.receive_text())
            except WebSocketDisconnect:
                manager.disconnect(ws)
    """

    def __init__(self, max_history: int = 500) -> None:
        self._subscriptions: dict[Any, set[str]] = {}
        self._users: dict[Any, str] = {}
        self._event_history: list[StreamEvent] = []
        self._max_history = max_history
        self._stats = {
            "total_connections": 0,
            "total_events_broadcast": 0,
            "total_messages_sent": 0,
            "total_user_messages": 0,
        }

    @property
    def active_connections(self) -> int:
        return len(self._subscriptions)

    @property
    def authenticated_connections(self) -> int:
        return len(self._users)

    @property
    def stats(self) -> dict:
        return {
            **self._stats,
            "active_connections": self.active_connections,
            "authenticated_connections": self.authenticated_connections,
        }

    # ------------------------------------------------------------------
    # WebSocket lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: Any, user_id: Optional[str] = None) -> None:
        """Accept a WebSocket connection, optionally bound to a user."""
        await websocket.accept()
        self._subscriptions[websocket] = set(CHANNELS)
        if user_id is not None:
            self._users[websocket] = user_id
        self._stats["total_connections"] += 1
        logger.info("WebSocket client connected. Active: %d", self.active_connections)

        welcome = StreamEvent(
            event_type="connected",
            channel=None,
            data={
                "message": "Connected to DefiSats market stream",
                "authenticated": user_id is not None,
                "channels": sorted(CHANNELS),
                "active_clients": self.active_connections,
            },
        )
        await websocket.send_text(welcome.to_json())

    def disconnect(self, websocket: Any) -> None:
        self._subscriptions.pop(websocket, None)
        self._users.pop(websocket, None)
        logger.info("WebSocket client disconnected. Active: %d", self.active_connections)

    async def handle_client_message(self, websocket: Any, raw: str) -> None:
        """Process a message from a WebSocket client.

        Supported commands:
            {"action": "subscribe", "channels": ["ticker"]}
            {"action": "unsubscribe", "channels": ["ticker"]}
            {"action": "ping"}
        """
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await websocket.send_text(json.dumps({"error": "Invalid JSON"}))
            return
        if not isinstance(msg, dict):
            await websocket.send_text(json.dumps({"error": "Expected a JSON object"}))
            return

        action = msg.get("action", "")

        if action in ("subscribe", "unsubscribe"):
            requested = {str(c).lower() for c in msg.get("channels", [])}
            unknown = requested - CHANNELS
            if unknown:
                await websocket.send_text(json.dumps({
                    "error": f"Unknown channels: {', '.join(sorted(unknown))}",
                    "supported": sorted(CHANNELS),
                }))
                return
            current = self._subscriptions.setdefault(websocket, set())
            if action == "subscribe":
                current |= requested
            else:
                current -= requested
            await websocket.send_text(json.dumps({
                "event": f"{action}d",
                "channels": sorted(current),
            }))

        elif action == "ping":
            await websocket.send_text(json.dumps({
                "event": "pong",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }))

        else:
            await websocket.send_text(json.dumps({
                "error": f"Unknown action: {action}",
                "supported": ["subscribe", "unsubscribe", "ping"],
            }))

    # ------------------------------------------------------------------
    # Broadcasting
    # ------------------------------------------------------------------

    def _remember(self, event: StreamEvent) -> None:
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history:]

    async def _send(self, targets: list[Any], event: StreamEvent) -> int:
        sent = 0
        dead: list[Any] = []
        payload = event.to_json()
        for ws in targets:
            try:
                await ws.send_text(payload)
                sent += 1
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)
        return sent

    async def broadcast(self, event: StreamEvent) -> int:
        """Send an event to every client subscribed to its channel.

        Returns the number of clients that received the message.
        """
        self._remember(event)
        self._stats["total_events_broadcast"] += 1
        targets = [
            ws for ws, channels in self._subscriptions.items()
            if event.channel is None or event.channel in channels
        ]
        sent = await self._send(targets, event)
        self._stats["total_messages_sent"] += sent
        return sent

    async def broadcast_ticker(self, ticker_data: dict) -> int:
        return await self.broadcast(StreamEvent(
            event_type="ticker",
            channel=TICKER_CHANNEL,
            data=ticker_data,
        ))

    async def broadcast_system_event(self, event_type: str, data: dict) -> int:
        """Broadcast a system event (automation pass results) to every client."""
        return await self.broadcast(StreamEvent(event_type=event_type, channel=None, data=data))

    async def send_to_user(self, user_id: str, event_type: str, data: dict) -> int:
        """Send a personal event to every notifications-subscribed socket of one user."""
        targets = [
            ws for ws, owner in self._users.items()
            if owner == user_id and NOTIFICATIONS_CHANNEL in self._subscriptions.get(ws, set())
        ]
        sent = await self._send(targets, StreamEvent(
            event_type=event_type,
            channel=NOTIFICATIONS_CHANNEL,
            data=data,
        ))
        self._stats["total_user_messages"] += sent
        return sent

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_recent_events(self, limit: int = 50) -> list[dict]:
        """Return recent market events. Personal events are not kept."""
        return [json.loads(e.to_json()) for e in self._event_history[-limit:]]
