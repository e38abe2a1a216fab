"""
Domain service: multi-channel notification dispatcher.

Every notification is first persisted as an in-app message. It is then
fanned out to the optional delivery channels:

    1. **WebSocket** via MarketStreamManager (only the owner's sockets)
    2. **HTTP webhooks** with a JSON payload
    3. **Async callbacks** for in-process consumers

Channel failures are logged and reported in the summary; they never raise.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse
from uuid import UUID, uuid4

import httpx

from defisats.domain.notifications.entities import Notification, NotificationType
from defisats.domain.notifications.ports import NotificationRepository

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[list[Notification]], Awaitable[None]]


@dataclass
class NotificationResult:
    """Result of dispatching through one channel."""

    channel: str
    success: bool
    recipients: int = 0
    error: Optional[str] = None
    latency_ms: float = 0.0


@dataclass
class NotificationSummary:
    """Aggregated result of a fan-out."""

    total_notifications: int = 0
    results: list[NotificationResult] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def channels_notified(self) -> int:
        return sum(1 for r in self.results if r.success)


class NotificationDispatcher:
    """Persist notifications and deliver them through every configured channel.

    Args:
        repository: Store for in-app notifications.
        stream_manager: Optional MarketStreamManager for WebSocket delivery.
        webhook_urls: Initial list of webhook URLs to POST notifications to.
        webhook_timeout: HTTP timeout in seconds for webhook calls.
        webhook_transport: Optional httpx transport for webhook calls.
    """

    def __init__(
        self,
        repository: NotificationRepository,
        stream_manager: Any | None = None,
        webhook_urls: list[str] | None = None,
        webhook_timeout: float = 5.0,
        webhook_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._repository = repository
        self._stream_manager = stream_manager
        self._webhook_urls: list[str] = []
        self._callbacks: list[NotificationCallback] = []
        self._webhook_timeout = webhook_timeout
        self._webhook_transport = webhook_transport
        self._loop: asyncio.AbstractEventLoop | None = None
        self._background_tasks: set[asyncio.Task] = set()
        self._stats = {
            "total_notifications": 0,
            "websocket_broadcasts": 0,
            "webhook_calls": 0,
            "callback_invocations": 0,
            "errors": 0,
        }
        for url in webhook_urls or []:
            self.add_webhook(url)

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_webhook(self, url: str) -> None:
        """Register a webhook URL.

        Raises:
            ValueError: If the URL scheme is not http or https.
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            msg = f"Invalid webhook URL scheme: {parsed.scheme}"
            raise ValueError(msg)
        if url not in self._webhook_urls:
            self._webhook_urls.append(url)
            logger.info("Webhook registered: %s", parsed.netloc)

    def remove_webhook(self, url: str) -> None:
        if url in self._webhook_urls:
            self._webhook_urls.remove(url)

    def add_callback(self, callback: NotificationCallback) -> None:
        self._callbacks.append(callback)

    def set_stream_manager(self, manager: Any) -> None:
        self._stream_manager = manager

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Deliver fan-out from worker threads on the application's event loop."""
        self._loop = loop

    # ------------------------------------------------------------------
    # Main dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> Notification:
        """Persist a notification and schedule its fan-out.

        Callable from request handlers, worker threads and coroutines alike.

        Returns:
            The stored Notification.
        """
        notification = self._repository.add(Notification(
            id=uuid4(),
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            metadata=metadata or {},
            created_at=datetime.now(timezone.utc),
        ))
        self._stats["total_notifications"] += 1

        if self._stream_manager is not None or self._webhook_urls or self._callbacks:
            self._schedule(self.notify([notification]))
        return notification

    def _schedule(self, coro: Awaitable[NotificationSummary]) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None:
            task = running.create_task(coro)
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)
        elif self._loop is not None and self._loop.is_running():
            asyncio.run_coroutine_threadsafe(coro, self._loop)
        else:
            asyncio.run(coro)

    async def notify(self, notifications: list[Notification]) -> NotificationSummary:
        """Deliver notifications through all channels concurrently.

        Args:
            notifications: Already persisted notifications.

        Returns:
            NotificationSummary with per-channel results.
        """
        summary = NotificationSummary(total_notifications=len(notifications))
        if not notifications:
            return summary

        tasks = [self._send_webhook(url, notifications) for url in self._webhook_urls]
        tasks += [self._send_callback(cb, notifications) for cb in self._callbacks]
        if self._stream_manager is not None:
            tasks.insert(0, self._send_websocket(notifications))

        summary.results.extend(await asyncio.gather(*tasks))
        return summary

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    async def _deliver(
        self, channel: str, send: Callable[[], Awaitable[int]], counter: str
    ) -> NotificationResult:
        """Run one channel's ``send`` and turn its outcome into a result."""
        start = time.monotonic()
        try:
            recipients = await send()
        except Exception as exc:
            self._stats["errors"] += 1
            logger.error("Notification channel %s failed: %s", channel, exc)
            return NotificationResult(
                channel=channel, success=False, error=str(exc), latency_ms=_elapsed_ms(start)
            )
        self._stats[counter] += 1
        return NotificationResult(
            channel=channel, success=True, recipients=recipients, latency_ms=_elapsed_ms(start)
        )

    def _send_websocket(self, notifications: list[Notification]) -> Awaitable[NotificationResult]:
        async def send() -> int:
            delivered = 0
            for notification in notifications:
                delivered += await self._stream_manager.send_to_user(
                    str(notification.user_id), "notification", notification.to_dict()
                )
            return delivered

        return self._deliver("websocket", send, "websocket_broadcasts")

    def _send_webhook(self, url: str, notifications: list[Notification]) -> Awaitable[NotificationResult]:
        payload = {
            "event": "notifications",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total": len(notifications),
            "notifications": [n.to_dict() for n in notifications],
        }

        async def send() -> int:
            client = httpx.AsyncClient(timeout=self._webhook_timeout, transport=self._webhook_transport)
            async with client:
                resp = await client.post(url, json=payload, headers={"X-DefiSats-Event": "notification"})
                resp.raise_for_status()
            return 1

        return self._deliver(f"webhook:{urlparse(url).netloc}", send, "webhook_calls")

    def _send_callback(
        self, callback: NotificationCallback, notifications: list[Notification]
    ) -> Awaitable[NotificationResult]:
        async def send() -> int:
            await callback(notifications)
            return 1

        name = getattr(callback, "__name__", repr(callback))
        return self._deliver(f"callback:{name}", send, "callback_invocations")


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)
