"""
Market data relay.

Polls the public LN Markets ticker and rebroadcasts it to WebSocket
clients subscribed to the ``ticker`` channel. The last snapshot is
cached for ``GET /market/ticker``.

Usage:
    relay = MarketDataRelay(public_exchange(), stream_manager, interval_seconds=5)
    await relay.start()
    await relay.stop()
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from defisats.domain.errors import DomainError
from defisats.domain.exchange.entities import Ticker
from defisats.domain.exchange.ports import ExchangePort

logger = logging.getLogger(__name__)


def ticker_to_dict(ticker: Ticker) -> dict[str, Any]:
    return {
        "index": str(ticker.index),
        "last_price": str(ticker.last_price),
        "bid": str(ticker.bid) if ticker.bid is not None else None,
        "offer": str(ticker.offer) if ticker.offer is not None else None,
        "funding_rate": str(ticker.funding_rate) if ticker.funding_rate is not None else None,
        "timestamp": (ticker.timestamp or datetime.now(timezone.utc)).isoformat(),
    }


class MarketDataRelay:
    """Background asyncio task that relays the ticker."""

    def __init__(
        self,
        exchange: ExchangePort,
        stream_manager: Any,
        interval_seconds: float = 5.0,
    ) -> None:
        self._exchange = exchange
        self._stream = stream_manager
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._last_ticker: Optional[Ticker] = None
        self._stats = {"polls": 0, "broadcasts": 0, "errors": 0}

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_ticker(self) -> Optional[Ticker]:
        return self._last_ticker

    @property
    def stats(self) -> dict:
        return {**self._stats, "running": self.is_running, "interval_seconds": self._interval}

    async def start(self) -> None:
        if self.is_running:
            logger.warning("MarketDataRelay already running.")
            return
        self._task = asyncio.create_task(self._loop(), name="market-data-relay")
        logger.info("MarketDataRelay started (every %.0fs)", self._interval)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._exchange.close()
        logger.info("MarketDataRelay stopped.")

    async def poll_once(self) -> Optional[Ticker]:
        """Fetch the ticker, cache it and broadcast it. Returns None on failure."""
        self._stats["polls"] += 1
        try:
            ticker = await asyncio.to_thread(self._exchange.get_ticker)
        except DomainError as exc:
            self._stats["errors"] += 1
            logger.warning("Ticker poll failed: %s", exc.message)
            return None

        self._last_ticker = ticker
        sent = await self._stream.broadcast_ticker(ticker_to_dict(ticker))
        self._stats["broadcasts"] += 1
        logger.debug("Ticker %s relayed to %d clients", ticker.last_price, sent)
        return ticker

    async def _loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                self._stats["errors"] += 1
                logger.exception("Ticker relay iteration failed; retrying next interval")
            await asyncio.sleep(self._interval)
