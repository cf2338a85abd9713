"""
Reconnecting viewer client for the bridge's /ws channel.

Keeps one WebSocket open to the bridge, reconnecting with capped exponential
backoff, and measures latency with ping/pong round trips.
"""

import asyncio
import json
import logging
import random
import time
from typing import Any, Callable, Optional

import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger(__name__)

PING_FRAME = json.dumps({"type": "ping"})


class RemoteClient:
    """
    Persistent viewer connection with backoff reconnection and latency pings.

    Reconnect delay after the n-th consecutive failure (n starting at 0):
        min(base_interval * multiplier ** n, max_interval) + uniform(0, max_jitter)

    With the defaults that is 1s, 2s, 4s, 8s, 16s, 30s, 30s... plus up to 1s
    of jitter. A successful open resets the sequence.

    Usage:
        client = RemoteClient("ws://host:3000/ws", on_message=print)
        await client.run()  # until client.stop()

    Attributes:
        url: Bridge WebSocket URL
        current_interval: Un-jittered delay of the last scheduled reconnect
        reconnect_attempts: Consecutive failed connections
        latency: Last measured round-trip time in ms, None when unknown
    """

    def __init__(
        self,
        url: str,
        on_message: Optional[Callable[[Any], None]] = None,
        on_open: Optional[Callable[[], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        on_latency: Optional[Callable[[Optional[float]], None]] = None,
        *,
        base_interval: float = 1.0,
        multiplier: float = 2.0,
        max_interval: float = 30.0,
        max_jitter: float = 1.0,
        ping_interval: float = 5.0,
        max_attempts: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        if not url.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URL: {url}")
        if multiplier <= 1.0:
            raise ValueError(f"multiplier must be greater than 1, got {multiplier}")

        self.url = url
        self.on_message = on_message
        self.on_open = on_open
        self.on_close = on_close
        self.on_latency = on_latency

        self.base_interval = base_interval
        self.multiplier = multiplier
        self.max_interval = max_interval
        self.max_jitter = max_jitter
        self.ping_interval = ping_interval
        self.max_attempts = max_attempts
        self._rng = rng or random.Random()

        self.current_interval = base_interval
        self.reconnect_attempts = 0
        self.latency: Optional[float] = None

        self._ws: Optional[Any] = None
        self._ping_task: Optional[asyncio.Task] = None
        self._pending_ping: Optional[float] = None
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    def get_latency(self) -> Optional[float]:
        return self.latency

    def handle_open(self, ws: Any) -> None:
        """Connection established: reset backoff and start pinging."""
        logger.info(f"Connected to {self.url}")
        self._ws = ws
        self.reconnect_attempts = 0
        self.current_interval = self.base_interval
        self._pending_ping = None
        self._start_pinging()
        if self.on_open:
            self.on_open()

    def handle_close(self) -> Optional[float]:
        """
        Connection lost or never established.

        Returns:
            Delay in seconds before the next attempt, or None when
            max_attempts has been reached
        """
        self._ws = None
        self._stop_pinging()
        self._set_latency(None)
        if self.on_close:
            self.on_close()

        if self.max_attempts is not None and self.reconnect_attempts >= self.max_attempts:
            logger.error("Max reconnection attempts reached")
            return None

        self.current_interval = min(
            self.base_interval * self.multiplier ** self.reconnect_attempts,
            self.max_interval,
        )
        delay = self.current_interval + self._rng.uniform(0, self.max_jitter)
        self.reconnect_attempts += 1
        logger.info(f"Reconnecting in {delay:.1f}s (attempt {self.reconnect_attempts})")
        return delay

    def handle_message(self, raw: Any) -> None:
        """Consume pong frames, forward everything else to on_message."""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to parse message as JSON: {e}")
            return

        if isinstance(data, dict) and data.get("type") == "pong":
            if self._pending_ping is not None:
                self._set_latency((time.monotonic() - self._pending_ping) * 1000.0)
                self._pending_ping = None
            return

        if self.on_message:
            try:
                self.on_message(data)
            except Exception as e:
                logger.error(f"Message callback failed: {e}", exc_info=True)

    def _set_latency(self, latency: Optional[float]) -> None:
        self.latency = latency
        if self.on_latency:
            self.on_latency(latency)

    async def send_ping(self) -> bool:
        """
        Send one ping unless one is still unanswered.

        Returns:
            True if a ping frame was sent
        """
        if self._ws is None or self._pending_ping is not None:
            return False
        self._pending_ping = time.monotonic()
        try:
            await self._ws.send(PING_FRAME)
        except (OSError, WebSocketException) as e:
            logger.debug(f"Ping failed: {e}")
            self._pending_ping = None
            return False
        return True

    async def _ping_loop(self) -> None:
        while self._ws is not None:
            await self.send_ping()
            await asyncio.sleep(self.ping_interval)

    def _start_pinging(self) -> None:
        self._stop_pinging()
        try:
            self._ping_task = asyncio.get_running_loop().create_task(self._ping_loop())
        except RuntimeError:
            self._ping_task = None

    def _stop_pinging(self) -> None:
        if self._ping_task is not None and not self._ping_task.done():
            self._ping_task.cancel()
        self._ping_task = None
        self._pending_ping = None

    async def run(self) -> None:
        """Connect, read and reconnect until stop() is called."""
        self._running = True
        self._stop_event = asyncio.Event()

        try:
            while self._running:
                try:
                    async with websockets.connect(self.url) as ws:
                        self.handle_open(ws)
                        async for message in ws:
                            self.handle_message(message)
                except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                    logger.warning(f"Connection to {self.url} failed: {e}")
                except Exception as e:
                    logger.error(f"Connection to {self.url} aborted: {e}", exc_info=True)

                delay = self.handle_close()
                if not self._running or delay is None:
                    break
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._stop_pinging()
            self._ws = None
            self._running = False

    async def stop(self) -> None:
        """Stop reconnecting and close the open connection, if any."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_pinging()
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")
