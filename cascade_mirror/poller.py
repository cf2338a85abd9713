"""
Adaptive snapshot poller.

Repeatedly captures the chat panel, fingerprints it and reports changes.
Slows down while nothing happens and snaps back to the base interval on
activity or change.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Optional

from .evaluator import SnapshotExtractor
from .hashing import fingerprint

logger = logging.getLogger(__name__)

# Growth factor applied to the interval on each idle tick. Reaches the default
# max (4x base) after about four idle ticks.
IDLE_SLOWDOWN_MULTIPLIER = 1.5

# Extra idle time, on top of idle_threshold, before slowing down. Keeps polling
# fast for users who act in bursts a little further apart than the threshold.
HYSTERESIS = 10.0


class AdaptivePoller:
    """
    Drives SnapshotExtractor on a self-rescheduling timer chain.

    Each timer fires one poll; the next timer is only scheduled once that poll
    has finished, so at most one capture is in flight.

    Usage:
        poller = AdaptivePoller(extractor, 3.0, on_update)
        poller.start()
        ...
        poller.signal_activity()  # user did something, poll fast again
        ...
        poller.stop()

    Attributes:
        extractor: Snapshot source
        base_interval: Interval used while active, in seconds
        min_interval: Lower bound for the interval (default: base_interval)
        max_interval: Upper bound for the interval (default: 4 x base_interval)
        idle_threshold: Seconds without activity or change before slowing down
        on_update: Called with each changed snapshot (plain function or coroutine)
    """

    def __init__(
        self,
        extractor: SnapshotExtractor,
        base_interval: float,
        on_update: Callable[[dict], Any],
        fingerprint_fn: Callable[[str], str] = fingerprint,
        *,
        min_interval: Optional[float] = None,
        max_interval: Optional[float] = None,
        idle_threshold: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if base_interval <= 0:
            raise ValueError(f"base_interval must be positive, got {base_interval}")

        self.extractor = extractor
        self.base_interval = base_interval
        self.on_update = on_update
        self.fingerprint_fn = fingerprint_fn
        self.min_interval = min_interval if min_interval is not None else base_interval
        self.max_interval = max_interval if max_interval is not None else base_interval * 4
        if self.min_interval > self.max_interval:
            raise ValueError(
                f"min_interval ({self.min_interval}) exceeds max_interval ({self.max_interval})"
            )
        self.idle_threshold = idle_threshold
        self._clock = clock

        self._interval = self._clamp(base_interval)
        self.last_fingerprint: Optional[str] = None
        self.last_activity_time = self._clock()
        self.last_change_time = self._clock()

        self._timer: Optional[asyncio.TimerHandle] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._running = False
        self._polling = False
        self._pending_reschedule = False

    @property
    def interval(self) -> float:
        """Delay before the next poll, in seconds."""
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_polling(self) -> bool:
        """True while a capture is in flight."""
        return self._polling

    def start(self) -> None:
        """Start the timer chain. No-op when already running."""
        if self._running:
            return
        self._running = True
        now = self._clock()
        self.last_activity_time = now
        self.last_change_time = now
        # A capture still in flight reschedules itself when it finishes.
        if not self._polling:
            self._schedule_next_poll()
        logger.info(f"Polling started (interval {self._interval:.2f}s)")

    def stop(self) -> None:
        """Cancel the pending timer. A capture already in flight is left to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._running:
            logger.info("Polling stopped")
        self._running = False

    def signal_activity(self) -> None:
        """Mark user activity; poll at the base interval again if slowed down."""
        self.last_activity_time = self._clock()
        if self._interval > self.base_interval:
            self._interval = self._clamp(self.base_interval)
            self._reschedule()

    def _clamp(self, interval: float) -> float:
        return max(self.min_interval, min(interval, self.max_interval))

    def _schedule_next_poll(self) -> None:
        if not self._running:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._interval, self._on_timer)

    def _reschedule(self) -> None:
        if not self._running:
            return
        if self._polling:
            self._pending_reschedule = True
            return
        if self._timer is not None:
            self._timer.cancel()
        self._schedule_next_poll()

    def _on_timer(self) -> None:
        self._timer = None
        if not self._running:
            return
        self._poll_task = asyncio.create_task(self._poll_and_reschedule())

    async def _poll_and_reschedule(self) -> None:
        self._polling = True
        try:
            await self.poll_once()
        finally:
            self._polling = False
        self._adjust_interval()
        if self._pending_reschedule:
            self._pending_reschedule = False
            self._interval = self._clamp(self.base_interval)
        self._schedule_next_poll()

    def _adjust_interval(self) -> None:
        """Grow the interval while idle, reset it to base otherwise."""
        now = self._clock()
        since_activity = now - self.last_activity_time
        since_change = now - self.last_change_time
        effective_idle_threshold = self.idle_threshold + HYSTERESIS

        if since_activity > effective_idle_threshold and since_change > effective_idle_threshold:
            self._interval = self._clamp(self._interval * IDLE_SLOWDOWN_MULTIPLIER)
        else:
            self._interval = self._clamp(self.base_interval)

    async def poll_once(self) -> bool:
        """
        Capture once and report a change if the content differs.

        Returns:
            True if the update callback was invoked
        """
        try:
            snapshot = await self.extractor.capture()
            if not snapshot or not isinstance(snapshot, dict) or snapshot.get("error"):
                return False

            digest = self.fingerprint_fn(snapshot.get("html") or "")
            if digest == self.last_fingerprint:
                return False

            self.last_fingerprint = digest
            self.last_change_time = self._clock()
            result = self.on_update(snapshot)
            if inspect.isawaitable(result):
                await result
            return True
        except Exception as e:
            logger.error(f"Poll error: {e}", exc_info=True)
            return False
