"""Threading-based scheduler backend (the default).

::

    start()
       │
       ▼
    daemon thread:
        while not stop_event.wait(interval):
            tick_count += 1
            last_tick = now()
            asyncio.run(tick_callback())     # fresh event loop per tick
    stop()
       │
       ▼
    stop_event.set(); thread.join(timeout)

Each tick runs in its own event loop, so anything the tick awaits must
not be bound to a loop that outlives it.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import UTC, datetime
from typing import Any

from autocommit.core.logging import get_logger
from autocommit.scheduling.protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class ThreadSchedulerBackend:
    """Daemon-thread timing loop.

    Example:
        >>> backend = ThreadSchedulerBackend()
        >>> backend.start(scheduler.tick, interval_seconds=60.0)
        >>> ...
        >>> backend.stop()
    """

    name = "thread"

    def __init__(self, join_timeout: float = 5.0) -> None:
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval: float = 60.0
        self._join_timeout = join_timeout
        self._started = False
        self._lock = threading.Lock()

    def start(self, tick_callback: TickCallback, interval_seconds: float = 60.0) -> None:
        if self._started:
            logger.warning("backend_already_started", backend=self.name)
            return

        self._interval = interval_seconds
        self._stop_event.clear()

        def _loop() -> None:
            logger.info("backend_started", backend=self.name, interval_seconds=interval_seconds)
            while not self._stop_event.wait(interval_seconds):
                with self._lock:
                    self._tick_count += 1
                    self._last_tick = datetime.now(UTC)

                try:
                    asyncio.run(tick_callback())
                except Exception:
                    logger.exception("backend_tick_failed", backend=self.name)

            logger.info("backend_stopped", backend=self.name)

        self._thread = threading.Thread(target=_loop, daemon=True, name="autocommit-scheduler")
        self._thread.start()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self._join_timeout)
            if self._thread.is_alive():
                logger.warning("backend_stop_timeout", backend=self.name)

        self._started = False

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        return BackendHealth(
            healthy=self.is_running,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            extra={"interval_seconds": self._interval},
        )

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick


__all__ = ["ThreadSchedulerBackend"]
