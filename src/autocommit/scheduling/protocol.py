"""Scheduler backend protocol.

The scheduler is a "beat-as-poller": a backend decides WHEN a tick
happens, :class:`~autocommit.scheduling.service.RuleScheduler` decides
WHAT a tick does::

    ┌─────────────────┐     tick()     ┌──────────────────────────────┐
    │  Thread backend │ ─────────────► │  RuleScheduler               │
    │  (default)      │                │   - load eligible rules      │
    └─────────────────┘                │   - lock / evaluate / commit │
                                       └──────────────────────────────┘
    ┌─────────────────┐     tick()            ▲
    │  Test / manual  │ ──────────────────────┘
    └─────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], Awaitable[Any]]


@runtime_checkable
class SchedulerBackend(Protocol):
    """Protocol for pluggable scheduler timing backends.

    A backend only calls the tick callback at the given interval. All
    rule evaluation lives in RuleScheduler.
    """

    name: str

    def start(self, tick_callback: TickCallback, interval_seconds: float = 60.0) -> None:
        """Start calling ``tick_callback`` every ``interval_seconds``."""
        ...

    def stop(self) -> None:
        """Stop the loop, waiting briefly for the current tick."""
        ...

    def health(self) -> dict[str, Any]:
        """Return at least ``healthy``, ``backend``, ``tick_count``, ``last_tick``."""
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            **self.extra,
        }
