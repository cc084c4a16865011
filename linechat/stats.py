"""Lifetime counters for the chat server."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .registry import SessionRegistry


class StatsManager:
    """
    Thread-safe counters for:
    - Connections accepted, rejected and closed
    - Lines received and routed
    - Broadcasts and private messages
    - Nickname changes and rejections
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.started_monotonic: float | None = None
        self._counters: dict[str, int] = {
            "connections": 0,
            "rejected": 0,
            "disconnects": 0,
            "lines_in": 0,
            "broadcasts": 0,
            "deliveries": 0,
            "pms": 0,
            "pms_not_found": 0,
            "nick_changes": 0,
            "nick_rejected": 0,
            "outbox_dropped": 0,
        }

    def set_start_time(self) -> None:
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        with self._lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self._lock:
            return int(self._counters.get(key, 0))

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def format_stats(self, registry: SessionRegistry | None = None, *, active: int = 0) -> str:
        """Format current statistics as a single log-friendly line."""
        from . import __version__

        started = self.started_monotonic
        uptime_s = (time.monotonic() - started) if started is not None else 0.0
        c = self.snapshot()
        named = registry.get_stats()["named"] if registry is not None else 0

        parts = [
            f"linechat {__version__}",
            f"uptime_s={uptime_s:.1f}",
            f"clients_active={active}",
            f"clients_named={named}",
        ]
        parts.extend(f"{k}={v}" for k, v in c.items())
        return " ".join(parts)
