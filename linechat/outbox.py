"""Per-session outbound queue and its delivery thread."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Protocol

from .constants import OUTBOX_DISCONNECT, OUTBOX_DROP


class LineWriter(Protocol):
    def write_line(self, line: str) -> None: ...


class Outbox:
    """
    FIFO of lines for one client, drained by a dedicated thread.

    ``enqueue`` never blocks the caller, which is usually some other
    client's handler thread performing a broadcast. With ``maxsize=0`` the
    queue is unbounded; otherwise ``full_policy`` decides what happens to a
    line that does not fit:

    - ``"drop"``: the line is discarded.
    - ``"disconnect"``: the line is discarded and ``on_overflow`` is called
      once so the owner can tear the slow client down.
    """

    def __init__(
        self,
        transport: LineWriter,
        *,
        name: str = "linechat-outbox",
        maxsize: int = 0,
        full_policy: str = OUTBOX_DROP,
        on_overflow: Callable[[], None] | None = None,
    ) -> None:
        if full_policy not in (OUTBOX_DROP, OUTBOX_DISCONNECT):
            raise ValueError(f"unknown outbox policy {full_policy!r}")

        self.transport = transport
        self.name = name
        self.maxsize = max(0, int(maxsize))
        self.full_policy = full_policy
        self.on_overflow = on_overflow
        self.log = logging.getLogger("linechat.outbox")

        self._items: deque[str] = deque()
        self._cond = threading.Condition()
        self._running = True
        self._stopping = False
        self._overflowed = False
        self._thread: threading.Thread | None = None

        self.delivered = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._running

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def start(self) -> None:
        with self._cond:
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._deliver_loop, name=self.name, daemon=True
            )
        self._thread.start()

    def enqueue(self, line: str) -> bool:
        notify_overflow = False
        with self._cond:
            if not self._running or self._stopping:
                return False

            if self.maxsize and len(self._items) >= self.maxsize:
                self.dropped += 1
                if self.full_policy == OUTBOX_DISCONNECT and not self._overflowed:
                    self._overflowed = True
                    notify_overflow = True
                accepted = False
            else:
                self._items.append(line)
                self._cond.notify()
                accepted = True

        if not accepted:
            self.log.debug(
                "Outbox full name=%s size=%s policy=%s", self.name, self.maxsize, self.full_policy
            )
        if notify_overflow and self.on_overflow is not None:
            try:
                self.on_overflow()
            except Exception:
                self.log.exception("Overflow callback failed name=%s", self.name)
        return accepted

    def stop(self, *, drain: bool = True) -> None:
        with self._cond:
            self._stopping = True
            if not drain:
                self._items.clear()
            self._cond.notify_all()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the delivery thread. Returns True if it has exited."""
        t = self._thread
        if t is None or t is threading.current_thread():
            return True
        t.join(timeout)
        return not t.is_alive()

    def _next_line(self) -> str | None:
        with self._cond:
            while not self._items and not self._stopping:
                self._cond.wait()
            if not self._items:
                return None
            return self._items.popleft()

    def _deliver_loop(self) -> None:
        try:
            while True:
                line = self._next_line()
                if line is None:
                    break
                try:
                    self.transport.write_line(line)
                except (OSError, ValueError) as e:
                    self.log.debug("Delivery failed name=%s err=%s", self.name, e)
                    break
                self.delivered += 1
        finally:
            with self._cond:
                self._running = False
                self._items.clear()
