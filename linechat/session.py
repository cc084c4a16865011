from __future__ import annotations

import enum
import itertools
import threading
import time
from typing import Callable, Protocol

from .constants import OUTBOX_DROP
from .outbox import Outbox

_session_ids = itertools.count(1)


class Transport(Protocol):
    peer: str

    def read_line(self) -> str | None: ...

    def write_line(self, line: str) -> None: ...

    def shutdown(self) -> None: ...

    def close(self) -> None: ...


class SessionState(enum.Enum):
    UNNAMED = "unnamed"
    NAMED = "named"
    DISCONNECTED = "disconnected"


class Session:
    """
    Server-side state for one connected client.

    The nickname is only written by the registry (under its lock); the
    disconnect guard makes teardown run once no matter how many threads ask
    for it.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        outbox_max_lines: int = 0,
        outbox_full_policy: str = OUTBOX_DROP,
        on_overflow: Callable[[], None] | None = None,
    ) -> None:
        self.id = next(_session_ids)
        self.transport = transport
        self.peer = getattr(transport, "peer", "-")
        self.nick: str | None = None
        self.connected_at = time.time()
        self.outbox = Outbox(
            transport,
            name=f"linechat-outbox-{self.id}",
            maxsize=outbox_max_lines,
            full_policy=outbox_full_policy,
            on_overflow=on_overflow,
        )

        self._disconnect_lock = threading.Lock()
        self._disconnected = False

    def __repr__(self) -> str:
        return f"<Session id={self.id} nick={self.nick!r} peer={self.peer}>"

    @property
    def state(self) -> SessionState:
        if self._disconnected:
            return SessionState.DISCONNECTED
        if self.nick is None:
            return SessionState.UNNAMED
        return SessionState.NAMED

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    def send(self, line: str) -> bool:
        """Queue a line for this client without blocking."""
        return self.outbox.enqueue(line)

    def send_lines(self, lines: list[str]) -> None:
        for line in lines:
            self.outbox.enqueue(line)

    def mark_disconnected(self) -> bool:
        """Claim the terminal transition. Only the first caller gets True."""
        with self._disconnect_lock:
            if self._disconnected:
                return False
            self._disconnected = True
            return True
