from __future__ import annotations

import queue
import threading
from typing import Callable

import pytest

from linechat.config import ServerRuntimeConfig
from linechat.service import ChatService


class FakeTransport:
    """In-memory transport that records written lines."""

    def __init__(self, peer: str = "fake:0", *, fail_writes: bool = False) -> None:
        self.peer = peer
        self.fail_writes = fail_writes
        self.lines: list[str] = []
        self.closed = False
        self.close_calls = 0
        self.shutdown_calls = 0
        self.write_gate = threading.Event()
        self.write_gate.set()
        self._incoming: queue.Queue[str | None] = queue.Queue()
        self._cond = threading.Condition()

    def feed(self, *lines: str | None) -> None:
        for line in lines:
            self._incoming.put(line)

    def read_line(self) -> str | None:
        line = self._incoming.get()
        if line is None:
            self._incoming.put(None)
        return line

    def write_line(self, line: str) -> None:
        self.write_gate.wait()
        if self.fail_writes:
            raise OSError("broken pipe")
        with self._cond:
            self.lines.append(line)
            self._cond.notify_all()

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        self._incoming.put(None)

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True
        self._incoming.put(None)

    def wait_for(self, predicate: Callable[[list[str]], bool], timeout: float = 2.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: predicate(self.lines), timeout)

    def wait_for_line(self, line: str, timeout: float = 2.0) -> bool:
        return self.wait_for(lambda lines: line in lines, timeout)

    def snapshot(self) -> list[str]:
        with self._cond:
            return list(self.lines)


@pytest.fixture
def make_transport() -> Callable[..., FakeTransport]:
    return FakeTransport


@pytest.fixture
def make_service():
    services: list[ChatService] = []

    def _make(**overrides) -> ChatService:
        cfg = ServerRuntimeConfig(**{"log_console": False, "drain_timeout_s": 1.0, **overrides})
        svc = ChatService(cfg)
        services.append(svc)
        return svc

    yield _make

    for svc in services:
        svc.stop()
