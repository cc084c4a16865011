from __future__ import annotations

import enum
import logging
import threading
from typing import Any

from .session import Session


class NickResult(enum.Enum):
    OK = "ok"
    NAME_TAKEN = "name_taken"
    GONE = "gone"


class SessionRegistry:
    """
    Authoritative nickname -> Session mapping.

    Every read and write goes through one lock so the uniqueness check and
    the insert happen as a single step. Sessions without a nickname are
    never present, so they cannot be listed or addressed.

    A session already marked disconnected can no longer claim a name; with
    ``unregister_session`` reading the nickname under the same lock, a
    teardown racing a /nick never leaves the name bound.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("linechat.session")
        self._lock = threading.Lock()
        self._by_nick: dict[str, Session] = {}

    def register(self, name: str, session: Session) -> NickResult:
        with self._lock:
            if session.disconnected:
                return NickResult.GONE
            holder = self._by_nick.get(name)
            if holder is not None:
                return NickResult.OK if holder is session else NickResult.NAME_TAKEN
            self._by_nick[name] = session
            session.nick = name
        return NickResult.OK

    def rename(self, old_name: str | None, new_name: str, session: Session) -> NickResult:
        with self._lock:
            if session.disconnected:
                return NickResult.GONE
            holder = self._by_nick.get(new_name)
            if holder is not None:
                return NickResult.OK if holder is session else NickResult.NAME_TAKEN

            if old_name is not None and self._by_nick.get(old_name) is session:
                del self._by_nick[old_name]
            self._by_nick[new_name] = session
            session.nick = new_name
        return NickResult.OK

    def unregister(self, name: str, session: Session | None = None) -> bool:
        with self._lock:
            holder = self._by_nick.get(name)
            if holder is None:
                return False
            if session is not None and holder is not session:
                return False
            del self._by_nick[name]
        return True

    def unregister_session(self, session: Session) -> str | None:
        """Release whatever name the session holds. Returns that name, if any."""
        with self._lock:
            name = session.nick
            if name is None or self._by_nick.get(name) is not session:
                return None
            del self._by_nick[name]
            return name

    def lookup(self, name: str) -> Session | None:
        with self._lock:
            return self._by_nick.get(name)

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self._by_nick.keys())

    def sessions(self) -> list[Session]:
        with self._lock:
            return list(self._by_nick.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_nick)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._by_nick

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {"named": len(self._by_nick)}
