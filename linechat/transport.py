"""Newline-delimited text over a connected TCP socket."""

from __future__ import annotations

import logging
import socket
import threading

from .util import fmt_peer


class LineTransport:
    """
    Full-duplex line I/O for one client connection.

    The reading side is owned by the connection handler; the writing side
    by the session's outbox delivery thread. ``shutdown`` may be called from
    any thread to wake a blocked reader, and ``close`` is idempotent.
    """

    def __init__(self, sock: socket.socket, *, encoding: str = "utf-8") -> None:
        self.sock = sock
        self.log = logging.getLogger("linechat.transport")
        try:
            self.peer = fmt_peer(sock.getpeername())
        except OSError:
            self.peer = "-"

        self._rfile = sock.makefile("r", encoding=encoding, errors="replace", newline="\n")
        self._wfile = sock.makefile("w", encoding=encoding, errors="replace", newline="\n")
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def read_line(self) -> str | None:
        """Block for the next line. Returns None at end of stream."""
        line = self._rfile.readline()
        if not line:
            return None
        return line.rstrip("\r\n")

    def write_line(self, line: str) -> None:
        self._wfile.write(line + "\n")
        self._wfile.flush()

    def shutdown(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self.shutdown()
        for f in (self._wfile, self._rfile):
            try:
                f.close()
            except (OSError, ValueError):
                self.log.debug("Error closing stream peer=%s", self.peer, exc_info=True)
        try:
            self.sock.close()
        except OSError:
            pass
