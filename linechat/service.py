from __future__ import annotations

import logging
import signal
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from .commands import CommandHandler
from .config import ServerRuntimeConfig, describe_config
from .constants import (
    LEFT,
    OVERFLOW_REJECT,
    SERVER_BUSY,
    SERVER_FULL,
    SHUTTING_DOWN,
    WELCOME,
    WELCOME_HINT,
)
from .registry import SessionRegistry
from .router import MessageRouter
from .session import Session, Transport
from .stats import StatsManager
from .transport import LineTransport


class ChatService:
    def __init__(self, config: ServerRuntimeConfig) -> None:
        self.config = config
        self.log = logging.getLogger("linechat.server")

        self.stats = StatsManager()
        self.registry = SessionRegistry()
        self.router = MessageRouter(self.registry, self.stats)
        self.command_handler = CommandHandler(self)

        # Connection table for admission control and shutdown. Nicknames
        # live only in the registry.
        self._conn_lock = threading.Lock()
        self._sessions: dict[int, Session] = {}
        self._pending: set[Transport] = set()

        self._shutdown = threading.Event()
        self._stopped = False
        self._fatal: BaseException | None = None

        self._listener: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def address(self) -> tuple[str, int] | None:
        if self._listener is None:
            return None
        host, port = self._listener.getsockname()[:2]
        return host, port

    @property
    def active_count(self) -> int:
        with self._conn_lock:
            return len(self._sessions)

    def start(self) -> None:
        """Bind the listening socket and start accepting.

        Raises OSError if the address cannot be bound.
        """
        self._listener = socket.create_server(
            (self.config.host, int(self.config.port)),
            backlog=int(self.config.backlog),
        )
        self._executor = ThreadPoolExecutor(
            max_workers=int(self.config.max_clients),
            thread_name_prefix="linechat-conn",
        )
        self.stats.set_start_time()

        self._accept_thread = threading.Thread(
            target=self._accept_loop, name="linechat-acceptor", daemon=True
        )
        self._accept_thread.start()

        host, port = self.address or ("-", 0)
        self.log.info("Server listening host=%s port=%s", host, port)
        self.log.info(
            "Policy %s", " ".join(f"{k}={v}" for k, v in describe_config(self.config).items())
        )

    def run_forever(self) -> None:
        if self._listener is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self._shutdown.set())
        signal.signal(signal.SIGTERM, lambda *_: self._shutdown.set())

        while not self._shutdown.is_set():
            self._shutdown.wait(0.25)

        self.stop()
        if self._fatal is not None:
            raise RuntimeError(f"accept loop failed: {self._fatal}") from self._fatal

    def stop(self) -> None:
        self._shutdown.set()
        with self._conn_lock:
            if self._stopped:
                return
            self._stopped = True

        if self._listener is not None:
            try:
                self._listener.close()
            except OSError:
                pass

        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(timeout=2.0)

        with self._conn_lock:
            sessions = list(self._sessions.values())
            pending = list(self._pending)
            self._pending.clear()

        # Every outbox drains in parallel against one deadline.
        released = [s for s in sessions if self._release(s, SHUTTING_DOWN)]
        deadline = time.monotonic() + float(self.config.drain_timeout_s)
        for session in released:
            self._close_released(session, deadline, "shutdown")

        for transport in pending:
            transport.close()

        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)

        self.log.info(
            "Server stopped %s",
            self.stats.format_stats(self.registry, active=self.active_count),
        )

    def _accept_loop(self) -> None:
        listener = self._listener
        if listener is None:
            return

        while not self._shutdown.is_set():
            try:
                conn, _addr = listener.accept()
            except OSError as e:
                if self._shutdown.is_set():
                    break
                self.log.critical("Accept failed, shutting down: %s", e)
                self._fatal = e
                self._shutdown.set()
                break

            try:
                transport = LineTransport(conn)
            except OSError:
                self.log.debug("Connection dropped before setup", exc_info=True)
                conn.close()
                continue

            self._admit(transport)

    def _admit(self, transport: LineTransport) -> None:
        max_clients = int(self.config.max_clients)
        with self._conn_lock:
            in_use = len(self._sessions) + len(self._pending)
            full = in_use >= max_clients
            if not full or self.config.client_overflow != OVERFLOW_REJECT:
                self._pending.add(transport)
                queued = full
            else:
                queued = False

        if full and not queued:
            self.stats.inc("rejected")
            self.log.warning("Rejecting connection peer=%s: server full", transport.peer)
            try:
                transport.write_line(SERVER_FULL)
            except OSError:
                pass
            transport.close()
            return

        if queued:
            self.log.info("Queueing connection peer=%s: server busy", transport.peer)
            try:
                transport.write_line(SERVER_BUSY)
            except OSError:
                pass

        if self._executor is None:
            return
        try:
            self._executor.submit(self._serve_connection, transport)
        except RuntimeError:
            # Executor already shut down.
            with self._conn_lock:
                self._pending.discard(transport)
            transport.close()

    def _serve_connection(self, transport: LineTransport) -> None:
        if self._shutdown.is_set():
            with self._conn_lock:
                self._pending.discard(transport)
            transport.close()
            return

        session = self.open_session(transport)
        reason = "eof"
        try:
            while not session.disconnected:
                line = transport.read_line()
                if line is None:
                    break
                self.handle_line(session, line)
        except (OSError, ValueError) as e:
            reason = "error"
            self.log.debug("Read failed session=%s peer=%s err=%s", session.id, session.peer, e)
        except Exception:
            reason = "error"
            self.log.exception("Connection handler failed session=%s", session.id)
        finally:
            self.disconnect(session, reason=reason)

    def open_session(self, transport: Transport) -> Session:
        """Create, track and welcome a session for an accepted transport."""
        session = Session(
            transport,
            outbox_max_lines=int(self.config.outbox_max_lines),
            outbox_full_policy=self.config.outbox_full_policy,
            on_overflow=transport.shutdown,
        )
        with self._conn_lock:
            self._pending.discard(transport)
            accepted = not self._stopped
            if accepted:
                self._sessions[session.id] = session
        if not accepted:
            session.mark_disconnected()
            transport.close()
            return session

        session.outbox.start()
        self.stats.inc("connections")

        session.send(WELCOME)
        session.send(WELCOME_HINT)
        if self.config.greeting:
            session.send_lines(str(self.config.greeting).splitlines())

        self.log.info("Connection opened session=%s peer=%s", session.id, session.peer)
        return session

    def handle_line(self, session: Session, line: str) -> None:
        self.stats.inc("lines_in")
        self.command_handler.handle_line(session, line)

    def disconnect(
        self,
        session: Session,
        *,
        farewell: str | None = None,
        reason: str = "disconnect",
    ) -> bool:
        """Tear a session down. Only the first call for a session does anything."""
        if not self._release(session, farewell):
            return False
        deadline = time.monotonic() + float(self.config.drain_timeout_s)
        self._close_released(session, deadline, reason)
        return True

    def _release(self, session: Session, farewell: str | None) -> bool:
        """Claim the session, free its name and stop its outbox."""
        if not session.mark_disconnected():
            return False

        if farewell:
            session.send(farewell)

        nick = self.registry.unregister_session(session)
        if nick is not None:
            self.router.broadcast_all(LEFT.format(nick=nick))

        session.outbox.stop()
        return True

    def _close_released(self, session: Session, deadline: float, reason: str) -> None:
        remaining = max(0.0, deadline - time.monotonic())
        if not session.outbox.join(timeout=remaining):
            self.log.debug("Outbox did not drain session=%s", session.id)
            session.transport.shutdown()
        session.transport.close()

        with self._conn_lock:
            self._sessions.pop(session.id, None)
        self.stats.inc("disconnects")

        self.log.info(
            "Connection closed session=%s nick=%r peer=%s reason=%s",
            session.id,
            session.nick,
            session.peer,
            reason,
        )
