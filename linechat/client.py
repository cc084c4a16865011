"""Terminal client: forwards typed lines to the server and prints replies."""

from __future__ import annotations

import argparse
import logging
import socket
import sys
import threading
import time
from typing import TextIO

from .constants import CMD_QUIT, DEFAULT_PORT
from .transport import LineTransport


class ChatClient:
    def __init__(
        self,
        host: str,
        port: int,
        *,
        out: TextIO | None = None,
        timestamps: bool = False,
        connect_timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.out = out if out is not None else sys.stdout
        self.timestamps = timestamps
        self.connect_timeout = connect_timeout
        self.log = logging.getLogger("linechat.client")

        self._transport: LineTransport | None = None
        self._reader: threading.Thread | None = None
        self._out_lock = threading.Lock()

    def _print(self, text: str) -> None:
        if self.timestamps:
            text = f"[{time.strftime('%H:%M:%S')}] {text}"
        with self._out_lock:
            print(text, file=self.out, flush=True)

    def connect(self) -> None:
        sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        sock.settimeout(None)
        self._transport = LineTransport(sock)
        self._print(f"Connected to {self.host}:{self.port}")
        self._reader = threading.Thread(
            target=self._read_loop, name="linechat-client-reader", daemon=True
        )
        self._reader.start()

    def _read_loop(self) -> None:
        transport = self._transport
        if transport is None:
            return
        try:
            while True:
                line = transport.read_line()
                if line is None:
                    break
                self._print(line)
        except (OSError, ValueError) as e:
            self.log.debug("Read failed: %s", e)
        if not transport.closed:
            self._print("Connection closed by server.")

    def send(self, line: str) -> None:
        if self._transport is None:
            raise RuntimeError("not connected")
        self._transport.write_line(line)

    def run(self, stdin: TextIO | None = None) -> None:
        """Forward lines until /quit, end of input or a lost connection."""
        src = stdin if stdin is not None else sys.stdin
        for raw in src:
            line = raw.rstrip("\r\n")
            try:
                self.send(line)
            except OSError as e:
                self._print(f"Network error: {e}")
                break
            if line.strip().lower() == CMD_QUIT:
                break

    def wait_closed(self, timeout: float | None = None) -> bool:
        """Wait for the server to close the connection."""
        if self._reader is None:
            return True
        self._reader.join(timeout)
        return not self._reader.is_alive()

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="linechat", description="Connect to a linechat server")
    p.add_argument("host", nargs="?", default="127.0.0.1", help="Server address")
    p.add_argument("port", nargs="?", type=int, default=DEFAULT_PORT, help="Server port")
    p.add_argument(
        "--timestamps",
        action="store_true",
        help="Prefix received lines with the local time",
    )
    return p


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    client = ChatClient(args.host, args.port, timestamps=args.timestamps)
    try:
        client.connect()
    except OSError as e:
        print(f"Network error: {e}", file=sys.stderr)
        raise SystemExit(1)

    try:
        client.run()
        # Give the server a moment to send its farewell.
        client.wait_closed(timeout=2.0)
    except KeyboardInterrupt:
        pass
    finally:
        client.close()
        print("Client closed.")


if __name__ == "__main__":
    main()
