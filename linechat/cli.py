from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path

from .config import (
    ServerRuntimeConfig,
    apply_config_data,
    default_config_path,
    load_toml,
    validate_config,
)
from .constants import UNKNOWN_BROADCAST, UNKNOWN_REJECT
from .logging_config import configure_logging
from .service import ChatService


def _write_default_config(config_path: str) -> None:
    Path(config_path).parent.mkdir(parents=True, exist_ok=True)

    d = ServerRuntimeConfig()
    content = f"""# linechatd configuration (TOML)
#
# This file was created on first run. Command-line flags override it.

[server]

# Listening address.
host = {d.host!r}
port = {d.port}
backlog = {d.backlog}

# Connections served at once. Extra connections either wait for a free
# slot ("queue") or are told the server is full and closed ("reject").
max_clients = {d.max_clients}
client_overflow = {d.client_overflow!r}

# Per-client outbound queue. 0 means unbounded (no message loss, but a
# client that never reads can grow it without limit). When bounded and
# full, "drop" discards new lines and "disconnect" drops the slow client.
# Replies count too: welcome lines, /help and a long /list must fit.
outbox_max_lines = {d.outbox_max_lines}
outbox_full_policy = {d.outbox_full_policy!r}

# Seconds to wait for queued lines to be written when a client leaves.
drain_timeout_s = {d.drain_timeout_s}

# Unrecognized /commands: "broadcast" sends them as chat, "reject" replies
# with an error to the sender only.
unknown_commands = {d.unknown_commands!r}

# Maximum accepted nickname length (characters). 0 disables the limit.
nick_max_chars = {d.nick_max_chars}

# Optional text sent to every client after the welcome lines.
greeting = ""

[logging]

# Log level for linechatd.
level = {d.log_level!r}

# Log to stderr.
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = {d.log_format!r}
datefmt = ""

# Per-line debug records from message routing and delivery.
traffic = false
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="linechatd", description="Run a linechat server")

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument("--host", default=None, help="Address to listen on")
    p.add_argument("--port", type=int, default=None, help="TCP port to listen on")
    p.add_argument(
        "--max-clients",
        type=int,
        default=None,
        help="Maximum number of concurrently served connections",
    )
    p.add_argument(
        "--greeting",
        default=None,
        help="Text sent to each client after the welcome lines",
    )
    p.add_argument(
        "--unknown-commands",
        choices=(UNKNOWN_BROADCAST, UNKNOWN_REJECT),
        default=None,
        help="How to treat unrecognized /commands",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def build_config(args: argparse.Namespace) -> ServerRuntimeConfig:
    config_path = str(args.config) if args.config else None
    cfg = ServerRuntimeConfig(config_path=config_path)

    if config_path and os.path.exists(config_path):
        cfg = apply_config_data(cfg, load_toml(config_path))

    if args.host is not None:
        cfg = replace(cfg, host=str(args.host))
    if args.port is not None:
        cfg = replace(cfg, port=int(args.port))
    if args.max_clients is not None:
        cfg = replace(cfg, max_clients=int(args.max_clients))
    if args.greeting is not None:
        cfg = replace(cfg, greeting=args.greeting or None)
    if args.unknown_commands is not None:
        cfg = replace(cfg, unknown_commands=args.unknown_commands)
    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)

    validate_config(cfg)
    return cfg


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    if config_path and not os.path.exists(config_path):
        _write_default_config(config_path)
        print(f"Created default linechatd config: {config_path}", file=sys.stderr)

    try:
        cfg = build_config(args)
    except (OSError, ValueError) as e:
        print(f"linechatd: bad configuration: {e}", file=sys.stderr)
        raise SystemExit(2)

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    svc = ChatService(cfg)
    try:
        svc.start()
    except OSError as e:
        svc.log.critical("Cannot listen on %s:%s: %s", cfg.host, cfg.port, e)
        raise SystemExit(1)

    try:
        svc.run_forever()
    except RuntimeError:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
