from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

from .constants import (
    DEFAULT_HOST,
    DEFAULT_MAX_CLIENTS,
    DEFAULT_PORT,
    OUTBOX_DISCONNECT,
    OUTBOX_DROP,
    OVERFLOW_QUEUE,
    OVERFLOW_REJECT,
    UNKNOWN_BROADCAST,
    UNKNOWN_REJECT,
)
from .logging_config import DEFAULT_LOG_FORMAT, resolve_level


def default_config_path() -> Path:
    """linechatd.toml under $LINECHAT_HOME, or ~/.linechat by default."""
    home = os.environ.get("LINECHAT_HOME")
    base = Path(home) if home else Path.home() / ".linechat"
    return base / "linechatd.toml"


@dataclass(frozen=True)
class ServerRuntimeConfig:
    config_path: str | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    backlog: int = 50
    max_clients: int = DEFAULT_MAX_CLIENTS
    client_overflow: str = OVERFLOW_QUEUE
    # 0 means unbounded: no message loss, memory grows with a stalled reader.
    # A bound also applies to replies such as /list.
    outbox_max_lines: int = 0
    outbox_full_policy: str = OUTBOX_DROP
    drain_timeout_s: float = 2.0
    unknown_commands: str = UNKNOWN_BROADCAST
    nick_max_chars: int = 32
    greeting: str | None = None
    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = DEFAULT_LOG_FORMAT
    log_datefmt: str | None = None
    # Per-line debug records from the router and outboxes.
    log_traffic: bool = False


def load_toml(path: str) -> dict:
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(base: ServerRuntimeConfig, data: dict) -> ServerRuntimeConfig:
    server = data.get("server") if isinstance(data, dict) else None
    if isinstance(server, dict):
        data = {**data, **server}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped: dict[str, object] = {}
        for key in ("level", "console", "file", "format", "datefmt", "traffic"):
            if key in log_table:
                mapped[f"log_{key}"] = log_table.get(key)
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # This identifies where the file came from; do not let the file override it.
    allowed.discard("config_path")
    updates = {k: v for k, v in data.items() if k in allowed}

    for key in ("greeting", "log_file", "log_datefmt"):
        if key in updates and updates[key] == "":
            updates[key] = None

    return replace(base, **updates) if updates else base


def validate_config(cfg: ServerRuntimeConfig) -> None:
    if not isinstance(cfg.port, int) or not 0 <= cfg.port <= 65535:
        raise ValueError(f"port out of range: {cfg.port!r}")
    if int(cfg.max_clients) < 1:
        raise ValueError("max_clients must be at least 1")
    if int(cfg.backlog) < 0:
        raise ValueError("backlog must not be negative")
    if int(cfg.outbox_max_lines) < 0:
        raise ValueError("outbox_max_lines must not be negative")
    if float(cfg.drain_timeout_s) < 0:
        raise ValueError("drain_timeout_s must not be negative")
    if cfg.client_overflow not in (OVERFLOW_QUEUE, OVERFLOW_REJECT):
        raise ValueError(f"unknown client_overflow policy {cfg.client_overflow!r}")
    if cfg.outbox_full_policy not in (OUTBOX_DROP, OUTBOX_DISCONNECT):
        raise ValueError(f"unknown outbox_full_policy {cfg.outbox_full_policy!r}")
    if cfg.unknown_commands not in (UNKNOWN_BROADCAST, UNKNOWN_REJECT):
        raise ValueError(f"unknown unknown_commands policy {cfg.unknown_commands!r}")
    resolve_level(cfg.log_level)


def describe_config(cfg: ServerRuntimeConfig) -> dict[str, Any]:
    """Policy-relevant settings, for the startup log line."""
    return {
        "max_clients": cfg.max_clients,
        "client_overflow": cfg.client_overflow,
        "outbox_max_lines": cfg.outbox_max_lines,
        "outbox_full_policy": cfg.outbox_full_policy,
        "unknown_commands": cfg.unknown_commands,
        "nick_max_chars": cfg.nick_max_chars,
    }
