from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import ServerRuntimeConfig

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"

# Loggers that emit a debug record per chat line or per delivered line.
TRAFFIC_LOGGERS = ("linechat.router", "linechat.outbox")


def resolve_level(value: str | int) -> int:
    """Map a level name (or number) to a logging level; ValueError if unknown."""
    if isinstance(value, int):
        return value
    text = str(value).strip().upper()
    levels = logging.getLevelNamesMapping()
    if text in levels:
        return levels[text]
    if text.isdigit():
        return int(text)
    raise ValueError(f"unknown log level {value!r}")


def configure_logging(
    cfg: ServerRuntimeConfig,
    *,
    override_level: str | None = None,
    override_file: str | None = None,
) -> None:
    """Install linechatd's handlers on the root logger.

    Per-line routing and delivery records stay at INFO and above unless
    ``log_traffic`` is set, so DEBUG shows connection lifecycle without one
    record per chat message. Calling this again replaces earlier handlers.
    """

    level = resolve_level(override_level or cfg.log_level)

    log_file = override_file if override_file is not None else cfg.log_file
    handlers: list[logging.Handler] = []
    if cfg.log_console:
        handlers.append(logging.StreamHandler())
    if log_file and log_file.strip():
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    formatter = logging.Formatter(
        fmt=cfg.log_format.strip() or DEFAULT_LOG_FORMAT,
        datefmt=cfg.log_datefmt or None,
    )

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)
    root.setLevel(level)

    traffic_level = logging.NOTSET if cfg.log_traffic else max(level, logging.INFO)
    for name in TRAFFIC_LOGGERS:
        logging.getLogger(name).setLevel(traffic_level)

    logging.captureWarnings(True)
