from __future__ import annotations

import os
from typing import Any


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def normalize_nick(value: Any, *, max_chars: int = 32) -> str | None:
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None

    if max_chars > 0 and len(s) > int(max_chars):
        return None

    # Nicknames are single tokens so /pm can address them.
    if any(ch.isspace() for ch in s):
        return None

    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in s):
        return None

    return s


def fmt_peer(addr: Any) -> str:
    if isinstance(addr, tuple) and len(addr) >= 2:
        host, port = addr[0], addr[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    if addr:
        return str(addr)
    return "-"
