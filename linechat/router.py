from __future__ import annotations

import enum
import logging

from .constants import CHAT_FORMAT, PM_FORMAT
from .registry import SessionRegistry
from .stats import StatsManager


class Delivery(enum.Enum):
    DELIVERED = "delivered"
    NOT_FOUND = "not_found"


class MessageRouter:
    """
    Delivers lines to sessions by enqueuing onto their outboxes.

    Recipients are resolved through the registry at call time; a broadcast
    goes to the sessions registered when it started, not to later joiners.
    """

    def __init__(self, registry: SessionRegistry, stats: StatsManager | None = None) -> None:
        self.registry = registry
        self.stats = stats
        self.log = logging.getLogger("linechat.router")

    def _inc(self, key: str, delta: int = 1) -> None:
        if self.stats is not None:
            self.stats.inc(key, delta)

    def broadcast_all(self, line: str) -> int:
        recipients = self.registry.sessions()
        delivered = 0
        for session in recipients:
            if session.send(line):
                delivered += 1
            else:
                self._inc("outbox_dropped")
        self._inc("broadcasts")
        self._inc("deliveries", delivered)
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "Broadcast recipients=%s delivered=%s chars=%s",
                len(recipients),
                delivered,
                len(line),
            )
        return delivered

    def send_to(self, nickname: str, line: str) -> Delivery:
        target = self.registry.lookup(nickname)
        if target is None:
            return Delivery.NOT_FOUND
        if target.send(line):
            self._inc("deliveries")
        else:
            self._inc("outbox_dropped")
        return Delivery.DELIVERED

    def chat(self, sender: str, body: str) -> int:
        return self.broadcast_all(CHAT_FORMAT.format(sender=sender, body=body))

    def private(self, sender: str, target: str, body: str) -> Delivery:
        result = self.send_to(target, PM_FORMAT.format(sender=sender, body=body))
        if result is Delivery.DELIVERED:
            self._inc("pms")
        else:
            self._inc("pms_not_found")
        self.log.debug("PM sender=%r target=%r result=%s", sender, target, result.value)
        return result
