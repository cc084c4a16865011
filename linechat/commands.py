"""Command parsing and dispatch for linechat connections."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from .constants import (
    CMD_HELP,
    CMD_LIST,
    CMD_NICK,
    CMD_PM,
    CMD_QUIT,
    FAREWELL,
    HELP_TEXT,
    JOINED,
    LIST_END,
    LIST_HEADER,
    LIST_ITEM,
    NEED_NICK,
    NICK_INVALID,
    NICK_SET,
    NICK_TAKEN,
    NICK_UNCHANGED,
    NICK_USAGE,
    PM_USAGE,
    RENAMED,
    UNKNOWN_COMMAND,
    UNKNOWN_REJECT,
    USER_NOT_FOUND,
)
from .registry import NickResult
from .router import Delivery
from .util import normalize_nick

if TYPE_CHECKING:
    from .service import ChatService
    from .session import Session


class CommandError(ValueError):
    """A recognized command with the wrong arguments."""

    def __init__(self, usage: str) -> None:
        super().__init__(usage)
        self.usage = usage


@dataclass(frozen=True)
class SetNick:
    name: str


@dataclass(frozen=True)
class ListUsers:
    pass


@dataclass(frozen=True)
class PrivateMessage:
    target: str
    body: str


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class PlainChat:
    body: str


@dataclass(frozen=True)
class UnknownCommand:
    name: str
    line: str


Command = Union[SetNick, ListUsers, PrivateMessage, Quit, Help, PlainChat, UnknownCommand]


def parse_command(line: str) -> Command | None:
    """Parse one inbound line.

    Returns None for blank input. Raises CommandError when a known command
    is missing required arguments.
    """
    text = line.strip()
    if not text:
        return None

    if not text.startswith("/"):
        return PlainChat(text)

    head, *tail = text.split(None, 1)
    cmd = head.lower()
    rest = tail[0].strip() if tail else ""

    if cmd == CMD_NICK:
        if not rest:
            raise CommandError(NICK_USAGE)
        return SetNick(rest)

    if cmd == CMD_PM:
        parts = rest.split(None, 1)
        if len(parts) < 2:
            raise CommandError(PM_USAGE)
        return PrivateMessage(parts[0], parts[1])

    if cmd == CMD_LIST:
        return ListUsers()

    if cmd == CMD_QUIT:
        return Quit()

    if cmd == CMD_HELP:
        return Help()

    return UnknownCommand(head, text)


class CommandHandler:
    """
    Per-connection state machine over parsed commands.

    A session is UNNAMED until /nick succeeds, NAMED afterwards, and
    DISCONNECTED once the service has torn it down. Replies to the sender
    go straight to its own outbox; everything addressed to others goes
    through the router.
    """

    def __init__(self, service: ChatService) -> None:
        self.service = service
        self.log = logging.getLogger("linechat.commands")

    def handle_line(self, session: Session, line: str) -> None:
        if session.disconnected:
            return

        try:
            cmd = parse_command(line)
        except CommandError as e:
            session.send(e.usage)
            return

        if cmd is None:
            return

        if isinstance(cmd, SetNick):
            self._handle_nick(session, cmd)
        elif isinstance(cmd, ListUsers):
            self._handle_list(session)
        elif isinstance(cmd, PrivateMessage):
            self._handle_pm(session, cmd)
        elif isinstance(cmd, Quit):
            self.service.disconnect(session, farewell=FAREWELL, reason="quit")
        elif isinstance(cmd, Help):
            session.send_lines(HELP_TEXT.splitlines())
        elif isinstance(cmd, UnknownCommand):
            self._handle_unknown(session, cmd)
        else:
            self._handle_chat(session, cmd.body)

    def _handle_nick(self, session: Session, cmd: SetNick) -> None:
        max_chars = int(self.service.config.nick_max_chars)
        desired = normalize_nick(cmd.name, max_chars=max_chars)
        if desired is None:
            session.send(NICK_INVALID.format(max_chars=max_chars))
            return

        old = session.nick
        if old == desired:
            session.send(NICK_UNCHANGED.format(nick=desired))
            return

        result = self.service.registry.rename(old, desired, session)
        if result is NickResult.GONE:
            return
        if result is NickResult.NAME_TAKEN:
            self.service.stats.inc("nick_rejected")
            session.send(NICK_TAKEN)
            return

        self.service.stats.inc("nick_changes")
        self.log.info(
            "Nick set session=%s peer=%s old=%r new=%r", session.id, session.peer, old, desired
        )
        session.send(NICK_SET.format(nick=desired))
        if old is None:
            self.service.router.broadcast_all(JOINED.format(nick=desired))
        else:
            self.service.router.broadcast_all(RENAMED.format(old=old, new=desired))

    def _handle_list(self, session: Session) -> None:
        names = self.service.registry.snapshot()
        lines = [LIST_HEADER]
        lines.extend(LIST_ITEM.format(nick=n) for n in names)
        lines.append(LIST_END)
        session.send_lines(lines)

    def _handle_pm(self, session: Session, cmd: PrivateMessage) -> None:
        sender = session.nick
        if sender is None:
            session.send(NEED_NICK)
            return

        result = self.service.router.private(sender, cmd.target, cmd.body)
        if result is Delivery.NOT_FOUND:
            session.send(USER_NOT_FOUND.format(nick=cmd.target))

    def _handle_unknown(self, session: Session, cmd: UnknownCommand) -> None:
        if self.service.config.unknown_commands == UNKNOWN_REJECT:
            session.send(UNKNOWN_COMMAND.format(command=cmd.name))
            return
        # Unrecognized commands are ordinary chat text.
        self._handle_chat(session, cmd.line)

    def _handle_chat(self, session: Session, body: str) -> None:
        sender = session.nick
        if sender is None:
            session.send(NEED_NICK)
            return
        self.service.router.chat(sender, body)
