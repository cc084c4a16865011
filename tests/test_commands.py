import pytest

from linechat.commands import (
    CommandError,
    Help,
    ListUsers,
    PlainChat,
    PrivateMessage,
    Quit,
    SetNick,
    UnknownCommand,
    parse_command,
)
from linechat.constants import NICK_USAGE, PM_USAGE


def test_blank_lines_parse_to_none() -> None:
    assert parse_command("") is None
    assert parse_command("   \t ") is None


def test_plain_text_is_chat() -> None:
    assert parse_command("  hello there  ") == PlainChat("hello there")


@pytest.mark.parametrize(
    "line,expected",
    [
        ("/nick alice", SetNick("alice")),
        ("/NICK   alice  ", SetNick("alice")),
        ("/list", ListUsers()),
        ("/List extra words", ListUsers()),
        ("/quit", Quit()),
        ("/QUIT", Quit()),
        ("/help", Help()),
    ],
)
def test_known_commands(line: str, expected) -> None:
    assert parse_command(line) == expected


def test_pm_keeps_spaces_in_body() -> None:
    assert parse_command("/pm bob hi there,  bob") == PrivateMessage("bob", "hi there,  bob")


def test_pm_keyword_is_case_insensitive() -> None:
    assert parse_command("/Pm bob hi") == PrivateMessage("bob", "hi")


@pytest.mark.parametrize("line", ["/nick", "/nick   "])
def test_nick_without_name_is_malformed(line: str) -> None:
    with pytest.raises(CommandError) as exc:
        parse_command(line)
    assert exc.value.usage == NICK_USAGE


@pytest.mark.parametrize("line", ["/pm", "/pm bob", "/pm   bob   "])
def test_pm_needs_target_and_body(line: str) -> None:
    with pytest.raises(CommandError) as exc:
        parse_command(line)
    assert exc.value.usage == PM_USAGE


def test_unknown_slash_command_keeps_full_line() -> None:
    assert parse_command("/shrug  oh well") == UnknownCommand("/shrug", "/shrug  oh well")


def test_nick_prefix_is_not_nick_command() -> None:
    assert parse_command("/nickname bob") == UnknownCommand("/nickname", "/nickname bob")


def test_pm_body_starts_after_the_whitespace_run() -> None:
    assert parse_command("/pm bob    indented") == PrivateMessage("bob", "indented")
