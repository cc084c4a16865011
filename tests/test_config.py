import logging
from dataclasses import replace

import pytest

from linechat import cli
from linechat.config import (
    ServerRuntimeConfig,
    apply_config_data,
    load_toml,
    validate_config,
)
from linechat.logging_config import TRAFFIC_LOGGERS, configure_logging, resolve_level


def test_apply_config_data_reads_tables() -> None:
    base = ServerRuntimeConfig(config_path="/etc/linechatd.toml")
    data = {
        "server": {"port": 7000, "max_clients": 5, "greeting": "", "config_path": "/tmp/x"},
        "logging": {"level": "DEBUG", "file": "", "console": False},
        "not_a_setting": 1,
    }
    cfg = apply_config_data(base, data)

    assert cfg.port == 7000
    assert cfg.max_clients == 5
    assert cfg.greeting is None
    assert cfg.log_level == "DEBUG"
    assert cfg.log_file is None
    assert cfg.log_console is False
    assert cfg.config_path == "/etc/linechatd.toml"


def test_apply_config_data_without_updates_returns_base() -> None:
    base = ServerRuntimeConfig()
    assert apply_config_data(base, {}) is base


@pytest.mark.parametrize(
    "changes",
    [
        {"port": 70000},
        {"max_clients": 0},
        {"outbox_max_lines": -1},
        {"drain_timeout_s": -1.0},
        {"client_overflow": "maybe"},
        {"outbox_full_policy": "block"},
        {"unknown_commands": "ignore"},
    ],
)
def test_validate_config_rejects_bad_values(changes) -> None:
    with pytest.raises(ValueError):
        validate_config(replace(ServerRuntimeConfig(), **changes))


def test_default_config_file_loads_to_defaults(tmp_path) -> None:
    path = tmp_path / "conf" / "linechatd.toml"
    cli._write_default_config(str(path))

    cfg = apply_config_data(ServerRuntimeConfig(), load_toml(str(path)))
    assert cfg == ServerRuntimeConfig()


def test_cli_flags_override_file(tmp_path) -> None:
    path = tmp_path / "linechatd.toml"
    path.write_text('[server]\nport = 7000\nhost = "127.0.0.1"\n', encoding="utf-8")

    args = cli._build_arg_parser().parse_args(
        ["--config", str(path), "--port", "7001", "--unknown-commands", "reject"]
    )
    cfg = cli.build_config(args)
    assert cfg.host == "127.0.0.1"
    assert cfg.port == 7001
    assert cfg.unknown_commands == "reject"
    assert cfg.config_path == str(path)


def test_cli_rejects_invalid_file_values(tmp_path) -> None:
    path = tmp_path / "linechatd.toml"
    path.write_text('[server]\noutbox_full_policy = "block"\n', encoding="utf-8")
    args = cli._build_arg_parser().parse_args(["--config", str(path)])
    with pytest.raises(ValueError):
        cli.build_config(args)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    saved_traffic = {name: logging.getLogger(name).level for name in TRAFFIC_LOGGERS}
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in saved_handlers:
        root.addHandler(h)
    root.setLevel(saved_level)
    for name, level in saved_traffic.items():
        logging.getLogger(name).setLevel(level)


def test_configure_logging_writes_file(tmp_path, restore_logging) -> None:
    log_path = tmp_path / "logs" / "linechatd.log"
    cfg = ServerRuntimeConfig(log_console=False, log_file=str(log_path), log_level="DEBUG")

    configure_logging(cfg)
    logging.getLogger("linechat.server").debug("session lifecycle")
    logging.getLogger("linechat.router").debug("per-line traffic")
    for h in restore_logging.handlers:
        h.flush()

    text = log_path.read_text(encoding="utf-8")
    assert "session lifecycle" in text
    assert "per-line traffic" not in text
    assert restore_logging.level == logging.DEBUG


def test_traffic_logging_can_be_enabled(tmp_path, restore_logging) -> None:
    log_path = tmp_path / "linechatd.log"
    cfg = ServerRuntimeConfig(
        log_console=False, log_file=str(log_path), log_level="DEBUG", log_traffic=True
    )

    configure_logging(cfg)
    logging.getLogger("linechat.outbox").debug("delivered a line")
    for h in restore_logging.handlers:
        h.flush()

    assert "delivered a line" in log_path.read_text(encoding="utf-8")


def test_log_level_names() -> None:
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(" Warn ") == logging.WARNING
    assert resolve_level("15") == 15
    with pytest.raises(ValueError):
        resolve_level("chatty")
    with pytest.raises(ValueError):
        validate_config(ServerRuntimeConfig(log_level="chatty"))


def test_logging_table_maps_traffic_flag() -> None:
    cfg = apply_config_data(ServerRuntimeConfig(), {"logging": {"traffic": True}})
    assert cfg.log_traffic is True
