"""Tests for CLI argument handling and configuration in huemcp.main."""

import os
import sys

import pytest

from huemcp import main as cli
from huemcp.lib.models import Config, Group, Light


def parse(*argv: str):
    return cli.build_args().parse_args(list(argv))


def test_resolve_config_from_environment():
    config = cli.resolve_config(
        parse("serve"),
        {"HUE_BRIDGE_IP": "192.168.1.2", "HUE_USERNAME": "key", "MCP_PORT": "4000"},
    )

    assert config == Config(bridge_ip="192.168.1.2", username="key", port=4000)


def test_flags_override_environment():
    args = parse(
        "serve",
        "--bridge-ip",
        "10.0.0.5",
        "--username",
        "other",
        "--port",
        "5000",
        "--host",
        "127.0.0.1",
        "--timeout",
        "2.5",
        "--sequential",
        "--allow-overlap",
    )

    config = cli.resolve_config(
        args,
        {"HUE_BRIDGE_IP": "192.168.1.2", "HUE_USERNAME": "key", "MCP_PORT": "4000"},
    )

    assert config.bridge_ip == "10.0.0.5"
    assert config.username == "other"
    assert config.port == 5000
    assert config.host == "127.0.0.1"
    assert config.timeout == 2.5
    assert config.sequential
    assert config.allow_overlap


def test_default_port():
    config = cli.resolve_config(parse("serve"), {"HUE_BRIDGE_IP": "h", "HUE_USERNAME": "u"})

    assert config.port == 3000


def test_missing_bridge_settings_abort():
    with pytest.raises(SystemExit) as exc_info:
        cli.resolve_config(parse("serve"), {"HUE_BRIDGE_IP": "192.168.1.2"})

    assert "HUE_USERNAME" in str(exc_info.value.code)


@pytest.mark.parametrize("value", ["abc", "70000", "-1"])
def test_invalid_port_aborts(value):
    with pytest.raises(SystemExit):
        cli.resolve_config(
            parse("serve"),
            {"HUE_BRIDGE_IP": "h", "HUE_USERNAME": "u", "MCP_PORT": value},
        )


def test_list_command_ignores_server_options():
    config = cli.resolve_config(
        parse("list", "groups"), {"HUE_BRIDGE_IP": "h", "HUE_USERNAME": "u"}
    )

    assert config.port == 3000
    assert not config.sequential


def test_list_command_ignores_bad_port_setting():
    config = cli.resolve_config(
        parse("list", "lights"),
        {"HUE_BRIDGE_IP": "h", "HUE_USERNAME": "u", "MCP_PORT": "not-a-port"},
    )

    assert config.bridge_ip == "h"
    assert config.port == 3000


def test_load_env_reads_file(tmp_path, monkeypatch):
    monkeypatch.delenv("HUE_BRIDGE_IP", raising=False)
    env_file = tmp_path / "bridge.env"
    env_file.write_text("HUE_BRIDGE_IP=10.1.1.1\n", encoding="utf-8")

    cli.load_env(str(env_file))

    assert os.environ["HUE_BRIDGE_IP"] == "10.1.1.1"
    monkeypatch.delenv("HUE_BRIDGE_IP")


def test_load_env_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        cli.load_env(str(tmp_path / "missing.env"))


def test_format_lights_table():
    table = cli.format_resource_table(
        "lights",
        [
            Light(id="1", name="Desk", state={"on": True, "bri": 200}),
            Light(id="2", name="Hall", state={"on": False}),
        ],
    )

    lines = table.splitlines()
    assert lines[0].split() == ["ID", "Name", "On", "Bri"]
    assert lines[2].split() == ["1", "Desk", "yes", "200"]
    assert lines[3].split() == ["2", "Hall", "no", "-"]


def test_format_groups_table():
    table = cli.format_resource_table(
        "groups", [Group(id="4", name="Office", lights=["1", "2"])]
    )

    assert table.splitlines()[2].split() == ["4", "Office", "1,", "2"]


def test_main_reports_missing_settings(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("HUE_BRIDGE_IP", raising=False)
    monkeypatch.delenv("HUE_USERNAME", raising=False)
    monkeypatch.setattr(sys, "argv", ["huemcp", "serve"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1
    assert "HUE_BRIDGE_IP and HUE_USERNAME" in capsys.readouterr().err


def test_main_reports_unreachable_bridge(tmp_path, monkeypatch, capsys):
    async def fail(args, config):
        raise RuntimeError("Connecting to bridge failed after 3 attempts.")

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HUE_BRIDGE_IP", "192.0.2.1")
    monkeypatch.setenv("HUE_USERNAME", "key")
    monkeypatch.setattr(sys, "argv", ["huemcp", "serve"])
    monkeypatch.setattr(cli, "run", fail)

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1
    assert "Operation failed: Connecting to bridge failed" in capsys.readouterr().err
