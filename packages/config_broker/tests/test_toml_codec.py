import logging
import tomllib

import pytest

from config_broker.adapters.toml_file import json_server_to_toml_table, toml_table_to_server
from config_broker.errors import FormatError
from config_broker.mcp.codex import (
    read_codex_servers,
    remove_from_codex,
    sync_enabled_to_codex,
    sync_single_to_codex,
)

CODEX_CONFIG = """\
# keep this comment
model = "o3"

[other]
key = "value"

[mcp.servers.x]
command = "old"
"""


def test_sync_replaces_legacy_table_and_keeps_foreign_ones(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(CODEX_CONFIG, encoding="utf-8")

    sync_enabled_to_codex(path, {"y": {"command": "run-y", "args": ["--fast"], "env": {"K": "V"}}})

    text = path.read_text(encoding="utf-8")
    data = tomllib.loads(text)
    assert "# keep this comment" in text
    assert data["model"] == "o3"
    assert data["other"] == {"key": "value"}
    assert "mcp" not in data
    assert data["mcp_servers"]["y"] == {
        "type": "stdio",
        "command": "run-y",
        "args": ["--fast"],
        "env": {"K": "V"},
    }


def test_sync_with_no_servers_drops_the_table(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('model = "o3"\n\n[mcp_servers.a]\ncommand = "a"\n', encoding="utf-8")

    sync_enabled_to_codex(path, {})

    assert tomllib.loads(path.read_text(encoding="utf-8")) == {"model": "o3"}


def test_sync_refuses_to_overwrite_invalid_toml(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("model = \n[broken", encoding="utf-8")

    with pytest.raises(FormatError):
        sync_enabled_to_codex(path, {"y": {"command": "y"}})

    assert path.read_text(encoding="utf-8") == "model = \n[broken"


def test_single_server_edits_leave_siblings_alone(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[mcp_servers.manual]\ncommand = "by-hand"\n', encoding="utf-8")

    sync_single_to_codex(path, "fs", {"command": "fs-server"})
    servers = read_codex_servers(path)
    assert set(servers) == {"manual", "fs"}

    remove_from_codex(path, "fs")
    assert set(read_codex_servers(path)) == {"manual"}


def test_read_prefers_current_location(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        '[mcp.servers.a]\ncommand = "legacy"\n\n[mcp.servers.b]\ncommand = "only-legacy"\n'
        '\n[mcp_servers.a]\ncommand = "current"\n',
        encoding="utf-8",
    )

    servers = read_codex_servers(path)

    assert servers["a"]["command"] == "current"
    assert servers["b"]["command"] == "only-legacy"


def test_network_server_headers_map_both_ways() -> None:
    table = json_server_to_toml_table(
        "remote", {"type": "http", "url": "https://mcp.example.com", "headers": {"Authorization": "Bearer t"}}
    )
    plain = table.unwrap()
    assert plain["http_headers"] == {"Authorization": "Bearer t"}

    assert toml_table_to_server("remote", plain) == {
        "type": "http",
        "url": "https://mcp.example.com",
        "headers": {"Authorization": "Bearer t"},
    }


def test_extra_fields_pass_through_and_unsupported_shapes_are_dropped(caplog) -> None:
    # Lossy on purpose: anything TOML cannot hold cleanly is logged and dropped.
    spec = {
        "command": "srv",
        "startup_timeout_sec": 30,
        "enabled_tools": ["read", "write"],
        "mixed": ["a", 1],
        "nested": {"a": {"b": 1}},
        "nothing": None,
    }

    with caplog.at_level(logging.WARNING):
        plain = json_server_to_toml_table("srv", spec).unwrap()

    assert plain["startup_timeout_sec"] == 30
    assert plain["enabled_tools"] == ["read", "write"]
    for dropped in ("mixed", "nested", "nothing"):
        assert dropped not in plain
    assert "Dropping" in caplog.text


@pytest.mark.parametrize(
    "text",
    ['mcp = "legacy-flag"\n', "mcp_servers = 1\n", "[mcp]\nservers = [1, 2]\n"],
)
def test_read_ignores_non_table_server_locations(tmp_path, caplog, text) -> None:
    path = tmp_path / "config.toml"
    path.write_text(text, encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        assert read_codex_servers(path) == {}

    assert "non-table" in caplog.text


def test_single_server_replaces_scalar_servers_value(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('model = "o3"\nmcp_servers = 1\n', encoding="utf-8")

    sync_single_to_codex(path, "fs", {"command": "fs-server"})

    data = tomllib.loads(path.read_text(encoding="utf-8"))
    assert data["model"] == "o3"
    assert data["mcp_servers"]["fs"]["command"] == "fs-server"
