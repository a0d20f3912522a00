"""Codex ``config.toml`` projection.

The broker owns ``[mcp_servers]``. ``[mcp.servers]`` is an older, incorrect
location that is removed whenever the document is rewritten.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path  # noqa: TC003 (needed at runtime)
from typing import Any

import tomlkit

from config_broker.adapters.toml_file import (
    dumps,
    json_server_to_toml_table,
    parse_toml_document,
    toml_table_to_server,
)
from config_broker.utils import atomic_write_text, read_text

logger = logging.getLogger(__name__)

SERVERS_KEY = "mcp_servers"
LEGACY_PARENT_KEY = "mcp"
LEGACY_SERVERS_KEY = "servers"


def _load_document(path: Path) -> tomlkit.TOMLDocument:
    text = read_text(path) if path.exists() else ""
    return parse_toml_document(text, path)


def _remove_legacy_servers(document: tomlkit.TOMLDocument) -> bool:
    parent = document.get(LEGACY_PARENT_KEY)
    if not isinstance(parent, Mapping) or LEGACY_SERVERS_KEY not in parent:
        return False
    logger.warning("Removing legacy [mcp.servers] table from Codex config")
    del parent[LEGACY_SERVERS_KEY]
    if len(parent) == 0:
        del document[LEGACY_PARENT_KEY]
    return True


def _as_table(value: Any, location: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        logger.warning("Ignoring non-table Codex %s value", location)
        return {}
    return value


def _servers_table(document: tomlkit.TOMLDocument) -> Any:
    table = document.get(SERVERS_KEY)
    if not isinstance(table, Mapping):
        if table is not None:
            logger.warning("Replacing non-table Codex %s value", SERVERS_KEY)
        table = tomlkit.table(is_super_table=True)
        document[SERVERS_KEY] = table
        table = document[SERVERS_KEY]
    return table


def read_codex_servers(path: Path) -> dict[str, dict[str, Any]]:
    """Read servers from both ``[mcp.servers]`` and ``[mcp_servers]``.

    Entries under ``[mcp_servers]`` win when an id appears in both.
    """
    if not path.exists():
        return {}
    data = _load_document(path).unwrap()
    servers: dict[str, dict[str, Any]] = {}
    parent = _as_table(data.get(LEGACY_PARENT_KEY), LEGACY_PARENT_KEY)
    legacy = _as_table(parent.get(LEGACY_SERVERS_KEY), "mcp.servers")
    for source in (legacy, _as_table(data.get(SERVERS_KEY), SERVERS_KEY)):
        for server_id, table in source.items():
            if not isinstance(table, dict):
                logger.warning("Skipping non-table Codex MCP entry %s", server_id)
                continue
            servers[server_id] = toml_table_to_server(server_id, table)
    return servers


def sync_enabled_to_codex(path: Path, servers: Mapping[str, Mapping[str, Any]]) -> None:
    """Replace ``[mcp_servers]`` with exactly ``servers`` (sorted by id).

    Raises:
        FormatError: If the existing file is not valid TOML; nothing is written.
    """
    document = _load_document(path)
    _remove_legacy_servers(document)
    if not servers:
        if SERVERS_KEY in document:
            del document[SERVERS_KEY]
    else:
        table = tomlkit.table(is_super_table=True)
        for server_id in sorted(servers):
            table[server_id] = json_server_to_toml_table(server_id, servers[server_id])
        document[SERVERS_KEY] = table
    atomic_write_text(path, dumps(document))
    logger.debug("Synced %d MCP servers to %s", len(servers), path)


def sync_single_to_codex(path: Path, server_id: str, spec: Mapping[str, Any]) -> None:
    document = _load_document(path)
    _remove_legacy_servers(document)
    _servers_table(document)[server_id] = json_server_to_toml_table(server_id, spec)
    atomic_write_text(path, dumps(document))


def remove_from_codex(path: Path, server_id: str) -> None:
    """Remove one server from either location; a missing file is a no-op."""
    if not path.exists():
        return
    document = _load_document(path)
    changed = False
    parent = document.get(LEGACY_PARENT_KEY)
    if isinstance(parent, Mapping):
        legacy = parent.get(LEGACY_SERVERS_KEY)
        if isinstance(legacy, Mapping) and server_id in legacy:
            del legacy[server_id]
            changed = True
    table = document.get(SERVERS_KEY)
    if isinstance(table, Mapping) and server_id in table:
        del table[server_id]
        if len(table) == 0:
            del document[SERVERS_KEY]
        changed = True
    if changed:
        atomic_write_text(path, dumps(document))
