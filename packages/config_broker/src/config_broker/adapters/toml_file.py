"""TOML documents edited in place with tomlkit.

Only the broker-owned parts of a document are replaced; comments, ordering and
unrelated tables survive a round trip. Server specs convert between the
canonical JSON shape and TOML tables with strongly typed core fields and a
generic passthrough for everything else.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path  # noqa: TC003 (needed at runtime)
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import Table

from config_broker.errors import FormatError

logger = logging.getLogger(__name__)

STDIO_CORE_FIELDS = frozenset({"type", "command", "args", "cwd", "env"})
HTTP_CORE_FIELDS = frozenset({"type", "url", "headers", "http_headers"})
NETWORK_TYPES = ("http", "sse")

_DROPPED = object()


def parse_toml_document(text: str, path: Path) -> tomlkit.TOMLDocument:
    """Parse ``text`` preserving formatting.

    Raises:
        FormatError: If the text is not valid TOML.
    """
    try:
        return tomlkit.parse(text)
    except TOMLKitError as exc:
        raise FormatError(path, str(exc)) from exc


def dumps(document: tomlkit.TOMLDocument) -> str:
    return tomlkit.dumps(document)


def _scalar_kind(value: Any) -> str | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return None


def _passthrough(server_id: str, key: str, value: Any) -> Any:
    """Shared shape check for extra fields in either direction.

    Returns ``_DROPPED`` for null, mixed-type arrays, nested tables and
    anything that is not a scalar.
    """
    if value is None:
        logger.warning("Dropping null field %s on MCP server %s", key, server_id)
        return _DROPPED
    if _scalar_kind(value) is not None:
        return value
    if isinstance(value, list):
        kinds = {_scalar_kind(item) for item in value}
        if len(kinds) > 1 or None in kinds:
            logger.warning("Dropping mixed-type array %s on MCP server %s", key, server_id)
            return _DROPPED
        return list(value)
    if isinstance(value, Mapping):
        if all(isinstance(item, str) for item in value.values()):
            return dict(value)
        logger.warning("Dropping nested table %s on MCP server %s", key, server_id)
        return _DROPPED
    logger.warning(
        "Dropping unsupported %s field %s on MCP server %s", type(value).__name__, key, server_id
    )
    return _DROPPED


def json_value_to_toml_item(server_id: str, key: str, value: Any) -> Any | None:
    """Convert one extra JSON field into a TOML value, or None if unsupported."""
    converted = _passthrough(server_id, key, value)
    if converted is _DROPPED:
        return None
    if isinstance(converted, list):
        array = tomlkit.array()
        array.extend(converted)
        return array
    if isinstance(converted, dict):
        inline = tomlkit.inline_table()
        inline.update(converted)
        return inline
    return converted


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def json_server_to_toml_table(server_id: str, spec: Mapping[str, Any]) -> Table:
    """Render a canonical server spec as a ``[mcp_servers.<id>]`` table."""
    table = tomlkit.table()
    server_type = str(spec.get("type") or "stdio")
    table["type"] = server_type

    if server_type in NETWORK_TYPES:
        core = HTTP_CORE_FIELDS
        if isinstance(spec.get("url"), str):
            table["url"] = spec["url"]
        headers = _string_map(spec.get("headers") or spec.get("http_headers"))
        if headers:
            header_table = tomlkit.table()
            header_table.update(headers)
            table["http_headers"] = header_table
    else:
        core = STDIO_CORE_FIELDS
        if isinstance(spec.get("command"), str):
            table["command"] = spec["command"]
        args = spec.get("args")
        if isinstance(args, list):
            array = tomlkit.array()
            array.extend(str(arg) for arg in args)
            table["args"] = array
        cwd = spec.get("cwd")
        if isinstance(cwd, str) and cwd.strip():
            table["cwd"] = cwd
        env = _string_map(spec.get("env"))
        if env:
            env_table = tomlkit.table()
            env_table.update(env)
            table["env"] = env_table

    for key, value in spec.items():
        if key in core:
            continue
        item = json_value_to_toml_item(server_id, key, value)
        if item is not None:
            table[key] = item
    return table


def toml_table_to_server(server_id: str, table: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a plain (unwrapped) TOML server table back into a JSON spec."""
    server_type = str(table.get("type") or "stdio")
    spec: dict[str, Any] = {"type": server_type}

    if server_type in NETWORK_TYPES:
        core = HTTP_CORE_FIELDS
        if isinstance(table.get("url"), str):
            spec["url"] = table["url"]
        headers = _string_map(table.get("http_headers") or table.get("headers"))
        if headers:
            spec["headers"] = headers
    else:
        core = STDIO_CORE_FIELDS
        if isinstance(table.get("command"), str):
            spec["command"] = table["command"]
        args = table.get("args")
        if isinstance(args, list):
            spec["args"] = [arg for arg in args if isinstance(arg, str)]
        cwd = table.get("cwd")
        if isinstance(cwd, str) and cwd.strip():
            spec["cwd"] = cwd
        env = _string_map(table.get("env"))
        if env:
            spec["env"] = env

    for key, value in table.items():
        if key in core:
            continue
        converted = _passthrough(server_id, key, value)
        if converted is not _DROPPED:
            spec[key] = converted
    return spec
