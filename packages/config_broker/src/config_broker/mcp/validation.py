"""Shape checks for canonical MCP server specs."""

from __future__ import annotations

from typing import Any

from config_broker.errors import ValidationError

SERVER_TYPES = ("stdio", "http", "sse")

# Keys that belong to the broker's UI rather than the server spec itself.
MCP_UI_KEYS = ("enabled", "source", "id", "name", "description", "tags", "homepage", "docs")


def server_type(spec: dict[str, Any]) -> str:
    value = spec.get("type")
    return value if isinstance(value, str) and value else "stdio"


def _require_string(spec: dict[str, Any], field: str, kind: str) -> None:
    value = spec.get(field)
    if not isinstance(value, str) or not value.strip():
        msg = f"{kind} MCP server requires a non-empty string '{field}'"
        raise ValidationError(msg, details={"field": field})


def validate_server_spec(spec: Any) -> None:
    """Raise ValidationError unless ``spec`` is a usable server definition.

    ``type`` defaults to ``stdio``, which needs ``command``; ``http`` and
    ``sse`` need ``url``.
    """
    if not isinstance(spec, dict):
        msg = "MCP server definition must be a JSON object"
        raise ValidationError(msg)
    kind = server_type(spec)
    if kind == "stdio":
        _require_string(spec, "command", "stdio")
    elif kind in ("http", "sse"):
        _require_string(spec, "url", kind)
    else:
        msg = f"Unsupported MCP server type: {kind!r}"
        raise ValidationError(msg, details={"type": kind})


def extract_server_spec(entry: Any) -> dict[str, Any]:
    """Return the server definition from a live entry that may wrap it under ``server``."""
    if isinstance(entry, dict) and isinstance(entry.get("server"), dict):
        return entry["server"]
    if not isinstance(entry, dict):
        msg = "MCP server entry must be a JSON object"
        raise ValidationError(msg)
    return entry
