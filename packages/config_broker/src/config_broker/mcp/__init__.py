"""MCP server projection into each application's live files."""

from config_broker.mcp.codex import read_codex_servers, sync_enabled_to_codex
from config_broker.mcp.targets import MCP_TARGETS, get_target, strip_ui_keys
from config_broker.mcp.validation import validate_server_spec

__all__ = [
    "MCP_TARGETS",
    "get_target",
    "read_codex_servers",
    "strip_ui_keys",
    "sync_enabled_to_codex",
    "validate_server_spec",
]
