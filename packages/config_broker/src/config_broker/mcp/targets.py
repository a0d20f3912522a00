"""Where each application keeps its MCP server list, and how to edit it.

Per-server edits only touch the one entry, so servers added to a live file by
hand or by another tool survive every sync.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path  # noqa: TC003 (needed at runtime)
from typing import Any, Protocol

from config_broker.adapters.json_file import read_json_object, write_json_file
from config_broker.config.paths import LivePaths  # noqa: TC001 (needed at runtime)
from config_broker.mcp.codex import read_codex_servers, remove_from_codex, sync_single_to_codex
from config_broker.mcp.validation import MCP_UI_KEYS
from config_broker.models.apps import AppType

MCP_SERVERS_KEY = "mcpServers"


class McpTarget(Protocol):
    app: AppType

    def read_servers(self, paths: LivePaths) -> dict[str, Any]: ...

    def sync_single(self, paths: LivePaths, server_id: str, spec: Mapping[str, Any]) -> None: ...

    def remove(self, paths: LivePaths, server_id: str) -> None: ...


def strip_ui_keys(spec: Mapping[str, Any]) -> dict[str, Any]:
    """Unwrap a nested ``server`` object and drop broker-only keys."""
    inner = spec.get("server")
    source = inner if isinstance(inner, Mapping) else spec
    return {key: value for key, value in source.items() if key not in MCP_UI_KEYS}


@dataclass(frozen=True)
class JsonMcpTarget:
    """``mcpServers`` object inside a JSON live file."""

    app: AppType
    locate: Callable[[LivePaths], Path]
    strip_ui: bool = False
    file_mode: int | None = None

    def _servers(self, document: dict[str, Any]) -> dict[str, Any]:
        servers = document.get(MCP_SERVERS_KEY)
        return dict(servers) if isinstance(servers, dict) else {}

    def read_servers(self, paths: LivePaths) -> dict[str, Any]:
        return self._servers(read_json_object(self.locate(paths)))

    def sync_single(self, paths: LivePaths, server_id: str, spec: Mapping[str, Any]) -> None:
        path = self.locate(paths)
        document = read_json_object(path)
        servers = self._servers(document)
        servers[server_id] = strip_ui_keys(spec) if self.strip_ui else dict(spec)
        document[MCP_SERVERS_KEY] = servers
        write_json_file(path, document, mode=self.file_mode)

    def remove(self, paths: LivePaths, server_id: str) -> None:
        path = self.locate(paths)
        if not path.exists():
            return
        document = read_json_object(path)
        servers = self._servers(document)
        if server_id not in servers:
            return
        del servers[server_id]
        document[MCP_SERVERS_KEY] = servers
        write_json_file(path, document, mode=self.file_mode)


@dataclass(frozen=True)
class CodexMcpTarget:
    """``[mcp_servers]`` in Codex ``config.toml``."""

    app: AppType = AppType.CODEX

    def read_servers(self, paths: LivePaths) -> dict[str, Any]:
        return read_codex_servers(paths.codex_config)

    def sync_single(self, paths: LivePaths, server_id: str, spec: Mapping[str, Any]) -> None:
        sync_single_to_codex(paths.codex_config, server_id, spec)

    def remove(self, paths: LivePaths, server_id: str) -> None:
        remove_from_codex(paths.codex_config, server_id)


MCP_TARGETS: dict[AppType, McpTarget] = {
    AppType.CLAUDE: JsonMcpTarget(AppType.CLAUDE, lambda p: p.claude_mcp),
    AppType.CODEX: CodexMcpTarget(),
    AppType.GEMINI: JsonMcpTarget(AppType.GEMINI, lambda p: p.gemini_settings),
    AppType.GROK: JsonMcpTarget(AppType.GROK, lambda p: p.grok_settings, strip_ui=True),
    AppType.QWEN: JsonMcpTarget(AppType.QWEN, lambda p: p.qwen_settings, file_mode=0o600),
}


def get_target(app: AppType) -> McpTarget:
    return MCP_TARGETS[app]
