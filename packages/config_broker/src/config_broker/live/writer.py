"""Per-application live file writers and readers.

``write_live_settings`` maps a typed provider payload onto the exact files an
application reads; ``read_live_settings`` is the reverse and is what drift
read-back stores onto the provider record after every write.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path  # noqa: TC003 (needed at runtime)
from typing import Any

from config_broker.adapters.env_file import merge_env, read_env_file, write_env_file
from config_broker.adapters.json_file import read_json_object, write_json_file
from config_broker.adapters.toml_file import parse_toml_document
from config_broker.config.paths import LivePaths  # noqa: TC001 (needed at runtime)
from config_broker.errors import NotFoundError
from config_broker.mcp.codex import sync_enabled_to_codex
from config_broker.models.apps import AppType
from config_broker.models.live import (
    ClaudeSettings,
    CodexSettings,
    GeminiSettings,
    GrokSettings,
    LiveSettings,
    QwenSettings,
)
from config_broker.utils import atomic_write_text, read_text

logger = logging.getLogger(__name__)

PRIVATE_FILE_MODE = 0o600
MCP_SERVERS_KEY = "mcpServers"

GEMINI_MANAGED_ENV_KEYS = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GOOGLE_GEMINI_BASE_URL",
    "GEMINI_MODEL",
)
GEMINI_AUTH_OAUTH = "oauth-personal"
GEMINI_AUTH_API_KEY = "gemini-api-key"

ServerMap = Mapping[str, Mapping[str, Any]]


def _missing(app: AppType, path: Any) -> NotFoundError:
    msg = f"{app.value} live configuration not found: {path}"
    return NotFoundError(msg, details={"app": app.value, "path": str(path)})


def _preserve_mcp(document: dict[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    """Keep the live ``mcpServers`` block, which MCP projection owns."""
    if MCP_SERVERS_KEY in existing:
        document[MCP_SERVERS_KEY] = existing[MCP_SERVERS_KEY]
    return document


def _write_claude(settings: ClaudeSettings, paths: LivePaths, _servers: ServerMap) -> None:
    write_json_file(paths.claude_settings, settings.to_payload())


def _write_codex(settings: CodexSettings, paths: LivePaths, servers: ServerMap) -> None:
    write_json_file(paths.codex_auth, settings.auth, mode=PRIVATE_FILE_MODE)
    atomic_write_text(paths.codex_config, settings.config or "")
    sync_enabled_to_codex(paths.codex_config, servers)


def _write_gemini(settings: GeminiSettings, paths: LivePaths, _servers: ServerMap) -> None:
    api_key = settings.api_key
    managed = dict(settings.env) if api_key else {}
    merged = merge_env(read_env_file(paths.gemini_env), managed, GEMINI_MANAGED_ENV_KEYS)
    write_env_file(paths.gemini_env, merged)

    document = read_json_object(paths.gemini_settings)
    if settings.config is not None:
        overlay = {k: v for k, v in settings.config.items() if k != MCP_SERVERS_KEY}
        document.update(overlay)
    security = document.setdefault("security", {})
    if not isinstance(security, dict):
        security = document["security"] = {}
    auth = security.setdefault("auth", {})
    if not isinstance(auth, dict):
        auth = security["auth"] = {}
    auth["selectedType"] = GEMINI_AUTH_API_KEY if api_key else GEMINI_AUTH_OAUTH
    write_json_file(paths.gemini_settings, document)


def _write_grok(settings: GrokSettings, paths: LivePaths, _servers: ServerMap) -> None:
    existing = read_json_object(paths.grok_settings)
    write_json_file(paths.grok_settings, _preserve_mcp(settings.to_payload(), existing))


def _write_qwen(settings: QwenSettings, paths: LivePaths, _servers: ServerMap) -> None:
    existing = read_json_object(paths.qwen_settings)
    write_json_file(
        paths.qwen_settings,
        _preserve_mcp(settings.to_payload(), existing),
        mode=PRIVATE_FILE_MODE,
    )


_WRITERS: dict[AppType, Callable[[Any, LivePaths, ServerMap], None]] = {
    AppType.CLAUDE: _write_claude,
    AppType.CODEX: _write_codex,
    AppType.GEMINI: _write_gemini,
    AppType.GROK: _write_grok,
    AppType.QWEN: _write_qwen,
}


def write_live_settings(
    settings: LiveSettings,
    paths: LivePaths,
    *,
    codex_servers: ServerMap | None = None,
) -> None:
    """Write ``settings`` to its application's live files.

    Args:
        settings: Typed payload; its class decides the target application.
        paths: Resolved live file locations.
        codex_servers: Enabled Codex MCP servers, re-applied after
            ``config.toml`` is replaced.
    """
    _WRITERS[settings.app](settings, paths, codex_servers or {})
    logger.info("Wrote %s live configuration", settings.app.value)


def primary_live_file(app: AppType, paths: LivePaths) -> Path:
    """The file whose presence means ``app`` has a live configuration."""
    return {
        AppType.CLAUDE: paths.claude_settings,
        AppType.CODEX: paths.codex_auth,
        AppType.GEMINI: paths.gemini_env,
        AppType.GROK: paths.grok_settings,
        AppType.QWEN: paths.qwen_settings,
    }[app]


def live_config_exists(app: AppType, paths: LivePaths) -> bool:
    return primary_live_file(app, paths).exists()


def read_live_settings(app: AppType, paths: LivePaths) -> dict[str, Any]:
    """Read the live representation of ``app`` as a provider payload.

    Raises:
        NotFoundError: If the primary live file does not exist.
        FormatError: If a live file cannot be parsed.
    """
    primary = primary_live_file(app, paths)
    if not primary.exists():
        raise _missing(app, primary)

    if app is AppType.CODEX:
        config = ""
        if paths.codex_config.exists():
            config = read_text(paths.codex_config)
            parse_toml_document(config, paths.codex_config)
        return {"auth": read_json_object(paths.codex_auth), "config": config}
    if app is AppType.GEMINI:
        return {
            "env": read_env_file(paths.gemini_env),
            "config": read_json_object(paths.gemini_settings),
        }
    return read_json_object(primary)
