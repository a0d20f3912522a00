"""MCP server catalogue and its projection into live files."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from config_broker.errors import BrokerError, NotFoundError, ValidationError
from config_broker.mcp.targets import get_target
from config_broker.mcp.validation import extract_server_spec, validate_server_spec
from config_broker.models.apps import ALL_APPS, AppType, McpApps
from config_broker.models.records import McpImportFailure, McpImportResult, McpServer

if TYPE_CHECKING:
    from config_broker.services.state import BrokerState
    from config_broker.store.database import Database

logger = logging.getLogger(__name__)

IMPORTED_TAG = "imported"


class McpService:
    """Upsert, delete, toggle and import MCP servers."""

    def __init__(self, state: BrokerState) -> None:
        self._state = state

    @property
    def _db(self) -> Database:
        return self._state.db

    def get_all_servers(self) -> dict[str, McpServer]:
        return self._db.get_all_mcp_servers()

    def enabled_servers(self, app: AppType) -> dict[str, dict[str, Any]]:
        """Specs of every server enabled for ``app``, keyed by id."""
        return {
            server_id: server.server
            for server_id, server in self.get_all_servers().items()
            if server.apps.is_enabled_for(app)
        }

    def upsert_server(self, server: McpServer) -> None:
        """Validate, save, then write the server into every enabled app."""
        validate_server_spec(server.server)
        self._db.save_mcp_server(server)
        self._sync_server(server)

    def delete_server(self, server_id: str) -> bool:
        """Delete a server and remove it from each app it was enabled for."""
        server = self._db.get_mcp_server(server_id)
        if server is None:
            return False
        self._db.delete_mcp_server(server_id)
        paths = self._state.live_paths()
        for app in server.apps.enabled_apps():
            get_target(app).remove(paths, server_id)
        logger.info("Deleted MCP server %s", server_id)
        return True

    def toggle_app(self, server_id: str, app: AppType, enabled: bool) -> None:
        server = self._db.get_mcp_server(server_id)
        if server is None:
            msg = f"MCP server {server_id} not found"
            raise NotFoundError(msg, details={"id": server_id})
        updated = server.model_copy(update={"apps": server.apps.with_enabled(app, enabled)})
        self._db.save_mcp_server(updated)
        paths = self._state.live_paths()
        if enabled:
            get_target(app).sync_single(paths, server_id, updated.server)
        else:
            get_target(app).remove(paths, server_id)

    def sync_all_enabled(self) -> None:
        """Re-project every server into each app it is enabled for."""
        for server in self.get_all_servers().values():
            self._sync_server(server)

    def _sync_server(self, server: McpServer) -> None:
        paths = self._state.live_paths()
        for app in server.apps.enabled_apps():
            get_target(app).sync_single(paths, server.id, server.server)

    def import_from_app(self, app: AppType) -> int:
        """Adopt servers found in ``app``'s live file.

        Known ids only gain the ``app`` flag; their stored spec is kept. New
        ids are created enabled for ``app`` alone. Invalid entries are logged
        and skipped.

        Returns:
            Number of servers created or changed.
        """
        live = get_target(app).read_servers(self._state.live_paths())
        changed = 0
        for server_id, entry in live.items():
            try:
                spec = extract_server_spec(entry)
                validate_server_spec(spec)
            except ValidationError as exc:
                logger.warning("Skipping invalid %s MCP server %s: %s", app.value, server_id, exc)
                continue

            existing = self._db.get_mcp_server(server_id)
            if existing is not None:
                if existing.apps.is_enabled_for(app):
                    continue
                self._db.save_mcp_server(
                    existing.model_copy(update={"apps": existing.apps.with_enabled(app, True)})
                )
                logger.info("Enabled existing MCP server %s for %s", server_id, app.value)
            else:
                self._db.save_mcp_server(
                    McpServer(id=server_id, name=server_id, server=spec, apps=McpApps.only(app))
                )
                logger.info("Imported MCP server %s from %s", server_id, app.value)
            changed += 1
        return changed

    def import_from_claude(self) -> int:
        return self.import_from_app(AppType.CLAUDE)

    def import_from_codex(self) -> int:
        return self.import_from_app(AppType.CODEX)

    def import_from_gemini(self) -> int:
        return self.import_from_app(AppType.GEMINI)

    def import_from_grok(self) -> int:
        return self.import_from_app(AppType.GROK)

    def import_from_qwen(self) -> int:
        return self.import_from_app(AppType.QWEN)

    def import_all_from_live(self) -> int:
        """Import from every app, logging (not raising) per-app failures."""
        total = 0
        for app in ALL_APPS:
            try:
                total += self.import_from_app(app)
            except BrokerError as exc:
                logger.warning("MCP import from %s failed: %s", app.value, exc)
        return total

    def import_mcp_servers_json(self, config_json: str, apps: McpApps) -> McpImportResult:
        """Import a standard ``{"mcpServers": {...}}`` document.

        Existing servers keep their spec and metadata and gain ``apps``; new
        servers are tagged ``imported``. Each server that fails is reported
        in the result instead of aborting the batch.

        Raises:
            ValidationError: If the document itself is malformed or empty.
        """
        if apps.is_empty():
            msg = "At least one app must be selected for MCP import"
            raise ValidationError(msg)
        try:
            document = json.loads(config_json)
        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON in MCP config: {exc}"
            raise ValidationError(msg) from exc
        servers = document.get("mcpServers") if isinstance(document, dict) else None
        if not isinstance(servers, dict):
            msg = "MCP config must contain an 'mcpServers' object"
            raise ValidationError(msg)
        if not servers:
            msg = "No MCP servers found in config"
            raise ValidationError(msg)

        existing = self.get_all_servers()
        imported: list[str] = []
        failed: list[McpImportFailure] = []
        for server_id, spec in servers.items():
            current = existing.get(server_id)
            try:
                if current is not None:
                    server = current.model_copy(update={"apps": current.apps.merged_with(apps)})
                else:
                    if not isinstance(spec, dict):
                        msg = "MCP server definition must be a JSON object"
                        raise ValidationError(msg)
                    server = McpServer(
                        id=server_id, name=server_id, server=spec, apps=apps, tags=[IMPORTED_TAG]
                    )
                self.upsert_server(server)
            except BrokerError as exc:
                logger.warning("Failed to import MCP server %s: %s", server_id, exc)
                failed.append(McpImportFailure(id=server_id, error=exc.message))
                continue
            imported.append(server_id)
        return McpImportResult(imported_count=len(imported), imported_ids=imported, failed=failed)
