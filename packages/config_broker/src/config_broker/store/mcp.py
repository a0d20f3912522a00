"""MCP server rows."""

from __future__ import annotations

import json
from typing import Any

from config_broker.models.apps import ALL_APPS, McpApps
from config_broker.models.records import McpServer
from config_broker.store.base import StoreBase, load_json_column

_ENABLED_COLUMNS = ", ".join(f"enabled_{app.value}" for app in ALL_APPS)


class McpDaoMixin(StoreBase):
    """CRUD for ``mcp_servers``."""

    def get_all_mcp_servers(self) -> dict[str, McpServer]:
        """Return every server keyed by id, ordered by name then id."""
        rows = self._fetch_all(
            f"""SELECT id, name, server_config, description, homepage, docs, tags,
                       {_ENABLED_COLUMNS}
                FROM mcp_servers ORDER BY name ASC, id ASC"""  # noqa: S608
        )
        return {row[0]: _row_to_server(row) for row in rows}

    def get_mcp_server(self, server_id: str) -> McpServer | None:
        row = self._fetch_one(
            f"""SELECT id, name, server_config, description, homepage, docs, tags,
                       {_ENABLED_COLUMNS}
                FROM mcp_servers WHERE id = ?""",  # noqa: S608
            (server_id,),
        )
        return _row_to_server(row) if row else None

    def save_mcp_server(self, server: McpServer) -> None:
        placeholders = ", ".join("?" for _ in ALL_APPS)
        self._execute(
            f"""INSERT OR REPLACE INTO mcp_servers
                (id, name, server_config, description, homepage, docs, tags, {_ENABLED_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, {placeholders})""",  # noqa: S608
            (
                server.id,
                server.name,
                json.dumps(server.server, ensure_ascii=False),
                server.description,
                server.homepage,
                server.docs,
                json.dumps(server.tags, ensure_ascii=False),
                *(int(server.apps.is_enabled_for(app)) for app in ALL_APPS),
            ),
        )

    def delete_mcp_server(self, server_id: str) -> bool:
        return self._execute("DELETE FROM mcp_servers WHERE id = ?", (server_id,)) > 0

    def is_mcp_table_empty(self) -> bool:
        return self._count("mcp_servers") == 0


def _row_to_server(row: tuple[Any, ...]) -> McpServer:
    flags = row[7:]
    return McpServer(
        id=row[0],
        name=row[1],
        server=load_json_column(row[2], {}),
        description=row[3],
        homepage=row[4],
        docs=row[5],
        tags=load_json_column(row[6], []),
        apps=McpApps(**{app.value: bool(flag) for app, flag in zip(ALL_APPS, flags, strict=True)}),
    )
