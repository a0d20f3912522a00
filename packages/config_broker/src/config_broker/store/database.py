"""SQLite-backed relational store."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from config_broker.errors import SchemaTooNewError, StoreError
from config_broker.store.backup import BackupMixin
from config_broker.store.base import connect
from config_broker.store.mcp import McpDaoMixin
from config_broker.store.prompts import PromptDaoMixin
from config_broker.store.providers import ProviderDaoMixin
from config_broker.store.schema import (
    SCHEMA_VERSION,
    apply_schema_migrations,
    get_user_version,
)
from config_broker.store.settings import SettingsDaoMixin
from config_broker.store.skills import SkillDaoMixin

logger = logging.getLogger(__name__)


def prepare_connection(conn: sqlite3.Connection) -> int:
    """Create missing tables and upgrade the schema.

    Returns:
        The schema version after upgrading.

    Raises:
        SchemaTooNewError: Before touching anything, if the file is from a newer release.
        SchemaMigrationError: If an upgrade step fails (rolled back).
    """
    version = get_user_version(conn)
    if version > SCHEMA_VERSION:
        raise SchemaTooNewError(version, SCHEMA_VERSION)
    return apply_schema_migrations(conn)


class Database(
    ProviderDaoMixin,
    McpDaoMixin,
    PromptDaoMixin,
    SkillDaoMixin,
    SettingsDaoMixin,
    BackupMixin,
):
    """The broker's single authoritative record store.

    Every public method takes the connection lock for its whole duration, so
    calls from the request thread and the background export/import worker
    serialize.
    """

    @classmethod
    def open(cls, db_path: str | Path, *, backup_retain: int = 10) -> Database:
        """Open (creating if needed) and migrate the database at ``db_path``."""
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = connect(path)
        except sqlite3.Error as exc:
            msg = f"Failed to open database {path}: {exc}"
            raise StoreError(msg) from exc
        try:
            version = prepare_connection(conn)
        except Exception:
            conn.close()
            raise
        logger.info("Opened database %s (schema v%d)", path, version)
        return cls(conn, path, backup_retain=backup_retain)

    @classmethod
    def open_in_memory(cls) -> Database:
        """Open a throwaway in-memory database with the current schema."""
        conn = connect(":memory:")
        prepare_connection(conn)
        return cls(conn)

    @property
    def db_path(self) -> Path | None:
        return self._db_path

    @property
    def schema_version(self) -> int:
        with self._lock:
            return get_user_version(self._conn)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
