"""Relational schema and the forward-only migration engine.

The schema version lives in ``PRAGMA user_version``. Upgrades run inside one
savepoint and only ever add tables or columns, so a database left half
upgraded by an aborted run converges when the same step is re-applied.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable

from config_broker.errors import SchemaMigrationError, SchemaTooNewError, StoreError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS providers (
    id TEXT NOT NULL,
    app_type TEXT NOT NULL,
    name TEXT NOT NULL,
    settings_config TEXT NOT NULL,
    website_url TEXT,
    category TEXT,
    created_at INTEGER,
    sort_index INTEGER,
    notes TEXT,
    icon TEXT,
    icon_color TEXT,
    meta TEXT NOT NULL DEFAULT '{}',
    is_current BOOLEAN NOT NULL DEFAULT 0,
    PRIMARY KEY (id, app_type)
);

CREATE TABLE IF NOT EXISTS provider_endpoints (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    provider_id TEXT NOT NULL,
    app_type TEXT NOT NULL,
    url TEXT NOT NULL,
    added_at INTEGER,
    FOREIGN KEY (provider_id, app_type) REFERENCES providers(id, app_type) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS mcp_servers (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    server_config TEXT NOT NULL,
    description TEXT,
    homepage TEXT,
    docs TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    enabled_claude BOOLEAN NOT NULL DEFAULT 0,
    enabled_codex BOOLEAN NOT NULL DEFAULT 0,
    enabled_gemini BOOLEAN NOT NULL DEFAULT 0,
    enabled_grok BOOLEAN NOT NULL DEFAULT 0,
    enabled_qwen BOOLEAN NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS prompts (
    id TEXT NOT NULL,
    app_type TEXT NOT NULL,
    name TEXT NOT NULL,
    content TEXT NOT NULL,
    description TEXT,
    enabled BOOLEAN NOT NULL DEFAULT 1,
    created_at INTEGER,
    updated_at INTEGER,
    PRIMARY KEY (id, app_type)
);

CREATE TABLE IF NOT EXISTS skills (
    key TEXT PRIMARY KEY,
    installed BOOLEAN NOT NULL DEFAULT 0,
    installed_at INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS skill_repos (
    owner TEXT NOT NULL,
    name TEXT NOT NULL,
    branch TEXT NOT NULL DEFAULT 'main',
    enabled BOOLEAN NOT NULL DEFAULT 1,
    PRIMARY KEY (owner, name)
);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""

# Columns added by the v0 -> v1 step, per table, as (name, declaration).
V1_COLUMNS: dict[str, list[tuple[str, str]]] = {
    "providers": [
        ("category", "TEXT"),
        ("created_at", "INTEGER"),
        ("sort_index", "INTEGER"),
        ("notes", "TEXT"),
        ("icon", "TEXT"),
        ("icon_color", "TEXT"),
        ("meta", "TEXT NOT NULL DEFAULT '{}'"),
        ("is_current", "BOOLEAN NOT NULL DEFAULT 0"),
    ],
    "provider_endpoints": [
        ("added_at", "INTEGER"),
    ],
    "mcp_servers": [
        ("description", "TEXT"),
        ("homepage", "TEXT"),
        ("docs", "TEXT"),
        ("tags", "TEXT NOT NULL DEFAULT '[]'"),
        ("enabled_codex", "BOOLEAN NOT NULL DEFAULT 0"),
        ("enabled_gemini", "BOOLEAN NOT NULL DEFAULT 0"),
        ("enabled_grok", "BOOLEAN NOT NULL DEFAULT 0"),
        ("enabled_qwen", "BOOLEAN NOT NULL DEFAULT 0"),
    ],
    "prompts": [
        ("description", "TEXT"),
        ("enabled", "BOOLEAN NOT NULL DEFAULT 1"),
        ("created_at", "INTEGER"),
        ("updated_at", "INTEGER"),
    ],
    "skills": [
        ("installed_at", "INTEGER NOT NULL DEFAULT 0"),
    ],
    "skill_repos": [
        ("branch", "TEXT NOT NULL DEFAULT 'main'"),
        ("enabled", "BOOLEAN NOT NULL DEFAULT 1"),
    ],
}


def create_tables(conn: sqlite3.Connection) -> None:
    """Create every table that does not exist yet.

    Statements run one at a time so the call never commits a surrounding
    transaction.
    """
    for statement in CREATE_TABLES_SQL.split(";"):
        if statement.strip():
            conn.execute(statement)


def get_user_version(conn: sqlite3.Connection) -> int:
    return int(conn.execute("PRAGMA user_version").fetchone()[0])


def set_user_version(conn: sqlite3.Connection, version: int) -> None:
    if version < 0:
        msg = f"Invalid schema version: {version}"
        raise StoreError(msg)
    conn.execute(f"PRAGMA user_version = {int(version)}")


def validate_identifier(name: str, kind: str = "identifier") -> None:
    """Reject anything but ``[A-Za-z0-9_]`` before interpolating into SQL."""
    if not name or not all(ch.isascii() and (ch.isalnum() or ch == "_") for ch in name):
        msg = f"Invalid SQL {kind}: {name!r}"
        raise StoreError(msg)


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    validate_identifier(table, "table name")
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND lower(name) = lower(?)",
        (table,),
    ).fetchone()
    return row is not None


def has_column(conn: sqlite3.Connection, table: str, column: str) -> bool:
    validate_identifier(table, "table name")
    validate_identifier(column, "column name")
    rows = conn.execute(f'PRAGMA table_info("{table}")').fetchall()
    return any(str(row[1]).lower() == column.lower() for row in rows)


def add_column_if_missing(
    conn: sqlite3.Connection, table: str, column: str, definition: str
) -> bool:
    """Add ``column`` to ``table`` unless it already exists.

    Returns:
        True if the column was added.

    Raises:
        StoreError: If the table does not exist.
    """
    if not table_exists(conn, table):
        msg = f"Table {table} does not exist"
        raise StoreError(msg)
    if has_column(conn, table, column):
        return False
    conn.execute(f'ALTER TABLE "{table}" ADD COLUMN "{column}" {definition}')
    logger.info("Added column %s.%s", table, column)
    return True


def migrate_v0_to_v1(conn: sqlite3.Connection) -> None:
    """Bring a pre-versioned database up to the v1 column set."""
    for table, columns in V1_COLUMNS.items():
        if not table_exists(conn, table):
            continue
        for column, definition in columns:
            add_column_if_missing(conn, table, column, definition)


MIGRATIONS: dict[int, Callable[[sqlite3.Connection], None]] = {
    0: migrate_v0_to_v1,
}


def apply_schema_migrations(
    conn: sqlite3.Connection, target_version: int = SCHEMA_VERSION
) -> int:
    """Create missing tables and upgrade ``conn`` to ``target_version``.

    Table creation and every upgrade step run inside one
    ``SAVEPOINT schema_migration``; any failure rolls the database back to
    exactly its prior state, tables included.

    Returns:
        The schema version after the call.

    Raises:
        SchemaTooNewError: If the stored version exceeds ``target_version``.
        SchemaMigrationError: If an upgrade step fails.
    """
    version = get_user_version(conn)
    if version > target_version:
        raise SchemaTooNewError(version, target_version)
    if version == target_version:
        create_tables(conn)
        return version

    conn.execute("SAVEPOINT schema_migration")
    try:
        create_tables(conn)
        while version < target_version:
            step = MIGRATIONS.get(version)
            if step is None:
                msg = f"No migration path from schema version {version}"
                raise SchemaMigrationError(msg, details={"version": version})
            logger.info("Migrating schema v%d -> v%d", version, version + 1)
            step(conn)
            version += 1
            set_user_version(conn, version)
    except SchemaMigrationError:
        _rollback_savepoint(conn)
        raise
    except (sqlite3.Error, StoreError) as exc:
        _rollback_savepoint(conn)
        msg = f"Schema migration failed at version {version}: {exc}"
        raise SchemaMigrationError(msg, details={"version": version}) from exc

    conn.execute("RELEASE SAVEPOINT schema_migration")
    logger.info("Schema is at version %d", version)
    return version


def _rollback_savepoint(conn: sqlite3.Connection) -> None:
    conn.execute("ROLLBACK TO SAVEPOINT schema_migration")
    conn.execute("RELEASE SAVEPOINT schema_migration")
