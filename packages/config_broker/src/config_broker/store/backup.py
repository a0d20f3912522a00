"""Binary snapshots plus SQL text export/import of the whole store.

Slow work (serializing a dump, executing an imported script) always runs
against a private copy of the database so the connection lock is only held
for the copy itself.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import sqlite3
import tempfile
from pathlib import Path
from typing import Any

from config_broker.errors import BrokerIOError, NotFoundError, StoreError, ValidationError
from config_broker.store.base import StoreBase, connect
from config_broker.store.schema import apply_schema_migrations, get_user_version
from config_broker.utils import atomic_write_text, file_stamp, read_text, utc_timestamp

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "db_backup_"

_INTERNAL_TARGET = re.compile(
    r"""^(?:
        CREATE\s+(?:UNIQUE\s+)?(?:TEMP\w*\s+)?(?:TABLE|INDEX|TRIGGER|VIEW)(?:\s+IF\s+NOT\s+EXISTS)?
      | INSERT\s+(?:OR\s+\w+\s+)?INTO
      | REPLACE\s+INTO
      | DELETE\s+FROM
      | DROP\s+(?:TABLE|INDEX|TRIGGER|VIEW)(?:\s+IF\s+EXISTS)?
      | ALTER\s+TABLE
      | UPDATE(?:\s+OR\s+\w+)?
    )\s+["'`\[]?sqlite_""",
    re.IGNORECASE | re.VERBOSE,
)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def sql_literal(value: Any) -> str:
    """Render a stored value as an SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int | float):
        return repr(value)
    if isinstance(value, bytes | bytearray | memoryview):
        return f"X'{bytes(value).hex().upper()}'"
    return "'" + str(value).replace("'", "''") + "'"


def dump_sql(conn: sqlite3.Connection) -> str:
    """Serialize schema and rows of ``conn`` into a re-importable SQL script."""
    version = get_user_version(conn)
    lines = [
        "-- config-broker SQL export",
        f"-- Generated at: {utc_timestamp()}",
        f"-- user_version: {version}",
        "PRAGMA foreign_keys=OFF;",
        "BEGIN TRANSACTION;",
        f"PRAGMA user_version={version};",
    ]

    objects = conn.execute(
        """SELECT type, name, sql FROM sqlite_master
           WHERE sql NOT NULL AND type IN ('table', 'index', 'trigger', 'view')
           ORDER BY type = 'table' DESC, name"""
    ).fetchall()
    tables: list[str] = []
    for obj_type, name, sql in objects:
        if name.startswith("sqlite_"):
            continue
        lines.append(f"{sql};")
        if obj_type == "table":
            tables.append(name)

    for table in tables:
        cursor = conn.execute(f"SELECT * FROM {quote_identifier(table)}")  # noqa: S608
        columns = ", ".join(quote_identifier(col[0]) for col in cursor.description)
        for row in cursor:
            values = ", ".join(sql_literal(value) for value in row)
            lines.append(
                f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({values});"
            )

    lines.append("COMMIT;")
    lines.append("PRAGMA foreign_keys=ON;")
    return "\n".join(lines) + "\n"


def _strip_leading_comments(statement: str) -> str:
    lines = statement.strip().splitlines()
    while lines and (not lines[0].strip() or lines[0].lstrip().startswith("--")):
        lines.pop(0)
    return "\n".join(lines).strip()


def sanitize_import_sql(sql: str) -> str:
    """Drop statements that touch SQLite's internal ``sqlite_*`` objects.

    Statements are reassembled with ``sqlite3.complete_statement`` so a
    semicolon inside a quoted literal never splits a statement.
    """
    kept: list[str] = []
    buffer = ""
    for piece in sql.split(";"):
        buffer += piece + ";"
        if not sqlite3.complete_statement(buffer):
            continue
        statement = buffer
        buffer = ""
        body = _strip_leading_comments(statement)
        if not body or body == ";":
            continue
        if _INTERNAL_TARGET.match(body):
            logger.debug("Skipping internal statement: %s", body[:80])
            continue
        kept.append(statement.strip())

    # Trailing text without a terminating semicolon.
    remainder = buffer[:-1].strip() if buffer.endswith(";") else buffer.strip()
    if _strip_leading_comments(remainder):
        kept.append(remainder)
    return "\n".join(kept) + "\n"


def validate_basic_state(conn: sqlite3.Connection) -> None:
    """Reject databases that hold neither providers nor MCP servers."""
    providers = conn.execute("SELECT COUNT(*) FROM providers").fetchone()[0]
    servers = conn.execute("SELECT COUNT(*) FROM mcp_servers").fetchone()[0]
    if providers == 0 and servers == 0:
        msg = "Imported data contains no providers or MCP servers"
        raise ValidationError(msg)


class BackupMixin(StoreBase):
    """Whole-database snapshot, export and import."""

    @property
    def backups_dir(self) -> Path | None:
        if self._db_path is None:
            return None
        return self._db_path.parent / "backups"

    def snapshot_to_memory(self) -> sqlite3.Connection:
        """Copy the live database into a private in-memory connection."""
        snapshot = sqlite3.connect(":memory:", check_same_thread=False, isolation_level=None)
        with self._lock:
            try:
                self._conn.backup(snapshot)
            except sqlite3.Error as exc:
                snapshot.close()
                msg = f"Snapshot failed: {exc}"
                raise StoreError(msg) from exc
        return snapshot

    def backup_database_file(self) -> Path | None:
        """Write a binary snapshot into the backups directory.

        Returns:
            The snapshot path, or None when the store has no backing file yet.
        """
        backups_dir = self.backups_dir
        if backups_dir is None or self._db_path is None or not self._db_path.exists():
            return None
        try:
            backups_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BrokerIOError(backups_dir, exc) from exc

        stem = f"{BACKUP_PREFIX}{file_stamp()}"
        target = backups_dir / f"{stem}.db"
        counter = 1
        while target.exists():
            target = backups_dir / f"{stem}_{counter}.db"
            counter += 1

        dest = sqlite3.connect(str(target))
        try:
            with self._lock:
                self._conn.backup(dest)
        except sqlite3.Error as exc:
            dest.close()
            with contextlib.suppress(OSError):
                target.unlink()
            msg = f"Database backup failed: {exc}"
            raise StoreError(msg) from exc
        dest.close()
        logger.info("Created database backup %s", target)
        return target

    def cleanup_db_backups(self, retain: int | None = None) -> list[Path]:
        """Delete the oldest snapshots beyond ``retain`` (by modification time)."""
        backups_dir = self.backups_dir
        keep = self._backup_retain if retain is None else retain
        if backups_dir is None or not backups_dir.is_dir():
            return []
        snapshots = sorted(
            backups_dir.glob(f"{BACKUP_PREFIX}*.db"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        removed: list[Path] = []
        for stale in snapshots[max(keep, 0) :]:
            try:
                stale.unlink()
            except OSError as exc:
                logger.warning("Failed to remove old backup %s: %s", stale, exc)
                continue
            removed.append(stale)
        if removed:
            logger.info("Removed %d old database backups", len(removed))
        return removed

    def export_sql(self, target_path: str | Path) -> Path:
        """Write a SQL dump of the whole store to ``target_path``."""
        target = Path(target_path)
        snapshot = self.snapshot_to_memory()
        try:
            script = dump_sql(snapshot)
        except sqlite3.Error as exc:
            msg = f"SQL export failed: {exc}"
            raise StoreError(msg) from exc
        finally:
            snapshot.close()
        atomic_write_text(target, script)
        logger.info("Exported database to %s", target)
        return target

    def import_sql(self, source_path: str | Path) -> str:
        """Replace the store with the contents of a SQL dump.

        A safety snapshot is taken first; the dump is executed and validated in
        an isolated temporary database, which is then copied over the live one.

        Returns:
            The safety backup id (file stem), or an empty string when there was
            nothing to back up.

        Raises:
            NotFoundError: If ``source_path`` does not exist.
            StoreError: If the script fails to execute.
            ValidationError: If the imported data is empty.
        """
        source = Path(source_path)
        if not source.exists():
            msg = f"SQL file not found: {source}"
            raise NotFoundError(msg, details={"path": str(source)})
        script = sanitize_import_sql(read_text(source))

        backup_path = self.backup_database_file()
        self.cleanup_db_backups()

        tmp_dir = self._db_path.parent if self._db_path is not None else None
        fd, tmp_name = tempfile.mkstemp(prefix="import_", suffix=".db", dir=tmp_dir)
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            temp = connect(tmp_path)
            try:
                try:
                    temp.executescript(script)
                except sqlite3.Error as exc:
                    msg = f"Failed to execute imported SQL: {exc}"
                    raise StoreError(msg, details={"path": str(source)}) from exc
                if temp.in_transaction:
                    temp.execute("COMMIT")
                apply_schema_migrations(temp)
                validate_basic_state(temp)
                with self._lock:
                    try:
                        temp.backup(self._conn)
                    except sqlite3.Error as exc:
                        msg = f"Failed to replace database contents: {exc}"
                        raise StoreError(msg) from exc
            finally:
                temp.close()
        finally:
            with contextlib.suppress(OSError):
                tmp_path.unlink()

        backup_id = backup_path.stem if backup_path is not None else ""
        logger.info("Imported database from %s (safety backup: %s)", source, backup_id or "none")
        return backup_id
