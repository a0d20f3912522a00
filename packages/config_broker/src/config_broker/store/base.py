"""Connection plumbing shared by the store's DAO mixins."""

from __future__ import annotations

import itertools
import json
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path  # noqa: TC003 (needed at runtime)
from typing import Any

from config_broker.errors import StoreError


def load_json_column(raw: str | None, default: Any) -> Any:
    """Decode a JSON text column, returning ``default`` for NULL or empty."""
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"Corrupt JSON column: {exc}"
        raise StoreError(msg) from exc


def connect(path: str | Path) -> sqlite3.Connection:
    """Open a connection in autocommit mode with foreign keys enforced.

    Transactions are always explicit (``BEGIN``/``SAVEPOINT``).
    """
    conn = sqlite3.connect(str(path), check_same_thread=False, isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class StoreBase:
    """One SQLite connection guarded by a re-entrant lock."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        db_path: Path | None = None,
        *,
        backup_retain: int = 10,
    ) -> None:
        self._conn = conn
        self._db_path = db_path
        self._backup_retain = backup_retain
        self._lock = threading.RLock()
        self._savepoints = itertools.count()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically, nesting as a savepoint when already inside one."""
        with self._lock:
            if self._conn.in_transaction:
                name = f"sp_{next(self._savepoints)}"
                self._conn.execute(f"SAVEPOINT {name}")
                try:
                    yield self._conn
                except BaseException:
                    self._conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
                    self._conn.execute(f"RELEASE SAVEPOINT {name}")
                    raise
                self._conn.execute(f"RELEASE SAVEPOINT {name}")
                return

            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
            except sqlite3.Error as exc:
                self._conn.execute("ROLLBACK")
                msg = f"Transaction rolled back: {exc}"
                raise StoreError(msg) from exc
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def _fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[tuple[Any, ...]]:
        with self._lock:
            try:
                return self._conn.execute(query, tuple(params)).fetchall()
            except sqlite3.Error as exc:
                msg = f"Query failed: {exc}"
                raise StoreError(msg) from exc

    def _fetch_one(self, query: str, params: Sequence[Any] = ()) -> tuple[Any, ...] | None:
        rows = self._fetch_all(query, params)
        return rows[0] if rows else None

    def _execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Execute one statement and return the affected row count."""
        with self._lock:
            try:
                return self._conn.execute(query, tuple(params)).rowcount
            except sqlite3.Error as exc:
                msg = f"Statement failed: {exc}"
                raise StoreError(msg) from exc

    def _count(self, table: str) -> int:
        row = self._fetch_one(f"SELECT COUNT(*) FROM {table}")  # noqa: S608
        return int(row[0]) if row else 0
