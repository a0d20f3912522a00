"""Shared utilities for the configuration broker."""

from __future__ import annotations

import contextlib
import os
import tempfile
import time
from datetime import UTC, datetime
from pathlib import Path

from config_broker.errors import BrokerIOError


def utc_timestamp() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


def unix_seconds() -> int:
    """Return the current Unix time in whole seconds."""
    return int(time.time())


def unix_millis() -> int:
    """Return the current Unix time in milliseconds."""
    return int(time.time() * 1000)


def file_stamp() -> str:
    """Return a local timestamp suitable for backup file names."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")  # noqa: DTZ005


def atomic_write_text(path: Path, content: str, mode: int | None = None) -> None:
    """Write text to ``path`` through a sibling temp file and an atomic rename.

    Args:
        path: Destination file. Parent directories are created.
        content: UTF-8 text to write.
        mode: Optional permission bits applied to the temp file before the rename.

    Raises:
        BrokerIOError: If any filesystem step fails. The temp file is removed.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as exc:
        raise BrokerIOError(path, exc) from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(tmp, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise BrokerIOError(path, exc) from exc


def read_text(path: Path) -> str:
    """Read a UTF-8 file, translating OS errors."""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise BrokerIOError(path, exc) from exc
