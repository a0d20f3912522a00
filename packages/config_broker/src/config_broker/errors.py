"""Exception hierarchy for the configuration broker.

Every failure surfaced to callers is a ``BrokerError`` subclass carrying a
stable ``error_code`` so the command layer can render it without inspecting
message text.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class BrokerError(Exception):
    """Base exception for broker operations."""

    error_code = "BROKER_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BrokerError):
    """Raised when a payload has the wrong shape and is rejected before any write."""

    error_code = "VALIDATION"


class NotFoundError(BrokerError):
    """Raised when a referenced identifier or live file does not exist."""

    error_code = "NOT_FOUND"


class ConflictError(BrokerError):
    """Raised when deleting a provider or prompt that is currently in use."""

    error_code = "CONFLICT"


class BrokerIOError(BrokerError):
    """Raised when reading or writing a file fails."""

    error_code = "IO"

    def __init__(self, path: str | Path, reason: str | OSError) -> None:
        super().__init__(
            f"I/O failure on {path}: {reason}",
            details={"path": str(path), "reason": str(reason)},
        )
        self.path = Path(path)


class FormatError(BrokerError):
    """Raised when an existing live file cannot be parsed."""

    error_code = "FORMAT"

    def __init__(self, path: str | Path, reason: str) -> None:
        super().__init__(
            f"Failed to parse {path}: {reason}",
            details={"path": str(path), "reason": reason},
        )
        self.path = Path(path)


class SchemaTooNewError(BrokerError):
    """Raised when the database was written by a newer release."""

    error_code = "SCHEMA_TOO_NEW"

    def __init__(self, db_version: int, supported_version: int) -> None:
        super().__init__(
            f"database version too new ({db_version}), "
            f"this release supports only {supported_version}",
            details={"db_version": db_version, "supported_version": supported_version},
        )
        self.db_version = db_version
        self.supported_version = supported_version


class SchemaMigrationError(BrokerError):
    """Raised when an upgrade step fails; the store is rolled back."""

    error_code = "SCHEMA_MIGRATION_FAILED"


class StoreError(BrokerError):
    """Raised when the relational store rejects an operation."""

    error_code = "STORE"
