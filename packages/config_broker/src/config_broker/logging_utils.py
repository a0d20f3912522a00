"""Logging helpers that keep credentials out of log output."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

REDACTED = "***"

_SECRET_PATTERN = re.compile(
    r"""(?P<key>[A-Za-z0-9_]*(?:API_KEY|AUTH_TOKEN)|apiKey)"""
    r"""(?P<sep>["']?\s*[:=]\s*["']?)"""
    r"""(?P<value>[^\s"',}]+)""",
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def redact_secrets(text: str) -> str:
    """Mask values assigned to API key or token fields."""
    return _SECRET_PATTERN.sub(lambda m: f"{m['key']}{m['sep']}{REDACTED}", text)


class SecretRedactionFilter(logging.Filter):
    """Rewrite log records so API keys and tokens never reach handlers."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Render the message once and redact it in place."""
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def install_redaction_filter(loggers: Iterable[logging.Logger] | None = None) -> None:
    """Install secret redaction filters.

    Args:
        loggers: Optional iterable of loggers to attach the filter to. Defaults to root logger.
    """
    targets = list(loggers) if loggers is not None else [logging.getLogger()]
    for logger in targets:
        if any(isinstance(flt, SecretRedactionFilter) for flt in logger.filters):
            continue
        logger.addFilter(SecretRedactionFilter())


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with redaction on every root handler."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in root.handlers:
        if not any(isinstance(flt, SecretRedactionFilter) for flt in handler.filters):
            handler.addFilter(SecretRedactionFilter())
