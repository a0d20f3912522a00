"""Pydantic models for broker runtime settings."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel

from config_broker.config.paths import DEFAULT_BROKER_HOME


class Settings(BaseModel, frozen=True):
    """Runtime configuration loaded from environment variables."""

    broker_home: str = DEFAULT_BROKER_HOME
    user_home: str | None = None
    backup_retain: int = 10
    config_backup_retain: int = 10
    log_level: str = "INFO"


def _parse_positive_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None
    if value < 1:
        msg = f"{name} must be at least 1, got {value}"
        raise ValueError(msg)
    return value


def load_settings() -> Settings:
    """Load settings from environment variables with defaults."""
    load_dotenv()

    return Settings(
        broker_home=os.getenv("CONFIG_BROKER_HOME") or DEFAULT_BROKER_HOME,
        user_home=os.getenv("CONFIG_BROKER_USER_HOME") or None,
        backup_retain=_parse_positive_int("CONFIG_BROKER_BACKUP_RETAIN", "10"),
        config_backup_retain=_parse_positive_int("CONFIG_BROKER_CONFIG_BACKUP_RETAIN", "10"),
        log_level=os.getenv("CONFIG_BROKER_LOG_LEVEL", "INFO").upper(),
    )
