"""Unified path resolution for the broker and its target applications.

Broker-owned files live under the broker home:
1. Module-level override (set via set_broker_home)
2. Settings object (if provided)
3. CONFIG_BROKER_HOME environment variable
4. Default: ~/.config-broker

Live files of each target application live under the user's home directory
(overridable the same way via set_home_dir / CONFIG_BROKER_USER_HOME), unless
the device settings carry a per-app directory override.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from config_broker.models.apps import ALL_APPS, AppType

if TYPE_CHECKING:
    from config_broker.models.device import DeviceSettings
    from config_broker.models.settings import Settings

DEFAULT_BROKER_HOME = "~/.config-broker"

# Broker-owned file names
BROKER_FILES = {
    "database": "config-broker.db",
    "legacy_config": "config.json",
    "device_settings": "settings.json",
}
BACKUPS_DIR_NAME = "backups"

APP_DIR_NAMES = {
    AppType.CLAUDE: ".claude",
    AppType.CODEX: ".codex",
    AppType.GEMINI: ".gemini",
    AppType.GROK: ".grok",
    AppType.QWEN: ".qwen",
}

PROMPT_FILE_NAMES = {
    AppType.CLAUDE: "CLAUDE.md",
    AppType.CODEX: "AGENTS.md",
    AppType.GEMINI: "GEMINI.md",
    AppType.GROK: "GROK.md",
    AppType.QWEN: "QWEN.md",
}

_home_override: str | None = None
_broker_home_override: str | None = None


def set_home_dir(path: str | Path | None) -> None:
    """Set a module-level override for the user's home directory."""
    global _home_override  # noqa: PLW0603
    _home_override = str(path) if path is not None else None


def set_broker_home(path: str | Path | None) -> None:
    """Set a module-level override for the broker data directory."""
    global _broker_home_override  # noqa: PLW0603
    _broker_home_override = str(path) if path is not None else None


def get_home_dir(settings: Settings | None = None) -> Path:
    """Get the home directory used to resolve live application files."""
    if _home_override:
        return Path(_home_override).expanduser()
    if settings and settings.user_home:
        return Path(settings.user_home).expanduser()
    env_home = os.getenv("CONFIG_BROKER_USER_HOME")
    if env_home:
        return Path(env_home).expanduser()
    return Path.home()


def get_broker_home(settings: Settings | None = None) -> Path:
    """Get the directory holding the database, backups and device settings."""
    if _broker_home_override:
        return Path(_broker_home_override).expanduser()
    if settings and settings.broker_home:
        return Path(settings.broker_home).expanduser()
    return Path(os.getenv("CONFIG_BROKER_HOME", DEFAULT_BROKER_HOME)).expanduser()


def resolve_override_path(raw: str, home: Path) -> Path:
    """Expand a user-entered directory override, resolving ``~`` against ``home``."""
    if raw == "~":
        return home
    for prefix in ("~/", "~\\"):
        if raw.startswith(prefix):
            return home / raw[len(prefix) :]
    return Path(raw)


@dataclass(frozen=True)
class BrokerPaths:
    """Files owned by the broker itself."""

    home: Path

    @property
    def database(self) -> Path:
        return self.home / BROKER_FILES["database"]

    @property
    def legacy_config(self) -> Path:
        return self.home / BROKER_FILES["legacy_config"]

    @property
    def legacy_archive(self) -> Path:
        return self.legacy_config.with_suffix(".json.migrated")

    @property
    def device_settings(self) -> Path:
        return self.home / BROKER_FILES["device_settings"]

    @property
    def backups_dir(self) -> Path:
        return self.home / BACKUPS_DIR_NAME

    def ensure(self) -> Path:
        self.home.mkdir(parents=True, exist_ok=True)
        return self.home

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BrokerPaths:
        return cls(home=get_broker_home(settings))


@dataclass(frozen=True)
class LivePaths:
    """Locations of every target application's live files."""

    home: Path
    overrides: dict[AppType, Path] = field(default_factory=dict)

    def app_dir(self, app: AppType) -> Path:
        override = self.overrides.get(app)
        if override is not None:
            return override
        return self.home / APP_DIR_NAMES[app]

    def prompt_file(self, app: AppType) -> Path:
        return self.app_dir(app) / PROMPT_FILE_NAMES[app]

    @property
    def claude_settings(self) -> Path:
        return self.app_dir(AppType.CLAUDE) / "settings.json"

    @property
    def claude_mcp(self) -> Path:
        """``~/.claude.json``, or ``.claude.json`` inside an overridden dir."""
        if AppType.CLAUDE in self.overrides:
            return self.overrides[AppType.CLAUDE] / ".claude.json"
        return self.home / ".claude.json"

    @property
    def codex_auth(self) -> Path:
        return self.app_dir(AppType.CODEX) / "auth.json"

    @property
    def codex_config(self) -> Path:
        return self.app_dir(AppType.CODEX) / "config.toml"

    @property
    def gemini_env(self) -> Path:
        return self.app_dir(AppType.GEMINI) / ".env"

    @property
    def gemini_settings(self) -> Path:
        return self.app_dir(AppType.GEMINI) / "settings.json"

    @property
    def grok_settings(self) -> Path:
        return self.app_dir(AppType.GROK) / "user-settings.json"

    @property
    def qwen_settings(self) -> Path:
        return self.app_dir(AppType.QWEN) / "settings.json"

    @classmethod
    def resolve(
        cls, device: DeviceSettings | None = None, settings: Settings | None = None
    ) -> LivePaths:
        """Build live paths from the home directory and device overrides."""
        home = get_home_dir(settings)
        overrides: dict[AppType, Path] = {}
        if device is not None:
            for app in ALL_APPS:
                raw = device.config_dir(app)
                if raw:
                    overrides[app] = resolve_override_path(raw, home)
        return cls(home=home, overrides=overrides)
