"""Shared runtime state handed to every service."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from config_broker.config.device import DeviceSettingsStore
from config_broker.config.paths import BrokerPaths, LivePaths
from config_broker.models.settings import Settings, load_settings
from config_broker.store.database import Database


@dataclass(frozen=True)
class InitError:
    """Startup failure the UI layer reports instead of a working store."""

    path: str
    error: str


@dataclass
class StartupStatus:
    """Outcome of startup, read once by the UI layer."""

    init_error: InitError | None = None
    _migration_success: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def mark_migration_success(self) -> None:
        with self._lock:
            self._migration_success = True

    def take_migration_success(self) -> bool:
        """Return whether a legacy migration just succeeded, clearing the flag."""
        with self._lock:
            value = self._migration_success
            self._migration_success = False
            return value


@dataclass
class BrokerState:
    """Store, device settings and resolved paths for one running broker."""

    db: Database
    device: DeviceSettingsStore
    settings: Settings
    paths: BrokerPaths
    status: StartupStatus = field(default_factory=StartupStatus)

    def live_paths(self) -> LivePaths:
        """Resolve live paths using the current device overrides."""
        return LivePaths.resolve(self.device.get(), self.settings)

    @classmethod
    def open(
        cls, settings: Settings | None = None, status: StartupStatus | None = None
    ) -> BrokerState:
        """Open the store and device settings under the broker home."""
        settings = settings or load_settings()
        paths = BrokerPaths.from_settings(settings)
        paths.ensure()
        db = Database.open(paths.database, backup_retain=settings.backup_retain)
        return cls(
            db=db,
            device=DeviceSettingsStore(paths.device_settings),
            settings=settings,
            paths=paths,
            status=status or StartupStatus(),
        )

    def close(self) -> None:
        self.db.close()
