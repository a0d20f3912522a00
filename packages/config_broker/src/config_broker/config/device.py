"""Device-local settings file (current-provider pointers and dir overrides)."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path  # noqa: TC003 (needed at runtime)

import pydantic

from config_broker.models.apps import AppType  # noqa: TC001 (needed at runtime)
from config_broker.models.device import DeviceSettings
from config_broker.utils import atomic_write_text

logger = logging.getLogger(__name__)


class DeviceSettingsStore:
    """Cached view of ``settings.json`` in the broker home.

    Reads are served from memory; every update is written to disk before the
    cache is replaced. ``reload()`` re-reads the file after an import.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()
        self._settings = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> DeviceSettings:
        if not self._path.exists():
            return DeviceSettings()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return DeviceSettings.model_validate(raw)
        except (OSError, json.JSONDecodeError, pydantic.ValidationError) as exc:
            logger.warning(
                "Failed to parse device settings at %s, using defaults: %s", self._path, exc
            )
            return DeviceSettings()

    def get(self) -> DeviceSettings:
        with self._lock:
            return self._settings

    def update(self, settings: DeviceSettings) -> None:
        """Persist ``settings`` and make them current."""
        normalized = DeviceSettings.model_validate(settings.model_dump())
        with self._lock:
            atomic_write_text(
                self._path, json.dumps(normalized.to_json(), indent=2, ensure_ascii=False)
            )
            self._settings = normalized

    def reload(self) -> None:
        with self._lock:
            self._settings = self._load()

    def get_current_provider(self, app: AppType) -> str | None:
        return self.get().current_provider(app)

    def set_current_provider(self, app: AppType, provider_id: str | None) -> None:
        with self._lock:
            self.update(self._settings.with_current_provider(app, provider_id))
