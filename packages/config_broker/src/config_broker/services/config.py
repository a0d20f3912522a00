"""Whole-store export/import run off the caller's thread."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Any

from config_broker.errors import BrokerError
from config_broker.services.provider import ProviderService
from config_broker.store.legacy import create_config_backup

if TYPE_CHECKING:
    from config_broker.services.state import BrokerState

logger = logging.getLogger(__name__)


class ConfigService:
    """Export and import SQL dumps on a single background worker.

    Jobs run one at a time and each one still takes the store lock, so a
    request thread only waits on the returned future.
    """

    def __init__(self, state: BrokerState, providers: ProviderService | None = None) -> None:
        self._state = state
        self._providers = providers or ProviderService(state)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="config-broker-io")

    def export_to_file(self, path: str | Path) -> Future[dict[str, Any]]:
        return self._executor.submit(self._export, Path(path))

    def import_from_file(self, path: str | Path) -> Future[dict[str, Any]]:
        return self._executor.submit(self._import, Path(path))

    def _export(self, path: Path) -> dict[str, Any]:
        target = self._state.db.export_sql(path)
        return {
            "success": True,
            "message": "SQL exported successfully",
            "filePath": str(target),
        }

    def _import(self, path: Path) -> dict[str, Any]:
        backup_id = self._state.db.import_sql(path)
        try:
            self._providers.sync_current_to_live()
        except BrokerError as exc:
            logger.warning("Imported %s but syncing live files failed: %s", path, exc)
        self._state.device.reload()
        return {
            "success": True,
            "message": "SQL imported successfully",
            "backupId": backup_id,
        }

    def create_config_backup(self, path: str | Path) -> Path | None:
        """Rotate a timestamped copy of a JSON config file into the backups dir."""
        return create_config_backup(
            Path(path),
            self._state.paths.backups_dir,
            retain=self._state.settings.config_backup_retain,
        )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
