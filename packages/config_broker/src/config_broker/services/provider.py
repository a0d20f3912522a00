"""Provider management and the switch protocol.

Switching is a fixed sequence: backfill the live file onto the outgoing
provider, move the device pointer, move the store flag, write the incoming
provider's live files, then re-project MCP servers. The steps are not rolled
back; a failure after the pointer moves leaves a stale live file that the next
switch or sync rewrites.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from config_broker.errors import BrokerError, ConflictError, NotFoundError, ValidationError
from config_broker.live.writer import live_config_exists, read_live_settings, write_live_settings
from config_broker.models.apps import ALL_APPS, AppType
from config_broker.models.live import normalize_claude_models, parse_live_settings
from config_broker.models.records import CustomEndpoint, Provider
from config_broker.services.mcp import McpService
from config_broker.utils import unix_millis

if TYPE_CHECKING:
    from config_broker.services.state import BrokerState
    from config_broker.store.database import Database

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_ID = "default"
DEFAULT_PROVIDER_CATEGORY = "custom"


def normalize_endpoint_url(url: str) -> str:
    """Trim whitespace and trailing slashes; reject empty URLs."""
    normalized = url.strip().rstrip("/")
    if not normalized:
        msg = "Endpoint URL must not be empty"
        raise ValidationError(msg)
    return normalized


class ProviderService:
    """List, add, update, delete and switch providers per application."""

    def __init__(self, state: BrokerState, mcp: McpService | None = None) -> None:
        self._state = state
        self._mcp = mcp or McpService(state)

    @property
    def _db(self) -> Database:
        return self._state.db

    def list_providers(self, app: AppType) -> dict[str, Provider]:
        return self._db.get_all_providers(app)

    def get(self, app: AppType, provider_id: str) -> Provider:
        provider = self._db.get_provider(app, provider_id)
        if provider is None:
            msg = f"Provider {provider_id} not found for {app.value}"
            raise NotFoundError(msg, details={"id": provider_id, "app": app.value})
        return provider

    def current(self, app: AppType) -> str | None:
        """Effective current provider id.

        The device pointer wins when it names a provider that still exists;
        a dangling pointer is cleared and the store flag is used instead.
        """
        device_id = self._state.device.get_current_provider(app)
        if device_id:
            if self._db.get_provider(app, device_id) is not None:
                return device_id
            logger.warning(
                "Device pointer for %s names missing provider %s, falling back to store",
                app.value,
                device_id,
            )
            self._state.device.set_current_provider(app, None)
        return self._db.get_current_provider_id(app)

    def _validated(self, app: AppType, provider: Provider) -> Provider:
        payload = copy.deepcopy(provider.settings_config)
        if app is AppType.CLAUDE and isinstance(payload, dict):
            normalize_claude_models(payload)
        parse_live_settings(app, payload)
        return provider.model_copy(update={"settings_config": payload})

    def add(self, app: AppType, provider: Provider) -> None:
        """Save a new provider; the first provider of an app becomes current."""
        provider = self._validated(app, provider)
        if provider.created_at is None:
            provider = provider.model_copy(update={"created_at": unix_millis()})
        self._db.save_provider(app, provider)
        logger.info("Added %s provider %s", app.value, provider.id)
        if self.current(app) is None:
            self._db.set_current_provider(app, provider.id)
            self._write_live(app, provider)

    def update(self, app: AppType, provider: Provider) -> None:
        """Save edits; rewrite live files when the provider is current."""
        provider = self._validated(app, provider)
        self.get(app, provider.id)
        self._db.save_provider(app, provider)
        if self.current(app) == provider.id:
            self._write_live(app, provider)
            self._mcp.sync_all_enabled()

    def delete(self, app: AppType, provider_id: str) -> None:
        if (
            self._state.device.get_current_provider(app) == provider_id
            or self._db.get_current_provider_id(app) == provider_id
        ):
            msg = f"Cannot delete the current {app.value} provider {provider_id}"
            raise ConflictError(msg, details={"id": provider_id, "app": app.value})
        if not self._db.delete_provider(app, provider_id):
            msg = f"Provider {provider_id} not found for {app.value}"
            raise NotFoundError(msg, details={"id": provider_id, "app": app.value})
        logger.info("Deleted %s provider %s", app.value, provider_id)

    def switch(self, app: AppType, provider_id: str) -> None:
        provider = self.get(app, provider_id)

        previous_id = self.current(app)
        if previous_id and previous_id != provider_id:
            self._backfill(app, previous_id)

        self._state.device.set_current_provider(app, provider_id)
        self._db.set_current_provider(app, provider_id)
        try:
            self._write_live(app, provider)
        except BrokerError:
            logger.error(
                "Switched %s to %s but writing live files failed; "
                "they stay stale until the next sync",
                app.value,
                provider_id,
            )
            raise
        self._mcp.sync_all_enabled()
        logger.info("Switched %s provider to %s", app.value, provider_id)

    def _backfill(self, app: AppType, provider_id: str) -> None:
        """Store the live file's current content onto ``provider_id``."""
        try:
            live = read_live_settings(app, self._state.live_paths())
            previous = self._db.get_provider(app, provider_id)
            if previous is not None:
                self._db.save_provider(app, previous.model_copy(update={"settings_config": live}))
        except BrokerError as exc:
            logger.warning("Backfill of %s provider %s skipped: %s", app.value, provider_id, exc)

    def _write_live(self, app: AppType, provider: Provider) -> None:
        """Write live files, then store what actually landed on disk."""
        settings = parse_live_settings(app, provider.settings_config)
        paths = self._state.live_paths()
        codex_servers = self._mcp.enabled_servers(AppType.CODEX) if app is AppType.CODEX else None
        write_live_settings(settings, paths, codex_servers=codex_servers)
        observed = read_live_settings(app, paths)
        if observed != provider.settings_config:
            self._db.save_provider(app, provider.model_copy(update={"settings_config": observed}))

    def sync_current_to_live(self) -> list[AppType]:
        """Rewrite live files for every app that has a current provider.

        Returns:
            The apps whose live files were written.
        """
        synced: list[AppType] = []
        for app in ALL_APPS:
            provider_id = self.current(app)
            if not provider_id:
                continue
            provider = self._db.get_provider(app, provider_id)
            if provider is None:
                continue
            self._write_live(app, provider)
            synced.append(app)
        self._mcp.sync_all_enabled()
        return synced

    def read_live_settings(self, app: AppType) -> dict[str, Any]:
        return read_live_settings(app, self._state.live_paths())

    def import_default_config(self, app: AppType) -> bool:
        """Create provider ``default`` from the live file on first run."""
        if not self._db.is_providers_empty(app):
            return False
        paths = self._state.live_paths()
        if not live_config_exists(app, paths):
            return False
        payload = read_live_settings(app, paths)
        if app is AppType.CLAUDE:
            normalize_claude_models(payload)
        provider = Provider(
            id=DEFAULT_PROVIDER_ID,
            name=DEFAULT_PROVIDER_ID,
            settings_config=payload,
            category=DEFAULT_PROVIDER_CATEGORY,
            created_at=unix_millis(),
        )
        self._db.save_provider(app, provider)
        self._db.set_current_provider(app, provider.id)
        logger.info("Imported live %s configuration as provider %s", app.value, provider.id)
        return True

    def update_sort_order(self, app: AppType, updates: list[tuple[str, int]]) -> None:
        self._db.update_sort_indices(app, dict(updates))

    def get_custom_endpoints(self, app: AppType, provider_id: str) -> list[CustomEndpoint]:
        """Endpoints of a provider, newest first."""
        meta = self.get(app, provider_id).meta
        endpoints = list(meta.custom_endpoints.values()) if meta else []
        return sorted(endpoints, key=lambda ep: ep.added_at, reverse=True)

    def add_custom_endpoint(self, app: AppType, provider_id: str, url: str) -> None:
        self._db.add_custom_endpoint(app, provider_id, normalize_endpoint_url(url))

    def remove_custom_endpoint(self, app: AppType, provider_id: str, url: str) -> bool:
        return self._db.remove_custom_endpoint(app, provider_id, normalize_endpoint_url(url))

    def update_endpoint_last_used(self, app: AppType, provider_id: str, url: str) -> None:
        self._db.update_endpoint_last_used(app, provider_id, normalize_endpoint_url(url))
