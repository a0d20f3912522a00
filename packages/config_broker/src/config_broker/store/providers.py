"""Provider rows and their custom endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any

from config_broker.errors import NotFoundError
from config_broker.models.apps import AppType  # noqa: TC001 (needed at runtime)
from config_broker.models.records import CustomEndpoint, Provider, ProviderMeta
from config_broker.store.base import StoreBase, load_json_column
from config_broker.utils import unix_millis

logger = logging.getLogger(__name__)

_PROVIDER_COLUMNS = """id, name, settings_config, website_url, category, created_at,
                       sort_index, notes, icon, icon_color, meta"""


def _meta_column(meta: ProviderMeta) -> str:
    """Serialize meta for the row. Endpoint URLs live in their own table; only
    per-endpoint ``lastUsed`` stamps stay embedded."""
    data = meta.model_copy(update={"custom_endpoints": {}}).to_json()
    last_used = {
        url: {"url": url, "lastUsed": endpoint.last_used}
        for url, endpoint in meta.custom_endpoints.items()
        if endpoint.last_used is not None
    }
    if last_used:
        data["custom_endpoints"] = last_used
    return json.dumps(data, ensure_ascii=False)


class ProviderDaoMixin(StoreBase):
    """CRUD for ``providers`` and ``provider_endpoints``."""

    def get_all_providers(self, app: AppType) -> dict[str, Provider]:
        """Return providers for ``app`` in display order, keyed by id."""
        with self._lock:
            rows = self._fetch_all(
                f"""SELECT {_PROVIDER_COLUMNS}
                   FROM providers WHERE app_type = ?
                   ORDER BY COALESCE(sort_index, 999999), created_at ASC, id ASC""",  # noqa: S608
                (app.value,),
            )
            return {row[0]: self._row_to_provider(app, row) for row in rows}

    def get_provider(self, app: AppType, provider_id: str) -> Provider | None:
        with self._lock:
            row = self._fetch_one(
                f"SELECT {_PROVIDER_COLUMNS} FROM providers WHERE id = ? AND app_type = ?",  # noqa: S608
                (provider_id, app.value),
            )
            return self._row_to_provider(app, row) if row else None

    def get_current_provider_id(self, app: AppType) -> str | None:
        """Return the id flagged current in the store (not the device pointer)."""
        row = self._fetch_one(
            "SELECT id FROM providers WHERE app_type = ? AND is_current = 1 LIMIT 1",
            (app.value,),
        )
        return row[0] if row else None

    def is_providers_empty(self, app: AppType) -> bool:
        row = self._fetch_one("SELECT COUNT(*) FROM providers WHERE app_type = ?", (app.value,))
        return not row or int(row[0]) == 0

    def save_provider(self, app: AppType, provider: Provider) -> None:
        """Insert or update a provider.

        Updates keep the row's current flag and leave endpoint rows untouched;
        inserts also write the provider's custom endpoints.
        """
        meta = provider.meta or ProviderMeta()
        meta_json = _meta_column(meta)
        settings_json = json.dumps(provider.settings_config, ensure_ascii=False)
        with self.transaction():
            exists = self._fetch_one(
                "SELECT 1 FROM providers WHERE id = ? AND app_type = ?",
                (provider.id, app.value),
            )
            if exists:
                self._execute(
                    """UPDATE providers
                       SET name = ?, settings_config = ?, website_url = ?, category = ?,
                           created_at = ?, sort_index = ?, notes = ?, icon = ?,
                           icon_color = ?, meta = ?
                       WHERE id = ? AND app_type = ?""",
                    (
                        provider.name,
                        settings_json,
                        provider.website_url,
                        provider.category,
                        provider.created_at,
                        provider.sort_index,
                        provider.notes,
                        provider.icon,
                        provider.icon_color,
                        meta_json,
                        provider.id,
                        app.value,
                    ),
                )
                return

            self._execute(
                """INSERT INTO providers
                   (id, app_type, name, settings_config, website_url, category, created_at,
                    sort_index, notes, icon, icon_color, meta, is_current)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)""",
                (
                    provider.id,
                    app.value,
                    provider.name,
                    settings_json,
                    provider.website_url,
                    provider.category,
                    provider.created_at,
                    provider.sort_index,
                    provider.notes,
                    provider.icon,
                    provider.icon_color,
                    meta_json,
                ),
            )
            for endpoint in meta.custom_endpoints.values():
                self._execute(
                    """INSERT INTO provider_endpoints (provider_id, app_type, url, added_at)
                       VALUES (?, ?, ?, ?)""",
                    (provider.id, app.value, endpoint.url, endpoint.added_at),
                )

    def delete_provider(self, app: AppType, provider_id: str) -> bool:
        """Delete a provider and its endpoints. Returns False if it did not exist."""
        with self.transaction():
            self._execute(
                "DELETE FROM provider_endpoints WHERE provider_id = ? AND app_type = ?",
                (provider_id, app.value),
            )
            deleted = self._execute(
                "DELETE FROM providers WHERE id = ? AND app_type = ?",
                (provider_id, app.value),
            )
        return deleted > 0

    def set_current_provider(self, app: AppType, provider_id: str) -> None:
        """Flag exactly one provider of ``app`` as current."""
        with self.transaction():
            self._execute("UPDATE providers SET is_current = 0 WHERE app_type = ?", (app.value,))
            updated = self._execute(
                "UPDATE providers SET is_current = 1 WHERE id = ? AND app_type = ?",
                (provider_id, app.value),
            )
            if updated == 0:
                msg = f"Provider {provider_id} not found for {app.value}"
                raise NotFoundError(msg, details={"id": provider_id, "app": app.value})

    def update_sort_indices(self, app: AppType, order: dict[str, int]) -> None:
        """Apply new ``sort_index`` values in one transaction."""
        with self.transaction():
            for provider_id, sort_index in order.items():
                self._execute(
                    "UPDATE providers SET sort_index = ? WHERE id = ? AND app_type = ?",
                    (sort_index, provider_id, app.value),
                )

    def add_custom_endpoint(self, app: AppType, provider_id: str, url: str) -> None:
        """Attach ``url`` to a provider unless it is already attached."""
        with self.transaction():
            if self.get_provider(app, provider_id) is None:
                msg = f"Provider {provider_id} not found for {app.value}"
                raise NotFoundError(msg, details={"id": provider_id, "app": app.value})
            existing = self._fetch_one(
                """SELECT 1 FROM provider_endpoints
                   WHERE provider_id = ? AND app_type = ? AND url = ?""",
                (provider_id, app.value, url),
            )
            if existing:
                return
            self._execute(
                """INSERT INTO provider_endpoints (provider_id, app_type, url, added_at)
                   VALUES (?, ?, ?, ?)""",
                (provider_id, app.value, url, unix_millis()),
            )

    def remove_custom_endpoint(self, app: AppType, provider_id: str, url: str) -> bool:
        removed = self._execute(
            "DELETE FROM provider_endpoints WHERE provider_id = ? AND app_type = ? AND url = ?",
            (provider_id, app.value, url),
        )
        return removed > 0

    def update_endpoint_last_used(self, app: AppType, provider_id: str, url: str) -> None:
        """Stamp ``url`` as just used on the provider's meta."""
        with self.transaction():
            provider = self.get_provider(app, provider_id)
            if provider is None:
                msg = f"Provider {provider_id} not found for {app.value}"
                raise NotFoundError(msg, details={"id": provider_id, "app": app.value})
            meta = provider.meta or ProviderMeta()
            endpoint = meta.custom_endpoints.get(url)
            if endpoint is None:
                msg = f"Endpoint {url} not found on provider {provider_id}"
                raise NotFoundError(msg, details={"id": provider_id, "url": url})
            endpoints = {
                **meta.custom_endpoints,
                url: endpoint.model_copy(update={"last_used": unix_millis()}),
            }
            updated = meta.model_copy(update={"custom_endpoints": endpoints})
            self._execute(
                "UPDATE providers SET meta = ? WHERE id = ? AND app_type = ?",
                (_meta_column(updated), provider_id, app.value),
            )

    def _load_endpoints(self, app: AppType, provider_id: str) -> list[tuple[str, int]]:
        rows = self._fetch_all(
            """SELECT url, added_at FROM provider_endpoints
               WHERE provider_id = ? AND app_type = ?
               ORDER BY added_at ASC, url ASC""",
            (provider_id, app.value),
        )
        return [(row[0], int(row[1] or 0)) for row in rows]

    def _row_to_provider(self, app: AppType, row: tuple[Any, ...]) -> Provider:
        meta_raw = load_json_column(row[10], {})
        stored_endpoints = meta_raw.pop("custom_endpoints", None) or {}
        endpoints: dict[str, CustomEndpoint] = {}
        for url, added_at in self._load_endpoints(app, row[0]):
            last_used = (stored_endpoints.get(url) or {}).get("lastUsed")
            endpoints[url] = CustomEndpoint(url=url, added_at=added_at, last_used=last_used)
        meta = ProviderMeta.model_validate({**meta_raw, "custom_endpoints": endpoints})
        return Provider(
            id=row[0],
            name=row[1],
            settings_config=load_json_column(row[2], {}),
            website_url=row[3],
            category=row[4],
            created_at=row[5],
            sort_index=row[6],
            notes=row[7],
            icon=row[8],
            icon_color=row[9],
            meta=meta,
        )
