"""Free-form key/value settings table."""

from __future__ import annotations

from config_broker.store.base import StoreBase


class SettingsDaoMixin(StoreBase):
    """Access to the ``settings`` table (for example ``common_config_<app>`` snippets)."""

    def get_setting(self, key: str) -> str | None:
        row = self._fetch_one("SELECT value FROM settings WHERE key = ?", (key,))
        return row[0] if row else None

    def set_setting(self, key: str, value: str) -> None:
        self._execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, value)
        )

    def delete_setting(self, key: str) -> bool:
        return self._execute("DELETE FROM settings WHERE key = ?", (key,)) > 0
