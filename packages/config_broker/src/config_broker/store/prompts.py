"""Prompt rows, scoped per application."""

from __future__ import annotations

from typing import Any

from config_broker.models.apps import AppType  # noqa: TC001 (needed at runtime)
from config_broker.models.records import Prompt
from config_broker.store.base import StoreBase


class PromptDaoMixin(StoreBase):
    """CRUD for ``prompts``."""

    def get_prompts(self, app: AppType) -> dict[str, Prompt]:
        """Return the prompts of ``app`` keyed by id, oldest first."""
        rows = self._fetch_all(
            """SELECT id, name, content, description, enabled, created_at, updated_at
               FROM prompts WHERE app_type = ?
               ORDER BY created_at ASC, id ASC""",
            (app.value,),
        )
        return {row[0]: _row_to_prompt(row) for row in rows}

    def save_prompt(self, app: AppType, prompt: Prompt) -> None:
        self._execute(
            """INSERT OR REPLACE INTO prompts
               (id, app_type, name, content, description, enabled, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                prompt.id,
                app.value,
                prompt.name,
                prompt.content,
                prompt.description,
                int(prompt.enabled),
                prompt.created_at,
                prompt.updated_at,
            ),
        )

    def delete_prompt(self, app: AppType, prompt_id: str) -> bool:
        deleted = self._execute(
            "DELETE FROM prompts WHERE id = ? AND app_type = ?", (prompt_id, app.value)
        )
        return deleted > 0

    def is_prompts_table_empty(self, app: AppType) -> bool:
        row = self._fetch_one("SELECT COUNT(*) FROM prompts WHERE app_type = ?", (app.value,))
        return not row or int(row[0]) == 0


def _row_to_prompt(row: tuple[Any, ...]) -> Prompt:
    return Prompt(
        id=row[0],
        name=row[1],
        content=row[2],
        description=row[3],
        enabled=bool(row[4]),
        created_at=row[5],
        updated_at=row[6],
    )
