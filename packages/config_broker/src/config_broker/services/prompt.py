"""Per-application prompt files (``CLAUDE.md``, ``AGENTS.md`` ...)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from config_broker.errors import ConflictError, NotFoundError
from config_broker.models.records import Prompt
from config_broker.utils import atomic_write_text, read_text, unix_seconds

if TYPE_CHECKING:
    from pathlib import Path

    from config_broker.models.apps import AppType
    from config_broker.services.state import BrokerState

logger = logging.getLogger(__name__)


def _display_stamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M")  # noqa: DTZ005


class PromptService:
    """At most one prompt per app is enabled; its content is the live prompt file."""

    def __init__(self, state: BrokerState) -> None:
        self._state = state

    def _prompt_file(self, app: AppType) -> Path:
        return self._state.live_paths().prompt_file(app)

    def get_prompts(self, app: AppType) -> dict[str, Prompt]:
        return self._state.db.get_prompts(app)

    def upsert_prompt(self, app: AppType, prompt: Prompt) -> None:
        """Save a prompt; an enabled prompt also replaces the live file."""
        now = unix_seconds()
        prompt = prompt.model_copy(
            update={"created_at": prompt.created_at or now, "updated_at": now}
        )
        db = self._state.db
        with db.transaction():
            if prompt.enabled:
                for other in db.get_prompts(app).values():
                    if other.enabled and other.id != prompt.id:
                        db.save_prompt(app, other.model_copy(update={"enabled": False}))
            db.save_prompt(app, prompt)
        if prompt.enabled:
            atomic_write_text(self._prompt_file(app), prompt.content)

    def delete_prompt(self, app: AppType, prompt_id: str) -> None:
        prompt = self.get_prompts(app).get(prompt_id)
        if prompt is None:
            msg = f"Prompt {prompt_id} not found for {app.value}"
            raise NotFoundError(msg, details={"id": prompt_id, "app": app.value})
        if prompt.enabled:
            msg = f"Cannot delete enabled prompt {prompt_id}"
            raise ConflictError(msg, details={"id": prompt_id, "app": app.value})
        self._state.db.delete_prompt(app, prompt_id)

    def _backfill_live_content(self, app: AppType) -> None:
        path = self._prompt_file(app)
        if not path.exists():
            return
        live = read_text(path)
        if not live.strip():
            return

        db = self._state.db
        prompts = db.get_prompts(app)
        now = unix_seconds()
        enabled = next((p for p in prompts.values() if p.enabled), None)
        if enabled is not None:
            if enabled.content != live:
                db.save_prompt(app, enabled.model_copy(update={"content": live, "updated_at": now}))
                logger.info("Backfilled live prompt content onto %s", enabled.id)
            return
        if any(p.content.strip() == live.strip() for p in prompts.values()):
            return
        backup = Prompt(
            id=f"backup-{now}",
            name=f"Original prompt {_display_stamp()}",
            content=live,
            description="Automatic backup of the original prompt file",
            enabled=False,
            created_at=now,
            updated_at=now,
        )
        db.save_prompt(app, backup)
        logger.info("Saved live prompt file as %s", backup.id)

    def enable_prompt(self, app: AppType, prompt_id: str) -> None:
        """Make ``prompt_id`` the only enabled prompt and write it to the live file.

        Raises:
            NotFoundError: If the prompt does not exist.
        """
        self._backfill_live_content(app)

        db = self._state.db
        prompts = db.get_prompts(app)
        target = prompts.get(prompt_id)
        if target is None:
            msg = f"Prompt {prompt_id} not found for {app.value}"
            raise NotFoundError(msg, details={"id": prompt_id, "app": app.value})

        with db.transaction():
            for prompt in prompts.values():
                if prompt.enabled and prompt.id != prompt_id:
                    db.save_prompt(app, prompt.model_copy(update={"enabled": False}))
            db.save_prompt(app, target.model_copy(update={"enabled": True}))
        atomic_write_text(self._prompt_file(app), target.content)
        logger.info("Enabled %s prompt %s", app.value, prompt_id)

    def get_current_file_content(self, app: AppType) -> str | None:
        path = self._prompt_file(app)
        return read_text(path) if path.exists() else None

    def import_from_file(self, app: AppType) -> str:
        """Store the live prompt file as a new, disabled prompt.

        Returns:
            The new prompt id.
        """
        path = self._prompt_file(app)
        if not path.exists():
            msg = f"Prompt file not found: {path}"
            raise NotFoundError(msg, details={"path": str(path)})
        now = unix_seconds()
        prompt = Prompt(
            id=f"imported-{now}",
            name=f"Imported prompt {_display_stamp()}",
            content=read_text(path),
            description="Imported from the existing prompt file",
            enabled=False,
            created_at=now,
        )
        self.upsert_prompt(app, prompt)
        return prompt.id

    def import_from_file_on_first_launch(self, app: AppType) -> bool:
        """Adopt an existing prompt file as the enabled prompt, once."""
        if not self._state.db.is_prompts_table_empty(app):
            return False
        content = self.get_current_file_content(app)
        if content is None or not content.strip():
            return False
        now = unix_seconds()
        self._state.db.save_prompt(
            app,
            Prompt(
                id=f"auto-imported-{now}",
                name=f"Auto-imported prompt {_display_stamp()}",
                content=content,
                description="Automatically imported on first launch",
                enabled=True,
                created_at=now,
                updated_at=now,
            ),
        )
        logger.info("Imported existing %s prompt file", app.value)
        return True
