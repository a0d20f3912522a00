"""Skill installation state and skill source repositories."""

from __future__ import annotations

import logging

from config_broker.models.records import SkillRepo, SkillState
from config_broker.store.base import StoreBase

logger = logging.getLogger(__name__)

DEFAULT_SKILL_REPOS: tuple[SkillRepo, ...] = (
    SkillRepo(owner="anthropics", name="skills"),
    SkillRepo(owner="ComposioHQ", name="awesome-claude-skills"),
    SkillRepo(owner="cexll", name="myclaude"),
)


class SkillDaoMixin(StoreBase):
    """CRUD for ``skills`` and ``skill_repos``."""

    def get_skills(self) -> dict[str, SkillState]:
        rows = self._fetch_all("SELECT key, installed, installed_at FROM skills ORDER BY key")
        return {
            row[0]: SkillState(installed=bool(row[1]), installed_at=int(row[2] or 0))
            for row in rows
        }

    def update_skill_state(self, key: str, state: SkillState) -> None:
        self._execute(
            "INSERT OR REPLACE INTO skills (key, installed, installed_at) VALUES (?, ?, ?)",
            (key, int(state.installed), state.installed_at),
        )

    def get_skill_repos(self) -> list[SkillRepo]:
        rows = self._fetch_all(
            "SELECT owner, name, branch, enabled FROM skill_repos ORDER BY owner ASC, name ASC"
        )
        return [
            SkillRepo(owner=row[0], name=row[1], branch=row[2], enabled=bool(row[3]))
            for row in rows
        ]

    def save_skill_repo(self, repo: SkillRepo) -> None:
        self._execute(
            """INSERT OR REPLACE INTO skill_repos (owner, name, branch, enabled)
               VALUES (?, ?, ?, ?)""",
            (repo.owner, repo.name, repo.branch, int(repo.enabled)),
        )

    def delete_skill_repo(self, owner: str, name: str) -> bool:
        deleted = self._execute(
            "DELETE FROM skill_repos WHERE owner = ? AND name = ?", (owner, name)
        )
        return deleted > 0

    def init_default_skill_repos(self) -> int:
        """Seed the default repositories when none are configured.

        Returns:
            Number of repositories inserted.
        """
        with self.transaction():
            if self._count("skill_repos") > 0:
                return 0
            for repo in DEFAULT_SKILL_REPOS:
                self.save_skill_repo(repo)
        logger.info("Seeded %d default skill repositories", len(DEFAULT_SKILL_REPOS))
        return len(DEFAULT_SKILL_REPOS)
