"""Skill install state and source repositories."""

from __future__ import annotations

from typing import TYPE_CHECKING

from config_broker.errors import ValidationError
from config_broker.models.records import SkillRepo, SkillState
from config_broker.utils import unix_seconds

if TYPE_CHECKING:
    from config_broker.services.state import BrokerState


class SkillService:
    def __init__(self, state: BrokerState) -> None:
        self._state = state

    def get_skill_states(self) -> dict[str, SkillState]:
        return self._state.db.get_skills()

    def set_skill_installed(self, key: str, installed: bool) -> SkillState:
        state = SkillState(installed=installed, installed_at=unix_seconds() if installed else 0)
        self._state.db.update_skill_state(key, state)
        return state

    def list_repos(self) -> list[SkillRepo]:
        return self._state.db.get_skill_repos()

    def save_repo(self, repo: SkillRepo) -> None:
        if not repo.owner.strip() or not repo.name.strip():
            msg = "Skill repository needs both owner and name"
            raise ValidationError(msg)
        self._state.db.save_skill_repo(repo)

    def delete_repo(self, owner: str, name: str) -> bool:
        return self._state.db.delete_skill_repo(owner, name)

    def init_default_repos(self) -> int:
        return self._state.db.init_default_skill_repos()
