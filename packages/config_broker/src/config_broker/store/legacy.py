"""One-time import of the legacy ``config.json`` into the relational store."""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from config_broker.errors import BrokerIOError, FormatError, ValidationError
from config_broker.mcp.validation import MCP_UI_KEYS
from config_broker.models.apps import ALL_APPS, AppType, McpApps
from config_broker.models.records import McpServer, Prompt, Provider, SkillRepo, SkillState
from config_broker.utils import file_stamp, read_text

if TYPE_CHECKING:
    from config_broker.store.database import Database

logger = logging.getLogger(__name__)

CONFIG_BACKUP_PREFIX = "backup_"


class _LegacyModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LegacyProviderManager(_LegacyModel):
    providers: dict[str, dict[str, Any]] = Field(default_factory=dict)
    current: str = ""


class LegacyAppMcp(_LegacyModel):
    """Older per-application MCP shape with an ``enabled`` flag on each entry."""

    servers: dict[str, dict[str, Any]] = Field(default_factory=dict)


class LegacyMcp(_LegacyModel):
    servers: dict[str, dict[str, Any]] | None = None
    claude: LegacyAppMcp | None = None
    codex: LegacyAppMcp | None = None
    gemini: LegacyAppMcp | None = None
    grok: LegacyAppMcp | None = None
    qwen: LegacyAppMcp | None = None


class LegacyPrompts(_LegacyModel):
    prompts: dict[str, dict[str, Any]] = Field(default_factory=dict)


class LegacySkills(_LegacyModel):
    skills: dict[str, dict[str, Any]] = Field(default_factory=dict)
    repos: list[dict[str, Any]] = Field(default_factory=list)


class LegacyConfig(_LegacyModel):
    """Shape of the pre-database ``config.json``."""

    version: int | None = None
    claude: LegacyProviderManager | None = None
    codex: LegacyProviderManager | None = None
    gemini: LegacyProviderManager | None = None
    grok: LegacyProviderManager | None = None
    qwen: LegacyProviderManager | None = None
    mcp: LegacyMcp = Field(default_factory=LegacyMcp)
    prompts: dict[str, LegacyPrompts] = Field(default_factory=dict)
    skills: LegacySkills = Field(default_factory=LegacySkills)
    common_config_snippets: dict[str, str | None] = Field(
        default_factory=dict, alias="commonConfigSnippets"
    )

    def provider_managers(self) -> list[tuple[AppType, LegacyProviderManager]]:
        managers = []
        for app in ALL_APPS:
            manager = getattr(self, app.value)
            if manager is not None:
                managers.append((app, manager))
        return managers


class LegacyMigrationReport(BaseModel):
    """Row counts written by a legacy import, plus skipped entries."""

    providers: int = 0
    endpoints: int = 0
    mcp_servers: int = 0
    prompts: int = 0
    skills: int = 0
    skill_repos: int = 0
    settings: int = 0
    failures: list[str] = Field(default_factory=list)


def load_legacy_config(path: Path) -> LegacyConfig:
    """Parse ``config.json``.

    Raises:
        BrokerIOError: If the file cannot be read.
        FormatError: If it is not valid JSON or has the wrong shape.
    """
    text = read_text(path)
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FormatError(path, str(exc)) from exc
    try:
        return LegacyConfig.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise FormatError(path, str(exc)) from exc


def _to_unix_seconds(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, int | float):
        return int(value)
    try:
        return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp())
    except ValueError:
        return 0


def _collect_mcp_servers(config: LegacyConfig, report: LegacyMigrationReport) -> list[McpServer]:
    servers: dict[str, McpServer] = {}
    for server_id, raw in (config.mcp.servers or {}).items():
        try:
            servers[server_id] = McpServer.model_validate(
                {"name": server_id, **raw, "id": server_id}
            )
        except pydantic.ValidationError as exc:
            logger.warning("Skipping legacy MCP server %s: %s", server_id, exc)
            report.failures.append(f"mcp:{server_id}")

    for app in ALL_APPS:
        section: LegacyAppMcp | None = getattr(config.mcp, app.value)
        if section is None:
            continue
        for server_id, raw in section.servers.items():
            enabled = bool(raw.get("enabled", False))
            existing = servers.get(server_id)
            if existing is not None:
                if enabled:
                    servers[server_id] = existing.model_copy(
                        update={"apps": existing.apps.with_enabled(app, True)}
                    )
                continue
            spec = raw.get("server")
            if not isinstance(spec, dict):
                spec = {k: v for k, v in raw.items() if k not in MCP_UI_KEYS}
            try:
                servers[server_id] = McpServer(
                    id=server_id,
                    name=str(raw.get("name") or server_id),
                    server=spec,
                    apps=McpApps.only(app) if enabled else McpApps(),
                    description=raw.get("description"),
                    homepage=raw.get("homepage"),
                    docs=raw.get("docs"),
                    tags=raw.get("tags") or [],
                )
            except pydantic.ValidationError as exc:
                logger.warning("Skipping legacy %s MCP server %s: %s", app.value, server_id, exc)
                report.failures.append(f"mcp:{app.value}:{server_id}")
    return list(servers.values())


def migrate_from_json(db: Database, config: LegacyConfig) -> LegacyMigrationReport:
    """Write every legacy record into ``db`` inside one transaction.

    Entries that do not fit the record models are logged and skipped; a store
    failure rolls back the whole import.
    """
    report = LegacyMigrationReport()
    with db.transaction():
        for app, manager in config.provider_managers():
            for provider_id, raw in manager.providers.items():
                try:
                    provider = Provider.model_validate({**raw, "id": provider_id})
                except pydantic.ValidationError as exc:
                    logger.warning(
                        "Skipping legacy %s provider %s: %s", app.value, provider_id, exc
                    )
                    report.failures.append(f"provider:{app.value}:{provider_id}")
                    continue
                db.save_provider(app, provider)
                report.providers += 1
                if provider.meta is not None:
                    report.endpoints += len(provider.meta.custom_endpoints)
                if provider_id == manager.current:
                    db.set_current_provider(app, provider_id)

        for server in _collect_mcp_servers(config, report):
            db.save_mcp_server(server)
            report.mcp_servers += 1

        for app_name, section in config.prompts.items():
            try:
                app = AppType.parse(app_name)
            except ValidationError:
                logger.warning("Skipping legacy prompts for unknown app %s", app_name)
                continue
            for prompt_id, raw in section.prompts.items():
                try:
                    prompt = Prompt.model_validate({**raw, "id": prompt_id})
                except pydantic.ValidationError as exc:
                    logger.warning("Skipping legacy prompt %s: %s", prompt_id, exc)
                    report.failures.append(f"prompt:{app.value}:{prompt_id}")
                    continue
                db.save_prompt(app, prompt)
                report.prompts += 1

        for key, raw in config.skills.skills.items():
            state = SkillState(
                installed=bool(raw.get("installed", False)),
                installed_at=_to_unix_seconds(raw.get("installedAt", raw.get("installed_at"))),
            )
            db.update_skill_state(key, state)
            report.skills += 1

        for raw in config.skills.repos:
            try:
                repo = SkillRepo.model_validate(raw)
            except pydantic.ValidationError as exc:
                logger.warning("Skipping legacy skill repo %s: %s", raw, exc)
                report.failures.append(f"skill_repo:{raw.get('owner')}/{raw.get('name')}")
                continue
            db.save_skill_repo(repo)
            report.skill_repos += 1

        for app_name, snippet in config.common_config_snippets.items():
            if snippet is None:
                continue
            db.set_setting(f"common_config_{app_name}", snippet)
            report.settings += 1

    logger.info(
        "Legacy import wrote %d providers, %d MCP servers, %d prompts (%d skipped)",
        report.providers,
        report.mcp_servers,
        report.prompts,
        len(report.failures),
    )
    return report


def dry_run_migration(config: LegacyConfig) -> LegacyMigrationReport:
    """Run the import against a throwaway in-memory store."""
    from config_broker.store.database import Database  # noqa: PLC0415

    db = Database.open_in_memory()
    try:
        return migrate_from_json(db, config)
    finally:
        db.close()


def create_config_backup(path: Path, backups_dir: Path, retain: int = 10) -> Path | None:
    """Copy a JSON config file into ``backups_dir`` and rotate old copies.

    Returns:
        The backup path, or None when ``path`` does not exist.
    """
    if not path.exists():
        return None
    try:
        backups_dir.mkdir(parents=True, exist_ok=True)
        target = backups_dir / f"{CONFIG_BACKUP_PREFIX}{file_stamp()}.json"
        counter = 1
        while target.exists():
            target = backups_dir / f"{CONFIG_BACKUP_PREFIX}{file_stamp()}_{counter}.json"
            counter += 1
        shutil.copyfile(path, target)
    except OSError as exc:
        raise BrokerIOError(path, exc) from exc

    # The copy just made always survives rotation, even on an mtime tie.
    older = sorted(
        (p for p in backups_dir.glob(f"{CONFIG_BACKUP_PREFIX}*.json") if p != target),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for stale in older[max(retain - 1, 0) :]:
        try:
            stale.unlink()
        except OSError as exc:
            logger.warning("Failed to remove old config backup %s: %s", stale, exc)
    logger.info("Backed up %s to %s", path, target)
    return target
