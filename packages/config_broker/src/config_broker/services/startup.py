"""Broker startup: open the store, adopt legacy data and existing live files."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from config_broker.config.paths import BrokerPaths
from config_broker.errors import BrokerError
from config_broker.models.apps import ALL_APPS
from config_broker.models.settings import Settings, load_settings
from config_broker.services.mcp import McpService
from config_broker.services.prompt import PromptService
from config_broker.services.provider import ProviderService
from config_broker.services.skill import SkillService
from config_broker.services.state import BrokerState, InitError, StartupStatus
from config_broker.store.legacy import dry_run_migration, load_legacy_config, migrate_from_json

if TYPE_CHECKING:
    from collections.abc import Callable

    from config_broker.store.legacy import LegacyConfig

logger = logging.getLogger(__name__)


def _load_pending_legacy(paths: BrokerPaths, status: StartupStatus) -> LegacyConfig | None:
    """Load ``config.json`` when no database exists yet.

    A load failure is recorded on ``status`` and re-raised so the database
    file is never created from a half-read legacy config.
    """
    if paths.database.exists() or not paths.legacy_config.exists():
        return None
    try:
        return load_legacy_config(paths.legacy_config)
    except BrokerError as exc:
        status.init_error = InitError(path=str(paths.legacy_config), error=exc.message)
        logger.error("Failed to load legacy config %s: %s", paths.legacy_config, exc)
        raise


def _migrate_legacy(state: BrokerState, config: LegacyConfig) -> None:
    paths = state.paths
    try:
        dry_run_migration(config)
        report = migrate_from_json(state.db, config)
    except BrokerError as exc:
        state.status.init_error = InitError(path=str(paths.legacy_config), error=exc.message)
        logger.error("Legacy config migration failed: %s", exc)
        return
    try:
        paths.legacy_config.replace(paths.legacy_archive)
    except OSError as exc:
        logger.warning("Migrated legacy config but could not archive it: %s", exc)
    else:
        logger.info("Archived legacy config to %s", paths.legacy_archive)
    if report.failures:
        logger.warning("Legacy migration skipped %d entries", len(report.failures))
    state.status.mark_migration_success()


def _run_step(name: str, step: Callable[[], object]) -> None:
    try:
        result = step()
    except BrokerError as exc:
        logger.warning("Startup step %s failed: %s", name, exc)
        return
    logger.debug("Startup step %s finished: %s", name, result)


def bootstrap(settings: Settings | None = None, status: StartupStatus | None = None) -> BrokerState:
    """Open the broker and run first-launch imports.

    Every import step is independent: one failing is logged and the rest
    still run.

    Args:
        settings: Runtime settings; loaded from the environment when omitted.
        status: Status object to report into; a fresh one when omitted.

    Returns:
        The opened broker state.

    Raises:
        BrokerError: If a pending legacy config cannot be read, or the store
            cannot be opened.
    """
    settings = settings or load_settings()
    status = status or StartupStatus()
    paths = BrokerPaths.from_settings(settings)
    paths.ensure()

    legacy = _load_pending_legacy(paths, status)
    state = BrokerState.open(settings, status=status)
    if legacy is not None:
        _migrate_legacy(state, legacy)

    mcp = McpService(state)
    providers = ProviderService(state, mcp)
    prompts = PromptService(state)
    skills = SkillService(state)

    _run_step("skill repos", skills.init_default_repos)
    for app in ALL_APPS:
        _run_step(f"default {app.value} provider", lambda app=app: providers.import_default_config(app))
    if state.db.is_mcp_table_empty():
        _run_step("MCP import", mcp.import_all_from_live)
    for app in ALL_APPS:
        _run_step(
            f"{app.value} prompt import",
            lambda app=app: prompts.import_from_file_on_first_launch(app),
        )
    logger.info("Broker ready at %s", paths.home)
    return state
