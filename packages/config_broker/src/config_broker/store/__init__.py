"""Relational store: schema, DAOs, backups and the legacy importer."""

from config_broker.store.backup import dump_sql, sanitize_import_sql, validate_basic_state
from config_broker.store.database import Database, prepare_connection
from config_broker.store.legacy import (
    LegacyConfig,
    LegacyMigrationReport,
    create_config_backup,
    dry_run_migration,
    load_legacy_config,
    migrate_from_json,
)
from config_broker.store.schema import SCHEMA_VERSION, apply_schema_migrations, create_tables
from config_broker.store.skills import DEFAULT_SKILL_REPOS

__all__ = [
    "DEFAULT_SKILL_REPOS",
    "SCHEMA_VERSION",
    "Database",
    "LegacyConfig",
    "LegacyMigrationReport",
    "apply_schema_migrations",
    "create_config_backup",
    "create_tables",
    "dry_run_migration",
    "dump_sql",
    "load_legacy_config",
    "migrate_from_json",
    "prepare_connection",
    "sanitize_import_sql",
    "validate_basic_state",
]
