"""Command-line entry point.

Usage:
    config-broker list claude
    config-broker switch claude my-provider
    config-broker sync
    config-broker backup
    config-broker export dump.sql
    config-broker import dump.sql
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from config_broker.errors import BrokerError
from config_broker.logging_utils import configure_logging
from config_broker.models.apps import ALL_APPS, AppType
from config_broker.models.settings import load_settings
from config_broker.services.config import ConfigService
from config_broker.services.provider import ProviderService
from config_broker.services.startup import bootstrap
from config_broker.services.state import BrokerState


def _cmd_list(state: BrokerState, args: argparse.Namespace) -> None:
    app = AppType.parse(args.app)
    providers = ProviderService(state)
    current = providers.current(app)
    for provider in providers.list_providers(app).values():
        marker = "*" if provider.id == current else " "
        print(f"{marker} {provider.id}\t{provider.name}")


def _cmd_switch(state: BrokerState, args: argparse.Namespace) -> None:
    app = AppType.parse(args.app)
    ProviderService(state).switch(app, args.provider_id)
    print(f"Switched {app.value} to {args.provider_id}")


def _cmd_sync(state: BrokerState, _args: argparse.Namespace) -> None:
    synced = ProviderService(state).sync_current_to_live()
    names = ", ".join(app.value for app in synced) or "none"
    print(f"Synced live files for: {names}")


def _cmd_backup(state: BrokerState, _args: argparse.Namespace) -> None:
    path = state.db.backup_database_file()
    state.db.cleanup_db_backups()
    print(f"Backup written to {path}" if path else "Nothing to back up")


def _cmd_export(state: BrokerState, args: argparse.Namespace) -> None:
    service = ConfigService(state)
    try:
        result = service.export_to_file(args.file).result()
    finally:
        service.shutdown()
    print(json.dumps(result, indent=2))


def _cmd_import(state: BrokerState, args: argparse.Namespace) -> None:
    service = ConfigService(state)
    try:
        result = service.import_from_file(args.file).result()
    finally:
        service.shutdown()
    print(json.dumps(result, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="config-broker",
        description="Manage provider, MCP and prompt configuration for AI coding CLIs",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    app_choices = [app.value for app in ALL_APPS]

    list_parser = sub.add_parser("list", help="List providers of an app")
    list_parser.add_argument("app", choices=app_choices)
    list_parser.set_defaults(handler=_cmd_list)

    switch_parser = sub.add_parser("switch", help="Switch the current provider of an app")
    switch_parser.add_argument("app", choices=app_choices)
    switch_parser.add_argument("provider_id")
    switch_parser.set_defaults(handler=_cmd_switch)

    sync_parser = sub.add_parser("sync", help="Rewrite live files from current providers")
    sync_parser.set_defaults(handler=_cmd_sync)

    backup_parser = sub.add_parser("backup", help="Write a binary snapshot of the database")
    backup_parser.set_defaults(handler=_cmd_backup)

    export_parser = sub.add_parser("export", help="Export the database as SQL")
    export_parser.add_argument("file", type=Path)
    export_parser.set_defaults(handler=_cmd_export)

    import_parser = sub.add_parser("import", help="Replace the database from a SQL export")
    import_parser.add_argument("file", type=Path)
    import_parser.set_defaults(handler=_cmd_import)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level)

    try:
        state = bootstrap(settings)
    except BrokerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    try:
        args.handler(state, args)
    except BrokerError as e:
        print(f"Error [{e.error_code}]: {e.message}", file=sys.stderr)
        return 1
    finally:
        state.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
