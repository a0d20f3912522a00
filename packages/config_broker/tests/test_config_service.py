import json

import pytest

from config_broker.errors import NotFoundError
from config_broker.models.apps import AppType
from config_broker.models.records import Provider
from config_broker.services.config import ConfigService
from config_broker.services.provider import ProviderService


@pytest.fixture
def config_service(state):
    service = ConfigService(state)
    yield service
    service.shutdown()


def test_export_then_import_restores_and_syncs(state, config_service, tmp_path) -> None:
    providers = ProviderService(state)
    providers.add(
        AppType.CLAUDE,
        Provider(id="a", name="A", settings_config={"env": {"ANTHROPIC_AUTH_TOKEN": "t"}}),
    )
    dump = tmp_path / "export.sql"

    exported = config_service.export_to_file(dump).result(timeout=30)
    assert exported == {"success": True, "message": "SQL exported successfully", "filePath": str(dump)}

    state.live_paths().claude_settings.unlink()

    imported = config_service.import_from_file(dump).result(timeout=30)

    assert imported["success"] is True
    assert imported["backupId"]
    assert set(providers.list_providers(AppType.CLAUDE)) == {"a"}
    live = json.loads(state.live_paths().claude_settings.read_text(encoding="utf-8"))
    assert live == {"env": {"ANTHROPIC_AUTH_TOKEN": "t"}}


def test_import_errors_surface_through_the_future(config_service, tmp_path) -> None:
    future = config_service.import_from_file(tmp_path / "missing.sql")

    with pytest.raises(NotFoundError):
        future.result(timeout=30)


def test_config_file_backup_uses_broker_backups_dir(state, config_service, tmp_path) -> None:
    source = tmp_path / "settings.json"
    source.write_text("{}", encoding="utf-8")

    created = config_service.create_config_backup(source)

    assert created is not None
    assert created.parent == state.paths.backups_dir
