from pathlib import Path

import pytest

from config_broker.config.device import DeviceSettingsStore
from config_broker.config.paths import DEFAULT_BROKER_HOME, get_broker_home, resolve_override_path
from config_broker.models.apps import AppType
from config_broker.models.device import DeviceSettings
from config_broker.models.settings import load_settings


def test_load_settings_defaults(tmp_path) -> None:
    settings = load_settings()

    assert settings.broker_home == str(tmp_path / "broker")
    assert settings.backup_retain == 10
    assert settings.config_backup_retain == 10
    assert settings.log_level == "INFO"


@pytest.mark.parametrize(("raw", "message"), [("abc", "must be an integer"), ("0", "at least 1")])
def test_load_settings_rejects_bad_retention(monkeypatch, raw, message) -> None:
    monkeypatch.setenv("CONFIG_BROKER_BACKUP_RETAIN", raw)

    with pytest.raises(ValueError, match=message):
        load_settings()


def test_device_settings_normalization() -> None:
    device = DeviceSettings(language=" zh ", claudeConfigDir="  ", codexConfigDir=" /opt/codex ")

    assert device.language == "zh"
    assert device.config_dir(AppType.CLAUDE) is None
    assert device.config_dir(AppType.CODEX) == "/opt/codex"
    assert DeviceSettings(language="fr").language is None


def test_override_paths(tmp_path) -> None:
    assert resolve_override_path("~", tmp_path) == tmp_path
    assert resolve_override_path("~/custom", tmp_path) == tmp_path / "custom"
    assert resolve_override_path("/abs/dir", tmp_path).as_posix() == "/abs/dir"


def test_device_store_persists_pointers(tmp_path) -> None:
    path = tmp_path / "settings.json"
    store = DeviceSettingsStore(path)

    store.set_current_provider(AppType.CLAUDE, "a")

    assert DeviceSettingsStore(path).get_current_provider(AppType.CLAUDE) == "a"
    assert '"currentProviderClaude": "a"' in path.read_text(encoding="utf-8")


def test_corrupt_device_file_falls_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    store = DeviceSettingsStore(path)

    assert store.get() == DeviceSettings()

    path.write_text('{"currentProviderGrok": "g"}', encoding="utf-8")
    store.reload()
    assert store.get_current_provider(AppType.GROK) == "g"


def test_default_home_matches_path_resolution(monkeypatch) -> None:
    monkeypatch.delenv("CONFIG_BROKER_HOME")

    assert load_settings().broker_home == DEFAULT_BROKER_HOME
    assert get_broker_home() == Path(DEFAULT_BROKER_HOME).expanduser()
