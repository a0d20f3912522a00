from __future__ import annotations

from pathlib import Path

import pytest

from config_broker.config.paths import set_broker_home, set_home_dir
from config_broker.models.settings import load_settings
from config_broker.services.state import BrokerState
from config_broker.store.database import Database


@pytest.fixture(autouse=True)
def _isolated_homes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CONFIG_BROKER_HOME", str(tmp_path / "broker"))
    monkeypatch.setenv("CONFIG_BROKER_USER_HOME", str(tmp_path / "home"))
    for name in (
        "CONFIG_BROKER_BACKUP_RETAIN",
        "CONFIG_BROKER_CONFIG_BACKUP_RETAIN",
        "CONFIG_BROKER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    set_home_dir(None)
    set_broker_home(None)
    yield
    set_home_dir(None)
    set_broker_home(None)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir(exist_ok=True)
    return path


@pytest.fixture
def db():
    database = Database.open_in_memory()
    yield database
    database.close()


@pytest.fixture
def state(home: Path):
    broker = BrokerState.open(load_settings())
    yield broker
    broker.close()
