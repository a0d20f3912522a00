from config_broker.config.device import DeviceSettingsStore
from config_broker.config.paths import (
    APP_DIR_NAMES,
    PROMPT_FILE_NAMES,
    BrokerPaths,
    LivePaths,
    get_broker_home,
    get_home_dir,
    set_broker_home,
    set_home_dir,
)

__all__ = [
    "APP_DIR_NAMES",
    "PROMPT_FILE_NAMES",
    "BrokerPaths",
    "DeviceSettingsStore",
    "LivePaths",
    "get_broker_home",
    "get_home_dir",
    "set_broker_home",
    "set_home_dir",
]
