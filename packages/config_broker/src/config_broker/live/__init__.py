"""Live configuration files of the target applications."""

from config_broker.live.writer import (
    live_config_exists,
    primary_live_file,
    read_live_settings,
    write_live_settings,
)

__all__ = [
    "live_config_exists",
    "primary_live_file",
    "read_live_settings",
    "write_live_settings",
]
