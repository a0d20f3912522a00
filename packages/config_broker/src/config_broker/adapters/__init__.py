"""Format adapters for JSON, TOML and env live files."""

from config_broker.adapters.env_file import (
    merge_env,
    parse_env_text,
    read_env_file,
    serialize_env,
    write_env_file,
)
from config_broker.adapters.json_file import read_json_file, read_json_object, write_json_file
from config_broker.adapters.toml_file import (
    json_server_to_toml_table,
    json_value_to_toml_item,
    parse_toml_document,
    toml_table_to_server,
)

__all__ = [
    "json_server_to_toml_table",
    "json_value_to_toml_item",
    "merge_env",
    "parse_env_text",
    "parse_toml_document",
    "read_env_file",
    "read_json_file",
    "read_json_object",
    "serialize_env",
    "toml_table_to_server",
    "write_env_file",
    "write_json_file",
]
