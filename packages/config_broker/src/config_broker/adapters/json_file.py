"""JSON live files."""

from __future__ import annotations

import json
from pathlib import Path  # noqa: TC003 (needed at runtime)
from typing import Any

from config_broker.errors import FormatError
from config_broker.utils import atomic_write_text, read_text


def read_json_file(path: Path, default: Any = None) -> Any:
    """Load a JSON file, returning ``default`` when it does not exist.

    Raises:
        FormatError: If the file exists but is not valid JSON.
    """
    if not path.exists():
        return default
    text = read_text(path)
    if not text.strip():
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise FormatError(path, str(exc)) from exc


def read_json_object(path: Path) -> dict[str, Any]:
    """Load a JSON file that must hold an object; missing means empty."""
    data = read_json_file(path, default={})
    if not isinstance(data, dict):
        raise FormatError(path, "top-level value is not a JSON object")
    return data


def write_json_file(path: Path, data: Any, mode: int | None = None) -> None:
    """Write ``data`` as indented JSON atomically."""
    atomic_write_text(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n", mode=mode)
