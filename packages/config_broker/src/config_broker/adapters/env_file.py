"""``KEY=VALUE`` environment files, parsed with python-dotenv."""

from __future__ import annotations

import io
import re
from collections.abc import Iterable, Mapping
from pathlib import Path  # noqa: TC003 (needed at runtime)

from dotenv import dotenv_values

from config_broker.utils import atomic_write_text, read_text

ENV_FILE_MODE = 0o600

_NEEDS_QUOTES = re.compile(r"[\s#'\"\\]")


def parse_env_text(text: str) -> dict[str, str]:
    """Parse env-file text, keeping values literal.

    ``${VAR}`` references are not expanded. Keys declared without ``=``
    (a bare ``FLAG`` line) are dropped, so they do not survive a rewrite.
    """
    values = dotenv_values(stream=io.StringIO(text), interpolate=False)
    return {key: value for key, value in values.items() if value is not None}


def _format_value(value: str) -> str:
    if value and not _NEEDS_QUOTES.search(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def serialize_env(values: Mapping[str, str]) -> str:
    """Render ``values`` as one ``KEY=VALUE`` line each, in mapping order."""
    lines = [f"{key}={_format_value(value)}" for key, value in values.items()]
    return "\n".join(lines) + ("\n" if lines else "")


def merge_env(
    existing: Mapping[str, str],
    managed: Mapping[str, str],
    managed_keys: Iterable[str] = (),
) -> dict[str, str]:
    """Overlay ``managed`` onto ``existing``.

    Keys in ``managed_keys`` that are absent from ``managed`` are removed;
    every other key already in ``existing`` is preserved as-is.
    """
    owned = set(managed_keys) | set(managed)
    merged = {key: value for key, value in existing.items() if key not in owned}
    merged.update(managed)
    return merged


def read_env_file(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    return parse_env_text(read_text(path))


def write_env_file(path: Path, values: Mapping[str, str]) -> None:
    atomic_write_text(path, serialize_env(values), mode=ENV_FILE_MODE)
