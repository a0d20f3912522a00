"""Typed per-application settings payloads.

A provider's ``settings_config`` is stored as an opaque JSON document. Before
anything is written to disk it passes through ``parse_live_settings``, which
picks the model for the target application and validates it. Business logic
works with these models instead of probing raw dictionaries.
"""

from __future__ import annotations

import re
import tomllib
from typing import Any, ClassVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config_broker.errors import ValidationError
from config_broker.models.apps import AppType

ENV_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DEFAULT_GROK_MODEL = "grok-code-fast-1"
GROK_SETTINGS_VERSION = 2


class LiveSettings(BaseModel):
    """Base for typed live payloads. Unknown fields are preserved."""

    app: ClassVar[AppType]

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """Return the canonical JSON document for storage."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ClaudeSettings(LiveSettings):
    """``~/.claude/settings.json``; the whole document is the payload."""

    app: ClassVar[AppType] = AppType.CLAUDE

    env: dict[str, Any] | None = None


class CodexSettings(LiveSettings):
    """``auth.json`` object plus the raw ``config.toml`` text."""

    app: ClassVar[AppType] = AppType.CODEX

    auth: dict[str, Any]
    config: str | None = None

    @field_validator("config")
    @classmethod
    def _config_must_parse(cls, value: str | None) -> str | None:
        if value:
            try:
                tomllib.loads(value)
            except tomllib.TOMLDecodeError as exc:
                msg = f"Codex config is not valid TOML: {exc}"
                raise ValueError(msg) from exc
        return value


class GeminiSettings(LiveSettings):
    """``.env`` variables plus an optional ``settings.json`` overlay."""

    app: ClassVar[AppType] = AppType.GEMINI

    env: dict[str, str] = Field(default_factory=dict)
    config: dict[str, Any] | None = None

    @field_validator("env")
    @classmethod
    def _env_keys_are_identifiers(cls, value: dict[str, str]) -> dict[str, str]:
        for key in value:
            if not ENV_KEY_PATTERN.match(key):
                msg = f"Invalid environment variable name: {key!r}"
                raise ValueError(msg)
        return value

    @property
    def api_key(self) -> str | None:
        return self.env.get("GEMINI_API_KEY") or self.env.get("GOOGLE_API_KEY") or None


class GrokSettings(LiveSettings):
    """``~/.grok/user-settings.json``."""

    app: ClassVar[AppType] = AppType.GROK

    api_key: str | None = Field(default=None, alias="apiKey")
    base_url: str | None = Field(default=None, alias="baseURL")
    default_model: str = Field(default=DEFAULT_GROK_MODEL, alias="defaultModel")
    models: list[str] | None = None
    mcp_servers: dict[str, Any] | None = Field(default=None, alias="mcpServers")
    settings_version: int = Field(default=GROK_SETTINGS_VERSION, alias="settingsVersion")


class QwenExperimental(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    vlm_switch_mode: str | None = Field(default=None, alias="vlmSwitchMode")
    vision_model_preview: bool | None = Field(default=None, alias="visionModelPreview")


class QwenSettings(LiveSettings):
    """``~/.qwen/settings.json``."""

    app: ClassVar[AppType] = AppType.QWEN

    session_token_limit: int | None = Field(default=None, alias="sessionTokenLimit")
    experimental: QwenExperimental | None = None


LIVE_SETTINGS_MODELS: dict[AppType, type[LiveSettings]] = {
    AppType.CLAUDE: ClaudeSettings,
    AppType.CODEX: CodexSettings,
    AppType.GEMINI: GeminiSettings,
    AppType.GROK: GrokSettings,
    AppType.QWEN: QwenSettings,
}


def parse_live_settings(app: AppType, payload: Any) -> LiveSettings:
    """Validate a provider payload for ``app`` and return its typed model.

    Raises:
        ValidationError: If the payload is not an object or fails the model.
    """
    if not isinstance(payload, dict):
        msg = f"{app.value} configuration must be a JSON object"
        raise ValidationError(msg, details={"app": app.value})
    model = LIVE_SETTINGS_MODELS[app]
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        msg = f"Invalid {app.value} configuration: {errors}"
        raise ValidationError(msg, details={"app": app.value}) from exc


def normalize_claude_models(payload: dict[str, Any]) -> bool:
    """Replace the deprecated small/fast model key with per-tier defaults.

    Mutates ``payload`` in place and returns True if anything changed.
    """
    env = payload.get("env")
    if not isinstance(env, dict):
        return False

    def _str(key: str) -> str | None:
        value = env.get(key)
        return value if isinstance(value, str) else None

    model = _str("ANTHROPIC_MODEL")
    small_fast = _str("ANTHROPIC_SMALL_FAST_MODEL")
    targets = {
        "ANTHROPIC_DEFAULT_HAIKU_MODEL": small_fast or model,
        "ANTHROPIC_DEFAULT_SONNET_MODEL": model or small_fast,
        "ANTHROPIC_DEFAULT_OPUS_MODEL": model or small_fast,
    }

    changed = False
    for key, fallback in targets.items():
        if key not in env and fallback:
            env[key] = fallback
            changed = True
    if env.pop("ANTHROPIC_SMALL_FAST_MODEL", None) is not None:
        changed = True
    return changed
