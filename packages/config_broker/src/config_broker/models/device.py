"""Device-local settings kept outside the relational store."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config_broker.models.apps import AppType

SUPPORTED_LANGUAGES = ("en", "zh", "ja")


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class DeviceSettings(BaseModel):
    """Per-device settings: current provider pointers and live-dir overrides.

    The current-provider pointers here take priority over the store's
    ``is_current`` flag, so two devices sharing one store can select
    different providers.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    language: str | None = None

    claude_config_dir: str | None = Field(default=None, alias="claudeConfigDir")
    codex_config_dir: str | None = Field(default=None, alias="codexConfigDir")
    gemini_config_dir: str | None = Field(default=None, alias="geminiConfigDir")
    grok_config_dir: str | None = Field(default=None, alias="grokConfigDir")
    qwen_config_dir: str | None = Field(default=None, alias="qwenConfigDir")

    current_provider_claude: str | None = Field(default=None, alias="currentProviderClaude")
    current_provider_codex: str | None = Field(default=None, alias="currentProviderCodex")
    current_provider_gemini: str | None = Field(default=None, alias="currentProviderGemini")
    current_provider_grok: str | None = Field(default=None, alias="currentProviderGrok")
    current_provider_qwen: str | None = Field(default=None, alias="currentProviderQwen")

    @field_validator(
        "claude_config_dir",
        "codex_config_dir",
        "gemini_config_dir",
        "grok_config_dir",
        "qwen_config_dir",
    )
    @classmethod
    def _normalize_dir(cls, value: str | None) -> str | None:
        return _blank_to_none(value)

    @field_validator("language")
    @classmethod
    def _normalize_language(cls, value: str | None) -> str | None:
        value = _blank_to_none(value)
        return value if value in SUPPORTED_LANGUAGES else None

    def current_provider(self, app: AppType) -> str | None:
        return getattr(self, f"current_provider_{app.value}")

    def config_dir(self, app: AppType) -> str | None:
        return getattr(self, f"{app.value}_config_dir")

    def with_current_provider(self, app: AppType, provider_id: str | None) -> DeviceSettings:
        return self.model_copy(update={f"current_provider_{app.value}": provider_id})

    def to_json(self) -> dict[str, str]:
        return self.model_dump(by_alias=True, exclude_none=True)
