"""Pydantic models for records, live payloads and settings."""

from config_broker.models.apps import ALL_APPS, AppType, McpApps
from config_broker.models.device import DeviceSettings
from config_broker.models.live import (
    ClaudeSettings,
    CodexSettings,
    GeminiSettings,
    GrokSettings,
    LiveSettings,
    QwenSettings,
    normalize_claude_models,
    parse_live_settings,
)
from config_broker.models.records import (
    CustomEndpoint,
    McpImportFailure,
    McpImportResult,
    McpServer,
    Prompt,
    Provider,
    ProviderMeta,
    SkillRepo,
    SkillState,
)
from config_broker.models.settings import Settings, load_settings

__all__ = [
    "ALL_APPS",
    "AppType",
    "ClaudeSettings",
    "CodexSettings",
    "CustomEndpoint",
    "DeviceSettings",
    "GeminiSettings",
    "GrokSettings",
    "LiveSettings",
    "McpApps",
    "McpImportFailure",
    "McpImportResult",
    "McpServer",
    "Prompt",
    "Provider",
    "ProviderMeta",
    "QwenSettings",
    "Settings",
    "SkillRepo",
    "SkillState",
    "load_settings",
    "normalize_claude_models",
    "parse_live_settings",
]
