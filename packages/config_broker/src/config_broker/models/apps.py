"""Target application identifiers and per-app enable flags."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from config_broker.errors import ValidationError


class AppType(str, Enum):
    """External command-line tool whose live configuration the broker manages."""

    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"
    GROK = "grok"
    QWEN = "qwen"

    @classmethod
    def parse(cls, value: str | AppType) -> AppType:
        """Parse an app name, raising ValidationError for unknown values."""
        if isinstance(value, AppType):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(app.value for app in cls)
            msg = f"Invalid app type: {value!r}. Valid: {valid}"
            raise ValidationError(msg) from None


ALL_APPS: tuple[AppType, ...] = tuple(AppType)


class McpApps(BaseModel, frozen=True):
    """One enabled flag per target application."""

    claude: bool = False
    codex: bool = False
    gemini: bool = False
    grok: bool = False
    qwen: bool = False

    def is_enabled_for(self, app: AppType) -> bool:
        return bool(getattr(self, app.value))

    def with_enabled(self, app: AppType, enabled: bool) -> McpApps:
        """Return a copy with one flag changed."""
        return self.model_copy(update={app.value: enabled})

    def enabled_apps(self) -> list[AppType]:
        return [app for app in ALL_APPS if self.is_enabled_for(app)]

    def is_empty(self) -> bool:
        return not self.enabled_apps()

    def merged_with(self, other: McpApps) -> McpApps:
        """Return the union of both flag sets."""
        return McpApps(
            **{
                app.value: self.is_enabled_for(app) or other.is_enabled_for(app)
                for app in ALL_APPS
            }
        )

    @classmethod
    def only(cls, *apps: AppType) -> McpApps:
        return cls(**{app.value: True for app in apps})
