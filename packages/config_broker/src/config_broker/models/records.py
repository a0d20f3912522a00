"""Pydantic models for records held in the relational store."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from config_broker.models.apps import McpApps


class _Record(BaseModel):
    """Base for store records: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CustomEndpoint(_Record):
    """Alternate base URL attached to a provider."""

    url: str
    added_at: int = Field(default=0, alias="addedAt")
    last_used: int | None = Field(default=None, alias="lastUsed")


class ProviderMeta(_Record):
    """Non-live metadata stored as an embedded JSON blob on the provider row."""

    custom_endpoints: dict[str, CustomEndpoint] = Field(
        default_factory=dict, alias="custom_endpoints"
    )
    is_partner: bool | None = Field(default=None, alias="isPartner")
    partner_promotion_key: str | None = Field(default=None, alias="partnerPromotionKey")
    candidate_models: list[str] | None = Field(default=None, alias="candidateModels")

    def to_json(self) -> dict[str, Any]:
        data = super().to_json()
        if not data.get("custom_endpoints"):
            data.pop("custom_endpoints", None)
        return data


class Provider(_Record):
    """Named configuration profile for one target application."""

    id: str
    name: str
    settings_config: Any = Field(default_factory=dict, alias="settingsConfig")
    website_url: str | None = Field(default=None, alias="websiteUrl")
    category: str | None = None
    created_at: int | None = Field(default=None, alias="createdAt")
    sort_index: int | None = Field(default=None, alias="sortIndex")
    notes: str | None = None
    meta: ProviderMeta | None = None
    icon: str | None = None
    icon_color: str | None = Field(default=None, alias="iconColor")


class McpServer(_Record):
    """Tool-server definition shared across applications."""

    id: str
    name: str
    server: dict[str, Any]
    apps: McpApps = Field(default_factory=McpApps)
    description: str | None = None
    homepage: str | None = None
    docs: str | None = None
    tags: list[str] = Field(default_factory=list)


class Prompt(_Record):
    """Named text blob scoped to one application."""

    id: str
    name: str
    content: str
    description: str | None = None
    enabled: bool = False
    created_at: int | None = Field(default=None, alias="createdAt")
    updated_at: int | None = Field(default=None, alias="updatedAt")


class SkillState(_Record):
    """Installation state of one skill bundle."""

    installed: bool
    installed_at: int = Field(default=0, alias="installedAt")


class SkillRepo(_Record):
    """Source repository scanned for skills."""

    owner: str
    name: str
    branch: str = "main"
    enabled: bool = True


class McpImportFailure(_Record):
    """One server that failed during a batch import."""

    id: str
    error: str


class McpImportResult(_Record):
    """Outcome of a batch MCP import."""

    imported_count: int = Field(default=0, alias="importedCount")
    imported_ids: list[str] = Field(default_factory=list, alias="importedIds")
    failed: list[McpImportFailure] = Field(default_factory=list)
