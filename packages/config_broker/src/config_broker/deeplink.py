"""Apply import requests that arrive through ``ccswitch://`` style links.

The link itself is parsed elsewhere; this module receives the structured
request, decodes its base64 parameters and hands the result to the same
services interactive edits use.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import TYPE_CHECKING, Any, Literal
from urllib.parse import urlparse

import tomlkit
from pydantic import BaseModel, ConfigDict, Field
from tomlkit.exceptions import TOMLKitError

from config_broker.errors import ValidationError
from config_broker.models.apps import ALL_APPS, AppType, McpApps
from config_broker.models.records import McpImportResult, Prompt, Provider, SkillRepo
from config_broker.services.mcp import McpService
from config_broker.services.prompt import PromptService
from config_broker.services.provider import ProviderService
from config_broker.services.skill import SkillService
from config_broker.utils import unix_millis

if TYPE_CHECKING:
    from config_broker.services.state import BrokerState

logger = logging.getLogger(__name__)

ResourceKind = Literal["provider", "prompt", "mcp", "skill"]

CODEX_PROVIDER_KEY = "custom"
DEFAULT_SKILL_BRANCH = "main"

_ID_CHARS = re.compile(r"[^\w-]")


class DeepLinkImportRequest(BaseModel):
    """Parsed import link; which fields matter depends on ``resource``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = "v1"
    resource: ResourceKind
    app: str | None = None
    name: str | None = None
    enabled: bool | None = None
    # provider
    homepage: str | None = None
    endpoint: str | None = None
    api_key: str | None = Field(default=None, alias="apiKey")
    icon: str | None = None
    model: str | None = None
    notes: str | None = None
    haiku_model: str | None = Field(default=None, alias="haikuModel")
    sonnet_model: str | None = Field(default=None, alias="sonnetModel")
    opus_model: str | None = Field(default=None, alias="opusModel")
    # prompt
    content: str | None = None
    description: str | None = None
    # mcp
    apps: str | None = None
    # skill
    repo: str | None = None
    directory: str | None = None
    branch: str | None = None
    # base64 config document for provider and mcp
    config: str | None = None
    config_format: Literal["json", "toml"] | None = Field(default=None, alias="configFormat")


def decode_base64_param(field: str, raw: str) -> bytes:
    """Decode a base64 link parameter.

    Tolerates ``+`` turned into spaces by URL decoding, missing padding, and
    both the standard and URL-safe alphabets.

    Raises:
        ValidationError: If no variant decodes.
    """
    trimmed = raw.strip("\r\n")
    candidates: list[str] = []
    if " " in trimmed:
        candidates.append(trimmed.replace(" ", "+"))
    if trimmed and trimmed not in candidates:
        candidates.append(trimmed)
    for candidate in list(candidates):
        padded = candidate + "=" * (-len(candidate) % 4)
        if padded not in candidates:
            candidates.append(padded)

    last_error = "empty value"
    for candidate in candidates:
        for altchars in (None, b"-_"):
            try:
                return base64.b64decode(candidate, altchars=altchars, validate=True)
            except (binascii.Error, ValueError) as exc:
                last_error = str(exc)
    msg = (
        f"Failed to decode base64 parameter '{field}': {last_error}. "
        "Encode it as base64 and URL-escape it ('+' as %2B), or use URL-safe base64."
    )
    raise ValidationError(msg, details={"field": field})


def _decode_text(field: str, raw: str) -> str:
    try:
        return decode_base64_param(field, raw).decode("utf-8")
    except UnicodeDecodeError as exc:
        msg = f"Invalid UTF-8 in {field}: {exc}"
        raise ValidationError(msg, details={"field": field}) from exc


def parse_mcp_apps(apps: str) -> McpApps:
    """Parse ``"claude,codex"`` into enable flags."""
    enabled: list[AppType] = []
    for part in apps.split(","):
        value = part.strip()
        if value not in {app.value for app in ALL_APPS}:
            msg = f"Invalid app in 'apps': {value}"
            raise ValidationError(msg)
        enabled.append(AppType(value))
    result = McpApps.only(*enabled)
    if result.is_empty():
        msg = "At least one app must be specified in 'apps'"
        raise ValidationError(msg)
    return result


def validate_url(url: str, field: str) -> str:
    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        msg = f"Invalid URL for '{field}': must be an http or https URL, got {url!r}"
        raise ValidationError(msg, details={"field": field})
    return url.strip()


def infer_homepage(endpoint: str) -> str | None:
    """``https://api.example.com/v1`` -> ``https://example.com``."""
    host = urlparse(endpoint).hostname
    if not host:
        return None
    for prefix in ("api.", "api-"):
        if host.startswith(prefix):
            host = host[len(prefix) :]
            break
    return f"https://{host}"


def generate_id(name: str) -> str:
    """Lowercase id built from ``name`` plus a millisecond timestamp."""
    return f"{_ID_CHARS.sub('', name).lower()}-{unix_millis()}"


def _require(value: str | None, field: str, resource: str) -> str:
    if not value or not value.strip():
        msg = f"Missing '{field}' field for {resource}"
        raise ValidationError(msg, details={"field": field})
    return value


def _decode_config_document(request: DeepLinkImportRequest, app: AppType) -> dict[str, Any]:
    text = _decode_text("config", request.config or "")
    fmt = request.config_format or "json"
    if fmt == "toml":
        if app is not AppType.CODEX:
            msg = f"TOML config is only supported for codex, not {app.value}"
            raise ValidationError(msg)
        try:
            tomlkit.parse(text)
        except TOMLKitError as exc:
            msg = f"Invalid TOML in config: {exc}"
            raise ValidationError(msg) from exc
        return {"auth": {}, "config": text}
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in config: {exc}"
        raise ValidationError(msg) from exc
    if not isinstance(document, dict):
        msg = "Provider config must be a JSON object"
        raise ValidationError(msg)
    return document


def _apply_codex_fields(payload: dict[str, Any], request: DeepLinkImportRequest) -> None:
    if request.api_key:
        auth = payload.setdefault("auth", {})
        auth["OPENAI_API_KEY"] = request.api_key
    if not (request.endpoint or request.model):
        payload.setdefault("config", "")
        return
    try:
        doc = tomlkit.parse(payload.get("config") or "")
    except TOMLKitError as exc:
        msg = f"Invalid TOML in codex config: {exc}"
        raise ValidationError(msg) from exc
    if request.model:
        doc["model"] = request.model
    if request.endpoint:
        provider_key = str(doc.get("model_provider") or CODEX_PROVIDER_KEY)
        doc["model_provider"] = provider_key
        providers = doc.get("model_providers")
        if providers is None:
            doc["model_providers"] = tomlkit.table(is_super_table=True)
            providers = doc["model_providers"]
        entry = providers.get(provider_key)
        if entry is None:
            providers[provider_key] = tomlkit.table()
            entry = providers[provider_key]
        entry["name"] = request.name or provider_key
        entry["base_url"] = request.endpoint
        entry.setdefault("wire_api", "responses")
        entry.setdefault("requires_openai_auth", True)
    payload["config"] = tomlkit.dumps(doc)


def _apply_provider_fields(
    app: AppType, payload: dict[str, Any], request: DeepLinkImportRequest
) -> dict[str, Any]:
    """Overlay endpoint, key and model from the link onto ``payload``."""
    if app is AppType.CODEX:
        _apply_codex_fields(payload, request)
        return payload

    if app is AppType.GROK:
        fields = {"apiKey": request.api_key, "baseURL": request.endpoint, "defaultModel": request.model}
        payload.update({key: value for key, value in fields.items() if value})
        return payload

    if app is AppType.QWEN:
        auth = payload.setdefault("security", {}).setdefault("auth", {})
        auth.setdefault("selectedType", "openai")
        if request.api_key:
            auth["apiKey"] = request.api_key
        if request.endpoint:
            auth["baseUrl"] = request.endpoint
        if request.model:
            payload.setdefault("model", {})["name"] = request.model
        return payload

    if app is AppType.CLAUDE:
        keys = {
            "ANTHROPIC_BASE_URL": request.endpoint,
            "ANTHROPIC_AUTH_TOKEN": request.api_key,
            "ANTHROPIC_MODEL": request.model,
            "ANTHROPIC_DEFAULT_HAIKU_MODEL": request.haiku_model,
            "ANTHROPIC_DEFAULT_SONNET_MODEL": request.sonnet_model,
            "ANTHROPIC_DEFAULT_OPUS_MODEL": request.opus_model,
        }
    else:
        keys = {
            "GOOGLE_GEMINI_BASE_URL": request.endpoint,
            "GEMINI_API_KEY": request.api_key,
            "GEMINI_MODEL": request.model,
        }
    env = payload.setdefault("env", {})
    env.update({key: value for key, value in keys.items() if value})
    return payload


def build_provider(request: DeepLinkImportRequest) -> tuple[AppType, Provider]:
    """Turn a provider link into a provider record for its app."""
    app = AppType.parse(_require(request.app, "app", "provider"))
    name = _require(request.name, "name", "provider").strip()
    if request.endpoint:
        validate_url(request.endpoint, "endpoint")
    if request.homepage:
        validate_url(request.homepage, "homepage")

    if request.config:
        payload = _decode_config_document(request, app)
    else:
        _require(request.endpoint, "endpoint", "provider")
        _require(request.api_key, "apiKey", "provider")
        payload = {"config": {}} if app is AppType.GEMINI else {}
    payload = _apply_provider_fields(app, payload, request)

    homepage = request.homepage or (infer_homepage(request.endpoint) if request.endpoint else None)
    provider = Provider(
        id=generate_id(name),
        name=name,
        settings_config=payload,
        website_url=homepage,
        category="custom",
        created_at=unix_millis(),
        notes=request.notes,
        icon=request.icon,
    )
    return app, provider


def import_provider(state: BrokerState, request: DeepLinkImportRequest) -> str:
    app, provider = build_provider(request)
    providers = ProviderService(state)
    providers.add(app, provider)
    if request.enabled:
        providers.switch(app, provider.id)
    logger.info("Imported %s provider %s from link", app.value, provider.id)
    return provider.id


def import_prompt(state: BrokerState, request: DeepLinkImportRequest) -> str:
    app = AppType.parse(_require(request.app, "app", "prompt"))
    name = _require(request.name, "name", "prompt")
    content = _decode_text("content", _require(request.content, "content", "prompt"))
    prompt = Prompt(
        id=generate_id(name),
        name=name,
        content=content,
        description=request.description,
        enabled=False,
    )
    prompts = PromptService(state)
    prompts.upsert_prompt(app, prompt)
    if request.enabled:
        prompts.enable_prompt(app, prompt.id)
    logger.info("Imported %s prompt %s from link (enabled: %s)", app.value, prompt.id, bool(request.enabled))
    return prompt.id


def import_mcp(state: BrokerState, request: DeepLinkImportRequest) -> McpImportResult:
    apps = parse_mcp_apps(_require(request.apps, "apps", "mcp"))
    config = _decode_text("config", _require(request.config, "config", "mcp"))
    return McpService(state).import_mcp_servers_json(config, apps)


def import_skill(state: BrokerState, request: DeepLinkImportRequest) -> str:
    repo = _require(request.repo, "repo", "skill").strip()
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name or "/" in name:
        msg = f"Invalid repo format, expected 'owner/name': {repo}"
        raise ValidationError(msg, details={"field": "repo"})
    SkillService(state).save_repo(
        SkillRepo(owner=owner, name=name, branch=request.branch or DEFAULT_SKILL_BRANCH, enabled=True)
    )
    logger.info("Added skill repository %s from link", repo)
    return repo


def import_request(state: BrokerState, request: DeepLinkImportRequest) -> dict[str, Any]:
    """Apply ``request`` and describe what was created."""
    if request.resource == "provider":
        return {"type": "provider", "id": import_provider(state, request)}
    if request.resource == "prompt":
        return {"type": "prompt", "id": import_prompt(state, request)}
    if request.resource == "mcp":
        result = import_mcp(state, request)
        return {"type": "mcp", **result.to_json()}
    return {"type": "skill", "key": import_skill(state, request)}
