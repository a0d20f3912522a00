import base64
import json
import tomllib

import pytest

from config_broker.deeplink import (
    DeepLinkImportRequest,
    build_provider,
    decode_base64_param,
    generate_id,
    import_request,
    infer_homepage,
    parse_mcp_apps,
)
from config_broker.errors import ValidationError
from config_broker.models.apps import AppType
from config_broker.services.mcp import McpService
from config_broker.services.prompt import PromptService
from config_broker.services.provider import ProviderService
from config_broker.services.skill import SkillService


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("aGk=", b"hi"),
        ("aGk", b"hi"),
        (" / /", b"\xfb\xff\xbf"),
        ("-_-_", b"\xfb\xff\xbf"),
        ("aGk=\n", b"hi"),
    ],
)
def test_decode_base64_variants(raw, expected) -> None:
    assert decode_base64_param("config", raw) == expected


def test_decode_base64_rejects_garbage() -> None:
    with pytest.raises(ValidationError, match="'config'"):
        decode_base64_param("config", "***")


def test_parse_mcp_apps() -> None:
    apps = parse_mcp_apps("claude, codex")
    assert apps.enabled_apps() == [AppType.CLAUDE, AppType.CODEX]

    with pytest.raises(ValidationError, match="Invalid app"):
        parse_mcp_apps("claude,vim")


def test_helpers() -> None:
    assert infer_homepage("https://api.example.com/v1") == "https://example.com"
    assert infer_homepage("https://api-relay.example.com") == "https://relay.example.com"
    assert generate_id("My Prompt!").startswith("myprompt-")


def test_request_accepts_link_field_names() -> None:
    request = DeepLinkImportRequest.model_validate(
        {"resource": "provider", "apiKey": "k", "haikuModel": "h", "configFormat": "toml"}
    )
    assert request.api_key == "k"
    assert request.haiku_model == "h"
    assert request.config_format == "toml"


def test_claude_provider_from_fields() -> None:
    request = DeepLinkImportRequest(
        resource="provider",
        app="claude",
        name="Relay",
        endpoint="https://api.example.com",
        api_key="sk-1",
        model="m",
        haiku_model="h",
    )

    app, provider = build_provider(request)

    assert app is AppType.CLAUDE
    assert provider.website_url == "https://example.com"
    assert provider.category == "custom"
    assert provider.settings_config == {
        "env": {
            "ANTHROPIC_BASE_URL": "https://api.example.com",
            "ANTHROPIC_AUTH_TOKEN": "sk-1",
            "ANTHROPIC_MODEL": "m",
            "ANTHROPIC_DEFAULT_HAIKU_MODEL": "h",
        }
    }


def test_codex_provider_from_fields() -> None:
    request = DeepLinkImportRequest(
        resource="provider",
        app="codex",
        name="Relay",
        endpoint="https://relay.example.com/v1",
        api_key="sk-1",
        model="gpt-5",
    )

    _, provider = build_provider(request)

    assert provider.settings_config["auth"] == {"OPENAI_API_KEY": "sk-1"}
    config = tomllib.loads(provider.settings_config["config"])
    assert config["model"] == "gpt-5"
    assert config["model_provider"] == "custom"
    assert config["model_providers"]["custom"]["base_url"] == "https://relay.example.com/v1"


def test_codex_provider_from_toml_document() -> None:
    request = DeepLinkImportRequest(
        resource="provider",
        app="codex",
        name="Relay",
        config=_b64('model = "o3"\n'),
        config_format="toml",
        api_key="sk-1",
    )

    _, provider = build_provider(request)

    assert provider.settings_config == {"auth": {"OPENAI_API_KEY": "sk-1"}, "config": 'model = "o3"\n'}


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        ({"app": "claude", "name": "x", "endpoint": "https://a.example.com"}, "apiKey"),
        ({"app": "claude", "name": "x", "endpoint": "ftp://a.example.com", "api_key": "k"}, "endpoint"),
        ({"app": "claude", "endpoint": "https://a.example.com", "api_key": "k"}, "name"),
        ({"app": "gemini", "name": "x", "config": _b64("a = 1"), "config_format": "toml"}, "only supported"),
        ({"app": "claude", "name": "x", "config": _b64("[1, 2]")}, "JSON object"),
    ],
)
def test_bad_provider_links(fields, message) -> None:
    with pytest.raises(ValidationError, match=message):
        build_provider(DeepLinkImportRequest(resource="provider", **fields))


def test_provider_import_is_saved_and_switched(state) -> None:
    request = DeepLinkImportRequest(
        resource="provider",
        app="gemini",
        name="Gem",
        endpoint="https://gem.example.com",
        api_key="g-key",
        enabled=True,
    )

    result = import_request(state, request)

    assert result["type"] == "provider"
    providers = ProviderService(state)
    assert providers.current(AppType.GEMINI) == result["id"]
    assert providers.read_live_settings(AppType.GEMINI)["env"]["GEMINI_API_KEY"] == "g-key"


def test_prompt_import(state) -> None:
    request = DeepLinkImportRequest(
        resource="prompt", app="claude", name="My Prompt!", content=_b64("Be concise."), enabled=True
    )

    result = import_request(state, request)

    assert result["id"].startswith("myprompt-")
    prompt = PromptService(state).get_prompts(AppType.CLAUDE)[result["id"]]
    assert prompt.enabled is True
    assert state.live_paths().prompt_file(AppType.CLAUDE).read_text(encoding="utf-8") == "Be concise."


def test_mcp_import(state) -> None:
    document = json.dumps({"mcpServers": {"fs": {"command": "fs-server"}}})
    request = DeepLinkImportRequest(resource="mcp", apps="claude", config=_b64(document))

    result = import_request(state, request)

    assert result == {"type": "mcp", "importedCount": 1, "importedIds": ["fs"], "failed": []}
    assert McpService(state).get_all_servers()["fs"].apps.claude is True


def test_skill_import(state) -> None:
    result = import_request(state, DeepLinkImportRequest(resource="skill", repo="me/skills"))

    assert result == {"type": "skill", "key": "me/skills"}
    repos = [(r.owner, r.name, r.branch) for r in SkillService(state).list_repos()]
    assert ("me", "skills", "main") in repos


@pytest.mark.parametrize("repo", ["no-slash", "a/b/c", "/name"])
def test_skill_import_rejects_bad_repo(state, repo) -> None:
    with pytest.raises(ValidationError, match="owner/name"):
        import_request(state, DeepLinkImportRequest(resource="skill", repo=repo))
