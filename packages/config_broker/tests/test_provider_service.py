import json
import tomllib

import pytest

from config_broker.errors import ConflictError, NotFoundError, ValidationError
from config_broker.models.apps import AppType, McpApps
from config_broker.models.records import McpServer, Provider
from config_broker.services.mcp import McpService
from config_broker.services.provider import ProviderService


@pytest.fixture
def mcp(state) -> McpService:
    return McpService(state)


@pytest.fixture
def providers(state, mcp) -> ProviderService:
    return ProviderService(state, mcp)


def _claude(provider_id: str, token: str) -> Provider:
    return Provider(
        id=provider_id,
        name=provider_id.upper(),
        settings_config={"env": {"ANTHROPIC_AUTH_TOKEN": token}},
    )


def _live_claude(state) -> dict:
    return json.loads(state.live_paths().claude_settings.read_text(encoding="utf-8"))


def test_first_provider_becomes_current(state, providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))
    providers.add(AppType.CLAUDE, _claude("b", "token-b"))

    assert providers.current(AppType.CLAUDE) == "a"
    assert _live_claude(state) == {"env": {"ANTHROPIC_AUTH_TOKEN": "token-a"}}
    assert providers.get(AppType.CLAUDE, "a").created_at is not None


def test_switch_backfills_hand_edits(state, providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))
    providers.add(AppType.CLAUDE, _claude("b", "token-b"))
    edited = {"env": {"ANTHROPIC_AUTH_TOKEN": "token-a"}, "permissions": {"allow": ["Bash"]}}
    state.live_paths().claude_settings.write_text(json.dumps(edited), encoding="utf-8")

    providers.switch(AppType.CLAUDE, "b")

    assert _live_claude(state) == {"env": {"ANTHROPIC_AUTH_TOKEN": "token-b"}}
    assert providers.get(AppType.CLAUDE, "a").settings_config == edited
    assert state.device.get_current_provider(AppType.CLAUDE) == "b"
    assert state.db.get_current_provider_id(AppType.CLAUDE) == "b"

    providers.switch(AppType.CLAUDE, "a")

    assert _live_claude(state) == edited


def test_switch_to_unknown_provider(providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))

    with pytest.raises(NotFoundError):
        providers.switch(AppType.CLAUDE, "ghost")

    assert providers.current(AppType.CLAUDE) == "a"


def test_delete_rules(providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))
    providers.add(AppType.CLAUDE, _claude("b", "token-b"))

    with pytest.raises(ConflictError):
        providers.delete(AppType.CLAUDE, "a")
    with pytest.raises(NotFoundError):
        providers.delete(AppType.CLAUDE, "ghost")

    providers.delete(AppType.CLAUDE, "b")
    assert set(providers.list_providers(AppType.CLAUDE)) == {"a"}


def test_dangling_device_pointer_falls_back_to_store(state, providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))
    state.device.set_current_provider(AppType.CLAUDE, "removed-elsewhere")

    assert providers.current(AppType.CLAUDE) == "a"
    assert state.device.get_current_provider(AppType.CLAUDE) is None


def test_device_pointer_wins_over_store_flag(state, providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))
    providers.add(AppType.CLAUDE, _claude("b", "token-b"))
    state.device.set_current_provider(AppType.CLAUDE, "b")

    assert providers.current(AppType.CLAUDE) == "b"
    with pytest.raises(ConflictError):
        providers.delete(AppType.CLAUDE, "b")


def test_gemini_write_stores_what_landed_on_disk(providers) -> None:
    providers.add(
        AppType.GEMINI,
        Provider(id="g", name="G", settings_config={"env": {"GEMINI_API_KEY": "k"}}),
    )

    stored = providers.get(AppType.GEMINI, "g").settings_config

    assert stored["env"] == {"GEMINI_API_KEY": "k"}
    assert stored["config"]["security"]["auth"]["selectedType"] == "gemini-api-key"


def test_invalid_payload_is_rejected_before_saving(providers) -> None:
    with pytest.raises(ValidationError):
        providers.add(AppType.CODEX, Provider(id="c", name="C", settings_config={"config": ""}))

    assert providers.list_providers(AppType.CODEX) == {}


def test_update_rewrites_live_only_for_current(state, providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))
    providers.add(AppType.CLAUDE, _claude("b", "token-b"))

    providers.update(AppType.CLAUDE, _claude("b", "token-b2"))
    assert _live_claude(state)["env"]["ANTHROPIC_AUTH_TOKEN"] == "token-a"

    providers.update(AppType.CLAUDE, _claude("a", "token-a2"))
    assert _live_claude(state)["env"]["ANTHROPIC_AUTH_TOKEN"] == "token-a2"

    with pytest.raises(NotFoundError):
        providers.update(AppType.CLAUDE, _claude("ghost", "x"))


def test_claude_models_are_normalized_on_add(providers) -> None:
    provider = Provider(
        id="a",
        name="A",
        settings_config={"env": {"ANTHROPIC_SMALL_FAST_MODEL": "haiku"}},
    )

    providers.add(AppType.CLAUDE, provider)

    env = providers.get(AppType.CLAUDE, "a").settings_config["env"]
    assert "ANTHROPIC_SMALL_FAST_MODEL" not in env
    assert env["ANTHROPIC_DEFAULT_HAIKU_MODEL"] == "haiku"


def test_codex_switch_keeps_enabled_mcp_servers(state, providers, mcp) -> None:
    mcp.upsert_server(
        McpServer(id="fs", name="fs", server={"command": "fs-server"}, apps=McpApps.only(AppType.CODEX))
    )
    providers.add(
        AppType.CODEX,
        Provider(
            id="c",
            name="C",
            settings_config={"auth": {"OPENAI_API_KEY": "sk"}, "config": 'model = "gpt-5"\n'},
        ),
    )

    providers.update(
        AppType.CODEX,
        Provider(
            id="c",
            name="C",
            settings_config={"auth": {"OPENAI_API_KEY": "sk"}, "config": 'model = "o3"\n'},
        ),
    )

    config = tomllib.loads(state.live_paths().codex_config.read_text(encoding="utf-8"))
    assert config["model"] == "o3"
    assert config["mcp_servers"]["fs"]["command"] == "fs-server"


def test_custom_endpoints(providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))

    providers.add_custom_endpoint(AppType.CLAUDE, "a", "  https://relay.example.com/ ")
    providers.add_custom_endpoint(AppType.CLAUDE, "a", "https://relay.example.com")
    providers.update_endpoint_last_used(AppType.CLAUDE, "a", "https://relay.example.com/")

    endpoints = providers.get_custom_endpoints(AppType.CLAUDE, "a")
    assert [ep.url for ep in endpoints] == ["https://relay.example.com"]
    assert endpoints[0].last_used is not None

    assert providers.remove_custom_endpoint(AppType.CLAUDE, "a", "https://relay.example.com")
    assert providers.get_custom_endpoints(AppType.CLAUDE, "a") == []

    with pytest.raises(ValidationError):
        providers.add_custom_endpoint(AppType.CLAUDE, "a", " / ")
    with pytest.raises(NotFoundError):
        providers.add_custom_endpoint(AppType.CLAUDE, "ghost", "https://x.example.com")


def test_import_default_config_runs_once(state, providers) -> None:
    settings_path = state.live_paths().claude_settings
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text(
        json.dumps({"env": {"ANTHROPIC_MODEL": "m", "ANTHROPIC_SMALL_FAST_MODEL": "s"}}),
        encoding="utf-8",
    )

    assert providers.import_default_config(AppType.CLAUDE) is True
    assert providers.import_default_config(AppType.CLAUDE) is False
    assert providers.import_default_config(AppType.GROK) is False

    imported = providers.get(AppType.CLAUDE, "default")
    assert imported.category == "custom"
    assert imported.settings_config["env"]["ANTHROPIC_DEFAULT_HAIKU_MODEL"] == "s"
    assert providers.current(AppType.CLAUDE) == "default"


def test_sync_current_to_live(state, providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))
    state.live_paths().claude_settings.unlink()

    assert providers.sync_current_to_live() == [AppType.CLAUDE]
    assert _live_claude(state) == {"env": {"ANTHROPIC_AUTH_TOKEN": "token-a"}}


def test_sort_order(providers) -> None:
    providers.add(AppType.CLAUDE, _claude("a", "token-a"))
    providers.add(AppType.CLAUDE, _claude("b", "token-b"))

    providers.update_sort_order(AppType.CLAUDE, [("b", 0), ("a", 1)])

    assert list(providers.list_providers(AppType.CLAUDE)) == ["b", "a"]
