import pytest

from config_broker.errors import NotFoundError
from config_broker.models.apps import AppType, McpApps
from config_broker.models.records import (
    CustomEndpoint,
    McpServer,
    Prompt,
    Provider,
    ProviderMeta,
    SkillState,
)

CLAUDE = AppType.CLAUDE
CODEX = AppType.CODEX


def _provider(provider_id: str, **kwargs) -> Provider:
    return Provider(
        id=provider_id,
        name=provider_id.title(),
        settings_config={"env": {"ANTHROPIC_AUTH_TOKEN": provider_id}},
        **kwargs,
    )


class TestProviders:
    def test_display_order(self, db) -> None:
        db.save_provider(CLAUDE, _provider("b", created_at=2))
        db.save_provider(CLAUDE, _provider("a", created_at=3))
        db.save_provider(CLAUDE, _provider("c", created_at=1, sort_index=0))

        assert list(db.get_all_providers(CLAUDE)) == ["c", "b", "a"]

    def test_same_id_is_scoped_per_app(self, db) -> None:
        db.save_provider(CLAUDE, _provider("shared"))
        db.save_provider(CODEX, _provider("shared", notes="codex one"))

        assert db.get_provider(CLAUDE, "shared").notes is None
        assert db.get_provider(CODEX, "shared").notes == "codex one"

    def test_update_keeps_current_flag(self, db) -> None:
        db.save_provider(CLAUDE, _provider("a"))
        db.set_current_provider(CLAUDE, "a")

        db.save_provider(CLAUDE, _provider("a").model_copy(update={"name": "Renamed"}))

        assert db.get_current_provider_id(CLAUDE) == "a"
        assert db.get_provider(CLAUDE, "a").name == "Renamed"

    def test_only_one_current_per_app(self, db) -> None:
        db.save_provider(CLAUDE, _provider("a"))
        db.save_provider(CLAUDE, _provider("b"))
        db.set_current_provider(CLAUDE, "a")
        db.set_current_provider(CLAUDE, "b")

        assert db.get_current_provider_id(CLAUDE) == "b"

    def test_set_current_unknown_rolls_back(self, db) -> None:
        db.save_provider(CLAUDE, _provider("a"))
        db.set_current_provider(CLAUDE, "a")

        with pytest.raises(NotFoundError):
            db.set_current_provider(CLAUDE, "missing")

        assert db.get_current_provider_id(CLAUDE) == "a"

    def test_insert_writes_endpoints_from_meta(self, db) -> None:
        meta = ProviderMeta(
            custom_endpoints={"https://x.example.com": CustomEndpoint(url="https://x.example.com", added_at=5)}
        )
        db.save_provider(CLAUDE, _provider("a", meta=meta))

        endpoints = db.get_provider(CLAUDE, "a").meta.custom_endpoints
        assert list(endpoints) == ["https://x.example.com"]
        assert endpoints["https://x.example.com"].added_at == 5

    def test_endpoint_lifecycle(self, db) -> None:
        db.save_provider(CLAUDE, _provider("a"))
        db.add_custom_endpoint(CLAUDE, "a", "https://one.example.com")
        db.add_custom_endpoint(CLAUDE, "a", "https://one.example.com")

        db.update_endpoint_last_used(CLAUDE, "a", "https://one.example.com")
        endpoint = db.get_provider(CLAUDE, "a").meta.custom_endpoints["https://one.example.com"]
        assert endpoint.last_used is not None

        assert db.remove_custom_endpoint(CLAUDE, "a", "https://one.example.com") is True
        assert db.remove_custom_endpoint(CLAUDE, "a", "https://one.example.com") is False
        assert db.get_provider(CLAUDE, "a").meta.custom_endpoints == {}

    def test_endpoint_operations_need_existing_targets(self, db) -> None:
        with pytest.raises(NotFoundError):
            db.add_custom_endpoint(CLAUDE, "ghost", "https://x.example.com")
        db.save_provider(CLAUDE, _provider("a"))
        with pytest.raises(NotFoundError):
            db.update_endpoint_last_used(CLAUDE, "a", "https://never-added.example.com")

    def test_delete_removes_endpoints(self, db) -> None:
        db.save_provider(CLAUDE, _provider("a"))
        db.add_custom_endpoint(CLAUDE, "a", "https://one.example.com")

        assert db.delete_provider(CLAUDE, "a") is True
        assert db.delete_provider(CLAUDE, "a") is False

        db.save_provider(CLAUDE, _provider("a"))
        assert db.get_provider(CLAUDE, "a").meta.custom_endpoints == {}

    def test_sort_indices(self, db) -> None:
        db.save_provider(CLAUDE, _provider("a", created_at=1))
        db.save_provider(CLAUDE, _provider("b", created_at=2))

        db.update_sort_indices(CLAUDE, {"a": 2, "b": 1})

        assert list(db.get_all_providers(CLAUDE)) == ["b", "a"]

    def test_is_providers_empty(self, db) -> None:
        assert db.is_providers_empty(CLAUDE)
        db.save_provider(CLAUDE, _provider("a"))
        assert not db.is_providers_empty(CLAUDE)
        assert db.is_providers_empty(CODEX)


def test_mcp_server_round_trip(db) -> None:
    server = McpServer(
        id="fs",
        name="Files",
        server={"command": "fs-server", "args": ["--root", "/tmp"]},
        apps=McpApps.only(AppType.CLAUDE, AppType.QWEN),
        tags=["local"],
    )
    db.save_mcp_server(server)

    assert db.get_mcp_server("fs") == server
    assert not db.is_mcp_table_empty()
    assert db.delete_mcp_server("fs") is True
    assert db.delete_mcp_server("fs") is False
    assert db.is_mcp_table_empty()


def test_prompts_are_scoped_per_app(db) -> None:
    db.save_prompt(CLAUDE, Prompt(id="p2", name="Two", content="2", created_at=2))
    db.save_prompt(CLAUDE, Prompt(id="p1", name="One", content="1", created_at=1))

    assert list(db.get_prompts(CLAUDE)) == ["p1", "p2"]
    assert db.is_prompts_table_empty(CODEX)
    assert db.delete_prompt(CLAUDE, "p1") is True
    assert list(db.get_prompts(CLAUDE)) == ["p2"]


def test_default_skill_repos_seed_once(db) -> None:
    assert db.init_default_skill_repos() == 3
    assert db.init_default_skill_repos() == 0

    repos = [(repo.owner, repo.name) for repo in db.get_skill_repos()]
    assert repos == [
        ("ComposioHQ", "awesome-claude-skills"),
        ("anthropics", "skills"),
        ("cexll", "myclaude"),
    ]


def test_skill_state(db) -> None:
    db.update_skill_state("anthropics/skills:pdf", SkillState(installed=True, installed_at=10))
    assert db.get_skills() == {"anthropics/skills:pdf": SkillState(installed=True, installed_at=10)}


def test_settings_table(db) -> None:
    assert db.get_setting("common_config_claude") is None
    db.set_setting("common_config_claude", '{"env": {}}')
    assert db.get_setting("common_config_claude") == '{"env": {}}'
    assert db.delete_setting("common_config_claude") is True
    assert db.get_setting("common_config_claude") is None


def test_nested_transaction_rolls_back_only_inner_block(db) -> None:
    with db.transaction():
        db.set_setting("outer", "1")
        with pytest.raises(RuntimeError), db.transaction():
            db.set_setting("inner", "2")
            raise RuntimeError("abort inner")

    assert db.get_setting("outer") == "1"
    assert db.get_setting("inner") is None
