import json

import pytest

from config_broker.errors import FormatError
from config_broker.models.apps import AppType
from config_broker.store.legacy import (
    CONFIG_BACKUP_PREFIX,
    create_config_backup,
    dry_run_migration,
    load_legacy_config,
    migrate_from_json,
)

LEGACY_CONFIG = {
    "version": 2,
    "claude": {
        "providers": {
            "a": {
                "name": "Relay A",
                "settingsConfig": {"env": {"ANTHROPIC_BASE_URL": "https://a.example.com"}},
                "meta": {
                    "custom_endpoints": {
                        "https://b.example.com": {"url": "https://b.example.com", "addedAt": 7}
                    }
                },
            },
            "broken": {"settingsConfig": {}},
        },
        "current": "a",
    },
    "codex": {"providers": {}, "current": ""},
    "mcp": {
        "servers": {
            "fs": {
                "server": {"command": "fs-server", "args": ["--root", "/tmp"]},
                "apps": {"claude": True},
            }
        },
        "gemini": {
            "servers": {
                "web": {"type": "http", "url": "https://mcp.example.com", "enabled": True},
                "fs": {"command": "ignored", "enabled": True},
            }
        },
    },
    "prompts": {
        "claude": {"prompts": {"p1": {"name": "Rules", "content": "Be brief", "enabled": True}}},
        "bogus": {"prompts": {"x": {"name": "X", "content": "x"}}},
    },
    "skills": {
        "skills": {"anthropics/skills:pdf": {"installed": True, "installedAt": "2024-01-01T00:00:00Z"}},
        "repos": [{"owner": "me", "name": "my-skills", "branch": "dev"}],
    },
    "commonConfigSnippets": {"claude": '{"includeCoAuthoredBy": false}', "codex": None},
}


@pytest.fixture
def legacy_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(LEGACY_CONFIG), encoding="utf-8")
    return path


def test_migrates_every_section(db, legacy_file) -> None:
    report = migrate_from_json(db, load_legacy_config(legacy_file))

    assert report.providers == 1
    assert report.endpoints == 1
    assert report.failures == ["provider:claude:broken"]
    assert db.get_current_provider_id(AppType.CLAUDE) == "a"
    endpoints = db.get_provider(AppType.CLAUDE, "a").meta.custom_endpoints
    assert endpoints["https://b.example.com"].added_at == 7

    servers = db.get_all_mcp_servers()
    assert servers["fs"].apps.claude is True
    assert servers["fs"].apps.gemini is True
    assert servers["fs"].server["command"] == "fs-server"
    assert servers["web"].server == {"type": "http", "url": "https://mcp.example.com"}
    assert servers["web"].apps.enabled_apps() == [AppType.GEMINI]

    assert db.get_prompts(AppType.CLAUDE)["p1"].enabled is True
    assert db.get_skills()["anthropics/skills:pdf"].installed_at == 1704067200
    assert [(r.owner, r.branch) for r in db.get_skill_repos()] == [("me", "dev")]
    assert db.get_setting("common_config_claude") == '{"includeCoAuthoredBy": false}'
    assert db.get_setting("common_config_codex") is None


def test_dry_run_leaves_target_untouched(db, legacy_file) -> None:
    report = dry_run_migration(load_legacy_config(legacy_file))

    assert report.providers == 1
    assert db.is_providers_empty(AppType.CLAUDE)


def test_unparseable_file_is_a_format_error(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(FormatError):
        load_legacy_config(path)


def test_config_backups_rotate(tmp_path, legacy_file) -> None:
    backups = tmp_path / "backups"
    for _ in range(4):
        created = create_config_backup(legacy_file, backups, retain=2)
        assert created is not None
        assert created.read_text(encoding="utf-8") == legacy_file.read_text(encoding="utf-8")

    assert len(list(backups.glob(f"{CONFIG_BACKUP_PREFIX}*.json"))) == 2


def test_config_backup_of_missing_file(tmp_path) -> None:
    assert create_config_backup(tmp_path / "missing.json", tmp_path / "backups") is None
