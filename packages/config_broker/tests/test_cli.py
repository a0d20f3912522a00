import json

import pytest

from config_broker.cli import main


@pytest.fixture
def claude_settings(home):
    (home / ".claude").mkdir()
    path = home / ".claude" / "settings.json"
    path.write_text(json.dumps({"env": {"ANTHROPIC_AUTH_TOKEN": "t"}}), encoding="utf-8")
    return path


def test_list_marks_current(claude_settings, capsys) -> None:
    assert main(["list", "claude"]) == 0

    assert capsys.readouterr().out.splitlines() == ["* default\tdefault"]


def test_switch_to_missing_provider(claude_settings, capsys) -> None:
    assert main(["switch", "claude", "ghost"]) == 1

    assert "Error [NOT_FOUND]" in capsys.readouterr().err


def test_sync(claude_settings, capsys) -> None:
    assert main(["list", "claude"]) == 0
    capsys.readouterr()
    claude_settings.unlink()

    assert main(["sync"]) == 0

    assert "claude" in capsys.readouterr().out
    assert claude_settings.exists()


def test_backup_and_export(tmp_path, capsys) -> None:
    assert main(["backup"]) == 0
    assert "Backup written to" in capsys.readouterr().out

    dump = tmp_path / "dump.sql"
    assert main(["export", str(dump)]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["success"] is True
    assert dump.exists()


def test_invalid_settings(monkeypatch, capsys) -> None:
    monkeypatch.setenv("CONFIG_BROKER_BACKUP_RETAIN", "lots")

    assert main(["sync"]) == 1

    assert "must be an integer" in capsys.readouterr().err


def test_unknown_app_is_rejected_by_the_parser() -> None:
    with pytest.raises(SystemExit):
        main(["list", "vim"])
