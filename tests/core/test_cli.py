"""CLI 测试 -- python -m tcof.core audit / clone-templates"""

import json
from pathlib import Path

import pytest
from tcof.core.__main__ import main, run_audit, run_clone_templates


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch) -> Path:
    catalog_path = tmp_path / "catalog.json"
    catalog_path.write_text(
        json.dumps([{"id": "sf-1", "text": "Agree scope"}, {"id": "sf-2", "text": "Plan review"}]),
        encoding="utf-8",
    )
    db_path = tmp_path / "sqlite" / "cli.db"
    monkeypatch.setenv("TCOF_DB_PATH", str(db_path))
    monkeypatch.setenv("TCOF_CATALOG_PATH", str(catalog_path))
    return db_path


class TestCli:
    async def test_clone_then_audit(self, cli_env: Path, capsys):
        await run_clone_templates("p1")
        await run_clone_templates("p1")
        out = capsys.readouterr().out
        assert "新增 2 条任务" in out
        assert "新增 0 条任务" in out

        assert await run_audit() == 0
        assert "任务总数: 2" in capsys.readouterr().out

    def test_missing_command_exits(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["tcof.core"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
        assert "用法" in capsys.readouterr().out

    def test_unknown_command_exits(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["tcof.core", "frobnicate"])
        with pytest.raises(SystemExit):
            main()
        assert "未知命令" in capsys.readouterr().out
