"""teppen-jobs-tick CLI tests."""

import json

from teppen import jobs_cli
from teppen.workers.job_schedules import MISSING_TABLE_REASON


def test_tick_against_unmigrated_database_prints_result(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    monkeypatch.setenv("LOCAL_MODE", "0")
    monkeypatch.setenv("JSON_LOGS", "0")

    exit_code = jobs_cli.main(["--limit", "5"])

    assert exit_code == 0
    body = json.loads(capsys.readouterr().out)
    assert body["ok"] is False
    assert body["dueCount"] == 0
    assert MISSING_TABLE_REASON in body["message"]


def test_crash_exits_nonzero(monkeypatch, capsys):
    monkeypatch.setenv("JSON_LOGS", "0")

    async def boom(settings, limit, job_key):
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(jobs_cli, "run_tick", boom)

    assert jobs_cli.main([]) == 1
    assert "database unreachable" in capsys.readouterr().err
