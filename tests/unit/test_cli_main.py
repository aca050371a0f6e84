from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from agent_import.cli import __main__ as cli
from agent_import.logging.init import reset_logging
from agent_import.models.config_models import DatabaseConfig, ImportConfig


@pytest.fixture()
def fake_db(monkeypatch, store):
    """Route the CLI to the seeded in-memory store; returns the opened connections."""
    conns: list[MagicMock] = []

    @contextmanager
    def fake_connection(dsn, *, autocommit=False):
        conn = MagicMock(name=f"conn(autocommit={autocommit})")
        conns.append(conn)
        yield conn

    monkeypatch.setattr(cli, "_db_connection", fake_connection)
    monkeypatch.setattr(cli, "PostgresStore", lambda conn, dry_run=False: store)
    reset_logging()
    return conns


@pytest.fixture()
def workbook_path(temp_workdir: Path, agents_workbook, agent_values):
    def write(rows) -> Path:
        p = temp_workdir / "data" / "agents.xlsx"
        p.write_bytes(agents_workbook(rows))
        return p
    return write


def test_cli_all_rows_created(write_config, workbook_path, fake_db, store, agent_values, capsys):
    path = workbook_path([agent_values(1), agent_values(2)])
    code = cli.main(["--file", str(path), "--project-id", "P001"])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY rows=2 success=2 failed=0 batch_size=100 batches=1" in out
    assert "INFO Successfully processed 2 agents" in out
    assert sorted(a.agent_code for a in store.agents.values()) == ["MS00001", "MS00002"]
    assert not list(Path("logs").glob("import-errors-*.log"))


def test_cli_partial_failure(write_config, workbook_path, fake_db, agent_values, temp_workdir, capsys):
    path = workbook_path([agent_values(1), agent_values(2, email="bad"), agent_values(3)])
    output = temp_workdir / "result.json"
    code = cli.main([
        "--file", str(path), "--project-id", "P001", "--batch-size", "2", "--output", str(output),
    ])
    out = capsys.readouterr().out
    assert code == 2
    assert "SUMMARY rows=3 success=2 failed=1 batch_size=2 batches=2" in out

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["failureCount"] == 1
    assert payload["errors"][0]["row"] == 3

    logs = list(Path("logs").glob("import-errors-*.log"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert (record["file"], record["row"], record["field"]) == ("agents.xlsx", 3, "Email")


def test_cli_missing_config(temp_workdir, workbook_path, fake_db, agent_values, capsys):
    path = workbook_path([agent_values(1)])
    code = cli.main(["--file", str(path), "--project-id", "P001"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_cli_batch_size_out_of_range(write_config, workbook_path, fake_db, agent_values, capsys):
    path = workbook_path([agent_values(1)])
    code = cli.main(["--file", str(path), "--project-id", "P001", "--batch-size", "501"])
    assert code == 1
    assert "batch size must be between 1 and 500" in capsys.readouterr().out


def test_cli_missing_file(write_config, temp_workdir, fake_db, capsys):
    code = cli.main(["--file", str(temp_workdir / "nope.xlsx"), "--project-id", "P001"])
    assert code == 1
    assert "ERROR cannot read" in capsys.readouterr().out


def test_cli_malformed_workbook(write_config, temp_workdir, fake_db, capsys):
    path = temp_workdir / "data" / "broken.xlsx"
    path.write_bytes(b"this is not a workbook")
    code = cli.main(["--file", str(path), "--project-id", "P001"])
    assert code == 1
    assert "ERROR workbook:" in capsys.readouterr().out
    record = json.loads(next(Path("logs").glob("import-errors-*.log")).read_text(encoding="utf-8"))
    assert (record["row"], record["field"]) == (-1, "<FILE_LEVEL>")
    assert fake_db == []


def test_cli_unknown_project(write_config, workbook_path, fake_db, store, agent_values, capsys):
    path = workbook_path([agent_values(1)])
    code = cli.main(["--file", str(path), "--project-id", "P404"])
    assert code == 1
    assert "ERROR project: Project not found: P404" in capsys.readouterr().out
    assert store.agents == {}


def test_cli_dry_run_rolls_back(write_config, workbook_path, fake_db, agent_values, capsys):
    path = workbook_path([agent_values(1)])
    code = cli.main(["--file", str(path), "--project-id", "P001", "--dry-run"])
    assert code == 0
    main_conn = fake_db[0]
    main_conn.rollback.assert_called_once()
    assert "dry run" in capsys.readouterr().out


def test_cli_init_schema(write_config, workbook_path, fake_db, agent_values):
    path = workbook_path([agent_values(1)])
    assert cli.main(["--file", str(path), "--project-id", "P001", "--init-schema"]) == 0
    fake_db[0].commit.assert_called()


def test_resolve_dsn_precedence(monkeypatch):
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    cfg = ImportConfig.defaults()
    cfg_db = ImportConfig(
        **{**cfg.__dict__, "database": DatabaseConfig("db.local", 6543, "svc", "pw", "agents", None)}
    )
    assert cli._resolve_dsn(cfg_db) == "host=db.local port=6543 user=svc dbname=agents password=pw"

    monkeypatch.setenv("PGHOST", "env-host")
    assert cli._resolve_dsn(cfg_db).startswith("host=env-host port=6543")

    monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/db")
    assert cli._resolve_dsn(cfg_db) == "postgresql://u@h/db"
