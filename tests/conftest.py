# Shared pytest fixtures
from __future__ import annotations
import io
import logging
import tempfile
from pathlib import Path
from typing import Any, Callable

import pandas as pd
import pytest

from agent_import.db.memory import InMemoryStore
from agent_import.excel import columns as col
from agent_import.logging.init import LOGGER_NAME, reset_logging
from agent_import.models.import_row import ImportRow
from agent_import.services.orchestrator import ImportContext, in_memory_context

HEADER = list(col.REQUIRED_COLUMNS) + [col.AGENT_CODE, col.STATUS, col.REPORTING_MANAGER_ID]


@pytest.fixture(autouse=True)
def _detach_log_handlers():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_size: 100
max_batch_size: 500
max_upload_bytes: 5242880
code_allocation: lock
error_log_dir: logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def store() -> InMemoryStore:
    """Project "Metro Sales" (P001) with an owner, two channels, three designations."""
    s = InMemoryStore()
    s.add_project("Metro Sales", project_id="P001")
    s.add_user("owner@metro.test", project_id="P001", user_id="U001")
    s.add_channel("Direct Sales", "DS", channel_id="CH1")
    s.add_channel("Broker", "BR", channel_id="CH2")
    s.add_designation("Sales Manager", "SM", channel_id="CH1", designation_id="D1")
    s.add_designation("Sales Associate", "SA", channel_id="CH1", designation_id="D2")
    s.add_designation("Unit Manager", "UM", channel_id="CH2", designation_id="D3")
    return s


@pytest.fixture()
def context(store: InMemoryStore) -> ImportContext:
    return in_memory_context(store)


def _agent_values(n: int, **overrides: Any) -> dict[str, str]:
    values = {
        col.FIRST_NAME: f"Agent{n}",
        col.LAST_NAME: "Tester",
        col.EMAIL: f"agent{n}@example.com",
        col.MOBILE_NUMBER: f"0917{n:07d}",
        col.CHANNEL: "Direct Sales",
        col.DESIGNATION: "SM",
    }
    for key, value in overrides.items():
        column = getattr(col, key.upper())
        if value is None:
            values.pop(column, None)
        else:
            values[column] = value
    return values


@pytest.fixture()
def agent_values() -> Callable[..., dict[str, str]]:
    """Build one valid row's values; overrides use column constant names
    (``email="x"``, ``channel=None`` removes the column)."""
    return _agent_values


@pytest.fixture()
def make_rows() -> Callable[..., list[ImportRow]]:
    """ImportRows numbered like a sheet whose header is row 1."""
    def build(*values: dict[str, str]) -> list[ImportRow]:
        return [ImportRow(row_number=i + 2, values=v) for i, v in enumerate(values)]
    return build


def _workbook_bytes(rows: list[list[object]]) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Agents", header=False, index=False)
    return buf.getvalue()


@pytest.fixture()
def make_workbook() -> Callable[[list[list[object]]], bytes]:
    """Serialize rows (first row = header) into .xlsx bytes."""
    return _workbook_bytes


@pytest.fixture()
def agents_workbook(make_workbook) -> Callable[[list[dict[str, str]]], bytes]:
    """Workbook from row dicts, using the standard header."""
    def build(rows: list[dict[str, str]]) -> bytes:
        body = [[r.get(h) for h in HEADER] for r in rows]
        return make_workbook([HEADER] + body)
    return build
