from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.errors
from psycopg2.extras import RealDictCursor

from ..models.entities import Agent, AgentStatus, Channel, Designation, NewAgent, Project, User
from .repositories import DuplicateAgentCodeError, RepositoryError

"""PostgreSQL implementation of the repository interfaces (psycopg2).

Transaction model:
- one transaction per batch (``batch()``), committed when the batch finishes
- one SAVEPOINT per row (``row()``), so a failing row is rolled back alone
- agent codes are protected by a unique index; ``create`` reports a clash as
  DuplicateAgentCodeError so the caller can retry with a fresh code
- sequence numbers come from ``agent_code_sequences`` through an atomic
  upsert, so concurrent uploads never read the same "highest sequence"
"""

logger = logging.getLogger(__name__)

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    project_name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS channels (
    id TEXT PRIMARY KEY,
    channel_name TEXT NOT NULL,
    channel_code TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS designations (
    id TEXT PRIMARY KEY,
    designation_name TEXT NOT NULL,
    designation_code TEXT NOT NULL,
    channel_id TEXT NOT NULL REFERENCES channels (id)
);
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL,
    project_id TEXT REFERENCES projects (id)
);
CREATE TABLE IF NOT EXISTS agents (
    id TEXT PRIMARY KEY,
    agent_code TEXT NOT NULL,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    email TEXT NOT NULL,
    phone_number TEXT NOT NULL,
    channel_id TEXT NOT NULL REFERENCES channels (id),
    designation_id TEXT NOT NULL REFERENCES designations (id),
    project_id TEXT NOT NULL REFERENCES projects (id),
    user_id TEXT NOT NULL REFERENCES users (id),
    agent_status TEXT NOT NULL DEFAULT 'active',
    joining_date DATE,
    reporting_manager_id TEXT REFERENCES agents (id),
    employee_id TEXT,
    branch TEXT,
    province TEXT,
    city TEXT,
    pin_code TEXT,
    tin TEXT,
    is_deleted BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE UNIQUE INDEX IF NOT EXISTS agents_agent_code_key ON agents (agent_code) WHERE NOT is_deleted;
CREATE TABLE IF NOT EXISTS agent_code_sequences (
    prefix TEXT PRIMARY KEY,
    last_value BIGINT NOT NULL
);
"""

AGENT_CODE_INDEX = "agents_agent_code_key"

_AGENT_COLUMNS = (
    "id", "agent_code", "first_name", "last_name", "email", "phone_number",
    "channel_id", "designation_id", "project_id", "user_id", "agent_status",
    "joining_date", "reporting_manager_id", "employee_id", "branch", "province",
    "city", "pin_code", "tin",
)

_NEXT_SEQUENCE_SQL = """
INSERT INTO agent_code_sequences (prefix, last_value)
VALUES (%(prefix)s, GREATEST((
    SELECT COALESCE(MAX(substring(agent_code FROM %(offset)s)::bigint), 0)
    FROM agents
    WHERE agent_code ~ %(pattern)s AND NOT is_deleted
) + 1, %(at_least)s))
ON CONFLICT (prefix) DO UPDATE SET last_value = GREATEST(
    agent_code_sequences.last_value + 1,
    EXCLUDED.last_value
)
RETURNING last_value
"""


def ensure_schema(conn: Any) -> None:
    """Create the tables the importer relies on (idempotent)."""
    with conn.cursor() as cur:
        cur.execute(SCHEMA_DDL)
    conn.commit()


def _code_pattern(prefix: str) -> str:
    return f"^{re.escape(prefix)}[0-9]+$"


def _agent_from_row(row: dict[str, Any]) -> Agent:
    return Agent(
        id=row["id"],
        agent_code=row["agent_code"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        phone_number=row["phone_number"],
        channel_id=row["channel_id"],
        designation_id=row["designation_id"],
        project_id=row["project_id"],
        user_id=row["user_id"],
        status=AgentStatus(row["agent_status"]),
        joining_date=row.get("joining_date"),
        reporting_manager_id=row.get("reporting_manager_id"),
        employee_id=row.get("employee_id"),
        branch=row.get("branch"),
        province=row.get("province"),
        city=row.get("city"),
        pin_code=row.get("pin_code"),
        tin=row.get("tin"),
    )


class PostgresStore:
    """Repository + batch transaction implementation over one psycopg2 connection.

    The connection must not be in autocommit mode; ``batch()`` owns commits.
    """

    def __init__(self, conn: Any, *, dry_run: bool = False) -> None:
        self.conn = conn
        # dry run: keep one open transaction for the whole run; the caller rolls it back
        self.dry_run = dry_run

    def _fetchone(self, sql: str, params: tuple[Any, ...] | dict[str, Any]) -> dict[str, Any] | None:
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                return cur.fetchone()
        except psycopg2.Error as e:
            raise RepositoryError(str(e)) from e

    def _fetchall(self, sql: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                return list(cur.fetchall())
        except psycopg2.Error as e:
            raise RepositoryError(str(e)) from e

    # -- AgentRepository ---------------------------------------------------
    def exists_email(self, email: str) -> bool:
        row = self._fetchone(
            "SELECT 1 AS hit FROM agents WHERE lower(email) = lower(%s) AND NOT is_deleted LIMIT 1",
            (email.strip(),),
        )
        return row is not None

    def exists_phone(self, phone_number: str) -> bool:
        row = self._fetchone(
            "SELECT 1 AS hit FROM agents WHERE phone_number = %s AND NOT is_deleted LIMIT 1",
            (phone_number,),
        )
        return row is not None

    def exists_code(self, agent_code: str) -> bool:
        return self.find_by_code(agent_code) is not None

    def find_by_code(self, agent_code: str) -> Agent | None:
        row = self._fetchone(
            f"SELECT {', '.join(_AGENT_COLUMNS)} FROM agents WHERE agent_code = %s AND NOT is_deleted",
            (agent_code,),
        )
        return _agent_from_row(row) if row else None

    def max_code_sequence(self, prefix: str) -> int:
        row = self._fetchone(
            "SELECT COALESCE(MAX(substring(agent_code FROM %s)::bigint), 0) AS seq "
            "FROM agents WHERE agent_code ~ %s AND NOT is_deleted",
            (len(prefix) + 1, _code_pattern(prefix)),
        )
        return int(row["seq"]) if row else 0

    def create(self, agent: NewAgent) -> Agent:
        agent_id = uuid.uuid4().hex
        values = (
            agent_id, agent.agent_code, agent.first_name, agent.last_name, agent.email,
            agent.phone_number, agent.channel_id, agent.designation_id, agent.project_id,
            agent.user_id, agent.status.value, agent.joining_date, agent.reporting_manager_id,
            agent.employee_id, agent.branch, agent.province, agent.city, agent.pin_code,
            agent.tin,
        )
        placeholders = ",".join(["%s"] * len(_AGENT_COLUMNS))
        sql = (
            f"INSERT INTO agents ({', '.join(_AGENT_COLUMNS)}) VALUES ({placeholders}) "
            f"RETURNING {', '.join(_AGENT_COLUMNS)}"
        )
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            # Inner savepoint: a unique violation must leave the row usable for a retry.
            cur.execute("SAVEPOINT agent_insert")
            try:
                cur.execute(sql, values)
                row = cur.fetchone()
            except psycopg2.errors.UniqueViolation as e:
                cur.execute("ROLLBACK TO SAVEPOINT agent_insert")
                if getattr(e.diag, "constraint_name", None) == AGENT_CODE_INDEX:
                    raise DuplicateAgentCodeError(
                        f"agent code already exists: {agent.agent_code}"
                    ) from e
                raise RepositoryError(str(e)) from e
            except psycopg2.Error as e:
                cur.execute("ROLLBACK TO SAVEPOINT agent_insert")
                raise RepositoryError(str(e)) from e
            cur.execute("RELEASE SAVEPOINT agent_insert")
        return _agent_from_row(row)

    # -- lookups -----------------------------------------------------------
    def find_channels(self, text: str) -> list[Channel]:
        rows = self._fetchall(
            "SELECT id, channel_name, channel_code FROM channels "
            "WHERE channel_name = %s OR channel_code = %s",
            (text, text),
        )
        return [Channel(id=r["id"], name=r["channel_name"], code=r["channel_code"]) for r in rows]

    def find_designations(self, text: str) -> list[Designation]:
        rows = self._fetchall(
            "SELECT id, designation_name, designation_code, channel_id FROM designations "
            "WHERE designation_name = %s OR designation_code = %s",
            (text, text),
        )
        return [
            Designation(
                id=r["id"],
                name=r["designation_name"],
                code=r["designation_code"],
                channel_id=r["channel_id"],
            )
            for r in rows
        ]

    @property
    def channel_lookup(self) -> PostgresChannels:
        return PostgresChannels(self)

    @property
    def designation_lookup(self) -> PostgresDesignations:
        return PostgresDesignations(self)

    def find_by_id(self, project_id: str) -> Project | None:
        row = self._fetchone("SELECT id, project_name FROM projects WHERE id = %s", (project_id,))
        return Project(id=row["id"], name=row["project_name"]) if row else None

    def find_by_project(self, project_id: str) -> User | None:
        row = self._fetchone(
            "SELECT id, email, project_id FROM users WHERE project_id = %s ORDER BY id LIMIT 1",
            (project_id,),
        )
        return User(id=row["id"], email=row["email"], project_id=row["project_id"]) if row else None

    # -- BatchTransaction --------------------------------------------------
    @contextmanager
    def batch(self) -> Iterator[None]:
        if self.dry_run:
            yield
            return
        try:
            yield
        except BaseException:
            self.conn.rollback()
            raise
        self.conn.commit()

    @contextmanager
    def row(self) -> Iterator[None]:
        with self.conn.cursor() as cur:
            cur.execute("SAVEPOINT agent_row")
        try:
            yield
        except BaseException:
            with self.conn.cursor() as cur:
                cur.execute("ROLLBACK TO SAVEPOINT agent_row")
            raise
        with self.conn.cursor() as cur:
            cur.execute("RELEASE SAVEPOINT agent_row")


class PostgresChannels:
    def __init__(self, store: PostgresStore) -> None:
        self._store = store

    def find_by_name_or_code(self, text: str) -> list[Channel]:
        return self._store.find_channels(text)


class PostgresDesignations:
    def __init__(self, store: PostgresStore) -> None:
        self._store = store

    def find_by_name_or_code(self, text: str) -> list[Designation]:
        return self._store.find_designations(text)


class PostgresSequenceAllocator:
    """Atomic per-prefix counter backed by ``agent_code_sequences``.

    Every allocation returns the largest of: the counter plus one, the highest
    committed code plus one, and ``at_least``. The counter therefore catches up
    with codes written by anyone else, and the update runs under the row lock
    taken by ``ON CONFLICT DO UPDATE``. Codes inserted but not yet committed
    on another connection are invisible here; the generator covers those by
    passing ``at_least``. Give it a dedicated autocommit connection so the
    lock is released right away instead of at batch commit; a rolled-back row
    then leaves a gap, which is allowed.
    """

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def allocate(self, prefix: str, at_least: int = 0) -> int:
        params = {
            "prefix": prefix,
            "offset": len(prefix) + 1,
            "pattern": _code_pattern(prefix),
            "at_least": at_least,
        }
        try:
            with self.conn.cursor() as cur:
                cur.execute(_NEXT_SEQUENCE_SQL, params)
                value = cur.fetchone()[0]
        except psycopg2.Error as e:
            raise RepositoryError(f"sequence allocation failed for {prefix}: {e}") from e
        logger.debug("allocated prefix=%s sequence=%d", prefix, value)
        return int(value)
