from __future__ import annotations

import logging
import threading

from ..db.repositories import AgentRepository, SequenceAllocator
from ..models.entities import Project

"""Agent code generation.

Code format: ``<PREFIX><sequence>``, sequence zero-padded to 5 digits.

Prefix rule (from the owning project's display name):
- one word: first two letters (``Alpha`` -> ``AL``)
- several words: first letter of each of the first two words
  (``Metro Sales`` -> ``MS``)

Sequence numbers come from a SequenceAllocator:

- ScanSequenceAllocator: highest stored sequence + 1. Read-then-compute with
  nothing reserved, so two callers racing on one prefix get the same number.
  Only safe for strictly serial use.
- LockingSequenceAllocator: per-prefix lock plus an in-process high-water
  mark; safe for concurrent callers in one process.
- db.postgres.PostgresSequenceAllocator: atomic counter row in the database;
  safe across processes.
"""

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 5
MAX_GENERATION_ATTEMPTS = 5


class CodeGenerationError(Exception):
    """Raised when no unique agent code can be produced."""


def derive_prefix(project_name: str) -> str:
    words = project_name.split()
    if not words:
        raise CodeGenerationError("project name is blank; cannot derive code prefix")
    if len(words) == 1:
        return words[0][:2].upper()
    return (words[0][0] + words[1][0]).upper()


def format_code(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"


class ScanSequenceAllocator:
    """Naive allocator: scan for the highest stored sequence and add one."""

    def __init__(self, agents: AgentRepository) -> None:
        self.agents = agents

    def allocate(self, prefix: str, at_least: int = 0) -> int:
        return max(self.agents.max_code_sequence(prefix) + 1, at_least)


class LockingSequenceAllocator:
    """Serializes allocation per prefix and remembers what it handed out.

    The high-water mark covers numbers issued but not stored yet; the scan
    covers codes written by anyone else.
    """

    def __init__(self, agents: AgentRepository) -> None:
        self.agents = agents
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._issued: dict[str, int] = {}

    def _lock_for(self, prefix: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(prefix, threading.Lock())

    def allocate(self, prefix: str, at_least: int = 0) -> int:
        with self._lock_for(prefix):
            stored = self.agents.max_code_sequence(prefix)
            value = max(stored + 1, self._issued.get(prefix, 0) + 1, at_least)
            self._issued[prefix] = value
            return value


def generate_agent_code(
    project: Project,
    allocator: SequenceAllocator,
    agents: AgentRepository,
    supplied: str | None = None,
) -> str:
    """Return the code for a new agent of ``project``.

    A supplied code is upper-cased and used verbatim (its uniqueness is the
    validator's job). Otherwise a sequence is allocated; when its code is
    already taken (a hand-entered code, or one the allocator cannot see yet),
    the next allocation is pushed past the highest code stored for the prefix.
    """
    if supplied:
        return supplied.strip().upper()

    prefix = derive_prefix(project.name)
    at_least = 0
    for _ in range(MAX_GENERATION_ATTEMPTS):
        sequence = allocator.allocate(prefix, at_least=at_least)
        code = format_code(prefix, sequence)
        if not agents.exists_code(code):
            logger.debug("generated agent code project=%s prefix=%s code=%s", project.id, prefix, code)
            return code
        at_least = max(sequence, agents.max_code_sequence(prefix)) + 1
        logger.debug("agent code %s already taken, allocating from %d", code, at_least)
    raise CodeGenerationError(
        f"could not allocate a free agent code for prefix {prefix} "
        f"after {MAX_GENERATION_ATTEMPTS} attempts"
    )


def build_allocator(kind: str, agents: AgentRepository) -> SequenceAllocator:
    """Build an in-process allocator by config name (``lock`` or ``scan``)."""
    if kind == "lock":
        return LockingSequenceAllocator(agents)
    if kind == "scan":
        return ScanSequenceAllocator(agents)
    raise ValueError(f"unknown in-process code allocation: {kind}")
