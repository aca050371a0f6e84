from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from ..models.entities import Agent, Channel, Designation, NewAgent, Project, User

"""Repository interfaces consumed by the import pipeline.

Entity storage belongs to the surrounding admin console. The pipeline only
needs the lookups and the single create operation declared here; two
implementations ship with the package (db/memory.py, db/postgres.py).
"""


class RepositoryError(Exception):
    """Raised when the underlying store fails."""


class DuplicateAgentCodeError(RepositoryError):
    """Raised by AgentRepository.create when the agent code is already taken."""


class AgentRepository(Protocol):
    def exists_email(self, email: str) -> bool: ...

    def exists_phone(self, phone_number: str) -> bool: ...

    def exists_code(self, agent_code: str) -> bool: ...

    def find_by_code(self, agent_code: str) -> Agent | None: ...

    def max_code_sequence(self, prefix: str) -> int:
        """Highest N among codes matching ``^PREFIX\\d+$``; 0 if none."""
        ...

    def create(self, agent: NewAgent) -> Agent: ...


class ChannelRepository(Protocol):
    def find_by_name_or_code(self, text: str) -> list[Channel]: ...


class DesignationRepository(Protocol):
    def find_by_name_or_code(self, text: str) -> list[Designation]: ...


class ProjectRepository(Protocol):
    def find_by_id(self, project_id: str) -> Project | None: ...


class UserRepository(Protocol):
    def find_by_project(self, project_id: str) -> User | None: ...


class BatchTransaction(Protocol):
    """Commit boundary used by the batch executor.

    ``batch()`` wraps one batch: effects are committed when the block exits.
    ``row()`` wraps one row inside it: an exception rolls back that row only.
    """

    def batch(self) -> AbstractContextManager[None]: ...

    def row(self) -> AbstractContextManager[None]: ...


class SequenceAllocator(Protocol):
    def allocate(self, prefix: str, at_least: int = 0) -> int:
        """Reserve and return the next sequence number for ``prefix``.

        The result is never below ``at_least``; callers pass it to move the
        allocator past numbers already taken by codes it did not issue.
        """
        ...
