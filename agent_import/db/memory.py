from __future__ import annotations

import re
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict

from ..models.entities import Agent, Channel, Designation, NewAgent, Project, User
from .repositories import DuplicateAgentCodeError

"""In-memory store implementing every repository interface.

Used by the test-suite and by embedding callers. All access goes through
one re-entrant lock so that the store can be shared between threads; commits
are immediate, so batch/row boundaries are no-ops.
"""

__all__ = [
    "InMemoryChannels",
    "InMemoryDesignations",
    "InMemoryStore",
]


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryStore:
    """Single object standing in for the agent, channel, designation, project
    and user repositories plus the batch transaction."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.channels: dict[str, Channel] = {}
        self.designations: dict[str, Designation] = {}
        self.projects: dict[str, Project] = {}
        self.users: dict[str, User] = {}
        self.agents: dict[str, Agent] = {}

    # -- seeding -----------------------------------------------------------
    def add_channel(self, name: str, code: str, channel_id: str | None = None) -> Channel:
        channel = Channel(id=channel_id or _new_id(), name=name, code=code)
        with self._lock:
            self.channels[channel.id] = channel
        return channel

    def add_designation(
        self, name: str, code: str, channel_id: str, designation_id: str | None = None
    ) -> Designation:
        designation = Designation(
            id=designation_id or _new_id(), name=name, code=code, channel_id=channel_id
        )
        with self._lock:
            self.designations[designation.id] = designation
        return designation

    def add_project(self, name: str, project_id: str | None = None) -> Project:
        project = Project(id=project_id or _new_id(), name=name)
        with self._lock:
            self.projects[project.id] = project
        return project

    def add_user(self, email: str, project_id: str | None, user_id: str | None = None) -> User:
        user = User(id=user_id or _new_id(), email=email, project_id=project_id)
        with self._lock:
            self.users[user.id] = user
        return user

    # -- AgentRepository ---------------------------------------------------
    def exists_email(self, email: str) -> bool:
        needle = email.strip().lower()
        with self._lock:
            return any(a.email.lower() == needle for a in self.agents.values())

    def exists_phone(self, phone_number: str) -> bool:
        with self._lock:
            return any(a.phone_number == phone_number for a in self.agents.values())

    def exists_code(self, agent_code: str) -> bool:
        return self.find_by_code(agent_code) is not None

    def find_by_code(self, agent_code: str) -> Agent | None:
        with self._lock:
            for agent in self.agents.values():
                if agent.agent_code == agent_code:
                    return agent
        return None

    def max_code_sequence(self, prefix: str) -> int:
        pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
        highest = 0
        with self._lock:
            for agent in self.agents.values():
                m = pattern.match(agent.agent_code)
                if m:
                    highest = max(highest, int(m.group(1)))
        return highest

    def create(self, agent: NewAgent) -> Agent:
        with self._lock:
            if self.find_by_code(agent.agent_code) is not None:
                raise DuplicateAgentCodeError(f"agent code already exists: {agent.agent_code}")
            created = Agent(id=_new_id(), **asdict(agent))
            self.agents[created.id] = created
        return created

    # -- ChannelRepository / DesignationRepository -------------------------
    def find_channels(self, text: str) -> list[Channel]:
        with self._lock:
            return [c for c in self.channels.values() if text in (c.name, c.code)]

    def find_designations(self, text: str) -> list[Designation]:
        with self._lock:
            return [d for d in self.designations.values() if text in (d.name, d.code)]

    # -- ProjectRepository / UserRepository --------------------------------
    def find_by_id(self, project_id: str) -> Project | None:
        with self._lock:
            return self.projects.get(project_id)

    def find_by_project(self, project_id: str) -> User | None:
        with self._lock:
            for user in self.users.values():
                if user.project_id == project_id:
                    return user
        return None

    # -- per-entity views for the name-or-code lookups ---------------------
    @property
    def channel_lookup(self) -> InMemoryChannels:
        return InMemoryChannels(self)

    @property
    def designation_lookup(self) -> InMemoryDesignations:
        return InMemoryDesignations(self)

    # -- BatchTransaction --------------------------------------------------
    @contextmanager
    def batch(self) -> Iterator[None]:
        yield

    @contextmanager
    def row(self) -> Iterator[None]:
        yield


class InMemoryChannels:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def find_by_name_or_code(self, text: str) -> list[Channel]:
        return self._store.find_channels(text)


class InMemoryDesignations:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def find_by_name_or_code(self, text: str) -> list[Designation]:
        return self._store.find_designations(text)
