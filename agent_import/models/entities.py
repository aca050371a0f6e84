from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

"""Entity records consumed or produced by the import pipeline.

Channels, designations, projects and users are owned by the surrounding admin
console; the pipeline only reads them. Agents are the one entity it creates.
"""


class AgentStatus(Enum):
    """Lifecycle status of an agent record."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

    @classmethod
    def parse(cls, text: str | None) -> AgentStatus | None:
        if text is None:
            return None
        try:
            return cls(text.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Channel:
    id: str
    name: str
    code: str


@dataclass(frozen=True)
class Designation:
    """Job-title entity; always scoped to exactly one channel."""
    id: str
    name: str
    code: str
    channel_id: str


@dataclass(frozen=True)
class Project:
    id: str
    name: str


@dataclass(frozen=True)
class User:
    id: str
    email: str
    project_id: str | None = None


@dataclass(frozen=True)
class Agent:
    """Persisted agent record."""
    id: str
    agent_code: str
    first_name: str
    last_name: str
    email: str
    phone_number: str
    channel_id: str
    designation_id: str
    project_id: str
    user_id: str
    status: AgentStatus = AgentStatus.ACTIVE
    joining_date: date | None = None
    reporting_manager_id: str | None = None
    employee_id: str | None = None
    branch: str | None = None
    province: str | None = None
    city: str | None = None
    pin_code: str | None = None
    tin: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class NewAgent:
    """Field values for an agent that has not been persisted yet."""
    agent_code: str
    first_name: str
    last_name: str
    email: str
    phone_number: str
    channel_id: str
    designation_id: str
    project_id: str
    user_id: str
    status: AgentStatus = AgentStatus.ACTIVE
    joining_date: date | None = None
    reporting_manager_id: str | None = None
    employee_id: str | None = None
    branch: str | None = None
    province: str | None = None
    city: str | None = None
    pin_code: str | None = None
    tin: str | None = None
