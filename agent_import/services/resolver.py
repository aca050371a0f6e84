from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from ..db.repositories import (
    AgentRepository,
    ChannelRepository,
    DesignationRepository,
    ProjectRepository,
)
from ..models.entities import Agent, Channel, Designation, Project

"""Reference resolution for import rows.

Channel and designation cells may hold either the entity's name or its code.
Lookups return a Resolution instead of raising, so the validator can turn a
failed lookup into a row error attributed to the right column. The only
exception raised here is ProjectNotFoundError, which aborts the whole run.
"""

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProjectNotFoundError(Exception):
    """Raised when the batch's owning project does not exist."""


class Outcome(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    NOT_IN_CHANNEL = "not_in_channel"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    outcome: Outcome
    value: T | None = None

    @property
    def found(self) -> bool:
        return self.outcome is Outcome.FOUND


@dataclass(frozen=True)
class ReferenceContext:
    """Resolved references for one row. Built fresh per row, never shared."""
    project: Project
    channel: Channel
    designation: Designation
    reporting_manager: Agent | None = None


def resolve_project(projects: ProjectRepository, project_id: str) -> Project:
    """Look up the owning project, or abort the run."""
    project = projects.find_by_id(project_id)
    if project is None:
        raise ProjectNotFoundError(f"Project not found: {project_id}")
    return project


class ReferenceResolver:
    """Resolves the channel / designation / reporting-manager cells of a row."""

    def __init__(
        self,
        channels: ChannelRepository,
        designations: DesignationRepository,
        agents: AgentRepository,
    ) -> None:
        self.channels = channels
        self.designations = designations
        self.agents = agents

    def resolve_channel(self, text: str) -> Resolution[Channel]:
        matches = self.channels.find_by_name_or_code(text)
        if not matches:
            return Resolution(Outcome.NOT_FOUND)
        if len(matches) > 1:
            logger.debug("channel reference %r matches %d channels", text, len(matches))
            return Resolution(Outcome.AMBIGUOUS)
        return Resolution(Outcome.FOUND, matches[0])

    def resolve_designation(self, text: str, channel: Channel) -> Resolution[Designation]:
        """Resolve a designation and require it to belong to ``channel``.

        A designation that exists only under other channels is reported as
        NOT_IN_CHANNEL, which the validator words as a mapping mismatch.
        """
        matches = self.designations.find_by_name_or_code(text)
        if not matches:
            return Resolution(Outcome.NOT_FOUND)
        in_channel = [d for d in matches if d.channel_id == channel.id]
        if not in_channel:
            return Resolution(Outcome.NOT_IN_CHANNEL)
        if len(in_channel) > 1:
            return Resolution(Outcome.AMBIGUOUS)
        return Resolution(Outcome.FOUND, in_channel[0])

    def resolve_reporting_manager(self, agent_code: str) -> Resolution[Agent]:
        manager = self.agents.find_by_code(agent_code)
        if manager is None:
            return Resolution(Outcome.NOT_FOUND)
        return Resolution(Outcome.FOUND, manager)
