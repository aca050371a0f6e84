from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..models.entities import Agent
from ..models.import_result import CreatedAgent, ImportResult
from ..models.validation_error import ValidationError

"""Result aggregation for the bulk agent import.

The run's ImportResult is a fold over row outcomes: it starts empty and every
step returns a new frozen value with the outcomes appended and the counters
moved. Nothing is deduplicated or reordered, so output order is input order.
The batch executor folds once per finished batch (``record_batch``); the
single-row steps are the same fold with a one-element batch.
"""

__all__ = [
    "RowOutcome",
    "empty_result",
    "record_batch",
    "record_failure",
    "record_success",
    "summarize_agent",
]


def summarize_agent(agent: Agent) -> CreatedAgent:
    return CreatedAgent(
        agent_code=agent.agent_code,
        email=agent.email,
        name=agent.full_name,
        user_id=agent.user_id,
        status=agent.status.value,
    )


@dataclass(frozen=True)
class RowOutcome:
    """What happened to one row: a created agent, or the errors it produced."""
    created: CreatedAgent | None = None
    errors: tuple[ValidationError, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.created is not None

    @staticmethod
    def success(agent: Agent) -> RowOutcome:
        return RowOutcome(created=summarize_agent(agent))

    @staticmethod
    def failure(errors: Iterable[ValidationError]) -> RowOutcome:
        return RowOutcome(errors=tuple(errors))


def empty_result(batch_size: int) -> ImportResult:
    return ImportResult(total_processed=0, success_count=0, failure_count=0, batch_size=batch_size)


def record_batch(result: ImportResult, outcomes: Sequence[RowOutcome]) -> ImportResult:
    """Fold a batch of row outcomes into ``result``."""
    created = tuple(o.created for o in outcomes if o.created is not None)
    errors = tuple(e for o in outcomes if not o.succeeded for e in o.errors)
    return dataclasses.replace(
        result,
        total_processed=result.total_processed + len(outcomes),
        success_count=result.success_count + len(created),
        failure_count=result.failure_count + len(outcomes) - len(created),
        errors=result.errors + errors,
        created_agents=result.created_agents + created,
    )


def record_success(result: ImportResult, agent: Agent) -> ImportResult:
    return record_batch(result, [RowOutcome.success(agent)])


def record_failure(result: ImportResult, errors: Iterable[ValidationError]) -> ImportResult:
    """Count one failed row, keeping every error it produced."""
    return record_batch(result, [RowOutcome.failure(errors)])
