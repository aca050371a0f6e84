from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Any

from .validation_error import ValidationError

"""Result models for the bulk agent import pipeline.

ImportResult is the response payload of one upload. It is never persisted.
The aggregator (services/aggregator.py) builds it as a fold over row
outcomes, each step producing a new frozen value.
"""


@dataclass(frozen=True)
class CreatedAgent:
    """Summary of an agent created by the import."""
    agent_code: str
    email: str
    name: str
    user_id: str
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentCode": self.agent_code,
            "email": self.email,
            "name": self.name,
            "userId": self.user_id,
            "status": self.status,
        }


@dataclass(frozen=True)
class ImportResult:
    """Aggregated outcome of one import run.

    Invariant: ``success_count + failure_count == total_processed`` after
    every fold step. ``errors`` and ``created_agents`` keep input row order.
    """
    total_processed: int
    success_count: int
    failure_count: int
    batch_size: int
    errors: tuple[ValidationError, ...] = ()
    created_agents: tuple[CreatedAgent, ...] = ()

    @property
    def is_complete_success(self) -> bool:
        return self.failure_count == 0

    @property
    def message(self) -> str:
        if self.is_complete_success:
            return f"Successfully processed {self.success_count} agents"
        return f"Failed to process {self.failure_count} agents. Check errors for details."

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the upload endpoint's JSON body (camelCase keys)."""
        return {
            "totalProcessed": self.total_processed,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "batchSize": self.batch_size,
            "errors": [e.to_dict() for e in self.errors],
            "createdAgents": [a.to_dict() for a in self.created_agents],
        }


class BatchStatsAccumulator:
    """Collects per-batch timings for the run summary."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 19th of 20 cut points

        return (total_batches, avg_batch_seconds, p95_batch_seconds)


@dataclass(frozen=True)
class RunStats:
    """Timing data for one run, rendered into the SUMMARY line."""
    elapsed_seconds: float
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0
