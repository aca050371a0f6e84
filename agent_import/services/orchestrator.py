from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from ..db.repositories import (
    AgentRepository,
    BatchTransaction,
    ChannelRepository,
    DesignationRepository,
    DuplicateAgentCodeError,
    ProjectRepository,
    SequenceAllocator,
    UserRepository,
)
from ..excel import columns as col
from ..excel.reader import decode_workbook
from ..models.config_models import DEFAULT_BATCH_SIZE
from ..models.entities import Agent, Project
from ..models.import_result import ImportResult
from ..models.import_row import ImportRow
from ..models.validation_error import GENERAL_FIELD, ValidationError
from .agent_builder import build_new_agent
from .aggregator import RowOutcome, empty_result, record_batch
from .code_generator import CodeGenerationError, build_allocator, generate_agent_code
from .resolver import ReferenceContext, ReferenceResolver, resolve_project
from .validator import DEFAULT_MOBILE_RULE, MobileRule, validate_row

"""Batch executor for the bulk agent import.

Rows are cut into batches of ``batch_size`` in row order and the batches run
one after another, so uniqueness checks and code allocation in a batch see
everything the previous batches created. Inside a batch every row stands
alone: a row that fails validation, or raises while being created, is
recorded as a failure and the next row runs as usual.

Each batch is its own commit unit (BatchTransaction.batch). There is no
transaction around the whole run: if the caller goes away halfway, earlier
batches stay committed. Resubmitting the same file is safe because every
already-created row then fails the email / mobile uniqueness checks.

Only two things abort a run: an unreadable workbook (MalformedWorkbookError
from the decoder) and an unknown project (ProjectNotFoundError). Both
propagate unchanged and no partial result is returned.
"""

logger = logging.getLogger(__name__)

MAX_CREATE_ATTEMPTS = 3
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


class OwnerNotFoundError(Exception):
    """Raised when no user is linked to the owning project."""


@dataclass(frozen=True)
class ImportContext:
    """Everything the pipeline talks to, passed explicitly to each stage."""
    agents: AgentRepository
    channels: ChannelRepository
    designations: DesignationRepository
    projects: ProjectRepository
    users: UserRepository
    allocator: SequenceAllocator
    transaction: BatchTransaction
    mobile_rule: MobileRule = DEFAULT_MOBILE_RULE


def store_context(
    store: Any,
    allocator: SequenceAllocator,
    mobile_rule: MobileRule = DEFAULT_MOBILE_RULE,
) -> ImportContext:
    """Wire an ImportContext over a single-object store (InMemoryStore, PostgresStore)."""
    return ImportContext(
        agents=store,
        channels=store.channel_lookup,
        designations=store.designation_lookup,
        projects=store,
        users=store,
        allocator=allocator,
        transaction=store,
        mobile_rule=mobile_rule,
    )


def in_memory_context(
    store: Any,
    code_allocation: str = "lock",
    mobile_rule: MobileRule = DEFAULT_MOBILE_RULE,
) -> ImportContext:
    return store_context(store, build_allocator(code_allocation, store), mobile_rule)


@dataclass(frozen=True)
class BatchProgress:
    """Reported to the ``on_batch`` callback after every batch."""
    batch_index: int  # 0-based
    total_batches: int
    rows_in_batch: int
    elapsed_seconds: float
    success_count: int
    failure_count: int


def iter_batches(rows: Sequence[ImportRow], size: int) -> Iterator[Sequence[ImportRow]]:
    """Split rows into consecutive slices of at most ``size`` rows."""
    if size < 1:
        raise ValueError(f"batch size must be positive: {size}")
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def _create_agent(
    row: ImportRow,
    project: Project,
    references: ReferenceContext,
    context: ImportContext,
) -> Agent:
    owner = context.users.find_by_project(project.id)
    if owner is None:
        raise OwnerNotFoundError("No user found for the given project ID")

    supplied = row.get(col.AGENT_CODE)
    for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
        code = generate_agent_code(project, context.allocator, context.agents, supplied)
        try:
            return context.agents.create(build_new_agent(row, references, code, owner.id))
        except DuplicateAgentCodeError:
            if supplied:
                raise
            # Someone else stored this code between allocation and insert.
            logger.info("row=%d code=%s taken concurrently (attempt %d)", row.row_number, code, attempt)
    raise CodeGenerationError(f"agent code kept colliding after {MAX_CREATE_ATTEMPTS} attempts")


def _process_row(
    row: ImportRow,
    project: Project,
    resolver: ReferenceResolver,
    context: ImportContext,
) -> RowOutcome:
    try:
        with context.transaction.row():
            validation = validate_row(row, project, resolver, context.agents, context.mobile_rule)
            if validation.context is None:
                return RowOutcome.failure(validation.errors)
            agent = _create_agent(row, project, validation.context, context)
    except Exception as e:
        logger.warning("row=%d failed unexpectedly: %s", row.row_number, e)
        message = str(e) or UNKNOWN_ERROR_MESSAGE
        return RowOutcome.failure([ValidationError.for_row(row, GENERAL_FIELD, message)])
    return RowOutcome.success(agent)


def run_import(
    rows: Sequence[ImportRow],
    project_id: str,
    context: ImportContext,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_batch: Callable[[BatchProgress], None] | None = None,
) -> ImportResult:
    """Validate and create agents for ``rows`` on behalf of ``project_id``.

    Raises:
        ProjectNotFoundError: the project does not exist (nothing is processed)
        ValueError: batch_size < 1
    """
    if batch_size < 1:
        raise ValueError(f"batch size must be positive: {batch_size}")
    project = resolve_project(context.projects, project_id)
    resolver = ReferenceResolver(context.channels, context.designations, context.agents)
    result = empty_result(batch_size)

    total_batches = (len(rows) + batch_size - 1) // batch_size
    logger.info(
        "import start project=%s rows=%d batch_size=%d batches=%d",
        project.id, len(rows), batch_size, total_batches,
    )
    for index, batch in enumerate(iter_batches(rows, batch_size)):
        started = time.perf_counter()
        with context.transaction.batch():
            outcomes = [_process_row(row, project, resolver, context) for row in batch]
        result = record_batch(result, outcomes)
        elapsed = time.perf_counter() - started
        logger.debug(
            "batch=%d/%d rows=%d elapsed=%.3fs success=%d failed=%d",
            index + 1, total_batches, len(batch), elapsed,
            result.success_count, result.failure_count,
        )
        if on_batch is not None:
            on_batch(
                BatchProgress(
                    batch_index=index,
                    total_batches=total_batches,
                    rows_in_batch=len(batch),
                    elapsed_seconds=elapsed,
                    success_count=result.success_count,
                    failure_count=result.failure_count,
                )
            )

    logger.info(
        "import done project=%s success=%d failed=%d",
        project.id, result.success_count, result.failure_count,
    )
    return result


def import_workbook(
    buffer: bytes,
    project_id: str,
    context: ImportContext,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_batch: Callable[[BatchProgress], None] | None = None,
) -> ImportResult:
    """Decode an uploaded workbook and import its rows.

    Raises:
        MalformedWorkbookError: the buffer is not a readable workbook
        ProjectNotFoundError: the project does not exist
    """
    rows = decode_workbook(buffer)
    return run_import(rows, project_id, context, batch_size=batch_size, on_batch=on_batch)
