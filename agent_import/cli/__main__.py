from __future__ import annotations

import argparse
import json
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from agent_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from agent_import.db.postgres import PostgresSequenceAllocator, PostgresStore, ensure_schema
from agent_import.db.repositories import RepositoryError
from agent_import.excel.reader import MalformedWorkbookError, decode_workbook
from agent_import.logging.error_log import ErrorLogBuffer, ErrorRecord
from agent_import.logging.init import log_summary, setup_logging
from agent_import.models.config_models import ImportConfig
from agent_import.models.import_result import BatchStatsAccumulator, RunStats
from agent_import.services.code_generator import build_allocator
from agent_import.services.orchestrator import BatchProgress, run_import, store_context
from agent_import.services.progress import BatchProgressBar
from agent_import.services.resolver import ProjectNotFoundError
from agent_import.services.summary import render_summary_line
from agent_import.services.validator import MobileRule

"""CLI entrypoint: import one agent workbook into PostgreSQL.

    python -m agent_import.cli --file agents.xlsx --project-id P001

Exit codes: 0 every row created, 2 some rows rejected, 1 fatal (config,
database, unreadable workbook, unknown project).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _resolve_dsn(cfg: ImportConfig) -> str:
    """Connection string, highest priority first:

    1. DATABASE_URL / PGDSN (``.env`` is loaded with override beforehand)
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the ``database`` section of config/import.yml
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(dsn: str, *, autocommit: bool = False) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    conn = psycopg2.connect(dsn)
    try:
        conn.autocommit = autocommit
        yield conn
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Bulk agent import from an Excel workbook")
    p.add_argument("--file", required=True, type=Path, help="Workbook to import (.xlsx)")
    p.add_argument("--project-id", required=True, help="Owning project id")
    p.add_argument("--batch-size", type=int, default=None, help="Rows per batch (1-500)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--output", type=Path, default=None, help="Write the JSON result here")
    p.add_argument("--dry-run", action="store_true", help="Validate and roll everything back")
    p.add_argument("--init-schema", action="store_true", help="Create the importer tables first")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _record_errors(error_log: ErrorLogBuffer, file_name: str, result: Any) -> None:
    for err in result.errors:
        error_log.append(ErrorRecord.from_validation_error(file_name, err))


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    batch_size = args.batch_size if args.batch_size is not None else cfg.batch_size
    if not 1 <= batch_size <= cfg.max_batch_size:
        logger.error(f"batch size must be between 1 and {cfg.max_batch_size}: {batch_size}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(cfg.error_log_dir)
    file_name = args.file.name

    try:
        rows = decode_workbook(args.file.read_bytes())
    except OSError as e:
        logger.error(f"cannot read {args.file}: {e}")
        return EXIT_FATAL
    except MalformedWorkbookError as e:
        logger.error(f"workbook: {e}")
        error_log.append(ErrorRecord.create(file_name, -1, "<FILE_LEVEL>", str(e)))
        error_log.flush()
        return EXIT_FATAL
    logger.info(f"Importing {len(rows)} rows from: {args.file}")

    dsn = _resolve_dsn(cfg)
    mobile_rule = MobileRule.from_pattern(cfg.mobile_number_pattern)
    stats = BatchStatsAccumulator()
    started = time.perf_counter()
    try:
        with _db_connection(dsn) as conn, _db_connection(dsn, autocommit=True) as counter_conn:
            if args.init_schema:
                ensure_schema(conn)
            store = PostgresStore(conn, dry_run=args.dry_run)
            # A dry run must not burn counter values, so it allocates in-process.
            if cfg.code_allocation == "counter" and not args.dry_run:
                allocator = PostgresSequenceAllocator(counter_conn)
            else:
                allocator = build_allocator("lock" if args.dry_run else cfg.code_allocation, store)
            context = store_context(store, allocator, mobile_rule)

            with BatchProgressBar(len(rows)) as bar:
                def on_batch(progress: BatchProgress) -> None:
                    stats.add_batch_time(progress.elapsed_seconds)
                    bar(progress)

                result = run_import(rows, args.project_id, context, batch_size=batch_size, on_batch=on_batch)
            if args.dry_run:
                conn.rollback()
                logger.info("dry run: all changes rolled back")
    except ProjectNotFoundError as e:
        logger.error(f"project: {e}")
        error_log.append(ErrorRecord.create(file_name, -1, "<FILE_LEVEL>", str(e)))
        error_log.flush()
        return EXIT_FATAL
    except (psycopg2.Error, RepositoryError) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    elapsed = time.perf_counter() - started
    total_batches, avg_batch, p95_batch = stats.get_stats()
    run_stats = RunStats(
        elapsed_seconds=elapsed,
        total_batches=total_batches,
        avg_batch_seconds=avg_batch,
        p95_batch_seconds=p95_batch,
    )

    if args.output is not None:
        args.output.write_text(json.dumps(result.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"result written to: {args.output}")

    _record_errors(error_log, file_name, result)
    log_path = error_log.flush()
    if log_path is not None:
        logger.warning(f"{result.failure_count} rows rejected, details in: {log_path}")

    logger.info(result.message)
    # log_summary adds its own "SUMMARY " label
    log_summary(render_summary_line(result, run_stats)[len("SUMMARY "):])

    if result.failure_count > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
