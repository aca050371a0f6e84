from __future__ import annotations

from ..models.import_result import ImportResult, RunStats

"""SUMMARY line rendering for import runs."""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return f"{value:.3f}".rstrip('0').rstrip('.')


def render_summary_line(result: ImportResult, stats: RunStats) -> str:
    """Render the SUMMARY line for one run.

    Format:
    SUMMARY rows={total} success={ok} failed={failed} batch_size={n}
    batches={b} elapsed_sec={s} p95_batch_sec={p}

    Examples:
        >>> result = ImportResult(total_processed=3, success_count=2, failure_count=1, batch_size=100)
        >>> render_summary_line(result, RunStats(elapsed_seconds=2.0, total_batches=1, p95_batch_seconds=2.0))
        'SUMMARY rows=3 success=2 failed=1 batch_size=100 batches=1 elapsed_sec=2 p95_batch_sec=2'
    """
    return (
        f"SUMMARY rows={result.total_processed} "
        f"success={result.success_count} "
        f"failed={result.failure_count} "
        f"batch_size={result.batch_size} "
        f"batches={stats.total_batches} "
        f"elapsed_sec={_format_number(stats.elapsed_seconds)} "
        f"p95_batch_sec={_format_number(stats.p95_batch_seconds)}"
    )
