from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from .orchestrator import BatchProgress

"""Batch progress display with tqdm (TTY only).

One bar per run, advanced by rows after each batch. In non-TTY environments
(CI, piped output) the bar is not created at all, so no ANSI control
sequences end up in logs.
"""

__all__ = [
    "BatchProgressBar",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class BatchProgressBar:
    """Callable progress sink for ``run_import(on_batch=...)``."""

    def __init__(self, total_rows: int, *, description: str = "Importing agents") -> None:
        self.total_rows = total_rows
        self.description = description
        self.batches_seen = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def __call__(self, progress: BatchProgress) -> None:
        self.batches_seen += 1
        if self.enabled and self.pbar is not None:
            self.pbar.update(progress.rows_in_batch)
            self.pbar.set_postfix(
                batch=f"{progress.batch_index + 1}/{progress.total_batches}",
                ok=progress.success_count,
                failed=progress.failure_count,
            )

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> BatchProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
