from __future__ import annotations

from unittest.mock import patch

from agent_import.services.orchestrator import BatchProgress
from agent_import.services.progress import BatchProgressBar, is_tty_enabled


def _progress(index=0, rows=100):
    return BatchProgress(
        batch_index=index, total_batches=3, rows_in_batch=rows,
        elapsed_seconds=0.5, success_count=90, failure_count=10,
    )


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True
    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestBatchProgressBar:
    def test_tty_creates_bar_and_advances_by_rows(self):
        with patch('agent_import.services.progress.is_tty_enabled', return_value=True), \
             patch('agent_import.services.progress.tqdm') as mock_tqdm:
            with BatchProgressBar(250) as bar:
                bar(_progress(0, 100))
                bar(_progress(1, 100))

            mock_tqdm.assert_called_once_with(
                total=250,
                desc="Importing agents",
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
            pbar = mock_tqdm.return_value
            assert pbar.update.call_count == 2
            pbar.update.assert_called_with(100)
            pbar.set_postfix.assert_called_with(batch="2/3", ok=90, failed=10)
            pbar.close.assert_called_once()
            assert bar.batches_seen == 2

    def test_non_tty_has_no_bar(self):
        with patch('agent_import.services.progress.is_tty_enabled', return_value=False), \
             patch('agent_import.services.progress.tqdm') as mock_tqdm:
            bar = BatchProgressBar(10)
            bar(_progress())
            bar.close()
            mock_tqdm.assert_not_called()
            assert bar.pbar is None
            assert bar.batches_seen == 1

    def test_close_is_idempotent(self):
        with patch('agent_import.services.progress.is_tty_enabled', return_value=True), \
             patch('agent_import.services.progress.tqdm') as mock_tqdm:
            bar = BatchProgressBar(10)
            bar.close()
            bar.close()
            mock_tqdm.return_value.close.assert_called_once()
