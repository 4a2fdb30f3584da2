from __future__ import annotations

from unittest.mock import Mock, patch

from crm_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    def test_init_with_tty_enabled(self):
        with patch("crm_import.services.progress.is_tty_enabled", return_value=True), \
             patch("crm_import.services.progress.tqdm") as mock_tqdm:
            tracker = ProgressTracker(5, description="customers")

            assert tracker.total_records == 5
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="customers",
                unit="row",
                leave=True,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch("crm_import.services.progress.is_tty_enabled", return_value=False):
            tracker = ProgressTracker(5)
            assert tracker.enabled is False
            assert tracker.pbar is None

    def test_explicit_enabled_overrides_tty(self):
        with patch("crm_import.services.progress.is_tty_enabled", return_value=True):
            assert ProgressTracker(1, enabled=False).pbar is None

    def test_advance_counts_and_updates_bar(self):
        mock_pbar = Mock()
        with patch("crm_import.services.progress.tqdm", return_value=mock_pbar):
            tracker = ProgressTracker(3, enabled=True)
            tracker.advance()
            tracker.advance(skipped=True)

        assert tracker.processed == 2
        assert tracker.skipped == 1
        assert mock_pbar.update.call_count == 2
        mock_pbar.set_postfix.assert_called_once_with(skipped=1)

    def test_advance_without_bar(self):
        tracker = ProgressTracker(2, enabled=False)
        tracker.advance(skipped=True)
        assert (tracker.processed, tracker.skipped) == (1, 1)

    def test_context_manager_closes_bar(self):
        mock_pbar = Mock()
        with patch("crm_import.services.progress.tqdm", return_value=mock_pbar):
            with ProgressTracker(3, enabled=True) as tracker:
                assert isinstance(tracker, ProgressTracker)
        mock_pbar.close.assert_called_once()
        assert tracker.pbar is None
