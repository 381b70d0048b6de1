from __future__ import annotations

from unittest.mock import patch

from water_report.services.progress import CollectionProgress, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True
    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestCollectionProgress:
    """Test cases for CollectionProgress class."""

    def test_init_with_tty_enabled(self):
        with patch('water_report.services.progress.is_tty_enabled', return_value=True), \
             patch('water_report.services.progress.tqdm') as mock_tqdm:
            progress = CollectionProgress(4, description="Saving")
            assert progress.enabled is True
            mock_tqdm.assert_called_once_with(
                total=4,
                desc="Saving",
                unit="collection",
                disable=False,
                leave=False,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('water_report.services.progress.is_tty_enabled', return_value=False), \
             patch('water_report.services.progress.tqdm') as mock_tqdm:
            progress = CollectionProgress(4, description="Clearing")
            assert progress.enabled is False
            assert progress.pbar is None
            mock_tqdm.assert_not_called()
            # 無効時も呼び出しは安全
            progress.start("notes2")
            progress.finish(3)
            progress.close()
            assert progress.current == 1

    def test_start_finish_update_bar(self):
        with patch('water_report.services.progress.is_tty_enabled', return_value=True), \
             patch('water_report.services.progress.tqdm') as mock_tqdm:
            pbar = mock_tqdm.return_value
            with CollectionProgress(2, description="Saving") as progress:
                progress.start("condenserWater2")
                pbar.set_description.assert_called_with("Saving (condenserWater2)")
                progress.finish(7)
                pbar.update.assert_called_once_with(1)
                pbar.set_postfix.assert_called_once_with(documents=7)
            pbar.close.assert_called_once()
            assert progress.pbar is None
