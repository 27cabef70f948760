from __future__ import annotations

from unittest.mock import Mock, patch

from ods_importer.services.progress import RowProgress, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True
    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


def test_progress_with_tty_creates_open_ended_bar():
    with patch('ods_importer.services.progress.is_tty_enabled', return_value=True), \
         patch('ods_importer.services.progress.tqdm') as mock_tqdm:
        progress = RowProgress("people.ods")
        assert progress.enabled is True
        mock_tqdm.assert_called_once_with(
            total=None,
            desc="Loading rows (people.ods)",
            unit="row",
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )


def test_progress_advance_and_close_with_tty():
    mock_pbar = Mock()
    with patch('ods_importer.services.progress.is_tty_enabled', return_value=True), \
         patch('ods_importer.services.progress.tqdm', return_value=mock_pbar):
        with RowProgress("people.ods") as progress:
            progress.advance()
            progress.advance(3)
            progress.set_postfix(failed=1)
        assert progress.rows == 4
        mock_pbar.update.assert_any_call(1)
        mock_pbar.update.assert_any_call(3)
        mock_pbar.set_postfix.assert_called_once_with(failed=1)
        mock_pbar.close.assert_called_once()
        assert progress.pbar is None


def test_progress_without_tty_is_silent():
    with patch('ods_importer.services.progress.is_tty_enabled', return_value=False), \
         patch('ods_importer.services.progress.tqdm') as mock_tqdm:
        with RowProgress("people.ods") as progress:
            progress.advance(5)
            progress.set_postfix(x=1)
        mock_tqdm.assert_not_called()
        assert progress.pbar is None
        assert progress.rows == 5
