"""Tests for app.py wiring.

The desktop app needs the macOS pasteboard, so these tests build the app
around the in-memory fake clipboard instead.
"""
from unittest.mock import MagicMock, patch

import pytest

from cbutils.app import CBUtilsApp, create_desktop_app
from cbutils.clipboard import PollingWatcher


@pytest.fixture
def app(tmp_path, clipboard):
    instance = CBUtilsApp(clipboard=clipboard, db_path=":memory:", image_dir=tmp_path / "images")
    yield instance
    instance.close()


class TestWiring:
    def test_default_watcher_polls_clipboard(self, app, clipboard):
        assert isinstance(app.watcher, PollingWatcher)
        assert app.monitor is not None

    def test_monitor_and_commands_share_history(self, app, clipboard):
        clipboard.set_text("captured")
        app.monitor.handle_change(now=100)

        entries = app.commands.list_history()
        assert [e.text for e in entries] == ["captured"]

    def test_subscribers_hear_monitor_and_commands(self, app, clipboard):
        callback = MagicMock()
        app.on_history_changed(callback)

        clipboard.set_text("x")
        app.monitor.handle_change(now=100)
        entry_id = app.commands.list_history()[0].id
        app.commands.copy(entry_id, now=200)
        app.commands.delete(entry_id)

        assert callback.call_count == 3

    def test_copy_does_not_echo_into_history(self, app, clipboard):
        clipboard.set_text("one")
        assert app.watcher.wait_for_change(timeout=0) is True
        app.monitor.handle_change(now=100)

        app.commands.copy(app.commands.list_history()[0].id, now=200)

        assert app.watcher.wait_for_change(timeout=0) is False

    def test_change_seen_mid_copy_is_not_reported(self, app, clipboard):
        clipboard.set_text("one")
        assert app.watcher.wait_for_change(timeout=0) is True
        app.monitor.handle_change(now=100)
        callback = MagicMock()
        app.on_history_changed(callback)
        seen_during_write = []
        real_write = clipboard.write_text

        def write_and_poll(text):
            real_write(text)
            seen_during_write.append(app.watcher.wait_for_change(timeout=0))

        with patch.object(clipboard, "write_text", side_effect=write_and_poll):
            app.commands.copy(app.commands.list_history()[0].id, now=200)

        assert seen_during_write == [False]
        assert app.watcher.wait_for_change(timeout=0) is False
        callback.assert_called_once()
        assert app.commands.list_history()[0].timestamp == 200

    def test_unsubscribe(self, app, clipboard):
        callback = MagicMock()
        unsubscribe = app.on_history_changed(callback)
        unsubscribe()
        app.commands.clear_all()
        callback.assert_not_called()


class TestWithoutClipboard:
    def test_read_only_app(self, tmp_path):
        app = CBUtilsApp(db_path=tmp_path / "c.db", image_dir=tmp_path / "images")
        try:
            assert app.monitor is None
            assert app.commands.list_history() == []
            with pytest.raises(RuntimeError):
                app.run()
        finally:
            app.close()

    def test_default_paths_create_dirs(self, tmp_path):
        with patch("cbutils.app.ensure_dirs") as ensure, patch("cbutils.app.DB_PATH", tmp_path / "c.db"), patch(
            "cbutils.app.IMAGE_DIR", tmp_path / "images"
        ):
            app = CBUtilsApp()
        try:
            ensure.assert_called_once()
            assert app.ledger.db_path == str(tmp_path / "c.db")
        finally:
            app.close()


class TestRun:
    def test_run_closes_ledger_on_interrupt(self, app):
        thread = MagicMock()
        thread.is_alive.return_value = True
        thread.join.side_effect = KeyboardInterrupt
        with patch.object(app.monitor, "start", return_value=thread), patch.object(app, "close") as close:
            app.run()
        close.assert_called_once()


class TestCreateDesktopApp:
    def test_uses_pasteboard(self):
        with patch("cbutils.pasteboard.PasteboardClipboard") as pasteboard_cls, patch(
            "cbutils.app.CBUtilsApp"
        ) as app_cls:
            create_desktop_app()
        app_cls.assert_called_once_with(clipboard=pasteboard_cls.return_value)
