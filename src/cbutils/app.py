import logging
from pathlib import Path

from cbutils.clipboard import ClipboardBackend, ClipboardWatcher, PollingWatcher
from cbutils.commands import HistoryCommands
from cbutils.config import DB_PATH, IMAGE_DIR, POLL_INTERVAL
from cbutils.content_store import ContentStore
from cbutils.monitor import ClipboardMonitor
from cbutils.notifier import ChangeNotifier
from cbutils.resolver import DedupResolver
from cbutils.storage import HistoryLedger
from cbutils.utils import ensure_dirs

logger = logging.getLogger(__name__)


class CBUtilsApp:
    """Wires the history engine together for one process.

    Without a clipboard the app still serves read and delete commands, which
    is what the CLI uses for everything except ``run`` and ``copy``.
    """

    def __init__(
        self,
        clipboard: ClipboardBackend | None = None,
        watcher: ClipboardWatcher | None = None,
        db_path: str | Path | None = None,
        image_dir: str | Path | None = None,
    ):
        if db_path is None or image_dir is None:
            ensure_dirs()
        self.ledger = HistoryLedger(db_path or DB_PATH)
        self.content_store = ContentStore(image_dir or IMAGE_DIR)
        self.notifier = ChangeNotifier()
        self.resolver = DedupResolver(self.ledger, self.content_store, self.notifier)

        if clipboard is not None and watcher is None:
            watcher = PollingWatcher(clipboard, interval=POLL_INTERVAL)
        self.clipboard = clipboard
        self.watcher = watcher
        self.commands = HistoryCommands(
            self.ledger, self.content_store, self.notifier, clipboard=clipboard, watcher=watcher
        )
        self.monitor = (
            ClipboardMonitor(clipboard, watcher, self.resolver) if clipboard is not None else None
        )

    def on_history_changed(self, callback):
        return self.notifier.subscribe(callback)

    def run(self) -> None:
        """Start monitoring and block until the process is interrupted."""
        if self.monitor is None:
            raise RuntimeError("Cannot monitor without a clipboard backend")
        thread = self.monitor.start()
        try:
            while thread.is_alive():
                thread.join(timeout=1.0)
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            self.close()

    def close(self) -> None:
        self.ledger.close()


def create_desktop_app() -> CBUtilsApp:
    from cbutils.pasteboard import PasteboardClipboard

    return CBUtilsApp(clipboard=PasteboardClipboard())
