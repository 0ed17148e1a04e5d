import logging
import queue
import threading
from collections.abc import Callable

from cbutils.clipboard import ClipboardBackend, ClipboardWatcher
from cbutils.errors import ClipboardAccessError, StorageError
from cbutils.models import ClipboardEvent
from cbutils.resolver import DedupResolver
from cbutils.utils import now_ms

logger = logging.getLogger(__name__)


class ClipboardMonitor:
    """Turns clipboard changes into resolved history entries.

    The watcher only says *that* the clipboard changed; the monitor reads what
    is on it, queues one event per modality (text before image) and feeds the
    queue to the resolver. A failed read or a failed write never ends the loop.
    """

    def __init__(
        self,
        clipboard: ClipboardBackend,
        watcher: ClipboardWatcher,
        resolver: DedupResolver,
        clock: Callable[[], int] = now_ms,
    ):
        self._clipboard = clipboard
        self._watcher = watcher
        self._resolver = resolver
        self._clock = clock
        self._events: queue.Queue[ClipboardEvent] = queue.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> threading.Thread:
        if self._thread is None:
            self._thread = threading.Thread(target=self.run, name="cbutils-monitor", daemon=True)
            self._thread.start()
            logger.info("Clipboard monitor started")
        return self._thread

    def run(self) -> None:
        while True:
            try:
                changed = self._watcher.wait_for_change()
            except ClipboardAccessError:
                logger.warning("Clipboard watcher error", exc_info=True)
                continue
            if not changed:
                continue
            try:
                self.handle_change()
            except Exception:
                logger.exception("Error handling clipboard change")

    def handle_change(self, now: int | None = None) -> int:
        observed_at = self._clock() if now is None else now
        self._capture(observed_at)
        return self._drain()

    def _capture(self, observed_at: int) -> None:
        source_app = self._read_source_app()

        try:
            text = self._clipboard.read_text()
        except ClipboardAccessError:
            logger.warning("Could not read text from clipboard", exc_info=True)
            text = None
        if text is not None:
            self._events.put(ClipboardEvent(observed_at=observed_at, text=text, source_app=source_app))

        try:
            image = self._clipboard.read_image()
        except ClipboardAccessError:
            logger.warning("Could not read image from clipboard", exc_info=True)
            image = None
        if image is not None:
            self._events.put(ClipboardEvent(observed_at=observed_at, image=image, source_app=source_app))

    def _drain(self) -> int:
        resolved = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return resolved
            try:
                self._resolver.resolve(event)
                resolved += 1
            except StorageError:
                logger.exception("Failed to record clipboard %s", event.content_type.value)
            except Exception:
                logger.exception("Unexpected error recording clipboard change")
            finally:
                self._events.task_done()

    def _read_source_app(self) -> str | None:
        try:
            return self._clipboard.active_app_name()
        except Exception:
            logger.debug("Source application lookup failed", exc_info=True)
            return None
