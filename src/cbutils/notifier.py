import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Fans out a payload-less "history changed" signal; subscribers re-fetch."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def notify(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback()
            except Exception:
                logger.exception("History change subscriber %r failed", callback)
