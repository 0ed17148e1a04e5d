"""Interfaces to the OS clipboard.

The engine never talks to a platform API directly: it reads and writes
through a :class:`ClipboardBackend` and learns about changes from a
:class:`ClipboardWatcher`. ``cbutils.pasteboard`` provides the macOS backend.
"""

import threading
import time
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from cbutils.config import POLL_INTERVAL
from cbutils.models import RawImage


class ChangeCounter(Protocol):
    def change_count(self) -> int: ...


class ClipboardBackend(ChangeCounter, Protocol):
    def read_text(self) -> str | None: ...

    def read_image(self) -> RawImage | None: ...

    def write_text(self, text: str) -> None: ...

    def write_image(self, image: RawImage) -> None: ...

    def active_app_name(self) -> str | None: ...


class ClipboardWatcher(Protocol):
    def wait_for_change(self, timeout: float | None = None) -> bool:
        """Block until the clipboard changes; False if ``timeout`` elapsed first."""
        ...

    def sync(self) -> None:
        """Forget any change made up to now."""
        ...

    def own_write(self) -> AbstractContextManager[None]:
        """Context in which clipboard changes are ours and never reported."""
        ...


class PollingWatcher:
    """Watches a clipboard that exposes a monotonically increasing change counter."""

    def __init__(self, counter: ChangeCounter, interval: float = POLL_INTERVAL, sleep=time.sleep):
        self._counter = counter
        self._interval = interval
        self._sleep = sleep
        self._lock = threading.Lock()
        self._own_writes = 0
        self._last_change_count = counter.change_count()

    def wait_for_change(self, timeout: float | None = None) -> bool:
        waited = 0.0
        while True:
            with self._lock:
                if not self._own_writes:
                    current = self._counter.change_count()
                    if current != self._last_change_count:
                        self._last_change_count = current
                        return True
            if timeout is not None and waited >= timeout:
                return False
            self._sleep(self._interval)
            waited += self._interval

    def sync(self) -> None:
        with self._lock:
            self._last_change_count = self._counter.change_count()

    @contextmanager
    def own_write(self):
        with self._lock:
            self._own_writes += 1
        try:
            yield
        finally:
            with self._lock:
                self._own_writes -= 1
                self._last_change_count = self._counter.change_count()
