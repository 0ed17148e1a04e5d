import logging
from collections.abc import Callable
from contextlib import nullcontext

from cbutils.clipboard import ClipboardBackend, ClipboardWatcher
from cbutils.config import MS_PER_DAY
from cbutils.content_store import ContentStore
from cbutils.errors import EntryNotFoundError
from cbutils.models import ContentType, HistoryEntry, UsageStats
from cbutils.notifier import ChangeNotifier
from cbutils.storage import HistoryLedger, LedgerSession
from cbutils.utils import now_ms

logger = logging.getLogger(__name__)


class HistoryCommands:
    """Operations the front end invokes on the history.

    Each mutating command runs inside one ledger session and notifies
    subscribers once, after the session is released.
    """

    def __init__(
        self,
        ledger: HistoryLedger,
        content_store: ContentStore,
        notifier: ChangeNotifier,
        clipboard: ClipboardBackend | None = None,
        watcher: ClipboardWatcher | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._ledger = ledger
        self._content_store = content_store
        self._notifier = notifier
        self._clipboard = clipboard
        self._watcher = watcher
        self._clock = clock

    def list_history(self, limit: int | None = None) -> list[HistoryEntry]:
        return self._ledger.list_all(limit)

    def search(self, query: str, limit: int | None = None) -> list[HistoryEntry]:
        with self._ledger.session() as session:
            return session.search(query.strip(), limit)

    def copy(self, entry_id: int, now: int | None = None) -> int:
        """Put an entry back on the clipboard and move it to the top; returns its new timestamp."""
        if self._clipboard is None:
            raise RuntimeError("No clipboard backend configured")

        new_timestamp = self._clock() if now is None else now
        with self._ledger.session() as session:
            entry = session.get(entry_id)
            if entry is None:
                raise EntryNotFoundError(entry_id)

            with self._watcher.own_write() if self._watcher is not None else nullcontext():
                if entry.content_type == ContentType.TEXT:
                    self._clipboard.write_text(entry.text)
                else:
                    # decode before touching the clipboard so a bad file leaves it as it was
                    image = self._content_store.load(entry.image_ref)
                    self._clipboard.write_image(image)
            session.touch(entry_id, new_timestamp)

        logger.info("Copied entry %d back to the clipboard", entry_id)
        self._notifier.notify()
        return new_timestamp

    def delete(self, entry_id: int) -> None:
        with self._ledger.session() as session:
            entry = session.delete(entry_id)
            if entry is None:
                raise EntryNotFoundError(entry_id)
            self._release_images(session, [entry])
        self._notifier.notify()

    def clear_all(self) -> int:
        with self._ledger.session() as session:
            removed = session.delete_all()
            self._release_images(session, removed)
        logger.info("Cleared %d history entries", len(removed))
        self._notifier.notify()
        return len(removed)

    def purge_older_than(self, days: int, now: int | None = None) -> int:
        if days < 0:
            raise ValueError(f"days must not be negative, got {days}")
        cutoff = (self._clock() if now is None else now) - days * MS_PER_DAY
        with self._ledger.session() as session:
            removed = session.delete_older_than(cutoff)
            self._release_images(session, removed)
        logger.info("Purged %d entries older than %d days", len(removed), days)
        self._notifier.notify()
        return len(removed)

    def usage_stats(self) -> UsageStats:
        return UsageStats(
            total_size_bytes=self._ledger.sum_size_bytes(),
            storage_location=self._ledger.db_path,
        )

    def _release_images(self, session: LedgerSession, removed: list[HistoryEntry]) -> None:
        for image_ref in {e.image_ref for e in removed if e.image_ref}:
            if session.count_image_refs(image_ref) == 0:
                self._content_store.remove(image_ref)
