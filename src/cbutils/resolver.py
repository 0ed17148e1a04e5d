import logging
from dataclasses import dataclass

from cbutils.content_store import ContentStore
from cbutils.models import ClipboardEvent, ContentType, HistoryEntry, RawImage
from cbutils.notifier import ChangeNotifier
from cbutils.storage import HistoryLedger, LedgerSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    entry_id: int
    inserted: bool


class DedupResolver:
    """Decides whether observed clipboard content is new or a repeat.

    A repeat only has its timestamp bumped; size, source app and payload of
    the stored entry are left as first recorded.
    """

    def __init__(self, ledger: HistoryLedger, content_store: ContentStore, notifier: ChangeNotifier):
        self._ledger = ledger
        self._content_store = content_store
        self._notifier = notifier

    def resolve(self, event: ClipboardEvent) -> Resolution:
        with self._ledger.session() as session:
            if event.content_type == ContentType.TEXT:
                resolution = self._resolve_text(session, event)
            else:
                resolution = self._resolve_image(session, event)
        self._notifier.notify()
        return resolution

    def resolve_text(self, text: str, source_app: str | None, observed_at: int) -> Resolution:
        return self.resolve(ClipboardEvent(observed_at=observed_at, text=text, source_app=source_app))

    def resolve_image(self, image: RawImage, source_app: str | None, observed_at: int) -> Resolution:
        return self.resolve(ClipboardEvent(observed_at=observed_at, image=image, source_app=source_app))

    def _resolve_text(self, session: LedgerSession, event: ClipboardEvent) -> Resolution:
        existing = session.find_by_text(event.text)
        if existing:
            session.touch(existing.id, event.observed_at)
            logger.debug("Text entry %d seen again", existing.id)
            return Resolution(entry_id=existing.id, inserted=False)

        entry_id = session.insert(
            HistoryEntry(
                id=None,
                text=event.text,
                image_ref=None,
                timestamp=event.observed_at,
                size_bytes=len(event.text.encode("utf-8")),
                source_app=event.source_app,
            )
        )
        logger.debug("New text entry %d from %s", entry_id, event.source_app or "unknown app")
        return Resolution(entry_id=entry_id, inserted=True)

    def _resolve_image(self, session: LedgerSession, event: ClipboardEvent) -> Resolution:
        image = event.image
        ref = self._content_store.store(image.pixels, image.width, image.height)

        existing = session.find_by_image_ref(ref.image_ref)
        if existing:
            session.touch(existing.id, event.observed_at)
            logger.debug("Image entry %d seen again", existing.id)
            return Resolution(entry_id=existing.id, inserted=False)

        if ref.already_exists:
            logger.info("Re-using unreferenced image file %s", ref.image_ref)

        entry_id = session.insert(
            HistoryEntry(
                id=None,
                text=None,
                image_ref=ref.image_ref,
                image_width=ref.width,
                image_height=ref.height,
                timestamp=event.observed_at,
                size_bytes=ref.size_bytes,
                source_app=event.source_app,
            )
        )
        logger.debug("New %dx%d image entry %d", ref.width, ref.height, entry_id)
        return Resolution(entry_id=entry_id, inserted=True)
