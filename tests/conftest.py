from unittest.mock import MagicMock

import pytest

from cbutils.commands import HistoryCommands
from cbutils.content_store import ContentStore
from cbutils.errors import ClipboardAccessError
from cbutils.models import HistoryEntry, RawImage
from cbutils.notifier import ChangeNotifier
from cbutils.resolver import DedupResolver
from cbutils.storage import HistoryLedger

# Sentinel to distinguish "not provided" from "explicitly None"
_UNSET = object()


class FakeClipboard:
    """In-memory stand-in for the OS clipboard capability."""

    def __init__(self):
        self.text: str | None = None
        self.image: RawImage | None = None
        self.app_name: str | None = None
        self.text_error: Exception | None = None
        self.image_error: Exception | None = None
        self.counter = 0
        self.writes: list[object] = []

    def set_text(self, text: str | None) -> None:
        self.text = text
        self.counter += 1

    def set_image(self, image: RawImage | None) -> None:
        self.image = image
        self.counter += 1

    def change_count(self) -> int:
        return self.counter

    def read_text(self) -> str | None:
        if self.text_error:
            raise self.text_error
        return self.text

    def read_image(self) -> RawImage | None:
        if self.image_error:
            raise self.image_error
        return self.image

    def write_text(self, text: str) -> None:
        self.text, self.image = text, None
        self.counter += 1
        self.writes.append(text)

    def write_image(self, image: RawImage) -> None:
        self.text, self.image = None, image
        self.counter += 1
        self.writes.append(image)

    def active_app_name(self) -> str | None:
        return self.app_name


@pytest.fixture
def make_image():
    def _make_image(width: int = 64, height: int = 64, color: tuple[int, int, int, int] = (255, 0, 0, 255)) -> RawImage:
        return RawImage(width=width, height=height, pixels=bytes(color) * (width * height))

    return _make_image


@pytest.fixture
def ledger():
    mgr = HistoryLedger(db_path=":memory:")
    yield mgr
    mgr.close()


@pytest.fixture
def content_store(tmp_path):
    return ContentStore(tmp_path / "images")


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def on_change(notifier):
    callback = MagicMock()
    notifier.subscribe(callback)
    return callback


@pytest.fixture
def resolver(ledger, content_store, notifier):
    return DedupResolver(ledger, content_store, notifier)


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def commands(ledger, content_store, notifier, clipboard):
    return HistoryCommands(ledger, content_store, notifier, clipboard=clipboard)


@pytest.fixture
def unreadable():
    return ClipboardAccessError("pasteboard busy")


@pytest.fixture
def make_entry():
    """Factory fixture to create HistoryEntry instances for testing."""

    def _make_entry(
        text: str | None = "hello world",
        timestamp: int = 1_000,
        image_ref: str | None = None,
        source_app: str | None = _UNSET,
    ) -> HistoryEntry:
        app = "Terminal" if source_app is _UNSET else source_app
        if image_ref is not None:
            return HistoryEntry(
                id=None,
                text=None,
                image_ref=image_ref,
                image_width=10,
                image_height=10,
                timestamp=timestamp,
                size_bytes=1000,
                source_app=app,
            )
        return HistoryEntry(
            id=None,
            text=text,
            image_ref=None,
            timestamp=timestamp,
            size_bytes=len(text.encode()),
            source_app=app,
        )

    return _make_entry
