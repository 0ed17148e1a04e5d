from dataclasses import dataclass
from enum import Enum


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass
class HistoryEntry:
    id: int | None
    text: str | None
    image_ref: str | None
    timestamp: int
    size_bytes: int
    image_width: int | None = None
    image_height: int | None = None
    source_app: str | None = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.image_ref is None):
            raise ValueError("A history entry holds either text or an image reference, not both or neither")
        if self.image_ref is not None and (self.image_width is None or self.image_height is None):
            raise ValueError("Image entries need both width and height")

    @property
    def content_type(self) -> ContentType:
        return ContentType.TEXT if self.text is not None else ContentType.IMAGE


@dataclass(frozen=True)
class RawImage:
    """Uncompressed RGBA pixels as handed over by the clipboard."""

    width: int
    height: int
    pixels: bytes

    def __post_init__(self) -> None:
        expected = self.width * self.height * 4
        if self.width <= 0 or self.height <= 0 or len(self.pixels) != expected:
            raise ValueError(
                f"Expected {expected} RGBA bytes for a {self.width}x{self.height} image, got {len(self.pixels)}"
            )


@dataclass(frozen=True)
class ContentRef:
    """Result of putting pixels into the content store.

    ``content_hash`` is the identity used for deduplication, ``image_ref`` is
    where the encoded file lives relative to the images directory.
    """

    content_hash: str
    image_ref: str
    width: int
    height: int
    size_bytes: int
    already_exists: bool


@dataclass(frozen=True)
class ClipboardEvent:
    observed_at: int
    text: str | None = None
    image: RawImage | None = None
    source_app: str | None = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.image is None):
            raise ValueError("A clipboard event carries exactly one of text or image")

    @property
    def content_type(self) -> ContentType:
        return ContentType.TEXT if self.text is not None else ContentType.IMAGE


@dataclass(frozen=True)
class UsageStats:
    total_size_bytes: int
    storage_location: str
