import io
import logging

from PIL import Image, UnidentifiedImageError

from cbutils.errors import ClipboardAccessError
from cbutils.models import RawImage

logger = logging.getLogger(__name__)


class PasteboardClipboard:
    """macOS general pasteboard, via PyObjC."""

    def __init__(self):
        from AppKit import NSPasteboard, NSWorkspace

        self._pasteboard = NSPasteboard.generalPasteboard()
        self._workspace = NSWorkspace.sharedWorkspace()

    def change_count(self) -> int:
        try:
            return int(self._pasteboard.changeCount())
        except Exception as e:
            raise ClipboardAccessError(f"Cannot read pasteboard change count: {e}") from e

    def read_text(self) -> str | None:
        from AppKit import NSPasteboardTypeString

        try:
            text = self._pasteboard.stringForType_(NSPasteboardTypeString)
        except Exception as e:
            raise ClipboardAccessError(f"Cannot read text from pasteboard: {e}") from e
        return None if text is None else str(text)

    def read_image(self) -> RawImage | None:
        from AppKit import NSPasteboardTypePNG, NSPasteboardTypeTIFF

        try:
            data = None
            for img_type in (NSPasteboardTypePNG, NSPasteboardTypeTIFF):
                data = self._pasteboard.dataForType_(img_type)
                if data is not None:
                    break
        except Exception as e:
            raise ClipboardAccessError(f"Cannot read image from pasteboard: {e}") from e
        if data is None:
            return None

        try:
            with Image.open(io.BytesIO(bytes(data))) as img:
                rgba = img.convert("RGBA")
                return RawImage(width=rgba.width, height=rgba.height, pixels=rgba.tobytes())
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ClipboardAccessError(f"Pasteboard image is not decodable: {e}") from e

    def write_text(self, text: str) -> None:
        from AppKit import NSPasteboardTypeString

        try:
            self._pasteboard.clearContents()
            if not self._pasteboard.setString_forType_(text, NSPasteboardTypeString):
                raise ClipboardAccessError("Pasteboard refused text")
        except ClipboardAccessError:
            raise
        except Exception as e:
            raise ClipboardAccessError(f"Cannot write text to pasteboard: {e}") from e

    def write_image(self, image: RawImage) -> None:
        from AppKit import NSPasteboardTypePNG
        from Foundation import NSData

        buf = io.BytesIO()
        Image.frombytes("RGBA", (image.width, image.height), image.pixels).save(buf, format="PNG")
        png_bytes = buf.getvalue()

        try:
            ns_data = NSData.dataWithBytes_length_(png_bytes, len(png_bytes))
            self._pasteboard.clearContents()
            if not self._pasteboard.setData_forType_(ns_data, NSPasteboardTypePNG):
                raise ClipboardAccessError("Pasteboard refused image")
        except ClipboardAccessError:
            raise
        except Exception as e:
            raise ClipboardAccessError(f"Cannot write image to pasteboard: {e}") from e

    def active_app_name(self) -> str | None:
        try:
            app = self._workspace.frontmostApplication()
            name = app.localizedName() if app is not None else None
        except Exception:
            logger.debug("Could not determine frontmost application", exc_info=True)
            return None
        return str(name) if name else None
