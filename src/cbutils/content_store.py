import io
import logging
import os
import tempfile
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from cbutils.config import IMAGE_DIR, IMAGE_EXTENSION
from cbutils.errors import ImageDecodeError, StorageError
from cbutils.models import ContentRef, RawImage
from cbutils.utils import compute_image_hash

logger = logging.getLogger(__name__)


class ContentStore:
    """Content-addressed image files, one ``<sha256>.png`` per distinct pixel buffer."""

    def __init__(self, image_dir: str | Path | None = None):
        self._image_dir = Path(image_dir) if image_dir else IMAGE_DIR

    @property
    def image_dir(self) -> Path:
        return self._image_dir

    def ref_for_hash(self, content_hash: str) -> str:
        return f"{content_hash}.{IMAGE_EXTENSION}"

    def path_for(self, image_ref: str) -> Path:
        # refs are bare file names; anything else would escape the images directory
        if Path(image_ref).name != image_ref:
            raise ValueError(f"Invalid image reference: {image_ref!r}")
        return self._image_dir / image_ref

    def store(self, pixels: bytes, width: int, height: int) -> ContentRef:
        image = RawImage(width=width, height=height, pixels=pixels)
        content_hash = compute_image_hash(image.pixels, width, height)
        image_ref = self.ref_for_hash(content_hash)
        path = self.path_for(image_ref)

        try:
            if path.exists():
                return ContentRef(
                    content_hash=content_hash,
                    image_ref=image_ref,
                    width=width,
                    height=height,
                    size_bytes=path.stat().st_size,
                    already_exists=True,
                )

            png_bytes = self._encode_png(image)
            self._write_atomic(path, png_bytes)
        except OSError as e:
            raise StorageError(f"Failed to store image {image_ref}: {e}") from e

        logger.debug("Stored %dx%d image as %s (%d bytes)", width, height, image_ref, len(png_bytes))
        return ContentRef(
            content_hash=content_hash,
            image_ref=image_ref,
            width=width,
            height=height,
            size_bytes=len(png_bytes),
            already_exists=False,
        )

    def load(self, image_ref: str) -> RawImage:
        path = self.path_for(image_ref)
        try:
            with Image.open(path) as img:
                rgba = img.convert("RGBA")
                return RawImage(width=rgba.width, height=rgba.height, pixels=rgba.tobytes())
        except FileNotFoundError as e:
            raise ImageDecodeError(f"Image file missing: {path}") from e
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Cannot decode image {path}: {e}") from e

    def remove(self, image_ref: str) -> bool:
        path = self.path_for(image_ref)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to remove image {path}: {e}") from e
        logger.debug("Removed image file %s", path)
        return True

    def file_count(self) -> int:
        if not self._image_dir.exists():
            return 0
        return sum(1 for _ in self._image_dir.glob(f"*.{IMAGE_EXTENSION}"))

    def total_size(self) -> int:
        if not self._image_dir.exists():
            return 0
        return sum(p.stat().st_size for p in self._image_dir.glob(f"*.{IMAGE_EXTENSION}"))

    @staticmethod
    def _encode_png(image: RawImage) -> bytes:
        buf = io.BytesIO()
        Image.frombytes("RGBA", (image.width, image.height), image.pixels).save(buf, format="PNG")
        return buf.getvalue()

    def _write_atomic(self, path: Path, data: bytes) -> None:
        self._image_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._image_dir, prefix=".", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
