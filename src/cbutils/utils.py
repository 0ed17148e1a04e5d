import hashlib
import time

from cbutils.config import DATA_DIR, IMAGE_DIR


def compute_image_hash(pixels: bytes, width: int, height: int) -> str:
    digest = hashlib.sha256(f"{width}x{height}:".encode("ascii"))
    digest.update(pixels)
    return digest.hexdigest()


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def truncate_text(text: str, max_len: int) -> str:
    single_line = " ".join(text.split())
    if len(single_line) <= max_len:
        return single_line
    return single_line[: max_len - 3] + "..."


def format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    IMAGE_DIR.mkdir(parents=True, exist_ok=True)
