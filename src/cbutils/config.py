import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("CBUTILS_DATA_DIR", Path.home() / ".local" / "share" / "cbutils"))
DB_PATH = DATA_DIR / "clipboard.db"
IMAGE_DIR = DATA_DIR / "images"
LOG_PATH = DATA_DIR / "cbutils.log"

IMAGE_EXTENSION = "png"
PREVIEW_LENGTH = 60  # characters shown per row in `cbutils list`
MS_PER_DAY = 24 * 60 * 60 * 1000


def _parse_poll_interval() -> float:
    raw = os.environ.get("CBUTILS_POLL_INTERVAL")
    if raw is None:
        return 0.5
    try:
        value = float(raw)
    except ValueError:
        return 0.5
    return max(0.1, min(5.0, value))


POLL_INTERVAL = _parse_poll_interval()  # seconds between clipboard checks
