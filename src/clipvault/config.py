import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPVAULT_DATA_DIR", Path.home() / ".local" / "share" / "clipvault"))
DB_FILENAME = "clipvault.db"
KEY_FILENAME = ".clipvault.key"
SETTINGS_FILENAME = "settings.json"
LOG_FILENAME = "clipvault.log"
PID_FILENAME = "clipvault.pid"  # written by `clipvault run` while it watches
DB_PATH = DATA_DIR / DB_FILENAME
KEY_PATH = DATA_DIR / KEY_FILENAME
SETTINGS_PATH = DATA_DIR / SETTINGS_FILENAME
LOG_PATH = DATA_DIR / LOG_FILENAME


def _parse_int_env(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


MAX_ENTRIES = _parse_int_env("CLIPVAULT_MAX_ENTRIES", 100, 10, 10_000)  # unpinned retention capacity
DEDUP_WINDOW = 100  # most recent entries per type checked for duplicates
SEARCH_WINDOW = 500  # most recent text entries scanned by search
SEARCH_LIMIT = 50

POLL_INTERVAL = _parse_int_env("CLIPVAULT_POLL_INTERVAL_MS", 500, 100, 5000) / 1000  # seconds
SELF_COPY_GRACE = 2.0  # seconds a programmatic copy is ignored by the watcher

MAX_TEXT_SIZE = 1_000_000  # 1MB text limit
THUMBNAIL_MAX_SIDE = 256
FULL_IMAGE_MAX_SIDE = 2048
RAW_IMAGE_LIMIT = 10_000_000  # bytes kept when an image cannot be transcoded

ICON_CACHE_SIZE = 50
TRAY_ICON_SIZE = 32
PREVIEW_LENGTH = 50
MENU_DISPLAY_COUNT = _parse_int_env("CLIPVAULT_MENU_DISPLAY_COUNT", 10, 5, 50)
