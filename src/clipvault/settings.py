import json
import logging
import threading
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path

from clipvault.config import MAX_ENTRIES, PREVIEW_LENGTH, SETTINGS_PATH

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    max_history_items: int = MAX_ENTRIES
    store_original_image: bool = False
    tray_text_length: int = PREVIEW_LENGTH
    max_pinned_in_tray: int = 5
    max_recent_in_tray: int = 20
    custom_data_path: str | None = None


def _accepts(name: str, value) -> bool:
    """Whether ``value`` has the JSON type of the ``name`` setting."""
    if name == "custom_data_path":
        return value is None or isinstance(value, str)
    if isinstance(getattr(Settings, name), bool):
        return isinstance(value, bool)
    # bool is an int subclass; counts must be real non-negative integers
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class SettingsManager:
    """Thread-safe access to the preferences persisted in ``settings.json``."""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path else SETTINGS_PATH
        self._lock = threading.Lock()
        self._settings = Settings()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Settings:
        """Merge the file over the defaults; a missing or corrupt file keeps defaults."""
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return self.get()
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self._path, e)
            return self.get()
        if not isinstance(raw, dict):
            logger.warning("Ignoring settings file %s: expected an object", self._path)
            return self.get()

        known = {f.name for f in fields(Settings)}
        values = {}
        for key, value in raw.items():
            if key not in known:
                logger.warning("Ignoring unknown setting %r", key)
                continue
            if not _accepts(key, value):
                logger.warning("Ignoring invalid value %r for setting %r", value, key)
                continue
            values[key] = value
        with self._lock:
            self._settings = replace(Settings(), **values)
            logger.info("Settings loaded: %s", self._settings)
            return replace(self._settings)

    def save(self) -> None:
        with self._lock:
            data = asdict(self._settings)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info("Settings saved to %s", self._path)

    def get(self) -> Settings:
        with self._lock:
            return replace(self._settings)

    def update(self, **changes) -> Settings:
        """Apply ``changes`` in memory. Raises ValueError for a wrongly typed value."""
        for key, value in changes.items():
            if not hasattr(Settings, key) or not _accepts(key, value):
                raise ValueError(f"Invalid value {value!r} for setting {key!r}")
        with self._lock:
            self._settings = replace(self._settings, **changes)
            return replace(self._settings)
