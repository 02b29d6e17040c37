import atexit
import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TypeVar

from clipvault.capture import CaptureController, SelfCopyMarker
from clipvault.config import DATA_DIR, DB_FILENAME, KEY_FILENAME, POLL_INTERVAL
from clipvault.crypto import CryptoBox, load_or_create_key
from clipvault.exceptions import EntryNotFound
from clipvault.icons import IconCache
from clipvault.imaging import png_to_rgba
from clipvault.locking import GuardedStore
from clipvault.models import ClipEntry, ContentType
from clipvault.monitor import ClipboardWatcher
from clipvault.pasteboard import ClipboardBackend, select_backend
from clipvault.settings import Settings, SettingsManager
from clipvault.storage import ContentStore
from clipvault.utils import ensure_dirs

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLIPBOARD_CHANGED = "clipboard-changed"
HISTORY_CLEARED = "history-cleared"


def resolve_data_dir(settings: Settings) -> Path:
    if settings.custom_data_path:
        return Path(settings.custom_data_path).expanduser()
    return DATA_DIR


def _set_capacity(store: ContentStore, max_entries: int) -> None:
    store.max_entries = max_entries


class ClipboardService:
    """Command surface for UI collaborators.

    Store calls run on a small worker pool so interactive callers never block on
    disk or crypto work; the blocking helpers accept an optional ``timeout``.
    Listeners receive an event name after every successful mutation.
    """

    def __init__(
        self,
        store: GuardedStore,
        settings: SettingsManager,
        backend: ClipboardBackend | None = None,
        marker: SelfCopyMarker | None = None,
        icon_cache: IconCache | None = None,
        max_workers: int = 2,
    ):
        self.store = store
        self.settings = settings
        self.marker = marker or SelfCopyMarker()
        self.icon_cache = icon_cache or IconCache()
        self.controller = CaptureController(store, self.marker, settings, on_capture=self._on_captured)
        self._backend = backend
        self._watcher: ClipboardWatcher | None = None
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="clipvault-store")
        self._listeners: list[Callable[[str], None]] = []
        self._closed = False

    @classmethod
    def open(cls, settings: SettingsManager | None = None, backend: ClipboardBackend | None = None) -> "ClipboardService":
        """Load settings and key material and open the store in the configured data directory."""
        settings = settings or SettingsManager()
        prefs = settings.load()
        data_dir = resolve_data_dir(prefs)
        ensure_dirs(data_dir)
        crypto = CryptoBox(load_or_create_key(data_dir / KEY_FILENAME))
        store = ContentStore(crypto, data_dir / DB_FILENAME, max_entries=prefs.max_history_items)
        logger.info("Opened clipboard history in %s", data_dir)
        return cls(GuardedStore(store), settings, backend=backend)

    @property
    def backend(self) -> ClipboardBackend:
        if self._backend is None:
            self._backend = select_backend()
        return self._backend

    @property
    def watcher(self) -> ClipboardWatcher | None:
        return self._watcher

    def add_listener(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed handling %s", event)

    def _on_captured(self, _entry: ClipEntry) -> None:
        self._notify(CLIPBOARD_CHANGED)

    def start_watching(self, poll_interval: float = POLL_INTERVAL) -> ClipboardWatcher:
        if self._watcher is None:
            self._watcher = ClipboardWatcher(self.backend, self.controller, poll_interval)
            atexit.register(self.shutdown)
        self._watcher.start()
        return self._watcher

    def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._watcher is not None:
            self._watcher.stop(timeout=2.0)
        self._executor.shutdown(wait=True)
        self.store.close()

    def submit(self, fn: Callable[..., T], *args) -> "Future[T]":
        """Run ``fn(store, *args)`` on a worker thread under the store lock."""
        return self._executor.submit(self.store.call, fn, *args)

    def _run(self, fn: Callable[..., T], *args, timeout: float | None = None) -> T:
        return self.submit(fn, *args).result(timeout=timeout)

    # Queries

    def get_recent(self, limit: int = 100, timeout: float | None = None) -> list[ClipEntry]:
        return self._run(ContentStore.get_recent, limit, timeout=timeout)

    def get_pinned(self, timeout: float | None = None) -> list[ClipEntry]:
        return self._run(ContentStore.get_pinned, timeout=timeout)

    def search(self, query: str, timeout: float | None = None) -> list[ClipEntry]:
        return self._run(ContentStore.search, query, timeout=timeout)

    def get_by_id(self, entry_id: str, timeout: float | None = None) -> ClipEntry:
        entry = self._run(ContentStore.get_by_id, entry_id, timeout=timeout)
        if entry is None:
            raise EntryNotFound(f"Clip not found: {entry_id}")
        return entry

    def count(self) -> int:
        return self._run(ContentStore.count)

    # Mutations

    def insert(self, entry: ClipEntry) -> bool:
        inserted = self._run(ContentStore.insert, entry)
        if inserted:
            self._notify(CLIPBOARD_CHANGED)
        return inserted

    def set_pinned(self, entry_id: str, is_pinned: bool) -> None:
        self._require(self._run(ContentStore.update_pin, entry_id, is_pinned), entry_id)
        self._notify(CLIPBOARD_CHANGED)

    def promote(self, entry_id: str, timestamp: int | None = None) -> int:
        """Move an entry to the top of the recent list. Returns the new timestamp."""
        new_timestamp = timestamp if timestamp is not None else int(time.time())
        self._require(self._run(ContentStore.update_timestamp, entry_id, new_timestamp), entry_id)
        self._notify(CLIPBOARD_CHANGED)
        return new_timestamp

    def delete(self, entry_id: str) -> None:
        self._require(self._run(ContentStore.delete, entry_id), entry_id)
        self._notify(CLIPBOARD_CHANGED)

    def clear_all(self) -> int:
        logger.info("Clearing all clipboard history (user requested)")
        removed = self._run(ContentStore.clear_all)
        self.icon_cache.clear()
        self._notify(HISTORY_CLEARED)
        return removed

    def clear_non_pinned(self) -> int:
        logger.info("Clearing non-pinned clipboard history (user requested)")
        removed = self._run(ContentStore.clear_non_pinned)
        self.icon_cache.clear()
        self._notify(HISTORY_CLEARED)
        return removed

    def copy_to_clipboard(self, entry_id: str) -> ClipEntry:
        """Write a stored entry back to the system clipboard and promote it."""
        entry = self.get_by_id(entry_id)
        if entry.content_type == ContentType.IMAGE:
            width, height, rgba = png_to_rgba(entry.content)
            self.backend.write_image(width, height, rgba)
            logger.info("Copied image to clipboard (%dx%d)", width, height)
        elif entry.content_type in (ContentType.TEXT, ContentType.FILE, ContentType.HTML, ContentType.RTF):
            text = entry.text
            self.marker.mark(text)
            self.backend.write_text(text)
            logger.info("Copied %s to clipboard: %d chars", entry.content_type.value, len(text))
        else:
            raise ValueError(f"Unhandled content type: {entry.content_type!r}")
        entry.timestamp = self.promote(entry.id)
        return entry

    def update_settings(self, **changes) -> Settings:
        prefs = self.settings.update(**changes)
        self.settings.save()
        if "max_history_items" in changes:
            self._run(_set_capacity, prefs.max_history_items)
        return prefs

    @staticmethod
    def _require(found: bool, entry_id: str) -> None:
        if not found:
            raise EntryNotFound(f"Clip not found: {entry_id}")
